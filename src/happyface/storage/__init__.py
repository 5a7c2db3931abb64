from .record_store import JsonlRecordStore, HttpRecordStore, record_document

__all__ = [
    "JsonlRecordStore",
    "HttpRecordStore",
    "record_document",
]
