"""
Persistence of finished biomarker records.

Stores write the record in the persisted schema (user_info, biomarkers,
raw_data_summary) with a save timestamp and platform tag, and return the
new record's identifier. Failures propagate unchanged; nothing is retried.
"""

import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from loguru import logger

from ..metrics.aggregator import BiomarkerRecord

PLATFORM = "Desktop POC"


def record_document(record: BiomarkerRecord, platform: str = PLATFORM) -> dict:
    """Record payload with the save-time fields stamped into user_info."""
    doc = record.to_dict()
    doc["user_info"]["timestamp"] = datetime.now(timezone.utc).isoformat()
    doc["user_info"]["platform"] = platform
    return doc


class JsonlRecordStore:
    """Appends one JSON document per record to a local file."""

    def __init__(self, path: str = "data/emotion_records.jsonl", platform: str = PLATFORM):
        self.path = Path(path)
        self.platform = platform

    def save(self, record: BiomarkerRecord) -> str:
        """
        Append the record.

        Returns:
            Generated record identifier

        Raises:
            OSError: If the file cannot be written
        """
        record_id = uuid.uuid4().hex
        doc = record_document(record, self.platform)
        doc["id"] = record_id

        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(json.dumps(doc, ensure_ascii=False) + "\n")

        logger.info(f"Saved record {record_id} to {self.path}")
        return record_id


class HttpRecordStore:
    """
    POSTs each record as JSON to a collection endpoint.

    The endpoint is expected to answer with a JSON body holding the new
    document's `id` (or `name`).
    """

    def __init__(
        self,
        endpoint: str,
        timeout: int = 15,
        api_key: Optional[str] = None,
        platform: str = PLATFORM,
        session: Optional[requests.Session] = None,
    ):
        self.endpoint = endpoint
        self.timeout = timeout
        self.platform = platform
        self.session = session or self._create_session(api_key)

    @staticmethod
    def _create_session(api_key: Optional[str]) -> requests.Session:
        session = requests.Session()

        # Uploads are attempted once
        adapter = HTTPAdapter(max_retries=0)
        session.mount("http://", adapter)
        session.mount("https://", adapter)

        session.headers.update({"Content-Type": "application/json"})
        if api_key:
            session.headers["Authorization"] = f"Bearer {api_key}"
        return session

    def save(self, record: BiomarkerRecord) -> str:
        """
        Upload the record.

        Returns:
            Identifier assigned by the server

        Raises:
            requests.RequestException: On network or HTTP errors
            ValueError: If the response carries no identifier
        """
        doc = record_document(record, self.platform)
        response = self.session.post(self.endpoint, json=doc, timeout=self.timeout)
        response.raise_for_status()

        body = response.json()
        record_id = body.get("id") or body.get("name")
        if not record_id:
            raise ValueError("Upload response did not include a record id")

        logger.info(f"Uploaded record {record_id}")
        return str(record_id)
