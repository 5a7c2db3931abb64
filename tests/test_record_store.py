import json
from unittest.mock import MagicMock

import pytest
import requests

from happyface.metrics.aggregator import BiomarkerAggregator, FrownMetrics, SmileMetrics, Subject
from happyface.storage.record_store import HttpRecordStore, JsonlRecordStore, record_document


@pytest.fixture
def record():
    return BiomarkerAggregator().assemble(
        Subject("Ada", 36), 0.1,
        SmileMetrics(0.9, 250, 0.8), FrownMetrics(0.7, 300), blink_rate=15.0,
    )


def test_record_document_stamps_save_fields(record):
    doc = record_document(record, platform="test")
    assert doc["user_info"]["platform"] == "test"
    assert "timestamp" in doc["user_info"]
    assert doc["biomarkers"]["blink_rate"] == 15.0


def test_jsonl_store_appends_one_line_per_record(tmp_path, record):
    store = JsonlRecordStore(str(tmp_path / "out" / "records.jsonl"))
    first = store.save(record)
    second = store.save(record)
    assert first != second

    lines = (tmp_path / "out" / "records.jsonl").read_text(encoding="utf-8").splitlines()
    docs = [json.loads(line) for line in lines]
    assert [d["id"] for d in docs] == [first, second]
    assert docs[0]["raw_data_summary"] == "normal"


def test_http_store_returns_server_id(record):
    session = MagicMock()
    session.post.return_value.json.return_value = {"id": "doc-123"}
    store = HttpRecordStore("https://example.org/records", session=session)

    assert store.save(record) == "doc-123"
    args, kwargs = session.post.call_args
    assert args == ("https://example.org/records",)
    assert kwargs["json"]["user_info"]["name"] == "Ada"


def test_http_store_surfaces_errors_unchanged(record):
    session = MagicMock()
    error = requests.HTTPError("503 Server Error")
    session.post.return_value.raise_for_status.side_effect = error
    store = HttpRecordStore("https://example.org/records", session=session)

    with pytest.raises(requests.HTTPError) as excinfo:
        store.save(record)
    assert excinfo.value is error
    assert session.post.call_count == 1


def test_http_store_requires_id(record):
    session = MagicMock()
    session.post.return_value.json.return_value = {}
    store = HttpRecordStore("https://example.org/records", session=session)
    with pytest.raises(ValueError):
        store.save(record)


def test_http_session_sets_auth_header():
    store = HttpRecordStore("https://example.org/records", api_key="secret")
    assert store.session.headers["Authorization"] == "Bearer secret"
