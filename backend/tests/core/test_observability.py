"""Tests for structured logging, correlation ids and metric path labels."""

import json
import logging
import sys
import uuid

from hypothesis import given, settings, strategies as st

from media_ingest.core.logging import (
    CorrelationIdFilter,
    StructuredFormatter,
    clear_correlation_id,
    correlation_scope,
    get_correlation_id,
    set_correlation_id,
)
from media_ingest.core.metrics import get_content_type, get_metrics
from media_ingest.core.middleware import normalize_path


def make_record(message: str = "Upload completed", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="media_ingest.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    def test_record_renders_as_json_with_extra_fields(self):
        with correlation_scope("cid-42"):
            record = make_record(session_id="s-1", total_parts=3)
            CorrelationIdFilter().filter(record)
            rendered = json.loads(StructuredFormatter().format(record))

        assert rendered["message"] == "Upload completed"
        assert rendered["level"] == "INFO"
        assert rendered["correlation_id"] == "cid-42"
        assert rendered["extra"] == {"session_id": "s-1", "total_parts": 3}

    def test_unserializable_extra_is_stringified(self):
        asset_id = uuid.uuid4()
        rendered = json.loads(StructuredFormatter().format(make_record(asset_id=asset_id)))

        assert rendered["extra"]["asset_id"] == str(asset_id)

    def test_exception_details_included(self):
        try:
            raise ValueError("bad part list")
        except ValueError:
            record = make_record("failed")
            record.exc_info = sys.exc_info()

        rendered = json.loads(StructuredFormatter().format(record))

        assert rendered["exception"]["type"] == "ValueError"
        assert rendered["exception"]["message"] == "bad part list"


class TestCorrelationScope:
    def test_scope_restores_previous_id(self):
        set_correlation_id("outer")
        with correlation_scope("inner") as cid:
            assert cid == "inner"
            assert get_correlation_id() == "inner"
        assert get_correlation_id() == "outer"
        clear_correlation_id()

    def test_scope_mints_id_when_none_given(self):
        with correlation_scope() as cid:
            assert uuid.UUID(cid)


class TestMetricPaths:
    @given(asset_id=st.uuids())
    @settings(max_examples=100)
    def test_uuids_collapse(self, asset_id: uuid.UUID):
        path = f"/api/v1/assets/{asset_id}/download"
        assert normalize_path(path) == "/api/v1/assets/{id}/download"

    def test_static_paths_untouched(self):
        assert normalize_path("/api/v1/upload/start") == "/api/v1/upload/start"
        assert normalize_path("/api/v1/jobs/42") == "/api/v1/jobs/{id}"

    def test_metrics_exposition(self):
        body = get_metrics().decode()

        assert "transcode_queue_depth" in body
        assert get_content_type().startswith("text/plain")
