"""
Unit tests for structured logging.
"""

import io
import json
import logging
import sys
from datetime import datetime

from video_storage.core.observability import (
    NO_REQUEST_ID,
    JSONFormatter,
    get_request_logger,
    setup_logging,
)


def _record(message: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="video_storage.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    """Tests for the JSON line format."""

    def test_core_fields(self):
        line = JSONFormatter().format(_record("Uploaded the video abc."))
        entry = json.loads(line)

        assert entry["message"] == "Uploaded the video abc."
        assert entry["level"] == "info"
        assert "timestamp" in entry

    def test_extra_fields_are_top_level(self):
        record = _record(app="app:1.0", service="video-storage", requestId="cid-1")

        entry = json.loads(JSONFormatter().format(record))

        assert entry["app"] == "app:1.0"
        assert entry["service"] == "video-storage"
        assert entry["requestId"] == "cid-1"

    def test_exception_details(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = _record()
            record.exc_info = sys.exc_info()

        entry = json.loads(JSONFormatter().format(record))

        assert entry["exception"]["type"] == "RuntimeError"
        assert entry["exception"]["message"] == "boom"
        assert "Traceback" in entry["exception"]["traceback"]

    def test_unserializable_values_become_strings(self):
        entry = json.loads(JSONFormatter().format(_record(payload=object())))

        assert entry["payload"].startswith("<object")

    def test_timestamp_has_milliseconds(self):
        entry = json.loads(JSONFormatter().format(_record()))

        date, time = entry["timestamp"].split(" ")
        assert len(date) == 10
        assert len(time.split(".")[1]) == 3

    def test_timestamp_uses_24_hour_clock(self):
        """Afternoon records must not collide with morning ones."""
        record = _record()
        record.created = datetime(2024, 5, 1, 15, 4, 5).timestamp()
        record.msecs = 123.0

        entry = json.loads(JSONFormatter().format(record))

        assert entry["timestamp"] == "2024-05-01 15:04:05.123"


class TestRequestLogger:
    """Tests for correlation-id tagging."""

    def test_tags_every_record(self, caplog):
        caplog.set_level(logging.INFO)
        log = get_request_logger("app:1.0", "video-storage", "cid-42")

        log.info("first")
        log.error("second")

        assert [r.requestId for r in caplog.records] == ["cid-42", "cid-42"]
        assert all(r.app == "app:1.0" for r in caplog.records)
        assert all(r.service == "video-storage" for r in caplog.records)

    def test_missing_correlation_id_uses_placeholder(self, caplog):
        caplog.set_level(logging.INFO)

        get_request_logger("app", "svc", None).info("no id")

        assert caplog.records[0].requestId == NO_REQUEST_ID

    def test_call_site_extra_is_kept(self, caplog):
        caplog.set_level(logging.INFO)

        get_request_logger("app", "svc", "cid").info("sized", extra={"size_bytes": 10})

        assert caplog.records[0].size_bytes == 10
        assert caplog.records[0].requestId == "cid"


class TestSetupLogging:
    """Tests for root logger configuration."""

    def test_writes_json_lines(self, restore_root_logger):
        stream = io.StringIO()
        setup_logging("INFO", stream=stream)

        get_request_logger("app", "svc", "cid").info("listening")

        entry = json.loads(stream.getvalue().strip().splitlines()[-1])
        assert entry["message"] == "listening"
        assert entry["requestId"] == "cid"

    def test_level_filters(self, restore_root_logger):
        stream = io.StringIO()
        setup_logging("error", stream=stream)

        logging.getLogger("video_storage.test").info("dropped")

        assert stream.getvalue() == ""

    def test_repeated_setup_does_not_duplicate(self, restore_root_logger):
        stream = io.StringIO()
        setup_logging("INFO", stream=stream)
        setup_logging("INFO", stream=stream)

        logging.getLogger("video_storage.test").info("once")

        assert stream.getvalue().count("once") == 1
