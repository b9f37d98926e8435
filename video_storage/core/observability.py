"""
Structured logging for the proxy.

Every log line is a single JSON object on stdout carrying the timestamp,
level and message plus the tagging fields log aggregation relies on:

    {"timestamp": "2024-05-01 13:45:10.123", "level": "info",
     "message": "Uploaded the video abc.", "app": "video-storage:1.0",
     "service": "video-storage", "requestId": "3f1c..."}

Request handlers log through a RequestLoggerAdapter so the correlation id
taken from the x-correlation-id header lands on every line of a request.
"""

import json
import logging
import sys
import traceback
from datetime import datetime
from typing import Any, MutableMapping, Optional, TextIO

# Placeholder request id for lines not tied to a request (startup, shutdown)
NO_REQUEST_ID = "-1"


class JSONFormatter(logging.Formatter):
    """Format log records as compact JSON objects."""

    # Standard LogRecord attributes; anything else came in through `extra`
    RESERVED_ATTRS = {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "thread",
        "threadName",
        "taskName",
        "color_message",
    }

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": self._format_timestamp(record),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key.startswith("_") or key in self.RESERVED_ATTRS:
                continue
            entry[key] = value

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__ if exc_type else "Unknown",
                "message": str(exc_value) if exc_value else "",
                "traceback": "".join(traceback.format_exception(*record.exc_info)),
            }

        return json.dumps(entry, default=str, ensure_ascii=False, separators=(",", ":"))

    def _format_timestamp(self, record: logging.LogRecord) -> str:
        # Local time on a 24-hour clock
        created = datetime.fromtimestamp(record.created)
        return f"{created:%Y-%m-%d %H:%M:%S}.{int(record.msecs):03d}"


class RequestLoggerAdapter(logging.LoggerAdapter):
    """
    Stamp app/service/requestId onto every record.

    Unlike the stock LoggerAdapter, fields passed through `extra` at the
    call site are kept and merged with the adapter's own.
    """

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**(kwargs.get("extra") or {}), **self.extra}
        return msg, kwargs


def get_request_logger(
    app: str,
    service: str,
    request_id: Optional[str] = None,
    name: str = "video_storage",
) -> RequestLoggerAdapter:
    """Return a logger tagged for one request (or for process-level messages)."""
    return RequestLoggerAdapter(
        logging.getLogger(name),
        {
            "app": app,
            "service": service,
            "requestId": request_id if request_id else NO_REQUEST_ID,
        },
    )


def setup_logging(level: str = "INFO", stream: Optional[TextIO] = None) -> None:
    """
    Configure the root logger to write JSON lines to stdout.

    Safe to call more than once; existing handlers are replaced so lines
    are never written twice.
    """
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JSONFormatter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level.upper())

    # The SDKs are chatty at DEBUG; keep them at WARNING unless asked otherwise
    for noisy in ("boto3", "botocore", "ibm_boto3", "ibm_botocore", "s3transfer", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
