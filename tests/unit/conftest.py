"""
Shared fixtures for the unit tests.

Nothing here talks to a real object store: routes run against the
in-memory storage client and the S3 client is exercised through
botocore's Stubber.
"""

import logging
from typing import Optional

import pytest
from fastapi.testclient import TestClient

from video_storage.config.settings import HmacConfiguration
from video_storage.core.context import AppContext
from video_storage.infrastructure.storage.client import InMemoryStorageClient
from video_storage.main import create_app


class RecordingStorageClient(InMemoryStorageClient):
    """In-memory storage that also remembers every store() call."""

    def __init__(self, bucket_name: str = "videos") -> None:
        super().__init__(bucket_name=bucket_name, chunk_size=256)
        self.store_calls: list[dict] = []

    async def store(self, key, content_type, content_length, body) -> None:
        self.store_calls.append({
            "key": key,
            "content_type": content_type,
            "content_length": content_length,
        })
        await super().store(key, content_type, content_length, body)


@pytest.fixture
def hmac_environ() -> dict[str, str]:
    """A complete HMAC environment."""
    return {
        "BUCKET_NAME": "videos",
        "ENDPOINT": "https://s3.us-south.cloud-object-storage.appdomain.cloud",
        "AUTHENTICATION_TYPE": "hmac",
        "REGION": "us-south",
        "ACCESS_KEY_ID": "access-key",
        "SECRET_ACCESS_KEY": "secret-key",
        "PORT": "3000",
    }


@pytest.fixture
def iam_environ() -> dict[str, str]:
    """A complete IAM environment."""
    return {
        "BUCKET_NAME": "videos",
        "ENDPOINT": "https://s3.us-south.cloud-object-storage.appdomain.cloud",
        "AUTHENTICATION_TYPE": "iam",
        "API_KEY": "api-key",
        "SERVICE_INSTANCE_ID": "crn:v1:bluemix:public:cloud-object-storage:global:a/123::",
        "PORT": "3000",
    }


@pytest.fixture
def configuration() -> HmacConfiguration:
    return HmacConfiguration(
        bucket_name="videos",
        endpoint="https://s3.example.test",
        region="us-south",
        access_key_id="access-key",
        secret_access_key="secret-key",
        stream_chunk_size=1024,
        service_name="video-storage",
        app_name_version="video-storage:0.1.0",
    )


@pytest.fixture
def context(configuration) -> AppContext:
    return AppContext(configuration)


@pytest.fixture
def storage() -> RecordingStorageClient:
    return RecordingStorageClient()


@pytest.fixture
def client(context, storage):
    """TestClient for an app whose listener counts as bound."""
    context.mark_ready()
    with TestClient(create_app(context, storage)) as test_client:
        yield test_client


@pytest.fixture
def restore_root_logger():
    """Undo setup_logging() changes to the root logger after a test."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


@pytest.fixture
def service_records(caplog):
    """Return a lookup of log records emitted by the service, optionally for one request id."""
    caplog.set_level(logging.DEBUG)

    def lookup(request_id: Optional[str] = None) -> list[logging.LogRecord]:
        records = [r for r in caplog.records if r.name.startswith("video_storage")]
        if request_id is not None:
            records = [r for r in records if getattr(r, "requestId", None) == request_id]
        return records

    return lookup
