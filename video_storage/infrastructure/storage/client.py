"""
Object storage client for videos.

Wraps a single bucket of an S3-compatible object store (IBM Cloud Object
Storage in production) behind two operations:

- fetch(key): metadata plus a streaming body
- store(key, content_type, content_length, body): streaming upload

Vendor result and error shapes are translated here: a missing key becomes
ObjectNotFoundError, every other failure becomes StorageError with the
SDK exception chained as the cause. There are no retries; this is a
direct pass-through.

Mock mode keeps videos in memory, enabling API testing without
provisioning actual object storage.
"""

import io
import logging
from dataclasses import dataclass
from typing import BinaryIO, Iterator, Optional, Protocol

from botocore.response import StreamingBody
from starlette.concurrency import run_in_threadpool

from ...config.settings import (
    DEFAULT_CHUNK_SIZE,
    Configuration,
    HmacConfiguration,
    IamConfiguration,
)
from ...core.observability import get_request_logger

logger = logging.getLogger(__name__)

# Error codes the object store uses for a key that does not exist
NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}


class StorageError(Exception):
    """Raised when storage operations fail."""
    pass


class ObjectNotFoundError(StorageError):
    """Raised when the requested key does not exist in the bucket."""

    def __init__(self, bucket_name: str, key: str) -> None:
        self.bucket_name = bucket_name
        self.key = key
        super().__init__(f"{bucket_name}/{key} not found.")


class ObjectBody(Protocol):
    """Streaming body of a fetched object (botocore's StreamingBody fits)."""

    def iter_chunks(self, chunk_size: int = ...) -> Iterator[bytes]:
        ...

    def close(self) -> None:
        ...


@dataclass
class StoredObject:
    """
    A fetched object.

    The caller owns `body` and must close it once the content has been
    forwarded (or the client went away).
    """
    key: str
    content_type: Optional[str]
    content_length: int
    body: ObjectBody


class StorageClient(Protocol):
    """
    Protocol for object storage operations.

    Using a protocol means tests can provide doubles and we can
    swap storage backends without changing the routes.
    """

    bucket_name: str

    async def fetch(self, key: str) -> StoredObject:
        """Fetch an object's metadata and streaming body."""
        ...

    async def store(
        self,
        key: str,
        content_type: Optional[str],
        content_length: Optional[str],
        body: BinaryIO,
    ) -> None:
        """Stream `body` into the bucket under `key`."""
        ...


def _error_code(exc: Exception) -> Optional[str]:
    """
    Extract the service error code from an SDK exception.

    boto3 and ibm_boto3 raise different ClientError classes with the same
    `response` shape, so this looks at the shape rather than the type.
    """
    response = getattr(exc, "response", None)
    if not isinstance(response, dict):
        return None
    return response.get("Error", {}).get("Code")


def _parse_content_length(content_length: Optional[str]) -> Optional[int]:
    if content_length is None:
        return None
    try:
        value = int(content_length)
    except (TypeError, ValueError):
        raise StorageError(f"Invalid content length: {content_length!r}") from None
    if value < 0:
        raise StorageError(f"Invalid content length: {content_length!r}")
    return value


class S3StorageClient:
    """
    S3-compatible object storage client.

    Uses boto3 (HMAC credentials) or ibm_boto3 (IAM credentials); both
    expose the same S3 API. The SDKs are synchronous, so every call runs
    in the threadpool to keep the event loop free for other requests.
    """

    def __init__(self, bucket_name: str, s3_client, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self.bucket_name = bucket_name
        self.chunk_size = chunk_size
        self._s3_client = s3_client

    @classmethod
    def from_configuration(cls, configuration: Configuration) -> "S3StorageClient":
        """Build the SDK client matching the configured authentication mode."""
        if isinstance(configuration, IamConfiguration):
            s3_client = _create_iam_client(configuration)
        else:
            s3_client = _create_hmac_client(configuration)

        get_request_logger(configuration.app_name_version, configuration.service_name).info(
            "Initialized object storage client",
            extra={
                "bucket": configuration.bucket_name,
                "endpoint": configuration.endpoint,
                "authentication": configuration.authentication_mode.value,
            }
        )
        return cls(
            bucket_name=configuration.bucket_name,
            s3_client=s3_client,
            chunk_size=configuration.stream_chunk_size,
        )

    async def fetch(self, key: str) -> StoredObject:
        """
        Fetch an object from the bucket.

        The body is returned unread; it is a StreamingBody over the open
        HTTP response, so content flows to the caller chunk by chunk.
        """
        try:
            response = await run_in_threadpool(
                self._s3_client.get_object,
                Bucket=self.bucket_name,
                Key=key,
            )
        except Exception as e:
            if _error_code(e) in NOT_FOUND_CODES:
                raise ObjectNotFoundError(self.bucket_name, key) from e
            raise StorageError(f"Download failed: {e}") from e

        return StoredObject(
            key=key,
            content_type=response.get("ContentType"),
            content_length=response.get("ContentLength", 0),
            body=response["Body"],
        )

    async def store(
        self,
        key: str,
        content_type: Optional[str],
        content_length: Optional[str],
        body: BinaryIO,
    ) -> None:
        """
        Upload an object to the bucket.

        `body` is handed to the SDK as a file-like object, which reads it
        incrementally while sending the request.
        """
        params = {
            "Bucket": self.bucket_name,
            "Key": key,
            "Body": body,
        }
        if content_type:
            params["ContentType"] = content_type
        length = _parse_content_length(content_length)
        if length is not None:
            params["ContentLength"] = length

        try:
            await run_in_threadpool(self._s3_client.put_object, **params)
        except Exception as e:
            raise StorageError(f"Upload failed: {e}") from e


def _create_hmac_client(configuration: HmacConfiguration):
    import boto3
    from botocore.config import Config

    # Streaming uploads are not seekable: send UNSIGNED-PAYLOAD instead of
    # hashing the body, only compute checksums the operation strictly
    # requires, and never retry a half-consumed body.
    boto_config = Config(
        signature_version="s3v4",
        retries={"max_attempts": 1, "mode": "standard"},
        request_checksum_calculation="when_required",
        response_checksum_validation="when_required",
        s3={"payload_signing_enabled": False},
    )
    return boto3.client(
        "s3",
        endpoint_url=configuration.endpoint,
        aws_access_key_id=configuration.access_key_id,
        aws_secret_access_key=configuration.secret_access_key,
        region_name=configuration.region,
        config=boto_config,
    )


def _create_iam_client(configuration: IamConfiguration):
    """
    Build an ibm_boto3 client using IAM credentials.

    The SDK exchanges the API key for bearer tokens and refreshes them
    itself ('oauth' signature version).
    """
    import ibm_boto3
    from ibm_botocore.client import Config

    return ibm_boto3.client(
        "s3",
        ibm_api_key_id=configuration.api_key,
        ibm_service_instance_id=configuration.service_instance_id,
        endpoint_url=configuration.endpoint,
        config=Config(signature_version="oauth", retries={"max_attempts": 1}),
    )


# ---------------------------------------------------------------------------
# In-Memory Storage for Local Development
# ---------------------------------------------------------------------------

class InMemoryStorageClient:
    """
    In-memory storage for local development.

    Objects are kept in a dictionary keyed by object key. Uploads are read
    chunk by chunk from the body exactly like the SDK does, so the same
    streaming path is exercised. Not suitable for production, but perfect
    for development and testing.
    """

    def __init__(self, bucket_name: str = "local", chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self.bucket_name = bucket_name
        self.chunk_size = chunk_size
        # {key: (content_type, data)}
        self._objects: dict[str, tuple[Optional[str], bytes]] = {}
        logger.info("Initialized in-memory storage client", extra={"bucket": bucket_name})

    def __contains__(self, key: str) -> bool:
        return key in self._objects

    def put(self, key: str, data: bytes, content_type: Optional[str] = None) -> None:
        """Seed an object directly (for tests and local fixtures)."""
        self._objects[key] = (content_type, data)

    async def fetch(self, key: str) -> StoredObject:
        if key not in self._objects:
            raise ObjectNotFoundError(self.bucket_name, key)

        content_type, data = self._objects[key]
        return StoredObject(
            key=key,
            content_type=content_type,
            content_length=len(data),
            body=StreamingBody(io.BytesIO(data), len(data)),
        )

    async def store(
        self,
        key: str,
        content_type: Optional[str],
        content_length: Optional[str],
        body: BinaryIO,
    ) -> None:
        if not key:
            raise StorageError("Upload failed: an object key is required")
        expected = _parse_content_length(content_length)
        data = await run_in_threadpool(self._drain, body)
        if expected is not None and len(data) != expected:
            raise StorageError(
                f"Upload failed: expected {expected} bytes, received {len(data)}"
            )
        self._objects[key] = (content_type, data)

        logger.debug(
            "Stored video in memory",
            extra={"key": key, "size_bytes": len(data)}
        )

    def _drain(self, body: BinaryIO) -> bytes:
        parts = []
        while True:
            chunk = body.read(self.chunk_size)
            if not chunk:
                break
            parts.append(chunk)
        return b"".join(parts)


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_storage_client(configuration: Configuration) -> StorageClient:
    """
    Create storage client based on configuration.

    Returns the in-memory client in mock mode, otherwise an S3 client
    authenticated the way the configuration says.
    """
    if configuration.storage_mock_mode:
        return InMemoryStorageClient(
            bucket_name=configuration.bucket_name,
            chunk_size=configuration.stream_chunk_size,
        )

    return S3StorageClient.from_configuration(configuration)
