"""
Object storage integration for videos.

Supports S3-compatible stores (IBM Cloud Object Storage, AWS S3, MinIO)
with HMAC or IAM credentials. Includes mock mode for local development
without credentials.
"""

from .client import (
    InMemoryStorageClient,
    ObjectNotFoundError,
    S3StorageClient,
    StorageClient,
    StorageError,
    StoredObject,
    create_storage_client,
)
from .streams import RequestBodyReader

__all__ = [
    "InMemoryStorageClient",
    "ObjectNotFoundError",
    "RequestBodyReader",
    "S3StorageClient",
    "StorageClient",
    "StorageError",
    "StoredObject",
    "create_storage_client",
]
