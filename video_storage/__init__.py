"""
Video Storage - streams videos to and from S3-compatible object storage.

This package contains the complete service:
- config: Environment-driven configuration (HMAC or IAM credentials)
- core: Application context and structured logging
- infrastructure: Object storage client
- api: FastAPI routes and dependencies
"""

__version__ = "0.1.0"
