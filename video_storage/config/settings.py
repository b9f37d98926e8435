"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables once at startup and
resolved into an immutable record. The object store accepts two kinds of
credentials, so the resolved configuration is one of two shapes:

- HmacConfiguration: static access key / secret key pair (plus region)
- IamConfiguration: API key and service instance id, exchanged for
  short-lived tokens by the SDK

Resolution fails fast: a missing required variable or an unknown
authentication type raises before the HTTP listener is bound.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Mapping, Optional, Union

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_PORT = 3000
DEFAULT_CHUNK_SIZE = 64 * 1024


class ConfigurationError(Exception):
    """Raised when the environment cannot produce a usable configuration."""
    pass


class MissingConfiguration(ConfigurationError):
    """A required environment variable is absent or empty."""

    def __init__(self, field_name: str, description: str = "") -> None:
        self.field_name = field_name
        message = f"Please specify the environment variable {field_name}."
        if description:
            message = f"Please specify {description} in the environment variable {field_name}."
        super().__init__(message)


class UnknownAuthenticationMode(ConfigurationError):
    """AUTHENTICATION_TYPE is neither 'hmac' nor 'iam'."""

    def __init__(self, mode: str) -> None:
        self.mode = mode
        super().__init__(f"Unknown authentication type ({mode}).")


class InvalidConfiguration(ConfigurationError):
    """An environment variable is set but its value is unusable."""

    def __init__(self, field_name: str, reason: str) -> None:
        self.field_name = field_name
        super().__init__(f"The environment variable {field_name} is invalid: {reason}")

    @classmethod
    def from_validation_error(cls, error: ValidationError) -> "InvalidConfiguration":
        first = error.errors()[0]
        field_name = str(first["loc"][0]).upper() if first["loc"] else "UNKNOWN"
        return cls(field_name, first["msg"])


class AuthenticationMode(str, Enum):
    """How the proxy authenticates against the object store."""
    HMAC = "hmac"
    IAM = "iam"


class Settings(BaseSettings):
    """
    Raw settings read from environment variables.

    Everything is optional here; which fields are actually required
    depends on AUTHENTICATION_TYPE and is checked by build_configuration().
    """

    # Object store
    bucket_name: Optional[str] = Field(
        default=None,
        description="Bucket holding the videos"
    )
    endpoint: Optional[str] = Field(
        default=None,
        description="S3-compatible endpoint URL of the object store"
    )
    authentication_type: Optional[str] = Field(
        default=None,
        description="Credential type: 'hmac' or 'iam'"
    )

    # HMAC credentials
    region: Optional[str] = Field(default=None, description="Region of the bucket (hmac)")
    access_key_id: Optional[str] = Field(default=None, description="HMAC access key id")
    secret_access_key: Optional[str] = Field(default=None, description="HMAC secret access key")

    # IAM credentials
    api_key: Optional[str] = Field(default=None, description="IAM API key (iam)")
    service_instance_id: Optional[str] = Field(
        default=None,
        description="Service instance id of the object storage account (iam)"
    )

    # HTTP server
    port: Optional[str] = Field(
        default=None,
        description="Listen port. Kept as a string so an unparseable value falls back to the default."
    )
    stream_chunk_size: int = Field(
        default=DEFAULT_CHUNK_SIZE,
        gt=0,
        description="Chunk size in bytes used when streaming video downloads"
    )
    storage_mock_mode: bool = Field(
        default=False,
        description="Use in-memory storage instead of the object store. Enables local dev without credentials."
    )

    # Log tagging
    svc_name: str = Field(default="", description="Service name stamped on every log line")
    app_name_ver: str = Field(default="", description="Application name/version stamped on every log line")
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown logging level {value!r}")
        return level

    @classmethod
    def from_environ(cls, environ: Mapping[str, str]) -> "Settings":
        """
        Build settings from an explicit mapping instead of os.environ.

        Keys are matched case-insensitively, like the environment source.

        Raises:
            InvalidConfiguration: a variable is set to an unusable value
        """
        values = {
            key.lower(): value
            for key, value in environ.items()
            if key.lower() in cls.model_fields
        }
        try:
            return cls.model_validate(values)
        except ValidationError as e:
            raise InvalidConfiguration.from_validation_error(e) from e


@dataclass(frozen=True, kw_only=True)
class _BaseConfiguration:
    bucket_name: str
    endpoint: str
    port: int = DEFAULT_PORT
    stream_chunk_size: int = DEFAULT_CHUNK_SIZE
    storage_mock_mode: bool = False
    service_name: str = ""
    app_name_version: str = ""
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        # A zero-sized chunk would end every download after the headers
        if self.stream_chunk_size <= 0:
            raise InvalidConfiguration(
                "STREAM_CHUNK_SIZE", f"must be a positive number of bytes, got {self.stream_chunk_size}"
            )


@dataclass(frozen=True, kw_only=True)
class HmacConfiguration(_BaseConfiguration):
    """Configuration for object stores using HMAC credentials."""
    region: str
    access_key_id: str
    secret_access_key: str

    @property
    def authentication_mode(self) -> AuthenticationMode:
        return AuthenticationMode.HMAC


@dataclass(frozen=True, kw_only=True)
class IamConfiguration(_BaseConfiguration):
    """Configuration for object stores using IAM authentication."""
    api_key: str
    service_instance_id: str

    @property
    def authentication_mode(self) -> AuthenticationMode:
        return AuthenticationMode.IAM


Configuration = Union[HmacConfiguration, IamConfiguration]


def _require(value: Optional[str], field_name: str, description: str) -> str:
    if not value:
        raise MissingConfiguration(field_name, description)
    return value


def _resolve_port(raw_port: Optional[str], log_extra: dict) -> int:
    if raw_port is None:
        logger.info(
            f"The environment variable PORT for the HTTP server is missing; using port {DEFAULT_PORT}.",
            extra=log_extra,
        )
        return DEFAULT_PORT
    try:
        port = int(raw_port.strip())
    except ValueError:
        port = 0
    if port <= 0:
        logger.info(
            f"The environment variable PORT ({raw_port}) is not a valid port; using port {DEFAULT_PORT}.",
            extra=log_extra,
        )
        return DEFAULT_PORT
    return port


def build_configuration(settings: Settings) -> Configuration:
    """
    Turn flat settings into an HMAC or IAM configuration.

    Required fields are checked in a fixed order and the first missing one
    is reported, so operators fix one variable at a time.

    Raises:
        MissingConfiguration: a required variable is absent or empty
        UnknownAuthenticationMode: AUTHENTICATION_TYPE is not hmac/iam
    """
    bucket_name = _require(
        settings.bucket_name, "BUCKET_NAME", "the bucket name of the object storage account"
    )
    endpoint = _require(
        settings.endpoint, "ENDPOINT", "the endpoint for the object storage account"
    )
    authentication_type = _require(
        settings.authentication_type, "AUTHENTICATION_TYPE", "the type of authentication to use"
    )

    try:
        mode = AuthenticationMode(authentication_type.strip().lower())
    except ValueError:
        raise UnknownAuthenticationMode(authentication_type) from None

    common = {
        "bucket_name": bucket_name,
        "endpoint": endpoint,
        "stream_chunk_size": settings.stream_chunk_size,
        "storage_mock_mode": settings.storage_mock_mode,
        "service_name": settings.svc_name,
        "app_name_version": settings.app_name_ver,
        "log_level": settings.log_level,
    }

    if mode is AuthenticationMode.HMAC:
        region = _require(settings.region, "REGION", "the region")
        secret_access_key = _require(
            settings.secret_access_key, "SECRET_ACCESS_KEY", "the HMAC secret access key"
        )
        access_key_id = _require(
            settings.access_key_id, "ACCESS_KEY_ID", "the HMAC access key id"
        )
        mode_fields = {
            "region": region,
            "access_key_id": access_key_id,
            "secret_access_key": secret_access_key,
        }
    else:
        api_key = _require(
            settings.api_key, "API_KEY", "the API key of the object storage account"
        )
        service_instance_id = _require(
            settings.service_instance_id,
            "SERVICE_INSTANCE_ID",
            "the service instance id of the object storage account",
        )
        mode_fields = {"api_key": api_key, "service_instance_id": service_instance_id}

    log_extra = {
        "app": settings.app_name_ver,
        "service": settings.svc_name,
        "requestId": "-1",
    }
    port = _resolve_port(settings.port, log_extra)

    if mode is AuthenticationMode.HMAC:
        return HmacConfiguration(port=port, **common, **mode_fields)
    return IamConfiguration(port=port, **common, **mode_fields)


def resolve_configuration(environ: Mapping[str, str]) -> Configuration:
    """Resolve a configuration from a mapping of environment variables."""
    return build_configuration(Settings.from_environ(environ))


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are read once per process; they don't change at runtime.
    For tests, call get_settings.cache_clear() to reset.

    Raises:
        InvalidConfiguration: a variable is set to an unusable value
    """
    try:
        return Settings()
    except ValidationError as e:
        raise InvalidConfiguration.from_validation_error(e) from e
