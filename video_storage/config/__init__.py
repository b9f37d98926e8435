"""
Application configuration using Pydantic settings.

Configuration comes from environment variables and is resolved once into
an HMAC or IAM configuration record.
"""

from .settings import (
    AuthenticationMode,
    Configuration,
    ConfigurationError,
    HmacConfiguration,
    IamConfiguration,
    InvalidConfiguration,
    MissingConfiguration,
    Settings,
    UnknownAuthenticationMode,
    build_configuration,
    get_settings,
    resolve_configuration,
)

__all__ = [
    "AuthenticationMode",
    "Configuration",
    "ConfigurationError",
    "HmacConfiguration",
    "IamConfiguration",
    "InvalidConfiguration",
    "MissingConfiguration",
    "Settings",
    "UnknownAuthenticationMode",
    "build_configuration",
    "get_settings",
    "resolve_configuration",
]
