"""shopqa error handling module."""

from shopqa.errors.base import (
    AuthError,
    ConfigError,
    ErrorCode,
    ErrorContext,
    FixtureLoadError,
    HttpError,
    NotFoundError,
    ResetError,
    ShopQAError,
    ValidationError,
)

__all__ = [
    "AuthError",
    "ConfigError",
    "ErrorCode",
    "ErrorContext",
    "FixtureLoadError",
    "HttpError",
    "NotFoundError",
    "ResetError",
    "ShopQAError",
    "ValidationError",
]
