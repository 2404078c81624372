"""Custom exception hierarchy for the Skylab platform API."""

from errors.exceptions import (
    ApiError,
    AuthenticationError,
    BadRequestError,
    ConfigurationError,
    NotFoundError,
    PermissionDeniedError,
    SupabaseError,
    UpstreamError,
)

__all__ = [
    "ApiError",
    "AuthenticationError",
    "BadRequestError",
    "ConfigurationError",
    "NotFoundError",
    "PermissionDeniedError",
    "SupabaseError",
    "UpstreamError",
]
