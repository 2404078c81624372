"""Domain-specific exceptions for the Skylab platform API.

Every failure a route can report maps to one HTTP status.  The API layer
renders any :class:`ApiError` as ``{"error": message, **extra}`` so handlers
only raise and never build error responses by hand.
"""

from __future__ import annotations

from typing import Any


class ApiError(Exception):
    """Base class for errors surfaced to HTTP clients."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra or {}
        super().__init__(message)

    def to_response(self) -> dict[str, Any]:
        return {"error": self.message, **self.extra}


class ConfigurationError(ApiError):
    """A required credential or endpoint is not configured."""

    status_code = 500


class AuthenticationError(ApiError):
    """Bearer token missing, malformed, or rejected by the identity service."""

    status_code = 401


class PermissionDeniedError(ApiError):
    """Caller is authenticated but its role does not allow the operation."""

    status_code = 403


class BadRequestError(ApiError):
    """Request body or parameters are malformed."""

    status_code = 400


class NotFoundError(ApiError):
    """A referenced remote record does not exist."""

    status_code = 404


class UpstreamError(ApiError):
    """Supabase or Gemini failed; the upstream message is passed through."""

    status_code = 500


class SupabaseError(Exception):
    """Raised by the Supabase service when an SDK call fails.

    Carries the upstream message verbatim so routes can pass it through.
    """

    def __init__(self, message: str, operation: str = "") -> None:
        self.message = message
        self.operation = operation
        super().__init__(f"Supabase {operation or 'request'} failed: {message}")
