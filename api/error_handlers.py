"""Global exception handlers — every failure renders as ``{"error": ...}``.

- ApiError → its own status and message (plus extra keys such as ``detail``)
- RequestValidationError → 400 with a short message
- HTTPException → its status, ``detail`` moved under ``error``
- Exception (catch-all) → 500, never leaks internals
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from errors import ApiError

logger = logging.getLogger(__name__)

INVALID_JSON_MESSAGE = "Invalid JSON body"


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        if exc.status_code >= 500:
            logger.error("%s %s -> %d: %s", request.method, request.url.path, exc.status_code, exc.message)
        else:
            logger.warning("%s %s -> %d: %s", request.method, request.url.path, exc.status_code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_response())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        message = validation_message(exc.errors())
        logger.warning("Validation error on %s: %s", request.url.path, message)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": message},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        logger.error("Unhandled exception on %s: %s", request.url.path, exc, exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Unexpected server error"},
        )


def validation_message(errors) -> str:
    """Collapse pydantic errors into one client-facing sentence.

    A body that is not JSON, or is JSON but not an object, is reported as
    ``Invalid JSON body``; field problems as ``<field>: <message>``.
    """
    errors = list(errors)
    for err in errors:
        loc = tuple(err.get("loc", ()))
        if err.get("type") == "json_invalid" or loc == ("body",):
            return INVALID_JSON_MESSAGE
    if not errors:
        return "Invalid request"
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query"))
    return f"{field}: {first.get('msg', 'invalid value')}" if field else first.get("msg", "Invalid request")
