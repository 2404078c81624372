"""Helpers for reading JSON bodies inside route handlers."""

from __future__ import annotations

import json
from typing import Any, TypeVar

from fastapi import Request
from pydantic import BaseModel, ValidationError

from api.error_handlers import INVALID_JSON_MESSAGE, validation_message
from errors import BadRequestError

ModelT = TypeVar("ModelT", bound=BaseModel)


async def read_json_object(request: Request, *, lenient: bool = False) -> dict[str, Any]:
    """Parse the request body as a JSON object.

    With ``lenient=True`` an unreadable or non-object body yields ``{}``;
    otherwise it raises :class:`BadRequestError` (``Invalid JSON body``).
    """
    raw = await request.body()
    try:
        body = json.loads(raw) if raw else None
    except (UnicodeDecodeError, json.JSONDecodeError):
        body = None
    if isinstance(body, dict):
        return body
    if lenient:
        return {}
    raise BadRequestError(INVALID_JSON_MESSAGE)


async def parse_body(request: Request, model: type[ModelT], *, lenient: bool = False) -> ModelT:
    """Read the body and validate it against ``model``; failures become 400."""
    body = await read_json_object(request, lenient=lenient)
    try:
        return model.model_validate(body)
    except ValidationError as exc:
        raise BadRequestError(validation_message(exc.errors())) from exc
