"""Page-view counter.

GET  /footfall?page=<name>  → current count for the page
POST /footfall {page}       → record one view, then return the new count

A missing or blank page name counts against ``home``.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from api.request_utils import parse_body
from errors import SupabaseError, UpstreamError
from models.data import AuthUser
from models.request import FootfallRequest
from services.supabase_service import SupabaseService, get_supabase_service
from skylab_backend.auth import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(tags=["footfall"])

DEFAULT_PAGE = "home"


def parse_page(value: str | None) -> str:
    return value.strip() if value and value.strip() else DEFAULT_PAGE


async def _count(service: SupabaseService, page: str) -> int:
    try:
        return await service.count_page_views(page)
    except SupabaseError as exc:
        raise UpstreamError(exc.message or "Unable to fetch footfall.") from exc


@router.get("/footfall")
async def get_footfall(
    page: str | None = None,
    user: AuthUser = Depends(get_current_user),
    service: SupabaseService = Depends(get_supabase_service),
):
    return {"count": await _count(service, parse_page(page))}


@router.post("/footfall")
async def track_footfall(
    request: Request,
    user: AuthUser = Depends(get_current_user),
    service: SupabaseService = Depends(get_supabase_service),
):
    body = await parse_body(request, FootfallRequest, lenient=True)
    page = parse_page(body.page)
    try:
        await service.insert_page_view(page)
    except SupabaseError as exc:
        raise UpstreamError(exc.message or "Unable to track footfall.") from exc
    return {"count": await _count(service, page)}
