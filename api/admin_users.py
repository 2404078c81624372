"""Admin user management — list users and update role / profile fields.

GET   /admin/users  → every identity user, mapped for the admin table
PATCH /admin/users  → update one user's metadata, then sync the profile row

Identity metadata is the source of truth.  The profile table is synced on a
best-effort basis: if the upsert fails the update still succeeds and the
failure is reported in ``profileWarning``.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from adapters.user_adapter import to_admin_view
from api.request_utils import parse_body
from errors import BadRequestError, SupabaseError, UpstreamError
from models.data import ALLOWED_ROLES, AuthUser, Role
from models.request import AdminUserUpdateRequest
from services.supabase_service import SupabaseService, get_supabase_service
from skylab_backend.auth import require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


def _trimmed(value: str | None) -> str | None:
    return value.strip() if value is not None else None


@router.get("/users")
async def list_users(
    admin: AuthUser = Depends(require_admin),
    service: SupabaseService = Depends(get_supabase_service),
):
    """List identity users with name, role, grade and subject."""
    try:
        users = await service.list_users()
    except SupabaseError as exc:
        raise UpstreamError(exc.message or "Unable to list users") from exc

    rows = [to_admin_view(u).model_dump() for u in users]
    return {"total": len(rows), "users": rows}


@router.patch("/users")
async def update_user(
    request: Request,
    admin: AuthUser = Depends(require_admin),
    service: SupabaseService = Depends(get_supabase_service),
):
    """Update a user's role and profile fields.

    ``subject`` is only kept for teachers; every other role has it cleared.
    """
    body = await parse_body(request, AdminUserUpdateRequest)

    target_id = _trimmed(body.id)
    next_role = (body.role or "").strip().lower()
    next_name = _trimmed(body.full_name)
    next_grade = _trimmed(body.grade)
    next_subject = _trimmed(body.subject)

    if not target_id:
        raise BadRequestError("Missing user id")
    if next_role not in ALLOWED_ROLES:
        raise BadRequestError("Role must be admin, teacher, student, or customer")

    metadata = {
        "full_name": next_name,
        "role": next_role,
        "grade": next_grade,
        "subject": next_subject if next_role == Role.TEACHER.value else None,
    }
    try:
        await service.update_user_metadata(target_id, metadata)
    except SupabaseError as exc:
        raise UpstreamError(exc.message) from exc

    # Profiles table has no subject column; only name/role/grade are synced.
    profile_warning: str | None = None
    try:
        await service.upsert_profile({
            "id": target_id,
            "full_name": next_name,
            "role": next_role,
            "grade": next_grade,
        })
    except SupabaseError as exc:
        profile_warning = exc.message or "Profile sync failed"
        logger.warning("Profile sync failed for user %s: %s", target_id, profile_warning)

    logger.info("Admin %s set user %s role=%s", admin.id, target_id, next_role)
    return {"updated": True, "profileWarning": profile_warning}
