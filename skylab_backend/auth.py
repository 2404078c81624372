"""Bearer-token verification and role guards.

User requests carry a Supabase access token.  We verify it by asking the
identity service for the user behind it (no local JWT decoding), then apply
the route's role requirement.
"""

from __future__ import annotations

import logging
from typing import Callable

from fastapi import Depends, Request

from errors import AuthenticationError, PermissionDeniedError, SupabaseError
from models.data import AuthUser, Role
from services.supabase_service import SupabaseService, get_supabase_service

logger = logging.getLogger(__name__)

_BEARER_PREFIX = "bearer "


def extract_bearer_token(header: str | None) -> str | None:
    """Return the token from an ``Authorization`` header value.

    The scheme is matched case-insensitively; an empty token is ``None``.
    """
    header = header or ""
    if not header.lower().startswith(_BEARER_PREFIX):
        return None
    token = header[len(_BEARER_PREFIX):].strip()
    return token or None


async def get_current_user(
    request: Request,
    service: SupabaseService = Depends(get_supabase_service),
) -> AuthUser:
    """Resolve the verified caller for a request (FastAPI dependency)."""
    token = extract_bearer_token(request.headers.get("Authorization"))
    if not token:
        raise AuthenticationError("Missing access token")

    try:
        user = await service.get_user(token)
    except SupabaseError as exc:
        logger.warning("Token verification failed: %s", exc.message)
        raise AuthenticationError("Invalid token") from exc
    if user is None or not user.id:
        raise AuthenticationError("Invalid token")
    return user


def resolve_role(profile_role: str | None, user: AuthUser) -> str:
    """Profile-table role when present, else the metadata role; lower-cased."""
    role = profile_role if profile_role else user.meta_str("role")
    return (role or "").lower()


async def require_admin(
    user: AuthUser = Depends(get_current_user),
    service: SupabaseService = Depends(get_supabase_service),
) -> AuthUser:
    """Allow only callers whose resolved role is ``admin``.

    The profile role wins over metadata, so a profile that says otherwise
    denies access even when the metadata role is ``admin``.  A failed
    profile lookup denies access too.
    """
    try:
        profile_role = await service.get_profile_role(user.id)
    except SupabaseError as exc:
        logger.warning("Profile lookup failed for %s: %s", user.id, exc.message)
        raise PermissionDeniedError("Forbidden") from exc

    if resolve_role(profile_role, user) == Role.ADMIN.value:
        return user
    logger.warning("Admin access denied for user %s", user.id)
    raise PermissionDeniedError("Forbidden")


def require_teacher(action: str) -> Callable:
    """Build a dependency that allows only callers whose metadata role is teacher.

    ``action`` completes the denial message, e.g. ``"view students"`` →
    ``"Only teachers can view students"``.
    """

    async def dependency(user: AuthUser = Depends(get_current_user)) -> AuthUser:
        if user.meta_role != Role.TEACHER.value:
            logger.warning("Teacher access denied for user %s (%s)", user.id, action)
            raise PermissionDeniedError(f"Only teachers can {action}")
        return user

    return dependency
