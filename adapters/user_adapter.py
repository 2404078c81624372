"""Adapter for Supabase auth users → internal AuthUser / view models.

SDK objects handled:
- ``supabase_auth.types.User`` (attribute access)
- plain dicts (REST payloads, test fixtures)
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable

from models.data import AdminUserView, AuthUser, Role, StudentView


# ---------------------------------------------------------------------------
# SDK → Internal Model conversions
# ---------------------------------------------------------------------------

def _field(raw: Any, name: str) -> Any:
    if isinstance(raw, dict):
        return raw.get(name)
    return getattr(raw, name, None)


def _timestamp_or_none(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def parse_auth_user(raw: Any) -> AuthUser:
    """Convert an SDK ``User`` (or its dict form) to :class:`AuthUser`."""
    metadata = _field(raw, "user_metadata")
    return AuthUser(
        id=str(_field(raw, "id") or ""),
        email=_field(raw, "email"),
        created_at=_timestamp_or_none(_field(raw, "created_at")),
        user_metadata=dict(metadata) if isinstance(metadata, dict) else {},
    )


# ---------------------------------------------------------------------------
# Internal Model → Views
# ---------------------------------------------------------------------------

def _first_set(*values: Any) -> Any:
    """First value that is not ``None``."""
    return next((v for v in values if v is not None), None)


def to_admin_view(user: AuthUser) -> AdminUserView:
    """Admin listing row; blank names fall back to the email, then ``"User"``.

    Only a missing email or role is defaulted; an empty string is kept.
    """
    raw_name = user.full_name or ""
    full_name = raw_name if raw_name.strip() else _first_set(user.email, "User")
    role = _first_set(user.meta_str("role"), Role.STUDENT.value)
    return AdminUserView(
        id=user.id,
        email=user.email,
        full_name=full_name,
        role=role.lower(),
        grade=user.grade,
        subject=user.subject,
        created_at=user.created_at,
    )


def to_student_view(user: AuthUser) -> StudentView:
    return StudentView(
        id=user.id,
        email=user.email,
        full_name=_first_set(user.full_name, user.email, "Student"),
        grade=user.grade,
        subject=user.subject,
    )


def build_roster(users: Iterable[AuthUser], teacher_subject: str | None) -> list[StudentView]:
    """Students visible to a teacher.

    Only users whose metadata role is ``student`` are included.  When the
    teacher has a subject, students with no subject are kept alongside those
    whose subject matches; any other subject is excluded.
    """
    roster: list[StudentView] = []
    for user in users:
        if user.meta_role != Role.STUDENT.value:
            continue
        student = to_student_view(user)
        if teacher_subject and student.subject and student.subject != teacher_subject:
            continue
        roster.append(student)
    return roster
