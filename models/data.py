"""Internal data models — the canonical representation used by routes.

These models decouple the route handlers from the Supabase SDK's object
shapes.  Adapters in ``adapters/`` convert SDK users → these internal models,
and the view models below are what the JSON responses carry.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class Role(str, Enum):
    """Caller classifications gating endpoint access."""

    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"
    CUSTOMER = "customer"


ALLOWED_ROLES: tuple[str, ...] = tuple(role.value for role in Role)


class AuthUser(BaseModel):
    """A user record owned by the identity service."""

    id: str
    email: str | None = None
    created_at: str | None = None
    user_metadata: dict[str, Any] = Field(default_factory=dict)

    def meta_str(self, key: str) -> str | None:
        """Return a metadata value when it is a string, else ``None``."""
        value = self.user_metadata.get(key)
        return value if isinstance(value, str) else None

    @property
    def meta_role(self) -> str:
        """Metadata role, lower-cased; ``""`` when unset."""
        return (self.meta_str("role") or "").lower()

    @property
    def subject(self) -> str | None:
        return self.meta_str("subject")

    @property
    def grade(self) -> str | None:
        return self.meta_str("grade")

    @property
    def full_name(self) -> str | None:
        return self.meta_str("full_name")


# ---------------------------------------------------------------------------
# Response views
# ---------------------------------------------------------------------------

class AdminUserView(BaseModel):
    """One row of ``GET /admin/users``."""

    id: str
    email: str | None = None
    full_name: str
    role: str
    grade: str | None = None
    subject: str | None = None
    created_at: str | None = None


class StudentView(BaseModel):
    """One row of a teacher's student roster."""

    id: str
    email: str | None = None
    full_name: str
    grade: str | None = None
    subject: str | None = None
