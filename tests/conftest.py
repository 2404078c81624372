"""Shared pytest fixtures for the Skylab platform API tests.

Provides:
- ``fake_supabase``: in-memory stand-in for SupabaseService, seeded with an
  admin, a Physics teacher, and a mixed set of students
- ``client``: async HTTP client bound to the FastAPI app (ASGI transport)
  with the Supabase dependency overridden
- ``sdk_client``: same, but over a real SupabaseService with no server behind it
- ``auth``: builds an ``Authorization`` header for a token
"""

from __future__ import annotations

import os
from typing import Any
from unittest.mock import patch

# litellm fetches its model cost map over the network at import time; offline,
# the resulting warning trips a circular import inside litellm's log filter.
os.environ.setdefault("LITELLM_LOCAL_MODEL_COST_MAP", "True")

import pytest
from httpx import ASGITransport, AsyncClient

from errors import SupabaseError
from main import app
from models.data import AuthUser
from services.supabase_service import SupabaseService, get_supabase_service

ADMIN_TOKEN = "admin-token"
TEACHER_TOKEN = "teacher-token"
FREE_TEACHER_TOKEN = "free-teacher-token"
STUDENT_TOKEN = "student-token"


class FakeSupabaseService:
    """Records writes and serves reads from plain lists and dicts.

    Put an operation name in ``failures`` to make that call raise
    :class:`SupabaseError` with the given message.
    """

    def __init__(self) -> None:
        self.tokens: dict[str, AuthUser] = {}
        self.users: list[AuthUser] = []
        self.profile_roles: dict[str, str] = {}
        self.modules: list[dict[str, Any]] = []
        self.submissions: list[dict[str, Any]] = []
        self.page_views: list[str] = []
        self.notifications: list[dict[str, Any]] = []
        self.upserted_profiles: list[dict[str, Any]] = []
        self.metadata_updates: list[tuple[str, dict[str, Any]]] = []
        self.published_updates: list[tuple[str, bool]] = []
        self.failures: dict[str, str] = {}

    def add_user(self, user_id: str, *, token: str | None = None, email: str | None = None,
                 profile_role: str | None = None, **metadata: Any) -> AuthUser:
        user = AuthUser(
            id=user_id,
            email=email if email is not None else f"{user_id}@skylab.test",
            created_at="2025-01-01T00:00:00+00:00",
            user_metadata=metadata,
        )
        self.users.append(user)
        if token:
            self.tokens[token] = user
        if profile_role:
            self.profile_roles[user_id] = profile_role
        return user

    def _maybe_fail(self, op: str) -> None:
        if op in self.failures:
            raise SupabaseError(self.failures[op], op)

    async def get_user(self, token: str) -> AuthUser | None:
        self._maybe_fail("get_user")
        return self.tokens.get(token)

    async def get_user_by_id(self, user_id: str) -> AuthUser | None:
        self._maybe_fail("get_user_by_id")
        return next((u for u in self.users if u.id == user_id), None)

    async def list_users(self, page: int = 1, per_page: int | None = None) -> list[AuthUser]:
        self._maybe_fail("list_users")
        return list(self.users)

    async def update_user_metadata(self, user_id: str, metadata: dict[str, Any]) -> AuthUser:
        self._maybe_fail("update_user_metadata")
        self.metadata_updates.append((user_id, metadata))
        return AuthUser(id=user_id, user_metadata=metadata)

    async def get_profile_role(self, user_id: str) -> str | None:
        self._maybe_fail("get_profile_role")
        return self.profile_roles.get(user_id)

    async def upsert_profile(self, payload: dict[str, Any]) -> None:
        self._maybe_fail("upsert_profile")
        self.upserted_profiles.append(payload)

    async def list_modules(self, columns: str, *, subject: str | None = None, grade: str | None = None,
                           published: bool | None = None, newest_first: bool = False) -> list[dict[str, Any]]:
        self._maybe_fail("list_modules")
        rows = [
            m for m in self.modules
            if (published is None or m.get("published") == published)
            and (not subject or m.get("subject") == subject)
            and (not grade or m.get("grade") == grade)
        ]
        if newest_first:
            rows.sort(key=lambda m: m.get("created_at", ""), reverse=True)
        return rows

    async def get_module(self, module_id: str, columns: str) -> dict[str, Any] | None:
        self._maybe_fail("get_module")
        return next((dict(m) for m in self.modules if m["id"] == module_id), None)

    async def set_module_published(self, module_id: str, published: bool) -> None:
        self._maybe_fail("set_module_published")
        self.published_updates.append((module_id, published))

    async def list_submissions(self, module_ids: list[str]) -> list[dict[str, Any]]:
        self._maybe_fail("list_submissions")
        return [s for s in self.submissions if s["module_id"] in module_ids]

    async def count_page_views(self, page: str) -> int:
        self._maybe_fail("count_page_views")
        return self.page_views.count(page)

    async def insert_page_view(self, page: str) -> None:
        self._maybe_fail("insert_page_view")
        self.page_views.append(page)

    async def insert_notification(self, payload: dict[str, Any]) -> None:
        self._maybe_fail("insert_notification")
        self.notifications.append(payload)


@pytest.fixture
def fake_supabase() -> FakeSupabaseService:
    """Fresh fake backend with a small seeded school."""
    fake = FakeSupabaseService()
    fake.add_user("u-admin", token=ADMIN_TOKEN, profile_role="admin", role="admin", full_name="Ada Admin")
    fake.add_user(
        "u-teacher", token=TEACHER_TOKEN, profile_role="teacher",
        role="teacher", full_name="Tom Teacher", subject="Physics", grade="10",
    )
    fake.add_user("u-free-teacher", token=FREE_TEACHER_TOKEN, role="Teacher", full_name="Fay Free")
    fake.add_user("s-physics", token=STUDENT_TOKEN, role="student", full_name="Pia Physics",
                  subject="Physics", grade="10")
    fake.add_user("s-nosubject", role="STUDENT", full_name="Nico None", grade="9")
    fake.add_user("s-maths", role="student", full_name="Mia Maths", subject="Mathematics")
    fake.add_user("c-customer", role="customer", full_name="Cleo Customer")
    return fake


@pytest.fixture
async def client(fake_supabase):
    app.dependency_overrides[get_supabase_service] = lambda: fake_supabase
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
async def sdk_client(fake_supabase):
    """Client backed by a real SupabaseService pointed at a closed port.

    Token and profile lookups come from ``fake_supabase``; every other call
    runs through the SDK, so its local argument checks and transport errors
    reach the routes unchanged.
    """
    service = SupabaseService("http://127.0.0.1:9", "header.payload.signature")
    app.dependency_overrides[get_supabase_service] = lambda: service
    transport = ASGITransport(app=app)
    with patch.object(service, "get_user", fake_supabase.get_user), \
            patch.object(service, "get_profile_role", fake_supabase.get_profile_role):
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
    app.dependency_overrides.clear()
    await service.close()


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_header():
    return auth
