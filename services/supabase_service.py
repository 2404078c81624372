"""Supabase gateway — identity (GoTrue) and table (PostgREST) access.

Wraps ``supabase.AsyncClient`` with:
- lazy construction from settings (service-role key, no session persistence)
- one narrow method per remote read/write the routes need
- SDK errors (auth, PostgREST, transport) converted to :class:`SupabaseError`
  carrying the upstream message
- connection lifecycle tied to the FastAPI lifespan

Nothing is retried: a failed call surfaces immediately.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, TypeVar

import httpx
from postgrest.exceptions import APIError
from supabase import AsyncClient, AsyncClientOptions, acreate_client
from supabase_auth.errors import AuthError

from adapters.user_adapter import parse_auth_user
from config.settings import get_settings
from errors import ConfigurationError, SupabaseError
from models.data import AuthUser

logger = logging.getLogger(__name__)

T = TypeVar("T")

PROFILES_TABLE = "profiles"
MODULES_TABLE = "curriculum_modules"
SUBMISSIONS_TABLE = "activity_submissions"
PAGE_VIEWS_TABLE = "page_views"
NOTIFICATIONS_TABLE = "notifications"

SUBMISSION_COLUMNS = (
    "id,module_id,user_id,submission_number,report_status,report_json,created_at,updated_at"
)

# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------
_service: SupabaseService | None = None


class SupabaseService:
    """Async facade over the Supabase SDK for the platform's tables and users."""

    def __init__(self, url: str, service_role_key: str) -> None:
        self._url = url
        self._key = service_role_key
        self._client: AsyncClient | None = None

    # -- lifecycle -----------------------------------------------------------

    async def client(self) -> AsyncClient:
        """Return the shared SDK client, creating it on first use."""
        if self._client is None:
            self._client = await acreate_client(
                self._url,
                self._key,
                options=AsyncClientOptions(
                    auto_refresh_token=False,
                    persist_session=False,
                ),
            )
            logger.info("Supabase client created — url=%s", self._url)
        return self._client

    async def close(self) -> None:
        """Release the PostgREST connection pool."""
        if self._client is not None:
            await self._client.postgrest.aclose()
            self._client = None
            logger.info("Supabase client closed")

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        try:
            return await awaitable
        except APIError as exc:
            raise SupabaseError(exc.message or str(exc), operation) from exc
        except AuthError as exc:
            raise SupabaseError(exc.message or str(exc), operation) from exc
        except httpx.HTTPError as exc:
            raise SupabaseError(str(exc) or exc.__class__.__name__, operation) from exc
        except ValueError as exc:
            # supabase_auth validates ids locally (e.g. non-UUID user ids)
            raise SupabaseError(str(exc), operation) from exc

    # -- identity ------------------------------------------------------------

    async def get_user(self, token: str) -> AuthUser | None:
        """Validate a bearer token; ``None`` when the identity service rejects it."""
        client = await self.client()
        try:
            response = await client.auth.get_user(token)
        except AuthError as exc:
            logger.info("Token rejected by identity service: %s", exc.message)
            return None
        except httpx.HTTPError as exc:
            raise SupabaseError(str(exc) or exc.__class__.__name__, "get_user") from exc
        if response is None or response.user is None:
            return None
        return parse_auth_user(response.user)

    async def get_user_by_id(self, user_id: str) -> AuthUser | None:
        client = await self.client()
        response = await self._call("get_user_by_id", client.auth.admin.get_user_by_id(user_id))
        if response is None or response.user is None:
            return None
        return parse_auth_user(response.user)

    async def list_users(self, page: int = 1, per_page: int | None = None) -> list[AuthUser]:
        """List one page of identity users (page 1, 500 per page by default)."""
        per_page = per_page or get_settings().user_list_page_size
        client = await self.client()
        users = await self._call(
            "list_users",
            client.auth.admin.list_users(page=page, per_page=per_page),
        )
        return [parse_auth_user(u) for u in users or []]

    async def update_user_metadata(self, user_id: str, metadata: dict[str, Any]) -> AuthUser:
        client = await self.client()
        response = await self._call(
            "update_user_by_id",
            client.auth.admin.update_user_by_id(user_id, {"user_metadata": metadata}),
        )
        logger.info("Updated identity metadata for user %s", user_id)
        return parse_auth_user(response.user)

    # -- profiles ------------------------------------------------------------

    async def get_profile_role(self, user_id: str) -> str | None:
        """Role stored in the profile table, ``None`` when no row exists."""
        client = await self.client()
        response = await self._call(
            "select profiles",
            client.table(PROFILES_TABLE).select("role").eq("id", user_id).maybe_single().execute(),
        )
        if response is None or not response.data:
            return None
        role = response.data.get("role")
        return role if isinstance(role, str) else None

    async def upsert_profile(self, payload: dict[str, Any]) -> None:
        client = await self.client()
        await self._call(
            "upsert profiles",
            client.table(PROFILES_TABLE).upsert(payload, on_conflict="id").execute(),
        )

    # -- curriculum ----------------------------------------------------------

    async def list_modules(
        self,
        columns: str,
        *,
        subject: str | None = None,
        grade: str | None = None,
        published: bool | None = None,
        newest_first: bool = False,
    ) -> list[dict[str, Any]]:
        """Curriculum modules filtered by equality on the given fields."""
        client = await self.client()
        query = client.table(MODULES_TABLE).select(columns)
        if published is not None:
            query = query.eq("published", published)
        if subject:
            query = query.eq("subject", subject)
        if grade:
            query = query.eq("grade", grade)
        if newest_first:
            query = query.order("created_at", desc=True)
        response = await self._call("select curriculum_modules", query.execute())
        return list(response.data or [])

    async def get_module(self, module_id: str, columns: str) -> dict[str, Any] | None:
        client = await self.client()
        response = await self._call(
            "select curriculum_modules",
            client.table(MODULES_TABLE).select(columns).eq("id", module_id).maybe_single().execute(),
        )
        if response is None or not response.data:
            return None
        return dict(response.data)

    async def set_module_published(self, module_id: str, published: bool) -> None:
        client = await self.client()
        await self._call(
            "update curriculum_modules",
            client.table(MODULES_TABLE).update({"published": published}).eq("id", module_id).execute(),
        )
        logger.info("Module %s published=%s", module_id, published)

    async def list_submissions(self, module_ids: list[str]) -> list[dict[str, Any]]:
        """Submissions for the given modules, most recently updated first."""
        if not module_ids:
            return []
        client = await self.client()
        response = await self._call(
            "select activity_submissions",
            client.table(SUBMISSIONS_TABLE)
            .select(SUBMISSION_COLUMNS)
            .in_("module_id", module_ids)
            .order("updated_at", desc=True)
            .execute(),
        )
        return list(response.data or [])

    # -- page views ----------------------------------------------------------

    async def count_page_views(self, page: str) -> int:
        client = await self.client()
        response = await self._call(
            "count page_views",
            client.table(PAGE_VIEWS_TABLE).select("*", count="exact", head=True).eq("page", page).execute(),
        )
        return response.count or 0

    async def insert_page_view(self, page: str) -> None:
        client = await self.client()
        await self._call(
            "insert page_views",
            client.table(PAGE_VIEWS_TABLE).insert({"page": page}).execute(),
        )

    # -- notifications -------------------------------------------------------

    async def insert_notification(self, payload: dict[str, Any]) -> None:
        client = await self.client()
        await self._call(
            "insert notifications",
            client.table(NOTIFICATIONS_TABLE).insert(payload).execute(),
        )
        logger.info("Notification queued for user %s", payload.get("user_id"))


def get_supabase_service() -> SupabaseService:
    """Return the module-level :class:`SupabaseService` singleton.

    Raises :class:`ConfigurationError` when the URL or service-role key is
    missing, so every route reports a misconfigured server as a 500.
    """
    global _service
    if _service is None:
        settings = get_settings()
        if not settings.supabase_configured:
            raise ConfigurationError("Server misconfigured")
        _service = SupabaseService(settings.supabase_url, settings.supabase_service_role_key)
    return _service


async def close_supabase_service() -> None:
    global _service
    if _service is not None:
        await _service.close()
        _service = None
