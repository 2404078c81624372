"""HTTP client for the Gemini ``generateContent`` REST endpoint.

Wraps ``httpx.AsyncClient`` with:
- base URL + model path construction
- API key sent as ``x-goog-api-key`` (kept out of URLs and logs)
- non-2xx responses raised as :class:`GeminiError` with the upstream status
- request timing logs
- connection-pool lifecycle tied to FastAPI lifespan

The raw response JSON is returned unchanged so callers can pass it through.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from config.settings import get_settings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------
_client: GeminiClient | None = None

DEFAULT_ERROR_DETAIL = "Failed to contact Gemini"


class GeminiError(Exception):
    """Raised when Gemini returns a non-2xx response or cannot be reached."""

    def __init__(self, status_code: int, detail: str, data: Any = None):
        self.status_code = status_code
        self.detail = detail
        self.data = data
        super().__init__(f"Gemini API {status_code}: {detail}")


class GeminiClient:
    """Async HTTP client for Gemini text generation."""

    def __init__(self) -> None:
        settings = get_settings()
        self._base_url = settings.gemini_base_url.rstrip("/")
        self._timeout = settings.gemini_timeout
        self._http: httpx.AsyncClient | None = None

    # -- lifecycle -----------------------------------------------------------

    async def start(self) -> None:
        """Create the underlying ``httpx.AsyncClient`` connection pool."""
        if self._http is not None:
            return
        self._http = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(self._timeout),
            headers={"Content-Type": "application/json"},
        )
        logger.info("GeminiClient started — base_url=%s", self._base_url)

    async def close(self) -> None:
        """Gracefully close the connection pool."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None
            logger.info("GeminiClient closed")

    # -- public API ----------------------------------------------------------

    async def generate_content(self, model: str, api_key: str, payload: dict[str, Any]) -> Any:
        """POST ``/models/{model}:generateContent`` and return the decoded JSON.

        Raises :class:`GeminiError` carrying the upstream status on non-2xx,
        or status 500 when the request never completes.
        """
        await self.start()
        path = f"/models/{model}:generateContent"
        t0 = time.monotonic()
        try:
            response = await self._http.post(path, json=payload, headers={"x-goog-api-key": api_key})
        except httpx.HTTPError as exc:
            logger.error("Gemini transport error for model %s: %s", model, exc)
            raise GeminiError(500, str(exc) or DEFAULT_ERROR_DETAIL) from exc
        elapsed_ms = (time.monotonic() - t0) * 1000

        try:
            data = response.json()
        except ValueError:
            data = None

        if response.status_code >= 400:
            detail = _error_message(data) or DEFAULT_ERROR_DETAIL
            logger.error(
                "Gemini %s -> %d (%.0fms): %s", model, response.status_code, elapsed_ms, detail,
            )
            raise GeminiError(response.status_code, detail, data)

        logger.info("Gemini %s -> %d (%.0fms)", model, response.status_code, elapsed_ms)
        return data


def _error_message(data: Any) -> str:
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
    return ""


# ---------------------------------------------------------------------------
# Payload helpers
# ---------------------------------------------------------------------------

def build_payload(
    system_prompt: str,
    parts: list[dict[str, Any]],
    generation_config: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Assemble a single-turn ``generateContent`` request body."""
    return {
        "systemInstruction": {"parts": [{"text": system_prompt}]},
        "contents": [{"role": "user", "parts": parts}],
        "generationConfig": generation_config or {},
    }


def extract_text(data: Any) -> str:
    """Concatenate the text parts of the first candidate; ``""`` when absent."""
    if not isinstance(data, dict):
        return ""
    candidates = data.get("candidates") or []
    if not candidates or not isinstance(candidates[0], dict):
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(
        part.get("text") or "" for part in parts if isinstance(part, dict)
    )


def get_gemini_client() -> GeminiClient:
    """Return the module-level :class:`GeminiClient` singleton."""
    global _client
    if _client is None:
        _client = GeminiClient()
    return _client


async def close_gemini_client() -> None:
    global _client
    if _client is not None:
        await _client.close()
        _client = None
