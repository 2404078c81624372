"""Pydantic Settings — typed configuration with .env auto-loading."""

from __future__ import annotations

from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from config.llm_config import LLMConfig


class Settings(BaseSettings):
    """Application configuration loaded from environment / .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    # ── Service ──────────────────────────────────────────────
    service_port: int = 5000
    cors_origins: list[str] = ["*"]
    debug: bool = False

    # ── Supabase (identity + tables) ─────────────────────────
    # The web frontend exposes the project URL as NEXT_PUBLIC_SUPABASE_URL;
    # accept either name so both deployments share one .env.
    supabase_url: str = Field(
        default="",
        validation_alias=AliasChoices("supabase_url", "NEXT_PUBLIC_SUPABASE_URL"),
    )
    supabase_service_role_key: str = ""
    user_list_page_size: int = 500

    # ── Gemini (generative text) ─────────────────────────────
    google_api_key: str = ""
    google_api_key_questions: str = ""
    google_api_key_fallback: str = ""
    gemini_model: str = "gemini-2.5-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_timeout: int = 60  # seconds
    proxy_context_limit: int = 2000  # characters of context forwarded upstream

    # ── Chat assistant generation defaults ───────────────────
    assistant_temperature: float = 0.4
    report_temperature: float = 0.2
    max_tokens: int | None = None

    # ── Helpers ───────────────────────────────────────────────

    @property
    def supabase_configured(self) -> bool:
        """True when both the project URL and the service-role key are set."""
        return bool(self.supabase_url and self.supabase_service_role_key)

    def get_assistant_llm_config(self) -> LLMConfig:
        """Build the :class:`LLMConfig` used by the tutoring chat assistant."""
        return LLMConfig(
            model=f"gemini/{self.gemini_model}",
            temperature=self.assistant_temperature,
            max_tokens=self.max_tokens,
        )


@lru_cache
def get_settings() -> Settings:
    """Singleton accessor for application settings."""
    return Settings()
