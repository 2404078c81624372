"""LLM service for the tutoring assistant, powered by LiteLLM.

Models are addressed with LiteLLM's provider prefix, e.g.
``gemini/gemini-2.5-flash``.  The API key is passed per call because the
assistant may pick it from several configured keys or a request header.
"""

from __future__ import annotations

import litellm

from config.llm_config import LLMConfig
from config.settings import get_settings


class LLMService:
    """Thin async wrapper around ``litellm.acompletion()``.

    Priority chain (low → high):
        .env assistant defaults  →  per-instance LLMConfig  →  per-call overrides
    """

    def __init__(self, config: LLMConfig | None = None):
        self._config = get_settings().get_assistant_llm_config()
        if config:
            self._config = self._config.merge(config)

    @property
    def model(self) -> str | None:
        return self._config.model

    async def complete(
        self,
        prompt: str,
        system: str = "",
        api_key: str | None = None,
        **overrides,
    ) -> str:
        """Send one user turn and return the reply text (``""`` when empty)."""
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        kwargs: dict = {
            "model": self._config.model,
            "messages": messages,
            **self._config.to_litellm_kwargs(),
        }
        if api_key:
            kwargs["api_key"] = api_key
        kwargs.update(overrides)

        response = await litellm.acompletion(**kwargs)
        return response.choices[0].message.content or ""
