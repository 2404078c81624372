"""Reusable LLM generation parameters.

LLMConfig is a standalone Pydantic model that can be:
- built from Settings as the assistant default,
- passed per-call for one-off overrides (e.g. a model chosen by the client).

Priority chain (low → high):
    .env defaults  →  per-call overrides
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class LLMConfig(BaseModel):
    """LLM generation parameters.

    All fields are optional.  ``None`` means "use the model's default".
    """

    model: str | None = Field(default=None, description="LiteLLM model identifier")
    max_tokens: int | None = Field(default=None, description="Max tokens to generate")
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    top_p: float | None = Field(default=None, ge=0.0, le=1.0)
    stop: list[str] | None = Field(default=None, description="Stop sequences")

    def merge(self, overrides: LLMConfig) -> LLMConfig:
        """Return a new LLMConfig: *self* as base, *overrides* wins on non-None fields."""
        base = self.model_dump(exclude_none=True)
        over = overrides.model_dump(exclude_none=True)
        base.update(over)
        return LLMConfig(**base)

    def to_litellm_kwargs(self) -> dict:
        """Convert to ``litellm.acompletion()``-compatible keyword arguments."""
        kw: dict = {}
        for field in ("max_tokens", "temperature", "top_p", "stop"):
            val = getattr(self, field)
            if val is not None:
                kw[field] = val
        return kw

    def to_generation_config(self) -> dict:
        """Convert to a Gemini REST ``generationConfig`` object."""
        cfg: dict = {}
        if self.temperature is not None:
            cfg["temperature"] = self.temperature
        if self.top_p is not None:
            cfg["topP"] = self.top_p
        if self.max_tokens is not None:
            cfg["maxOutputTokens"] = self.max_tokens
        if self.stop:
            cfg["stopSequences"] = self.stop
        return cfg
