"""Generative-text endpoints backed by Gemini.

POST /openai-proxy  → platform explainer; raw Gemini response passed through
POST /chat          → activity tutor via LiteLLM, with offline fallbacks
POST /report        → lab-report evaluation, with a locally computed fallback

All three require a verified bearer token (any role).
"""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.request_utils import parse_body
from config.llm_config import LLMConfig
from config.prompts.assistant import CHAT_SYSTEM_PROMPT, PROXY_SYSTEM_PROMPT, REPORT_SYSTEM_PROMPT
from config.settings import get_settings
from errors import BadRequestError, ConfigurationError, UpstreamError
from models.data import AuthUser
from models.request import AssistantRequest, ReportRequest
from services.assistant_fallback import (
    build_quiz_fallback,
    build_welcome_intro,
    context_to_text,
    is_quiz_prompt,
    pick_api_key,
)
from services.gemini_client import GeminiClient, GeminiError, build_payload, extract_text, get_gemini_client
from services.lab_report import build_fallback_report, build_report_parts
from services.llm_service import LLMService
from skylab_backend.auth import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(tags=["assistant"])

MISSING_KEY_HINT = (
    "Gemini API key missing or invalid. Set GOOGLE_API_KEY (or GOOGLE_API_KEY_QUESTIONS) "
    "in the environment and restart."
)


def _require_message(body: AssistantRequest) -> str:
    if not body.message or not isinstance(body.message, str):
        raise BadRequestError("message is required")
    return body.message


@router.post("/openai-proxy")
async def openai_proxy(
    request: Request,
    user: AuthUser = Depends(get_current_user),
    gemini: GeminiClient = Depends(get_gemini_client),
):
    """Answer a platform question with Gemini and return the raw response too.

    Request body::

        {"message": "...", "context": <string | object>, "model": "optional"}
    """
    settings = get_settings()
    if not settings.google_api_key:
        raise ConfigurationError("Missing GOOGLE_API_KEY")

    body = await parse_body(request, AssistantRequest)
    message = _require_message(body)

    context_text = context_to_text(body.context)[: settings.proxy_context_limit]
    model = body.model if isinstance(body.model, str) and body.model else settings.gemini_model
    prompt = f"{context_text}\n\n{message}" if context_text else message

    payload = build_payload(
        PROXY_SYSTEM_PROMPT,
        [{"text": prompt}],
        LLMConfig(temperature=settings.assistant_temperature).to_generation_config(),
    )
    try:
        data = await gemini.generate_content(model, settings.google_api_key, payload)
    except GeminiError as exc:
        raise UpstreamError(
            "Gemini request failed",
            status_code=exc.status_code,
            extra={"detail": exc.detail},
        ) from exc

    return {"reply": extract_text(data), "gemini": data}


@router.post("/chat")
async def chat(
    request: Request,
    user: AuthUser = Depends(get_current_user),
):
    """Tutor reply for an activity; degrades to an offline reply instead of failing."""
    settings = get_settings()
    body = await parse_body(request, AssistantRequest)
    message = _require_message(body)
    context_text = context_to_text(body.context).strip()

    api_key = pick_api_key([
        settings.google_api_key,
        settings.google_api_key_questions,
        settings.google_api_key_fallback,
        request.headers.get("x-google-key"),
    ])
    intro = build_welcome_intro(body.context)

    if not api_key:
        logger.warning("Chat fallback: no usable Gemini key")
        if is_quiz_prompt(message):
            return {
                "reply": build_quiz_fallback(message, context_text),
                "fallback": True,
                "detail": "Gemini API key missing or invalid.",
            }
        return {"reply": f"{intro}\n\n{MISSING_KEY_HINT}", "fallback": True}

    prompt = f"{intro}\n\n{message}" if intro else message
    try:
        reply = await LLMService().complete(prompt, system=CHAT_SYSTEM_PROMPT, api_key=api_key)
    except Exception as exc:
        detail = str(exc) or "Unknown error contacting Gemini"
        logger.warning("Chat fallback after model error: %s", detail, exc_info=True)
        if is_quiz_prompt(message):
            return {
                "reply": build_quiz_fallback(message, context_text),
                "fallback": True,
                "detail": detail,
            }
        is_quota = "quota" in detail.lower() or getattr(exc, "status_code", None) == 429
        quota_note = " (quota exceeded — add billing or try a different project/key)" if is_quota else ""
        return {
            "reply": f"{intro}\n\nAssistant fallback: Gemini call failed{quota_note}: {detail}",
            "fallback": True,
            "detail": detail,
        }

    return {"reply": reply or "No reply generated."}


def _fallback_report(payload: ReportRequest, detail: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"report": build_fallback_report(payload), "fallback": True, "detail": detail},
    )


@router.post("/report")
async def evaluate_report(
    request: Request,
    user: AuthUser = Depends(get_current_user),
    gemini: GeminiClient = Depends(get_gemini_client),
):
    """Evaluate a lab activity's log and plot against its expected trend."""
    settings = get_settings()
    payload = await parse_body(request, ReportRequest)

    api_key = pick_api_key([settings.google_api_key, request.headers.get("x-google-key")])
    if not api_key:
        logger.error("Report: GOOGLE_API_KEY missing or malformed")
        return _fallback_report(payload, "GOOGLE_API_KEY missing or malformed", 500)

    gemini_payload = build_payload(
        REPORT_SYSTEM_PROMPT,
        build_report_parts(payload),
        {
            **LLMConfig(temperature=settings.report_temperature).to_generation_config(),
            "responseMimeType": "application/json",
        },
    )
    try:
        data = await gemini.generate_content(settings.gemini_model, api_key, gemini_payload)
    except GeminiError as exc:
        return _fallback_report(payload, exc.detail, exc.status_code or 502)

    content = extract_text(data)
    if not content:
        logger.error("Report: empty content from Gemini")
        return _fallback_report(payload, "Empty content from Gemini", 502)
    try:
        report = json.loads(content)
    except json.JSONDecodeError:
        logger.error("Report: invalid JSON from Gemini: %s", content[:200])
        return _fallback_report(payload, "Invalid JSON from Gemini", 502)

    return {"report": report}
