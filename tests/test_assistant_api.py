"""Endpoint tests for /openai-proxy, /chat and /report (Gemini mocked)."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from config.settings import Settings
from main import app
from services.gemini_client import GeminiError, get_gemini_client

USER = {"Authorization": "Bearer student-token"}
KEY = "AIza" + "x" * 30


def _settings(**overrides):
    values = {"google_api_key": KEY}
    values.update(overrides)
    return Settings(_env_file=None, **values)


def _gemini_reply(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


@pytest.fixture
def gemini(client):
    mock = MagicMock()
    mock.generate_content = AsyncMock(return_value=_gemini_reply("Drones fly."))
    app.dependency_overrides[get_gemini_client] = lambda: mock
    return mock


@pytest.fixture
def configured():
    with patch("api.assistant.get_settings", return_value=_settings()):
        yield


@pytest.fixture
def unconfigured():
    with patch("api.assistant.get_settings", return_value=_settings(google_api_key="")):
        yield


# ── /openai-proxy ──────────────────────────────────────────────


@pytest.mark.asyncio
async def test_proxy_success(client, gemini, configured):
    resp = await client.post("/openai-proxy", headers=USER, json={
        "message": "What is Skylab?",
        "context": {"page": "home"},
    })
    assert resp.status_code == 200
    data = resp.json()
    assert data["reply"] == "Drones fly."
    assert data["gemini"] == _gemini_reply("Drones fly.")

    model, api_key, payload = gemini.generate_content.call_args.args
    assert model == "gemini-2.5-flash"
    assert api_key == KEY
    text = payload["contents"][0]["parts"][0]["text"]
    assert text == '{"page": "home"}\n\nWhat is Skylab?'
    assert payload["generationConfig"]["temperature"] == 0.4


@pytest.mark.asyncio
async def test_proxy_truncates_context_and_honours_model(client, gemini, configured):
    resp = await client.post("/openai-proxy", headers=USER, json={
        "message": "hi",
        "context": "c" * 5000,
        "model": "gemini-2.0-pro",
    })
    assert resp.status_code == 200
    model, _, payload = gemini.generate_content.call_args.args
    assert model == "gemini-2.0-pro"
    assert payload["contents"][0]["parts"][0]["text"] == "c" * 2000 + "\n\nhi"


@pytest.mark.asyncio
async def test_proxy_without_context(client, gemini, configured):
    await client.post("/openai-proxy", headers=USER, json={"message": "hi"})
    _, _, payload = gemini.generate_content.call_args.args
    assert payload["contents"][0]["parts"][0]["text"] == "hi"


@pytest.mark.asyncio
async def test_proxy_missing_key(client, gemini, unconfigured):
    resp = await client.post("/openai-proxy", headers=USER, json={"message": "hi"})
    assert resp.status_code == 500
    assert resp.json() == {"error": "Missing GOOGLE_API_KEY"}
    gemini.generate_content.assert_not_called()


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [{}, {"message": ""}, {"message": 42}])
async def test_proxy_requires_message(client, gemini, configured, body):
    resp = await client.post("/openai-proxy", headers=USER, json=body)
    assert resp.status_code == 400
    assert resp.json() == {"error": "message is required"}


@pytest.mark.asyncio
async def test_proxy_upstream_error_passes_status(client, gemini, configured):
    gemini.generate_content.side_effect = GeminiError(429, "Resource has been exhausted")
    resp = await client.post("/openai-proxy", headers=USER, json={"message": "hi"})
    assert resp.status_code == 429
    assert resp.json() == {"error": "Gemini request failed", "detail": "Resource has been exhausted"}


@pytest.mark.asyncio
async def test_proxy_empty_candidates(client, gemini, configured):
    gemini.generate_content.return_value = {"candidates": []}
    resp = await client.post("/openai-proxy", headers=USER, json={"message": "hi"})
    assert resp.json()["reply"] == ""


# ── /chat ──────────────────────────────────────────────────────

ACTIVITY = {
    "title": "Hover Test",
    "subject": "Physics",
    "grade": "8",
    "description": "Students tune throttle to hold a hover. They record altitude.",
    "sop": "Arm the drone. Raise throttle slowly. Log altitude every second.",
    "code": "drone.arm()\ndrone.set_throttle(0.55)",
}


@pytest.mark.asyncio
async def test_chat_success(client, configured):
    with patch("api.assistant.LLMService") as svc_cls:
        svc_cls.return_value.complete = AsyncMock(return_value="Great question!")
        resp = await client.post("/chat", headers=USER, json={"message": "Why hover?", "context": ACTIVITY})

    assert resp.status_code == 200
    assert resp.json() == {"reply": "Great question!"}
    kwargs = svc_cls.return_value.complete.call_args.kwargs
    assert kwargs["api_key"] == KEY
    prompt = svc_cls.return_value.complete.call_args.args[0]
    assert prompt.startswith('Welcome! Today we are exploring "Hover Test" for Grade 8')
    assert prompt.endswith("\n\nWhy hover?")


@pytest.mark.asyncio
async def test_chat_empty_reply(client, configured):
    with patch("api.assistant.LLMService") as svc_cls:
        svc_cls.return_value.complete = AsyncMock(return_value="")
        resp = await client.post("/chat", headers=USER, json={"message": "hi"})
    assert resp.json() == {"reply": "No reply generated."}


@pytest.mark.asyncio
async def test_chat_uses_header_key_when_unconfigured(client, unconfigured):
    header_key = "AIza" + "h" * 30
    with patch("api.assistant.LLMService") as svc_cls:
        svc_cls.return_value.complete = AsyncMock(return_value="ok")
        resp = await client.post(
            "/chat", headers={**USER, "x-google-key": header_key}, json={"message": "hi"},
        )
    assert resp.json() == {"reply": "ok"}
    assert svc_cls.return_value.complete.call_args.kwargs["api_key"] == header_key


@pytest.mark.asyncio
async def test_chat_without_key_returns_intro_and_hint(client, unconfigured):
    resp = await client.post("/chat", headers=USER, json={"message": "hello", "context": ACTIVITY})
    assert resp.status_code == 200
    data = resp.json()
    assert data["fallback"] is True
    assert data["reply"].startswith("Welcome!")
    assert "GOOGLE_API_KEY" in data["reply"]


@pytest.mark.asyncio
async def test_chat_without_key_builds_quiz(client, unconfigured):
    resp = await client.post("/chat", headers=USER, json={
        "message": "Create 5 MCQ questions for this activity",
        "context": json.dumps(ACTIVITY),
    })
    data = resp.json()
    assert data["fallback"] is True
    assert data["detail"] == "Gemini API key missing or invalid."
    assert data["reply"].startswith("Q1. ")
    assert data["reply"].count("Answer: ") == 5


@pytest.mark.asyncio
async def test_chat_model_failure_reports_quota(client, configured):
    with patch("api.assistant.LLMService") as svc_cls:
        svc_cls.return_value.complete = AsyncMock(side_effect=RuntimeError("Quota exceeded for metric"))
        resp = await client.post("/chat", headers=USER, json={"message": "hi", "context": ACTIVITY})
    assert resp.status_code == 200
    data = resp.json()
    assert data["fallback"] is True
    assert data["detail"] == "Quota exceeded for metric"
    assert "quota exceeded" in data["reply"]
    assert data["reply"].endswith(": Quota exceeded for metric")


@pytest.mark.asyncio
async def test_chat_model_failure_quiz(client, configured):
    with patch("api.assistant.LLMService") as svc_cls:
        svc_cls.return_value.complete = AsyncMock(side_effect=RuntimeError("boom"))
        resp = await client.post("/chat", headers=USER, json={"message": "multiple choice please"})
    data = resp.json()
    assert data["detail"] == "boom"
    assert data["reply"].count("Answer: ") == 5


@pytest.mark.asyncio
async def test_chat_requires_message(client, configured):
    resp = await client.post("/chat", headers=USER, json={"context": ACTIVITY})
    assert resp.status_code == 400
    assert resp.json() == {"error": "message is required"}


# ── /report ────────────────────────────────────────────────────

REPORT_BODY = {
    "title": "Pressure vs Height",
    "description": "Measure pressure as altitude changes.",
    "accuracyHint": 92.4,
    "parsedPoints": [{"x": 0, "y": 10}, {"x": 1, "y": 8}, {"x": 2, "y": 6}, {"x": 3, "y": 4}],
    "plotImageDataUrl": "data:image/png;base64,iVBORw0KGgo=",
}


@pytest.mark.asyncio
async def test_report_success(client, gemini, configured):
    gemini.generate_content.return_value = _gemini_reply('{"summary": "Nice work", "accuracyPercent": 95}')
    resp = await client.post("/report", headers=USER, json=REPORT_BODY)
    assert resp.status_code == 200
    assert resp.json() == {"report": {"summary": "Nice work", "accuracyPercent": 95}}

    _, _, payload = gemini.generate_content.call_args.args
    assert payload["generationConfig"]["responseMimeType"] == "application/json"
    assert payload["generationConfig"]["temperature"] == 0.2
    parts = payload["contents"][0]["parts"]
    assert parts[1] == {"inlineData": {"mimeType": "image/png", "data": "iVBORw0KGgo="}}


@pytest.mark.asyncio
async def test_report_missing_key_falls_back(client, gemini, unconfigured):
    resp = await client.post("/report", headers=USER, json=REPORT_BODY)
    assert resp.status_code == 500
    data = resp.json()
    assert data["fallback"] is True
    assert data["detail"] == "GOOGLE_API_KEY missing or malformed"
    assert data["report"]["accuracyPercent"] == 92
    assert data["report"]["trendAssessment"] == "Trend detected: decreasing (corr -1.00)."
    gemini.generate_content.assert_not_called()


@pytest.mark.asyncio
async def test_report_upstream_error_falls_back(client, gemini, configured):
    gemini.generate_content.side_effect = GeminiError(503, "The model is overloaded")
    resp = await client.post("/report", headers=USER, json=REPORT_BODY)
    assert resp.status_code == 503
    assert resp.json()["detail"] == "The model is overloaded"
    assert "summary" in resp.json()["report"]


@pytest.mark.asyncio
async def test_report_empty_content_falls_back(client, gemini, configured):
    gemini.generate_content.return_value = {"candidates": [{"content": {"parts": []}}]}
    resp = await client.post("/report", headers=USER, json=REPORT_BODY)
    assert resp.status_code == 502
    assert resp.json()["detail"] == "Empty content from Gemini"


@pytest.mark.asyncio
async def test_report_invalid_json_falls_back(client, gemini, configured):
    gemini.generate_content.return_value = _gemini_reply("Here is your report: great!")
    resp = await client.post("/report", headers=USER, json=REPORT_BODY)
    assert resp.status_code == 502
    assert resp.json()["detail"] == "Invalid JSON from Gemini"
    assert resp.json()["fallback"] is True


@pytest.mark.asyncio
async def test_report_invalid_body(client, gemini, configured):
    resp = await client.post("/report", headers=USER, json={"parsedPoints": "lots"})
    assert resp.status_code == 400
    assert resp.json()["error"].startswith("parsedPoints")


@pytest.mark.asyncio
async def test_report_mixed_points_fall_back_without_rejecting_body(client, gemini, unconfigured):
    body = {
        "title": "Spring stretch",
        "parsedPoints": [{"x": 1, "y": 2}, {"x": None, "y": 3}, {"x": 2, "y": 4}, {"x": "3", "y": 5}, {"x": 3, "y": 6}],
    }
    resp = await client.post("/report", headers=USER, json=body)
    assert resp.status_code == 500
    report = resp.json()["report"]
    assert report["trendAssessment"] == "Trend detected: increasing (corr 1.00)."
    assert report["logInsights"][0].startswith("Detected 3 samples")
