"""Offline helpers for the tutoring assistant.

Used by ``POST /chat`` when no usable Gemini key is configured or the model
call fails:

- :func:`build_welcome_intro` — activity-specific opening paragraph
- :func:`is_quiz_prompt` / :func:`build_quiz_fallback` — a five-question
  multiple-choice quiz assembled from the activity's description, SOP and code
- :func:`pick_api_key` — choose a usable Google API key among candidates
"""

from __future__ import annotations

import json
import random
import re
from typing import Any, Iterable

_LETTERS = ("A", "B", "C", "D")
_FILLERS = (
    "Not stated in the provided materials.",
    "Unrelated to the given SOP or code.",
    "Not part of this activity.",
    "Conflicts with the described steps.",
)
_QUIZ_MARKERS = ("mcq", "multiple-choice", "multiple choice", "create 5", "q1.")
_GOOGLE_KEY_RE = re.compile(r"^AIza[0-9A-Za-z_-]{20,}")
_CONTEXT_FIELDS = ("title", "subject", "grade", "description", "code", "sop")


# ---------------------------------------------------------------------------
# API keys
# ---------------------------------------------------------------------------

def _is_masked(key: str) -> bool:
    return "*" in key or "•" in key


def pick_api_key(candidates: Iterable[str | None]) -> str | None:
    """First candidate shaped like a Google key, else the first unmasked one."""
    keys = [k.strip() for k in candidates if k and k.strip()]
    for key in keys:
        if _GOOGLE_KEY_RE.match(key) and not _is_masked(key):
            return key
    for key in keys:
        if not _is_masked(key):
            return key
    return None


# ---------------------------------------------------------------------------
# Context helpers
# ---------------------------------------------------------------------------

def context_to_text(context: Any) -> str:
    """String contexts pass through; objects and lists are JSON-serialised."""
    if not context:
        return ""
    if isinstance(context, str):
        return context
    if isinstance(context, (dict, list)):
        return json.dumps(context, ensure_ascii=False)
    return ""


def parse_context(context_text: str) -> dict[str, str]:
    """Pull the string activity fields out of a JSON context."""
    if not context_text:
        return {}
    try:
        parsed = json.loads(context_text)
    except json.JSONDecodeError:
        return {}
    if not isinstance(parsed, dict):
        return {}
    return {
        field: parsed[field] if isinstance(parsed.get(field), str) else ""
        for field in _CONTEXT_FIELDS
    }


def shorten(value: str, limit: int = 200) -> str:
    return f"{value[:limit]}..." if len(value) > limit else value


def build_welcome_intro(context: Any) -> str:
    """Four-sentence welcome for the activity in ``context`` (``""`` without one)."""
    if not context:
        return ""
    if isinstance(context, str):
        try:
            parsed = json.loads(context)
        except json.JSONDecodeError:
            return ""
    else:
        parsed = context
    if not isinstance(parsed, dict):
        return ""

    title = parsed.get("title") or "this activity"
    subject = parsed.get("subject") or "drone learning"
    desc = parsed.get("description") or ""
    grade = f" for Grade {parsed['grade']}" if parsed.get("grade") else ""
    why = shorten(str(desc), 220) if desc else "Hands-on drone skills blending programming, electronics, and physics."
    return " ".join([
        f'Welcome! Today we are exploring "{title}"{grade}, focused on {subject}.',
        f"Why this matters: {why}",
        f"What you will learn: You will practice {subject} with code, testing, and reflection.",
        "This connects to real life through inspection, disaster response, agriculture, and smart cities, "
        "helping communities with safer logistics and better monitoring.",
    ])


# ---------------------------------------------------------------------------
# Quiz fallback
# ---------------------------------------------------------------------------

def is_quiz_prompt(message: str) -> bool:
    normalized = message.lower()
    return any(marker in normalized for marker in _QUIZ_MARKERS)


def _extract_prompt_value(message: str, label: str) -> str:
    match = re.search(rf"{label}:\s*(.+)", message, re.IGNORECASE)
    return match.group(1).strip() if match else ""


def _split_sentences(text: str) -> list[str]:
    return [s.strip() for s in re.split(r"(?<=[.!?])\s+", text) if s.strip()]


def _split_lines(text: str) -> list[str]:
    return [line.strip() for line in re.split(r"\r?\n", text) if line.strip()]


class QuizBuilder:
    """Assemble a five-question multiple-choice quiz from activity materials.

    Pass a seeded ``random.Random`` for reproducible output.
    """

    def __init__(self, rng: random.Random | None = None):
        self._rng = rng or random.Random()

    def _sample(self, items: list[str]) -> str | None:
        return self._rng.choice(items) if items else None

    def _shuffle(self, items: list) -> list:
        copy = list(items)
        self._rng.shuffle(copy)
        return copy

    def build_options(self, correct: str, distractors: list[str]) -> dict[str, Any]:
        """Four lettered options containing ``correct``, plus the answer letter."""
        pool: list[str] = []
        for item in [correct, *distractors, *_FILLERS]:
            if item and item not in pool:
                pool.append(item)
        while len(pool) < 4:
            pool.append(self._sample(list(_FILLERS)) or "Not provided.")
        picks = self._shuffle(pool)[:4]
        if correct not in picks:
            picks[0] = correct
        shuffled = self._shuffle(picks)
        answer_idx = shuffled.index(correct) if correct in shuffled else 0
        return {
            "options": [{"label": _LETTERS[i], "text": text} for i, text in enumerate(shuffled)],
            "answer": _LETTERS[answer_idx],
        }

    def build(self, message: str, context_text: str = "") -> str:
        ctx = parse_context(context_text)
        title = ctx.get("title") or _extract_prompt_value(message, "Title") or "this activity"
        subject = ctx.get("subject") or _extract_prompt_value(message, "Subject") or "drone systems"
        grade = ctx.get("grade") or _extract_prompt_value(message, "Grade") or "students"
        description = (
            ctx.get("description")
            or _extract_prompt_value(message, "Description")
            or "a guided drone learning module"
        )
        sop = ctx.get("sop") or ""
        code = ctx.get("code") or ""

        desc_sentences = _split_sentences(description)
        sop_sentences = _split_sentences(sop)
        code_lines = _split_lines(code)

        concept = self._sample(desc_sentences + sop_sentences) or f"{title} — applying {subject}"
        sop_step = self._sample(sop_sentences) or "Follow the SOP steps as written for this activity."
        code_line = (
            self._sample([line for line in code_lines if len(line) < 160])
            or self._sample(code_lines)
            or "Review the provided code."
        )
        outcome = (
            self._sample(desc_sentences[1:])
            or (desc_sentences[0] if desc_sentences else None)
            or self._sample(sop_sentences[-2:])
            or "Achieve the stated result."
        )
        troubleshoot = self._sample(sop_sentences + code_lines) or "Re-check the SOP steps and code parameters."

        questions = [
            {
                "stem": self._sample([
                    f'What core concept is emphasized in "{title}" for {grade}?',
                    f"Which learning outcome best matches this activity on {subject}?",
                    "What is the primary idea students practice in this activity?",
                ]),
                **self.build_options(concept, [
                    "A topic unrelated to the provided materials.",
                    "A general drone trivia point.",
                    "An off-topic theory not covered here.",
                ]),
                "explanation": (
                    f"From description: {shorten(description, 140)}" if description
                    else f"From SOP: {shorten(sop, 140)}" if sop
                    else "Based on the provided context."
                ),
            },
            {
                "stem": self._sample([
                    "According to the SOP, which step or check must be followed?",
                    "Which SOP action is required to stay on procedure?",
                    "Which SOP instruction applies to this activity?",
                ]),
                **self.build_options(sop_step, [
                    "Skipping safety checks entirely.",
                    "Using an unrelated hobby checklist.",
                    "Ignoring the procedure order.",
                ]),
                "explanation": (
                    f"From SOP snippet: {shorten(sop_step, 140)}" if sop
                    else "SOP guidance was not provided; follow official steps."
                ),
            },
            {
                "stem": self._sample([
                    f"In the provided code, what does this line do?\n{code_line}",
                    f"What is the purpose of this code snippet?\n{code_line}",
                    f"How does this code line support the activity?\n{code_line}",
                ]),
                **self.build_options(code_line, [
                    "It performs an unrelated sensor calibration.",
                    "It switches to an unrelated flight mode.",
                    "It changes a setting not present in the snippet.",
                ]),
                "explanation": (
                    f"From code snippet: {shorten(code_line, 140)}" if code
                    else "No code provided; use the supplied snippet when available."
                ),
            },
            {
                "stem": self._sample([
                    "If results drift from expected, what should be checked or adjusted first?",
                    "When the outcome is off, which source should you revisit?",
                    "How should you troubleshoot if the activity is not working?",
                ]),
                **self.build_options(troubleshoot, [
                    "Adjust random parameters without review.",
                    "Ignore the SOP and rerun blindly.",
                    "Assume hardware is faulty without checks.",
                ]),
                "explanation": (
                    "Troubleshoot by re-checking the provided SOP steps and code parameters." if sop or code
                    else "Use provided materials to verify steps and parameters."
                ),
            },
            {
                "stem": self._sample([
                    "Which outcome or measurement shows the concept was applied correctly?",
                    "What indicates success for this activity?",
                    "What result should you verify after running the activity?",
                ]),
                **self.build_options(outcome, [
                    "No measurement is needed.",
                    "Any unrelated outcome counts as success.",
                    "Only speed of completion matters, not accuracy.",
                ]),
                "explanation": (
                    f"From description: {shorten(outcome, 140)}" if description
                    else f"From SOP: {shorten(outcome, 140)}" if sop
                    else "Use the stated objective to verify success."
                ),
            },
        ]

        blocks = []
        for idx, q in enumerate(self._shuffle(questions), start=1):
            lines = [f"Q{idx}. {q['stem']}"]
            lines += [f"{opt['label']}) {opt['text']}" for opt in q["options"]]
            lines += [f"Answer: {q['answer']}", f"Explanation: {q['explanation']}"]
            blocks.append("\n".join(lines))
        return "\n\n".join(blocks)


def build_quiz_fallback(message: str, context_text: str = "", rng: random.Random | None = None) -> str:
    return QuizBuilder(rng).build(message, context_text)
