"""Lab activity evaluation — Gemini prompt building and the local fallback report.

When Gemini is unavailable (no key, upstream error, empty or non-JSON
content) the ``/report`` endpoint still answers with a report computed from
the student's uploaded data points:

- Pearson correlation of the raw points decides the trend direction
  (±0.2 threshold; pressure-vs-height activities default to decreasing)
- accuracy comes from the client's hint, else from ``|correlation|``
- the overlay is the normalised points, or a reference curve when fewer
  than three usable points were uploaded
"""

from __future__ import annotations

import math
import re
from typing import Any

from models.request import DataPoint, ReportRequest

LOG_EXCERPT_LIMIT = 3000
CODE_EXCERPT_LIMIT = 2000
MIN_POINTS = 3
TREND_THRESHOLD = 0.2

_DATA_URL_RE = re.compile(r"^data:(.+);base64,(.+)$", re.DOTALL)

DECREASING_REFERENCE = [
    {"x": 0.0, "y": 0.9},
    {"x": 0.2, "y": 0.75},
    {"x": 0.4, "y": 0.55},
    {"x": 0.6, "y": 0.4},
    {"x": 0.8, "y": 0.25},
    {"x": 1.0, "y": 0.1},
]
INCREASING_REFERENCE = [
    {"x": 0.0, "y": 0.1},
    {"x": 0.2, "y": 0.25},
    {"x": 0.4, "y": 0.45},
    {"x": 0.6, "y": 0.65},
    {"x": 0.8, "y": 0.8},
    {"x": 1.0, "y": 0.9},
]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _fmt_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else repr(float(value))


def clamp_accuracy(value: float | None) -> int | None:
    """Round a 0-100 accuracy hint and clamp it; ``None`` for missing / NaN."""
    if value is None or math.isnan(value):
        return None
    return min(100, max(0, _round_half_up(value)))


def has_inverse_pressure_trend(payload: ReportRequest) -> bool:
    """Pressure-vs-height activities are expected to trend downward."""
    text = f"{payload.title or ''} {payload.description or ''} {payload.log_text or ''}".lower()
    return "pressure" in text and ("height" in text or "altitude" in text)


def _is_finite_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def usable_points(payload: ReportRequest) -> list[DataPoint]:
    """Points whose coordinates are both finite numbers."""
    return [p for p in payload.parsed_points if _is_finite_number(p.x) and _is_finite_number(p.y)]


def normalize_points(points: list[DataPoint]) -> list[dict[str, float]]:
    """Scale points into the unit square and sort them by x."""
    if not points:
        return []
    xs = [p.x for p in points]
    ys = [p.y for p in points]
    span_x = (max(xs) - min(xs)) or 1
    span_y = (max(ys) - min(ys)) or 1
    scaled = sorted(
        ({"x": (p.x - min(xs)) / span_x, "y": (p.y - min(ys)) / span_y} for p in points),
        key=lambda p: p["x"],
    )
    return [
        {"x": min(1.0, max(0.0, p["x"])), "y": min(1.0, max(0.0, p["y"]))}
        for p in scaled
    ]


def compute_correlation(points: list[DataPoint]) -> float:
    """Pearson correlation coefficient; 0 for fewer than two points."""
    if len(points) < 2:
        return 0.0
    n = len(points)
    mean_x = sum(p.x for p in points) / n
    mean_y = sum(p.y for p in points) / n
    num = denom_x = denom_y = 0.0
    for p in points:
        dx = p.x - mean_x
        dy = p.y - mean_y
        num += dx * dy
        denom_x += dx * dx
        denom_y += dy * dy
    denom = math.sqrt(denom_x * denom_y) or 1
    return num / denom


def build_fallback_report(payload: ReportRequest) -> dict[str, Any]:
    """Compute a complete report locally from the uploaded points."""
    title = payload.title or "Activity"
    inverse = has_inverse_pressure_trend(payload)
    accuracy = clamp_accuracy(payload.accuracy_hint)
    points = usable_points(payload)
    enough_data = len(points) >= MIN_POINTS
    norm_points = normalize_points(points)
    correlation = compute_correlation(points) if enough_data else 0.0

    if correlation > TREND_THRESHOLD:
        trend = "increasing"
    elif correlation < -TREND_THRESHOLD:
        trend = "decreasing"
    else:
        trend = "decreasing" if inverse else "flat"

    if accuracy is None and enough_data:
        accuracy = max(40, min(100, _round_half_up(abs(correlation) * 90 + (5 if inverse else 0))))
    high = accuracy is not None and accuracy >= 90
    mid = accuracy is not None and accuracy >= 75

    if not enough_data:
        summary = f'Limited points uploaded for "{title}". Add more samples to see an accurate trend.'
    elif correlation > 0.7:
        summary = f'Your data for "{title}" shows a clear {trend} trend that matches expectations.'
    elif correlation > 0.4:
        summary = f'"{title}" data trends {trend} but with some noise; tighten consistency for a better match.'
    else:
        summary = f'Trend for "{title}" is weak/noisy; rerun with steadier sampling to capture the expected shape.'

    if high:
        alignment = "Objective met; log and plot align with the expected pattern."
    elif mid:
        alignment = "Objective mostly met; reduce noise and verify steps."
    else:
        alignment = "Objective not yet met; follow SOP carefully and repeat the trial."

    if enough_data:
        trend_assessment = f"Trend detected: {trend} (corr {correlation:.2f})."
    elif inverse:
        trend_assessment = "Expected inverse pressure-height trend; add more samples to verify."
    else:
        trend_assessment = "Expected monotonic trend; more data needed to confirm."

    consistent = enough_data and correlation > 0.4
    if consistent:
        possible_errors = ["Minor noise or offsets in measurements", "Sampling interval variation"]
        tips = [
            "Keep sampling interval consistent; avoid gaps.",
            "Smooth sudden spikes; recheck sensor placement and wiring.",
            "Re-run with the same setup to confirm repeatability.",
        ]
    else:
        possible_errors = [
            "Sensor noise or calibration drift",
            "Gaps or spikes in sampling",
            "Units or axis mix-up in the log/plot",
        ]
        tips = [
            "Collect more data points for a clearer trend.",
            "Verify units and columns before plotting.",
            "Repeat the trial after a quick sensor calibration.",
        ]

    if enough_data:
        xs = [p.x for p in points]
        ys = [p.y for p in points]
        log_insights = [
            f"Detected {len(points)} samples; trend is {trend} with correlation {correlation:.2f}.",
            f"Value range X: {_fmt_number(min(xs))} to {_fmt_number(max(xs))}, "
            f"Y: {_fmt_number(min(ys))} to {_fmt_number(max(ys))}",
        ]
    else:
        log_insights = [
            "Not enough numeric pairs were detected in the uploaded log. Add more rows with numeric columns."
        ]

    if len(norm_points) >= MIN_POINTS:
        overlay_points = norm_points
        note = "Overlay shows your uploaded points normalized to expected axes."
    elif inverse:
        overlay_points = DECREASING_REFERENCE
        note = "Expected trend: pressure decreases as height increases."
    else:
        overlay_points = INCREASING_REFERENCE
        note = "Expected monotonic trend shown for reference."

    return {
        "summary": summary,
        "objectiveAlignment": alignment,
        "trendAssessment": trend_assessment,
        "accuracyPercent": accuracy,
        "possibleErrors": possible_errors,
        "improvementTips": tips,
        "logInsights": log_insights,
        "overlay": {"note": note, "points": overlay_points},
    }


def build_report_prompt(payload: ReportRequest) -> str:
    """Evaluation instructions plus the activity's details and excerpts."""
    log_excerpt = (payload.log_text or "")[:LOG_EXCERPT_LIMIT]
    code_excerpt = (payload.code_text or "")[:CODE_EXCERPT_LIMIT]
    accuracy = clamp_accuracy(payload.accuracy_hint)
    lines = [
        "You are an academic evaluator for a student lab activity.",
        "Analyze the student's log + graph against the expected trend in the SOP and activity description.",
        "Return JSON only with these keys:",
        "summary, objectiveAlignment, trendAssessment, accuracyPercent, possibleErrors, improvementTips, logInsights, overlay",
        "overlay must include: note (string) and points (array of 12-20 points).",
        "Each point must be an object with x and y values normalized between 0 and 1.",
        "x must be strictly increasing.",
    ]
    if has_inverse_pressure_trend(payload):
        lines.append(
            "Expected trend: as height increases, pressure decreases. "
            "Reflect this inverse relationship in overlay points."
        )
    lines += [
        "Accuracy percent should reflect similarity to the expected trend.",
        "Use the accuracy hint: if >= 90, praise and avoid listing errors (possibleErrors should state none). "
        "If < 90, include likely issues and encourage a retry when needed.",
        "Keep feedback concise and specific; avoid generic boilerplate.",
        f"Accuracy hint (0-100): {accuracy}" if accuracy is not None else "Accuracy hint: (not provided)",
        "Be specific and student-friendly; suggest likely sources of error.",
        f"Title: {payload.title or ''}",
        f"Grade: {payload.grade or ''}",
        f"Subject: {payload.subject or ''}",
        f"Description: {payload.description or ''}",
        f"SOP URL: {payload.sop_url}" if payload.sop_url else "SOP URL: (not provided)",
        f"Code excerpt:\n{code_excerpt}" if code_excerpt else "Code excerpt: (not provided)",
        f"Plot type: {payload.plot_type}" if payload.plot_type else "Plot type: (unknown)",
        f"Log excerpt:\n{log_excerpt}" if log_excerpt else "Log excerpt: (not provided)",
    ]
    return "\n".join(lines)


def build_report_parts(payload: ReportRequest) -> list[dict[str, Any]]:
    """Prompt text part, plus the plot image as inline data when it is a base64 data URL."""
    parts: list[dict[str, Any]] = [{"text": build_report_prompt(payload)}]
    if payload.plot_image_data_url:
        match = _DATA_URL_RE.match(payload.plot_image_data_url)
        if match:
            parts.append({"inlineData": {"mimeType": match.group(1), "data": match.group(2)}})
    return parts
