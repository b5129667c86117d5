"""
Submission Classification.

Turns a finished metrics summary into an integrity/outcome status and a
time-based XP score. Pure functions only: the same metrics and thresholds
always produce the same result.

Rules (first match wins):
1. Below the engagement floor: not classifiable, no submission is created
2. Heavy pasting with implausibly little active time: FLAGGED
3. Little typing and little time: SUPPORT_NEEDED
4. Enough original typing: SUCCESS
5. Everything else: NORMAL

Status and score are independent; a FLAGGED submission still earns its time.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .metrics import TelemetryMetrics

MIN_ENGAGEMENT_SECONDS = 10
DEFAULT_XP_PER_MINUTE = 10


class BelowEngagementFloor(ValueError):
    """Raised when metrics are too short-lived to classify."""


class SubmissionStatus(str, Enum):
    """Terminal classification of a submission."""

    FLAGGED = "FLAGGED"
    SUPPORT_NEEDED = "SUPPORT_NEEDED"
    SUCCESS = "SUCCESS"
    NORMAL = "NORMAL"
    STARTED = "STARTED"


FEEDBACK = {
    SubmissionStatus.FLAGGED: (
        "Unusual activity: a high number of pasted blocks relative to active working time. "
        "Your teacher may review this submission."
    ),
    SubmissionStatus.SUPPORT_NEEDED: (
        "Looks like this one was tough to get into. Don't hesitate to ask your teacher for help."
    ),
    SubmissionStatus.SUCCESS: (
        "Excellent independent work. Your activity shows steady, original progress."
    ),
    SubmissionStatus.NORMAL: "Submitted successfully. Great job keeping up with your coursework.",
    SubmissionStatus.STARTED: "Work in progress.",
}


# =============================================================================
# Thresholds
# =============================================================================


class TelemetryThresholds(BaseModel):
    """Per-class anti-gaming policy. Missing keys keep their defaults."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    flag_paste_count: int = Field(default=5, ge=0, alias="flagPasteCount")
    flag_min_engagement: int = Field(default=300, ge=0, alias="flagMinEngagement")
    support_keystrokes: int = Field(default=500, ge=0, alias="supportKeystrokes")
    support_min_engagement: int = Field(default=1800, ge=0, alias="supportMinEngagement")
    success_min_keystrokes: int = Field(default=100, ge=0, alias="successMinKeystrokes")

    @classmethod
    def from_config(cls, raw: dict[str, Any] | None) -> TelemetryThresholds:
        """
        Build thresholds from an admin-authored config fragment.

        Absent config yields defaults; malformed config is logged and replaced
        by defaults rather than failing the submission.
        """
        if not raw:
            return cls()
        cleaned = {k: v for k, v in raw.items() if v is not None}
        try:
            return cls.model_validate(cleaned)
        except ValidationError as e:
            logger.warning(f"Invalid telemetry thresholds {raw!r}, using defaults: {e}")
            return cls()


DEFAULT_THRESHOLDS = TelemetryThresholds()


@dataclass(frozen=True)
class ClassPolicy:
    """Everything the classifier needs from a class config."""

    thresholds: TelemetryThresholds = DEFAULT_THRESHOLDS
    xp_per_minute: int = DEFAULT_XP_PER_MINUTE


@dataclass(frozen=True)
class Classification:
    """Result of classifying one submission."""

    status: SubmissionStatus
    score: int
    feedback: str


# =============================================================================
# Classification
# =============================================================================


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values (Python rounds to even)."""
    return int(math.floor(value + 0.5))


def meets_engagement_floor(metrics: TelemetryMetrics, floor: int = MIN_ENGAGEMENT_SECONDS) -> bool:
    return metrics.engagement_time >= floor


def engagement_score(engagement_time: int, xp_per_minute: int = DEFAULT_XP_PER_MINUTE) -> int:
    """XP for active time: whole minutes (rounded) times the class rate."""
    return round_half_up(engagement_time / 60) * xp_per_minute


def classify_status(
    metrics: TelemetryMetrics,
    thresholds: TelemetryThresholds = DEFAULT_THRESHOLDS,
) -> SubmissionStatus:
    """Apply the status rules in priority order."""
    t = thresholds
    if metrics.paste_count >= t.flag_paste_count and metrics.engagement_time < t.flag_min_engagement:
        return SubmissionStatus.FLAGGED
    if metrics.keystrokes < t.support_keystrokes and metrics.engagement_time < t.support_min_engagement:
        return SubmissionStatus.SUPPORT_NEEDED
    if metrics.keystrokes >= t.success_min_keystrokes:
        return SubmissionStatus.SUCCESS
    return SubmissionStatus.NORMAL


def classify(
    metrics: TelemetryMetrics,
    thresholds: TelemetryThresholds = DEFAULT_THRESHOLDS,
    xp_per_minute: int = DEFAULT_XP_PER_MINUTE,
) -> Classification:
    """
    Classify a finished session.

    Args:
        metrics: Final metrics snapshot
        thresholds: Class policy (defaults when the class sets none)
        xp_per_minute: Class XP rate

    Returns:
        Classification with status, score and student feedback

    Raises:
        BelowEngagementFloor: If the session is too short to count
    """
    if not meets_engagement_floor(metrics):
        raise BelowEngagementFloor(
            f"engagement_time={metrics.engagement_time}s is below {MIN_ENGAGEMENT_SECONDS}s"
        )

    status = classify_status(metrics, thresholds)
    return Classification(
        status=status,
        score=engagement_score(metrics.engagement_time, xp_per_minute),
        feedback=FEEDBACK[status],
    )


# =============================================================================
# Teacher Summary
# =============================================================================


def summarize_for_teacher(metrics: TelemetryMetrics) -> str:
    """
    Human-readable interpretation of a submission's metrics.

    Example:
        "12 min active engagement, 340 keystrokes, 41 clicks · strong independent work indicators"
    """
    minutes = round_half_up(metrics.engagement_minutes)
    parts = [
        f"{minutes} min active engagement, {metrics.keystrokes} keystrokes, "
        f"{metrics.click_count} clicks"
    ]

    if metrics.paste_count > 0:
        plural = "s" if metrics.paste_count > 1 else ""
        parts.append(f"{metrics.paste_count} paste event{plural}")

    if metrics.paste_count > 3 and metrics.engagement_time < 180:
        parts.append("high paste frequency with very low engagement, review recommended")
    elif metrics.paste_count > 3:
        parts.append("elevated paste count, may be using external resources or notes")

    if metrics.engagement_time > 2400 and metrics.keystrokes > 400:
        parts.append("extended working session, student may need additional support")

    if metrics.paste_count == 0 and metrics.keystrokes > 80 and metrics.engagement_time > 120:
        parts.append("strong independent work indicators")

    return " · ".join(parts)
