"""
Engagement telemetry: what a student does inside one resource view.

Components:
- MetricsCollector: Counters and idle-gated active time
- ActivityMonitor: Active/away signal on the same clock and window
- ResourceSession: Timer, event routing and one-time handoff
- classify: Integrity/outcome status and time-based score
- replay_trace: Offline replay of recorded interaction traces
"""

from .activity import ActivityMonitor
from .classifier import (
    DEFAULT_THRESHOLDS,
    BelowEngagementFloor,
    Classification,
    ClassPolicy,
    SubmissionStatus,
    TelemetryThresholds,
    classify,
    engagement_score,
    meets_engagement_floor,
    summarize_for_teacher,
)
from .metrics import (
    IDLE_WINDOW_MS,
    MetricsCollector,
    TelemetryMetrics,
    create_initial_metrics,
    epoch_ms,
    within_idle_window,
)
from .replay import InteractionTrace, replay_trace
from .session import InteractionEvent, ResourceRef, ResourceSession, SessionMode, StudentRef

__all__ = [
    # Collection
    "IDLE_WINDOW_MS",
    "MetricsCollector",
    "TelemetryMetrics",
    "create_initial_metrics",
    "epoch_ms",
    "within_idle_window",
    "ActivityMonitor",
    # Session lifecycle
    "InteractionEvent",
    "ResourceSession",
    "SessionMode",
    "StudentRef",
    "ResourceRef",
    "InteractionTrace",
    "replay_trace",
    # Classification
    "BelowEngagementFloor",
    "Classification",
    "ClassPolicy",
    "DEFAULT_THRESHOLDS",
    "SubmissionStatus",
    "TelemetryThresholds",
    "classify",
    "engagement_score",
    "meets_engagement_floor",
    "summarize_for_teacher",
]
