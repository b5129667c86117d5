"""
Interaction Metrics Collection.

Accumulates the raw interaction stream of one open resource view into a
bounded summary:
- Keystroke, paste and click counters
- Active engagement time (idle time never counts)
- Last-interaction timestamp shared with the activity monitor
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import asdict, dataclass, replace

# No interaction for this long and the student is considered away.
IDLE_WINDOW_MS = 60_000

# Cadence of the accrual timer.
TICK_INTERVAL_SECONDS = 1.0

Clock = Callable[[], int]


def epoch_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def within_idle_window(last_active: int, now: int) -> bool:
    """Whether an interaction at ``last_active`` still counts as recent at ``now``."""
    return now - last_active < IDLE_WINDOW_MS


# =============================================================================
# Metrics Value
# =============================================================================


@dataclass
class TelemetryMetrics:
    """Interaction summary for a single work session."""

    paste_count: int = 0
    engagement_time: int = 0  # active seconds
    keystrokes: int = 0
    click_count: int = 0
    start_time: int = 0  # epoch ms
    last_active: int = 0  # epoch ms

    def snapshot(self) -> TelemetryMetrics:
        """Detached copy for handoff; later mutations do not leak into it."""
        return replace(self)

    @property
    def engagement_minutes(self) -> float:
        return self.engagement_time / 60

    def is_degenerate(self) -> bool:
        """True when any counter is negative (never produced by the collector)."""
        return min(self.paste_count, self.engagement_time, self.keystrokes, self.click_count) < 0

    def to_dict(self) -> dict[str, int]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> TelemetryMetrics:
        """Create from dictionary, tolerating missing or non-numeric fields."""
        values = {}
        for name in cls.__dataclass_fields__:
            try:
                values[name] = int(data.get(name) or 0)
            except (TypeError, ValueError):
                values[name] = 0
        return cls(**values)


def create_initial_metrics(now: int | None = None) -> TelemetryMetrics:
    """Zeroed metrics anchored at ``now``."""
    now = epoch_ms() if now is None else now
    return TelemetryMetrics(start_time=now, last_active=now)


# =============================================================================
# Collector
# =============================================================================


class MetricsCollector:
    """
    Owns and mutates the metrics of one open resource view.

    Input handlers and the timer run on the same event loop, so calls are
    strictly sequential and no locking is needed.
    """

    def __init__(self, clock: Clock = epoch_ms):
        """
        Initialize collector.

        Args:
            clock: Source of epoch milliseconds, shared with the activity monitor
        """
        self.clock = clock
        self.metrics = create_initial_metrics(clock())

    def reset(self) -> TelemetryMetrics:
        """Start over with fresh metrics."""
        self.metrics = create_initial_metrics(self.clock())
        return self.metrics

    def _touch(self) -> None:
        self.metrics.last_active = self.clock()

    def on_keystroke(self, count: int = 1) -> None:
        self.metrics.keystrokes += max(0, count)
        self._touch()

    def on_paste(self, count: int = 1) -> None:
        self.metrics.paste_count += max(0, count)
        self._touch()

    def on_click(self, count: int = 1) -> None:
        self.metrics.click_count += max(0, count)
        self._touch()

    def on_activity(self) -> None:
        """Pointer movement or scrolling: proves presence without counting."""
        self._touch()

    def is_active(self, now: int | None = None) -> bool:
        now = self.clock() if now is None else now
        return within_idle_window(self.metrics.last_active, now)

    def tick(self) -> bool:
        """
        Advance the accrual timer by one second.

        Returns:
            True if the second was credited as active time
        """
        if self.is_active():
            self.metrics.engagement_time += 1
            return True
        return False
