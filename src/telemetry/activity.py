"""
Active/away signal for an open resource view.

Reads the collector's ``last_active`` with the collector's own clock and
idle window, so the "you are away" state always agrees with what is being
credited.
"""

from __future__ import annotations

from collections.abc import Callable

from loguru import logger

from .metrics import MetricsCollector, within_idle_window


class ActivityMonitor:
    """Derives a boolean presence state from interaction recency."""

    def __init__(
        self,
        collector: MetricsCollector,
        on_change: Callable[[bool], None] | None = None,
    ):
        self.collector = collector
        self.on_change = on_change
        self._active = True

    @property
    def is_active(self) -> bool:
        """Last state observed by ``poll``."""
        return self._active

    def evaluate(self) -> bool:
        """Current presence, without recording a transition."""
        return within_idle_window(self.collector.metrics.last_active, self.collector.clock())

    def poll(self) -> bool:
        """
        Re-evaluate presence on the timer cadence.

        Returns:
            True if the state changed since the previous poll
        """
        active = self.evaluate()
        if active == self._active:
            return False

        self._active = active
        logger.debug(f"Activity state changed: {'active' if active else 'away'}")
        if self.on_change is not None:
            self.on_change(active)
        return True
