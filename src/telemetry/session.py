"""
Resource Session: the lifecycle of one open resource view.

Wires the collector and activity monitor to a one-second asyncio timer,
routes interaction events to the collector, and at close hands the final
metrics snapshot to the engagement protocol exactly once.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from loguru import logger

from .activity import ActivityMonitor
from .metrics import TICK_INTERVAL_SECONDS, Clock, MetricsCollector, TelemetryMetrics, epoch_ms


class InteractionEvent(str, Enum):
    """Browser-level input events the collector understands."""

    KEYDOWN = "keydown"
    PASTE = "paste"
    CLICK = "click"
    MOUSEMOVE = "mousemove"
    SCROLL = "scroll"


class SessionMode(str, Enum):
    WORK = "work"  # time earns XP through the engagement protocol
    REVIEW = "review"  # time is logged only; XP comes from correct answers


@dataclass(frozen=True)
class StudentRef:
    id: str
    name: str = "Student"


@dataclass(frozen=True)
class ResourceRef:
    id: str
    title: str
    class_type: str


class EngagementSink(Protocol):
    """What a session needs from the engagement protocol at teardown."""

    def schedule_engagement(
        self,
        student_id: str,
        student_name: str,
        resource_id: str,
        resource_title: str,
        metrics: TelemetryMetrics,
        class_type: str,
    ) -> asyncio.Task: ...

    def schedule_review_engagement(
        self,
        student_id: str,
        resource_id: str,
        resource_title: str,
        class_type: str,
        seconds: int,
    ) -> asyncio.Task: ...


class ResourceSession:
    """
    One open resource view.

    Usage:
        session = ResourceSession(engagement_service)
        session.start()
        session.handle(InteractionEvent.KEYDOWN)
        ...
        session.close(student, resource)
    """

    def __init__(
        self,
        sink: EngagementSink | None = None,
        mode: SessionMode = SessionMode.WORK,
        clock: Clock = epoch_ms,
        tick_interval: float = TICK_INTERVAL_SECONDS,
    ):
        self.sink = sink
        self.mode = mode
        self.tick_interval = tick_interval
        self.collector = MetricsCollector(clock)
        self.monitor = ActivityMonitor(self.collector)
        self._timer: asyncio.Task | None = None
        self._closed = False

    @property
    def metrics(self) -> TelemetryMetrics:
        return self.collector.metrics

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        """Start the accrual timer on the running event loop."""
        if self._timer is None and not self._closed:
            self._timer = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.tick_interval)
            self.tick()

    def tick(self) -> bool:
        """One timer step: accrue time and refresh the presence signal."""
        credited = self.collector.tick()
        self.monitor.poll()
        return credited

    def handle(self, event: InteractionEvent | str) -> None:
        """Route one input event. Events after close are ignored."""
        if self._closed:
            return

        event = InteractionEvent(event)
        if event is InteractionEvent.KEYDOWN:
            self.collector.on_keystroke()
        elif event is InteractionEvent.PASTE:
            self.collector.on_paste()
        elif event is InteractionEvent.CLICK:
            self.collector.on_click()
        else:
            self.collector.on_activity()

    def close(self, student: StudentRef, resource: ResourceRef) -> TelemetryMetrics | None:
        """
        End the session and hand off its final metrics.

        The timer is cancelled and listeners detached immediately; the
        submission is scheduled fire-and-forget so the caller never waits.

        Args:
            student: Who worked the resource
            resource: What was worked on

        Returns:
            Snapshot handed off, or None if the session was already closed
        """
        if self._closed:
            return None
        self._closed = True

        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        snapshot = self.collector.metrics.snapshot()
        logger.debug(
            f"Session closed: student={student.id} resource={resource.id} "
            f"active={snapshot.engagement_time}s mode={self.mode.value}"
        )

        if self.sink is not None:
            if self.mode is SessionMode.REVIEW:
                self.sink.schedule_review_engagement(
                    student.id, resource.id, resource.title, resource.class_type,
                    snapshot.engagement_time,
                )
            else:
                self.sink.schedule_engagement(
                    student.id, student.name, resource.id, resource.title,
                    snapshot, resource.class_type,
                )
        return snapshot
