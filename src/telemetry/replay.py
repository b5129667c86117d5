"""
Offline replay of recorded interaction traces.

Drives a ResourceSession with a virtual clock so a trace captured from a
browser produces exactly the metrics the live timer would have produced.

Trace format (JSON):
    {"start": 1700000000000, "end": 1700000300000,
     "events": [{"at": 1700000001200, "type": "keydown"}, ...]}
"""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from .metrics import TelemetryMetrics
from .session import InteractionEvent, ResourceSession


class TraceEvent(BaseModel):
    at: int
    type: InteractionEvent


class InteractionTrace(BaseModel):
    start: int
    end: int
    events: list[TraceEvent] = Field(default_factory=list)

    @model_validator(mode="after")
    def _ordered(self) -> InteractionTrace:
        if self.end < self.start:
            raise ValueError("trace ends before it starts")
        return self


class _VirtualClock:
    def __init__(self, now: int):
        self.now = now

    def __call__(self) -> int:
        return self.now


def replay_trace(trace: InteractionTrace) -> TelemetryMetrics:
    """
    Replay ``trace`` one simulated second at a time.

    Events up to each tick are applied (at their own timestamp) before the
    tick runs; events after ``end`` are ignored.
    """
    clock = _VirtualClock(trace.start)
    session = ResourceSession(clock=clock)
    pending = sorted(trace.events, key=lambda e: e.at)

    index = 0
    tick_at = trace.start + 1000
    while tick_at <= trace.end:
        while index < len(pending) and pending[index].at <= tick_at:
            clock.now = max(pending[index].at, trace.start)
            session.handle(pending[index].type)
            index += 1
        clock.now = tick_at
        session.tick()
        tick_at += 1000

    # Trailing events after the last whole second still count as input.
    while index < len(pending) and pending[index].at <= trace.end:
        clock.now = pending[index].at
        session.handle(pending[index].type)
        index += 1

    return session.metrics.snapshot()
