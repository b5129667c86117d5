"""
Unit tests for the resource session lifecycle and handoff.
"""

import asyncio

import pytest

from src.telemetry.session import (
    InteractionEvent,
    ResourceRef,
    ResourceSession,
    SessionMode,
    StudentRef,
)

STUDENT = StudentRef(id="stu-1", name="Ada")
RESOURCE = ResourceRef(id="res-1", title="Kinematics", class_type="AP Physics")


class RecordingSink:
    """Captures scheduled submissions instead of storing them."""

    def __init__(self):
        self.engagements = []
        self.reviews = []

    def schedule_engagement(self, student_id, student_name, resource_id, resource_title, metrics, class_type):
        self.engagements.append((student_id, student_name, resource_id, resource_title, metrics, class_type))

    def schedule_review_engagement(self, student_id, resource_id, resource_title, class_type, seconds):
        self.reviews.append((student_id, resource_id, resource_title, class_type, seconds))


class TestEventRouting:
    def test_events_update_metrics(self, clock):
        session = ResourceSession(clock=clock)

        session.handle(InteractionEvent.KEYDOWN)
        session.handle("keydown")
        session.handle(InteractionEvent.PASTE)
        session.handle(InteractionEvent.CLICK)
        session.handle(InteractionEvent.SCROLL)

        assert session.metrics.keystrokes == 2
        assert session.metrics.paste_count == 1
        assert session.metrics.click_count == 1

    def test_unknown_event_rejected(self, clock):
        session = ResourceSession(clock=clock)

        with pytest.raises(ValueError):
            session.handle("keyup")

    def test_mousemove_keeps_session_active(self, clock):
        session = ResourceSession(clock=clock)
        clock.advance(50_000)
        session.handle(InteractionEvent.MOUSEMOVE)
        clock.advance(50_000)

        assert session.tick() is True
        assert session.monitor.is_active is True


class TestClose:
    def test_close_hands_off_snapshot(self, clock):
        sink = RecordingSink()
        session = ResourceSession(sink, clock=clock)
        for _ in range(12):
            clock.advance(1_000)
            session.handle(InteractionEvent.KEYDOWN)
            session.tick()

        snapshot = session.close(STUDENT, RESOURCE)

        assert snapshot.engagement_time == 12
        assert snapshot.keystrokes == 12
        assert len(sink.engagements) == 1
        student_id, name, resource_id, title, metrics, class_type = sink.engagements[0]
        assert (student_id, name, resource_id, title, class_type) == (
            "stu-1", "Ada", "res-1", "Kinematics", "AP Physics"
        )
        assert metrics == snapshot

    def test_close_twice_submits_once(self, clock):
        sink = RecordingSink()
        session = ResourceSession(sink, clock=clock)

        assert session.close(STUDENT, RESOURCE) is not None
        assert session.close(STUDENT, RESOURCE) is None
        assert len(sink.engagements) == 1

    def test_events_after_close_ignored(self, clock):
        session = ResourceSession(clock=clock)
        snapshot = session.close(STUDENT, RESOURCE)

        session.handle(InteractionEvent.KEYDOWN)

        assert session.closed is True
        assert session.metrics.keystrokes == 0
        assert snapshot.keystrokes == 0

    def test_review_mode_logs_time_only(self, clock):
        sink = RecordingSink()
        session = ResourceSession(sink, mode=SessionMode.REVIEW, clock=clock)
        for _ in range(8):
            clock.advance(1_000)
            session.tick()

        session.close(STUDENT, RESOURCE)

        assert sink.engagements == []
        assert sink.reviews == [("stu-1", "res-1", "Kinematics", "AP Physics", 8)]

    def test_close_without_sink(self, clock):
        session = ResourceSession(clock=clock)

        assert session.close(STUDENT, RESOURCE).engagement_time == 0


class TestTimer:
    @pytest.mark.asyncio
    async def test_timer_accrues_until_close(self, clock):
        session = ResourceSession(clock=clock, tick_interval=0.01)
        session.start()

        await asyncio.sleep(0.1)
        snapshot = session.close(STUDENT, RESOURCE)
        accrued = snapshot.engagement_time
        await asyncio.sleep(0.05)

        assert accrued > 0
        assert session.metrics.engagement_time == accrued
