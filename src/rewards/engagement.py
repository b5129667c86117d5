"""
Engagement Submission Protocol.

Turns the final metrics of a closed resource view into one persisted
Submission and an XP credit:

1. Copy the metrics and apply the guards (floor, ceiling, sane counters)
2. Load the class policy (thresholds + XP rate)
3. Classify and price the session (cap, then event multiplier)
4. Persist + credit in one store transaction, behind a per-resource cooldown

Callers are closing a view and cannot act on failures, so nothing here
raises: drops are logged and the method returns None.
"""

from __future__ import annotations

import asyncio

from loguru import logger

from config import Settings, get_settings
from src.store.base import EngagementStore, NewSubmission, ProfileNotFoundError, SubmissionReceipt
from src.telemetry.classifier import (
    BelowEngagementFloor,
    SubmissionStatus,
    classify,
    meets_engagement_floor,
)
from src.telemetry.metrics import Clock, TelemetryMetrics, create_initial_metrics, epoch_ms

from .ledger import apply_multiplier

REVIEW_FEEDBACK = "Review session logged."


class EngagementService:
    """
    Records engagement submissions against an Engagement Store.

    Usage:
        service = EngagementService(store)
        receipt = await service.submit_engagement(
            "u1", "Ada", "res-1", "Lesson 1", metrics, "Physics"
        )
    """

    def __init__(
        self,
        store: EngagementStore,
        settings: Settings | None = None,
        clock: Clock = epoch_ms,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.clock = clock
        self._pending: set[asyncio.Task] = set()

    # ========================================
    # Guards
    # ========================================

    def _rejection(self, metrics: TelemetryMetrics) -> str | None:
        """Why a metrics summary cannot become a submission, or None."""
        if metrics.is_degenerate():
            return "negative counters"
        if not meets_engagement_floor(metrics, self.settings.min_engagement_seconds):
            return f"engagement_time={metrics.engagement_time}s below floor"
        if metrics.engagement_time > self.settings.max_engagement_seconds:
            return f"engagement_time={metrics.engagement_time}s above ceiling"
        return None

    # ========================================
    # Work sessions
    # ========================================

    async def submit_engagement(
        self,
        student_id: str,
        student_name: str,
        resource_id: str,
        resource_title: str,
        metrics: TelemetryMetrics,
        class_type: str | None,
    ) -> SubmissionReceipt | None:
        """
        Classify a finished work session, persist it and credit its XP.

        Args:
            student_id: Submitting student
            student_name: Display name stored on the submission
            resource_id: Resource the session was spent on
            resource_title: Resource title stored on the submission
            metrics: Final metrics; copied before use
            class_type: Class whose policy applies and whose XP is credited

        Returns:
            Receipt with the submission id and ledger credit, or None if dropped
        """
        metrics = metrics.snapshot()

        reason = self._rejection(metrics)
        if reason:
            logger.debug(f"Dropped engagement {student_id}/{resource_id}: {reason}")
            return None

        try:
            policy = await self.store.get_class_policy(class_type)
            try:
                result = classify(metrics, policy.thresholds, policy.xp_per_minute)
            except BelowEngagementFloor as e:
                logger.debug(f"Dropped engagement {student_id}/{resource_id}: {e}")
                return None

            now = self.clock()
            xp = min(result.score, self.settings.max_xp_per_submission)
            if xp > 0:
                multiplier = await self.store.active_xp_multiplier(class_type, now)
                xp = apply_multiplier(xp, multiplier)

            receipt = await self.store.record_engagement(
                NewSubmission(
                    user_id=student_id,
                    user_name=student_name or "Student",
                    assignment_id=resource_id,
                    assignment_title=resource_title,
                    metrics=metrics,
                    status=result.status,
                    score=xp,
                    feedback=result.feedback,
                ),
                xp=xp,
                class_type=class_type,
                now_ms=now,
                cooldown_ms=self.settings.engagement_cooldown_seconds * 1000,
            )
        except ProfileNotFoundError:
            logger.warning(f"Dropped engagement {student_id}/{resource_id}: no profile")
            return None
        except Exception:  # Intentionally broad - submission is best-effort
            logger.exception(f"Failed to record engagement {student_id}/{resource_id}")
            return None

        if receipt is None:
            logger.info(f"Engagement {student_id}/{resource_id} inside cooldown, dropped")
            return None

        logger.info(
            f"Submission {receipt.submission_id}: {student_id}/{resource_id} "
            f"{result.status.value} +{xp} XP"
        )
        if receipt.credit and receipt.credit.leveled_up:
            logger.info(f"{student_id} reached level {receipt.credit.new_level}")
        return receipt

    # ========================================
    # Review sessions
    # ========================================

    async def submit_review_engagement(
        self,
        student_id: str,
        resource_id: str,
        resource_title: str,
        class_type: str | None,
        seconds: int,
    ) -> int | None:
        """
        Log time spent in review mode.

        Review time never earns XP (correct answers do); the submission only
        feeds teacher dashboards.

        Returns:
            Submission id, or None if the session was too short or not stored
        """
        if seconds < self.settings.review_min_engagement_seconds:
            logger.debug(f"Dropped review session {student_id}/{resource_id}: {seconds}s")
            return None

        metrics = create_initial_metrics(self.clock())
        metrics.engagement_time = min(seconds, self.settings.max_engagement_seconds)

        try:
            submission_id = await self.store.record_submission(
                NewSubmission(
                    user_id=student_id,
                    user_name="Student",
                    assignment_id=resource_id,
                    assignment_title=resource_title,
                    metrics=metrics,
                    status=SubmissionStatus.NORMAL,
                    score=0,
                    feedback=REVIEW_FEEDBACK,
                    source="review",
                )
            )
        except Exception:  # Intentionally broad - submission is best-effort
            logger.exception(f"Failed to record review session {student_id}/{resource_id}")
            return None

        logger.debug(f"Review session {submission_id}: {student_id}/{resource_id} {seconds}s")
        return submission_id

    # ========================================
    # Fire-and-forget
    # ========================================

    def _track(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    def schedule_engagement(
        self,
        student_id: str,
        student_name: str,
        resource_id: str,
        resource_title: str,
        metrics: TelemetryMetrics,
        class_type: str | None,
    ) -> asyncio.Task:
        """Start ``submit_engagement`` without waiting for it."""
        return self._track(
            self.submit_engagement(
                student_id, student_name, resource_id, resource_title, metrics.snapshot(), class_type
            )
        )

    def schedule_review_engagement(
        self,
        student_id: str,
        resource_id: str,
        resource_title: str,
        class_type: str | None,
        seconds: int,
    ) -> asyncio.Task:
        return self._track(
            self.submit_review_engagement(student_id, resource_id, resource_title, class_type, seconds)
        )

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every scheduled submission to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending))
