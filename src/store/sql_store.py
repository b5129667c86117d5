"""
SQLAlchemy-backed Engagement Store.

Runs on SQLite (aiosqlite) or PostgreSQL (asyncpg). The guarantees the
protocols depend on come from the database rather than from Python:

- Ledger credits are ``UPDATE ... SET xp = xp + :n RETURNING xp``
- Per-class XP is an ``INSERT ... ON CONFLICT DO UPDATE`` increment
- Question awards are ``INSERT ... ON CONFLICT DO NOTHING RETURNING id``;
  a missing row means another request already claimed the key
- Engagement cooldowns are an upsert guarded by ``WHERE last <= cutoff``

Write transactions never read before they write, so two racing requests
are serialized by the database's own row/file locks.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from loguru import logger
from sqlalchemy import func, or_, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from config import Settings, get_settings
from src.db.database import async_session_scope, create_engine_for, create_session_factory
from src.db.models import (
    ChannelMessage,
    ClassConfigRecord,
    ClassXp,
    EngagementCooldown,
    GroupMember,
    QuestionAward,
    QuestionBankRecord,
    Submission,
    SubmissionComment,
    UserProfile,
    WhitelistEntry,
    XpEvent,
)
from src.rewards.ledger import LedgerCredit, LedgerSnapshot, LevelCurve, effective_xp_rate
from src.telemetry.classifier import ClassPolicy, SubmissionStatus, TelemetryThresholds
from src.telemetry.metrics import TelemetryMetrics

from .base import (
    AwardKey,
    CommentView,
    EngagementStore,
    MessageView,
    NewSubmission,
    ProfileChanges,
    ProfileNotFoundError,
    ProfileRecord,
    SubmissionReceipt,
    SubmissionView,
    WhitelistRecord,
)
from .feed import ChangeFeed, Subscription


class SqlEngagementStore(EngagementStore):
    """Engagement Store over an async SQLAlchemy engine."""

    def __init__(
        self,
        engine: AsyncEngine,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        curve: LevelCurve | None = None,
        level_up_bonus: int = 100,
        default_xp_per_minute: int = 10,
        max_xp_per_minute: int = 100,
        recent_message_limit: int = 50,
    ):
        self.engine = engine
        self._factory = session_factory or create_session_factory(engine)
        self.curve = curve or LevelCurve()
        self.level_up_bonus = level_up_bonus
        self.default_xp_per_minute = default_xp_per_minute
        self.max_xp_per_minute = max_xp_per_minute
        self.recent_message_limit = recent_message_limit
        self._messages: ChangeFeed[list[MessageView]] = ChangeFeed("recent_messages")

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> SqlEngagementStore:
        settings = settings or get_settings()
        engine = create_engine_for(settings.database_url, echo=settings.log_level == "DEBUG")
        return cls(
            engine,
            curve=LevelCurve(settings.xp_per_level),
            level_up_bonus=settings.level_up_currency_bonus,
            default_xp_per_minute=settings.default_xp_per_minute,
            max_xp_per_minute=settings.max_xp_per_minute,
            recent_message_limit=settings.recent_message_limit,
        )

    # ========================================
    # Internals
    # ========================================

    def _scope(self):
        return async_session_scope(self._factory)

    def _insert(self, model):
        """Dialect-specific INSERT supporting ON CONFLICT clauses."""
        if self.engine.dialect.name == "postgresql":
            return postgresql.insert(model)
        return sqlite.insert(model)

    async def _credit(
        self,
        session: AsyncSession,
        user_id: str,
        amount: int,
        class_type: str | None,
    ) -> LedgerCredit:
        """
        Atomically add ``amount`` XP inside the caller's transaction.

        Raises:
            ProfileNotFoundError: If the user has no profile (caller rolls back)
        """
        result = await session.execute(
            update(UserProfile)
            .where(UserProfile.id == user_id)
            .values(xp=UserProfile.xp + amount)
            .returning(UserProfile.xp)
            .execution_options(synchronize_session=False)
        )
        new_xp = result.scalar_one_or_none()
        if new_xp is None:
            raise ProfileNotFoundError(user_id)

        new_level = self.curve.level_for(new_xp)
        leveled_up = new_level > self.curve.level_for(new_xp - amount)
        bonus = self.level_up_bonus if leveled_up else 0
        if bonus:
            await session.execute(
                update(UserProfile)
                .where(UserProfile.id == user_id)
                .values(currency=UserProfile.currency + bonus)
                .execution_options(synchronize_session=False)
            )

        class_xp = None
        if class_type:
            stmt = self._insert(ClassXp).values(user_id=user_id, class_type=class_type, xp=amount)
            stmt = stmt.on_conflict_do_update(
                index_elements=["user_id", "class_type"],
                set_={"xp": ClassXp.xp + stmt.excluded.xp},
            ).returning(ClassXp.xp)
            class_xp = (await session.execute(stmt)).scalar_one()

        return LedgerCredit(
            user_id=user_id,
            amount=amount,
            new_xp=new_xp,
            new_level=new_level,
            leveled_up=leveled_up,
            class_type=class_type,
            class_xp=class_xp,
            currency_bonus=bonus,
        )

    @staticmethod
    def _submission_row(submission: NewSubmission) -> Submission:
        return Submission(
            user_id=submission.user_id,
            user_name=submission.user_name,
            assignment_id=submission.assignment_id,
            assignment_title=submission.assignment_title,
            metrics=submission.metrics.to_dict(),
            status=submission.status.value,
            score=submission.score,
            feedback=submission.feedback,
            source=submission.source,
        )

    @staticmethod
    def _submission_view(row: Submission) -> SubmissionView:
        return SubmissionView(
            id=row.id,
            user_id=row.user_id,
            user_name=row.user_name,
            assignment_id=row.assignment_id,
            assignment_title=row.assignment_title,
            metrics=TelemetryMetrics.from_dict(row.metrics or {}),
            status=SubmissionStatus(row.status),
            score=row.score,
            feedback=row.feedback,
            source=row.source,
            submitted_at=row.submitted_at,
            is_pinned=row.is_pinned,
            is_archived=row.is_archived,
            comments=[
                CommentView(
                    id=c.id,
                    author_id=c.author_id,
                    author_name=c.author_name,
                    content=c.content,
                    is_admin=c.is_admin,
                    created_at=c.created_at,
                )
                for c in row.comments
            ],
        )

    # ========================================
    # Policy
    # ========================================

    async def get_class_policy(self, class_type: str | None) -> ClassPolicy:
        record = None
        if class_type:
            async with self._scope() as session:
                record = await session.get(ClassConfigRecord, class_type)

        if record is None:
            return ClassPolicy(xp_per_minute=self.default_xp_per_minute)

        return ClassPolicy(
            thresholds=TelemetryThresholds.from_config(record.telemetry_thresholds),
            xp_per_minute=effective_xp_rate(
                record.xp_per_minute, self.default_xp_per_minute, self.max_xp_per_minute
            ),
        )

    async def save_class_config(
        self,
        class_name: str,
        xp_per_minute: int | None = None,
        thresholds: dict[str, Any] | None = None,
    ) -> None:
        async with self._scope() as session:
            await session.merge(
                ClassConfigRecord(
                    class_name=class_name,
                    xp_per_minute=xp_per_minute,
                    telemetry_thresholds=thresholds,
                )
            )
        logger.info(f"Saved class config for {class_name}")

    async def active_xp_multiplier(self, class_type: str | None, now_ms: int) -> float:
        scope = XpEvent.event_type == "GLOBAL"
        if class_type:
            scope = or_(
                scope,
                (XpEvent.event_type == "CLASS_SPECIFIC") & (XpEvent.target_class == class_type),
            )

        async with self._scope() as session:
            best = await session.scalar(
                select(func.max(XpEvent.multiplier)).where(
                    XpEvent.is_active.is_(True),
                    or_(XpEvent.expires_at_ms.is_(None), XpEvent.expires_at_ms > now_ms),
                    scope,
                )
            )
        return max(1.0, best or 1.0)

    async def add_xp_event(
        self,
        name: str,
        multiplier: float,
        target_class: str | None = None,
        expires_at_ms: int | None = None,
    ) -> int:
        event = XpEvent(
            name=name,
            event_type="CLASS_SPECIFIC" if target_class else "GLOBAL",
            target_class=target_class,
            multiplier=multiplier,
            is_active=True,
            expires_at_ms=expires_at_ms,
        )
        async with self._scope() as session:
            session.add(event)
            await session.flush()
            return event.id

    # ========================================
    # Submissions
    # ========================================

    async def record_engagement(
        self,
        submission: NewSubmission,
        xp: int,
        class_type: str | None,
        now_ms: int,
        cooldown_ms: int = 0,
    ) -> SubmissionReceipt | None:
        async with self._scope() as session:
            if cooldown_ms > 0:
                stmt = self._insert(EngagementCooldown).values(
                    user_id=submission.user_id,
                    assignment_id=submission.assignment_id,
                    last_submitted_ms=now_ms,
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=["user_id", "assignment_id"],
                    set_={"last_submitted_ms": now_ms},
                    where=EngagementCooldown.last_submitted_ms <= now_ms - cooldown_ms,
                ).returning(EngagementCooldown.last_submitted_ms)
                if (await session.execute(stmt)).first() is None:
                    return None

            row = self._submission_row(submission)
            session.add(row)
            await session.flush()

            credit = None
            if xp > 0:
                credit = await self._credit(session, submission.user_id, xp, class_type)

            return SubmissionReceipt(submission_id=row.id, credit=credit)

    async def record_submission(self, submission: NewSubmission) -> int:
        async with self._scope() as session:
            row = self._submission_row(submission)
            session.add(row)
            await session.flush()
            return row.id

    async def list_submissions(
        self,
        assignment_id: str | None = None,
        user_id: str | None = None,
        include_archived: bool = False,
    ) -> list[SubmissionView]:
        query = select(Submission).options(selectinload(Submission.comments))
        if assignment_id:
            query = query.where(Submission.assignment_id == assignment_id)
        if user_id:
            query = query.where(Submission.user_id == user_id)
        if not include_archived:
            query = query.where(Submission.is_archived.is_(False))
        query = query.order_by(Submission.is_pinned.desc(), Submission.id.desc())

        async with self._scope() as session:
            rows = (await session.scalars(query)).all()
            return [self._submission_view(row) for row in rows]

    async def _set_flag(self, submission_id: int, **values: bool) -> bool:
        async with self._scope() as session:
            result = await session.execute(
                update(Submission)
                .where(Submission.id == submission_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount > 0

    async def set_pinned(self, submission_id: int, pinned: bool) -> bool:
        return await self._set_flag(submission_id, is_pinned=pinned)

    async def set_archived(self, submission_id: int, archived: bool) -> bool:
        return await self._set_flag(submission_id, is_archived=archived)

    async def add_private_comment(
        self,
        submission_id: int,
        author_id: str,
        author_name: str,
        content: str,
        is_admin: bool,
    ) -> int | None:
        async with self._scope() as session:
            if await session.get(Submission, submission_id) is None:
                return None
            comment = SubmissionComment(
                submission_id=submission_id,
                author_id=author_id,
                author_name=author_name,
                content=content,
                is_admin=is_admin,
            )
            session.add(comment)
            await session.flush()
            return comment.id

    # ========================================
    # Review questions
    # ========================================

    async def claim_question_award(
        self, key: AwardKey, xp: int, class_type: str | None
    ) -> LedgerCredit | None:
        async with self._scope() as session:
            stmt = (
                self._insert(QuestionAward)
                .values(
                    user_id=key.user_id,
                    assignment_id=key.assignment_id,
                    question_id=key.question_id,
                    xp_amount=xp,
                )
                .on_conflict_do_nothing(
                    index_elements=["user_id", "assignment_id", "question_id"]
                )
                .returning(QuestionAward.id)
            )
            if (await session.execute(stmt)).first() is None:
                return None
            return await self._credit(session, key.user_id, xp, class_type)

    async def awarded_question_ids(self, user_id: str, assignment_id: str) -> set[str]:
        async with self._scope() as session:
            ids = await session.scalars(
                select(QuestionAward.question_id).where(
                    QuestionAward.user_id == user_id,
                    QuestionAward.assignment_id == assignment_id,
                )
            )
            return set(ids.all())

    async def get_question_bank(self, assignment_id: str) -> list[dict] | None:
        async with self._scope() as session:
            record = await session.get(QuestionBankRecord, assignment_id)
            return list(record.questions) if record else None

    async def save_question_bank(
        self,
        assignment_id: str,
        questions: list[dict],
        title: str = "",
        class_type: str = "",
        uploaded_by: str = "",
    ) -> int:
        async with self._scope() as session:
            await session.merge(
                QuestionBankRecord(
                    assignment_id=assignment_id,
                    title=title,
                    class_type=class_type,
                    questions=questions,
                    question_count=len(questions),
                    uploaded_by=uploaded_by,
                )
            )
        return len(questions)

    # ========================================
    # Ledger
    # ========================================

    async def get_ledger(self, user_id: str) -> LedgerSnapshot | None:
        async with self._scope() as session:
            profile = await session.get(UserProfile, user_id)
            if profile is None:
                return None
            rows = await session.execute(
                select(ClassXp.class_type, ClassXp.xp).where(ClassXp.user_id == user_id)
            )
            return LedgerSnapshot(
                user_id=user_id,
                xp=profile.xp,
                currency=profile.currency,
                class_xp={class_type: xp for class_type, xp in rows.all()},
            )

    # ========================================
    # Profiles & access
    # ========================================

    async def get_profile(self, user_id: str) -> ProfileRecord | None:
        async with self._scope() as session:
            row = await session.get(UserProfile, user_id)
            if row is None:
                return None
            return ProfileRecord(
                id=row.id,
                email=row.email,
                name=row.name,
                role=row.role,
                class_type=row.class_type,
                enrolled_classes=list(row.enrolled_classes or []),
                is_whitelisted=row.is_whitelisted,
                avatar_url=row.avatar_url,
                created_at=row.created_at,
                last_login_at=row.last_login_at,
            )

    async def create_profile(self, profile: ProfileRecord) -> None:
        values = {
            "id": profile.id,
            "email": profile.email,
            "name": profile.name,
            "role": profile.role,
            "class_type": profile.class_type,
            "enrolled_classes": list(profile.enrolled_classes),
            "is_whitelisted": profile.is_whitelisted,
            "avatar_url": profile.avatar_url,
        }
        if profile.created_at:
            values["created_at"] = profile.created_at
        if profile.last_login_at:
            values["last_login_at"] = profile.last_login_at

        async with self._scope() as session:
            # A concurrent first sign-in may have created it already; keep theirs.
            await session.execute(
                self._insert(UserProfile).values(**values).on_conflict_do_nothing(
                    index_elements=["id"]
                )
            )
        logger.info(f"Created profile {profile.id} ({profile.role})")

    async def update_profile(self, user_id: str, changes: ProfileChanges) -> None:
        values = changes.as_values()
        if not values:
            return
        async with self._scope() as session:
            await session.execute(
                update(UserProfile)
                .where(UserProfile.id == user_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )

    async def get_whitelist_entry(self, email: str) -> WhitelistRecord | None:
        async with self._scope() as session:
            row = await session.get(WhitelistEntry, email.lower())
            if row is None:
                return None
            return WhitelistRecord(
                email=row.email,
                class_type=row.class_type,
                class_types=tuple(row.class_types or ()),
                section=row.section,
            )

    async def add_to_whitelist(
        self, email: str, class_type: str, section: str | None = None
    ) -> WhitelistRecord:
        """Admit ``email``; re-adding merges ``class_type`` into its class list."""
        email = email.lower()
        async with self._scope() as session:
            row = await session.get(WhitelistEntry, email)
            if row is None:
                row = WhitelistEntry(
                    email=email, class_type=class_type, class_types=[class_type], section=section
                )
                session.add(row)
            else:
                merged = list(row.class_types or [row.class_type])
                if class_type not in merged:
                    merged.append(class_type)
                row.class_types = merged
                if section:
                    row.section = section
            await session.flush()
            return WhitelistRecord(
                email=row.email,
                class_type=row.class_type,
                class_types=tuple(row.class_types),
                section=row.section,
            )

    async def group_ids_for(self, user_id: str) -> set[str]:
        async with self._scope() as session:
            ids = await session.scalars(
                select(GroupMember.group_id).where(GroupMember.user_id == user_id)
            )
            return set(ids.all())

    async def add_group_member(self, group_id: str, user_id: str) -> None:
        async with self._scope() as session:
            await session.execute(
                self._insert(GroupMember)
                .values(group_id=group_id, user_id=user_id)
                .on_conflict_do_nothing(index_elements=["group_id", "user_id"])
            )

    # ========================================
    # Messages
    # ========================================

    async def post_message(
        self, channel_id: str, sender_id: str, sender_name: str, content: str, timestamp_ms: int
    ) -> int:
        message = ChannelMessage(
            channel_id=channel_id,
            sender_id=sender_id,
            sender_name=sender_name,
            content=content,
            timestamp_ms=timestamp_ms,
        )
        async with self._scope() as session:
            session.add(message)
            await session.flush()
            message_id = message.id

        if len(self._messages):
            self._messages.publish(await self.recent_messages())
        return message_id

    async def recent_messages(self, limit: int | None = None) -> list[MessageView]:
        limit = limit or self.recent_message_limit
        async with self._scope() as session:
            rows = await session.scalars(
                select(ChannelMessage)
                .order_by(ChannelMessage.timestamp_ms.desc(), ChannelMessage.id.desc())
                .limit(limit)
            )
            return [
                MessageView(
                    id=m.id,
                    channel_id=m.channel_id,
                    sender_id=m.sender_id,
                    sender_name=m.sender_name,
                    timestamp_ms=m.timestamp_ms,
                )
                for m in rows.all()
            ]

    async def subscribe_recent_messages(
        self, callback: Callable[[list[MessageView]], None]
    ) -> Subscription:
        subscription = self._messages.subscribe(callback)
        callback(await self.recent_messages())
        return subscription

    async def close(self) -> None:
        await self.engine.dispose()
