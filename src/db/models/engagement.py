"""
Engagement and reward models.

SQLAlchemy models for the telemetry core:
- Student profiles carrying the XP ledger
- Per-class XP balances
- Class policy (telemetry thresholds, XP rate) and XP multiplier events
- Submissions with admin annotations
- Idempotency records: engagement cooldowns and question awards
- Question banks
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserProfile(Base):
    """
    Durable student/admin profile.

    ``xp`` and ``currency`` are only ever changed with in-database increments
    (``xp = xp + :n``); level is derived from ``xp`` and not stored.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    email: Mapped[str] = mapped_column(Text, default="", index=True)
    name: Mapped[str] = mapped_column(Text, default="Student")
    avatar_url: Mapped[str] = mapped_column(Text, default="")
    role: Mapped[str] = mapped_column(Text, default="STUDENT")  # 'STUDENT', 'ADMIN'
    class_type: Mapped[str] = mapped_column(Text, default="Uncategorized")
    enrolled_classes: Mapped[list[str]] = mapped_column(JSON, default=list)
    is_whitelisted: Mapped[bool] = mapped_column(Boolean, default=False)

    # Ledger
    xp: Mapped[int] = mapped_column(BigInteger, default=0)
    currency: Mapped[int] = mapped_column(BigInteger, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    last_login_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    class_balances: Mapped[list[ClassXp]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<UserProfile id={self.id} role={self.role} xp={self.xp}>"


class ClassXp(Base):
    """XP earned inside one class, kept alongside the global total."""

    __tablename__ = "class_xp"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    class_type: Mapped[str] = mapped_column(Text, nullable=False)
    xp: Mapped[int] = mapped_column(BigInteger, default=0)

    user: Mapped[UserProfile] = relationship(back_populates="class_balances")

    __table_args__ = (UniqueConstraint("user_id", "class_type", name="uq_class_xp_user_class"),)


class ClassConfigRecord(Base):
    """Admin-authored per-class policy. Every field is optional."""

    __tablename__ = "class_configs"

    class_name: Mapped[str] = mapped_column(Text, primary_key=True)
    xp_per_minute: Mapped[int | None] = mapped_column(Integer)
    telemetry_thresholds: Mapped[dict | None] = mapped_column(JSON)


class XpEvent(Base):
    """Time-boxed XP multiplier, global or for a single class."""

    __tablename__ = "xp_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, default="")
    event_type: Mapped[str] = mapped_column(Text, default="GLOBAL")  # 'GLOBAL', 'CLASS_SPECIFIC'
    target_class: Mapped[str | None] = mapped_column(Text)
    multiplier: Mapped[float] = mapped_column(Float, default=1.0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    expires_at_ms: Mapped[int | None] = mapped_column(BigInteger)


class Submission(Base):
    """
    One engagement event for a (student, resource) pair.

    Status and score are assigned once at creation; afterwards only admin
    annotations (pin, archive, private comments) change.
    """

    __tablename__ = "submissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    user_name: Mapped[str] = mapped_column(Text, default="Student")
    assignment_id: Mapped[str] = mapped_column(Text, nullable=False)
    assignment_title: Mapped[str] = mapped_column(Text, default="")
    metrics: Mapped[dict] = mapped_column(JSON, default=dict)
    status: Mapped[str] = mapped_column(Text, nullable=False)
    score: Mapped[int] = mapped_column(Integer, default=0)
    feedback: Mapped[str] = mapped_column(Text, default="")
    source: Mapped[str] = mapped_column(Text, default="resource")  # 'resource', 'review'
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    is_pinned: Mapped[bool] = mapped_column(Boolean, default=False)
    is_archived: Mapped[bool] = mapped_column(Boolean, default=False)

    comments: Mapped[list[SubmissionComment]] = relationship(
        back_populates="submission",
        cascade="all, delete-orphan",
        order_by="SubmissionComment.id",
    )

    __table_args__ = (
        Index("idx_submissions_user_assignment", "user_id", "assignment_id"),
        Index("idx_submissions_assignment", "assignment_id"),
    )

    def __repr__(self) -> str:
        return f"<Submission id={self.id} user={self.user_id} assignment={self.assignment_id} status={self.status}>"


class SubmissionComment(Base):
    """Private teacher/student comment thread on a submission."""

    __tablename__ = "submission_comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    submission_id: Mapped[int] = mapped_column(
        ForeignKey("submissions.id", ondelete="CASCADE"), nullable=False
    )
    author_id: Mapped[str] = mapped_column(Text, nullable=False)
    author_name: Mapped[str] = mapped_column(Text, default="")
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    submission: Mapped[Submission] = relationship(back_populates="comments")


class EngagementCooldown(Base):
    """Last XP-bearing submission time per (student, resource)."""

    __tablename__ = "engagement_cooldowns"

    user_id: Mapped[str] = mapped_column(Text, primary_key=True)
    assignment_id: Mapped[str] = mapped_column(Text, primary_key=True)
    last_submitted_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)


class QuestionAward(Base):
    """Proof that a review question's XP was paid. Immutable once written."""

    __tablename__ = "question_awards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    assignment_id: Mapped[str] = mapped_column(Text, nullable=False)
    question_id: Mapped[str] = mapped_column(Text, nullable=False)
    xp_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    awarded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "assignment_id", "question_id", name="uq_question_award"),
    )


class QuestionBankRecord(Base):
    """Validated review-question bank for one resource."""

    __tablename__ = "question_banks"

    assignment_id: Mapped[str] = mapped_column(Text, primary_key=True)
    title: Mapped[str] = mapped_column(Text, default="")
    class_type: Mapped[str] = mapped_column(Text, default="")
    questions: Mapped[list[dict]] = mapped_column(JSON, default=list)
    question_count: Mapped[int] = mapped_column(Integer, default=0)
    uploaded_by: Mapped[str] = mapped_column(Text, default="")
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
