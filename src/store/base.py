"""
Engagement Store interface.

The document store is an external collaborator. Protocols talk to it only
through this interface, which names the three primitives they rely on:

1. Atomic increments for every ledger credit
2. Conditional write-if-absent for idempotency records
3. Realtime subscriptions (see ``feed.py``)

Subclasses must keep each "persist + credit" method a single transaction:
either every write lands or none does.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.rewards.ledger import LedgerCredit, LedgerSnapshot
from src.telemetry.classifier import ClassPolicy, SubmissionStatus
from src.telemetry.metrics import TelemetryMetrics

from .feed import Subscription

# =============================================================================
# Errors
# =============================================================================


class StoreError(Exception):
    """Base class for store failures the protocols know how to report."""


class ProfileNotFoundError(StoreError):
    """A ledger credit targeted a user with no profile."""

    def __init__(self, user_id: str):
        super().__init__(f"No profile for user {user_id!r}")
        self.user_id = user_id


# =============================================================================
# Value Types
# =============================================================================


@dataclass(frozen=True)
class NewSubmission:
    """A classified submission ready to persist."""

    user_id: str
    user_name: str
    assignment_id: str
    assignment_title: str
    metrics: TelemetryMetrics
    status: SubmissionStatus
    score: int
    feedback: str = ""
    source: str = "resource"  # 'resource', 'review'


@dataclass(frozen=True)
class SubmissionReceipt:
    submission_id: int
    credit: LedgerCredit | None = None


@dataclass(frozen=True)
class CommentView:
    id: int
    author_id: str
    author_name: str
    content: str
    is_admin: bool
    created_at: datetime


@dataclass
class SubmissionView:
    id: int
    user_id: str
    user_name: str
    assignment_id: str
    assignment_title: str
    metrics: TelemetryMetrics
    status: SubmissionStatus
    score: int
    feedback: str
    source: str
    submitted_at: datetime
    is_pinned: bool = False
    is_archived: bool = False
    comments: list[CommentView] = field(default_factory=list)


@dataclass(frozen=True)
class AwardKey:
    """Identity of one payable review question for one student."""

    user_id: str
    assignment_id: str
    question_id: str


@dataclass
class ProfileRecord:
    id: str
    email: str
    name: str
    role: str = "STUDENT"
    class_type: str = "Uncategorized"
    enrolled_classes: list[str] = field(default_factory=list)
    is_whitelisted: bool = False
    avatar_url: str = ""
    created_at: datetime | None = None
    last_login_at: datetime | None = None


@dataclass
class ProfileChanges:
    """Partial profile update; ``None`` means leave unchanged."""

    last_login_at: datetime | None = None
    is_whitelisted: bool | None = None
    role: str | None = None
    class_type: str | None = None
    enrolled_classes: list[str] | None = None

    def as_values(self) -> dict[str, Any]:
        return {k: v for k, v in self.__dict__.items() if v is not None}


@dataclass(frozen=True)
class WhitelistRecord:
    email: str
    class_type: str = "Uncategorized"
    class_types: tuple[str, ...] = ()
    section: str | None = None


@dataclass(frozen=True)
class MessageView:
    id: int
    channel_id: str | None
    sender_id: str
    sender_name: str
    timestamp_ms: int


# =============================================================================
# Store Interface
# =============================================================================


class EngagementStore(ABC):
    """
    Abstract document store used by the engagement protocols.

    Subclasses must implement every method; all of them may suspend.
    """

    # --- Policy -------------------------------------------------------------

    @abstractmethod
    async def get_class_policy(self, class_type: str | None) -> ClassPolicy:
        """Thresholds and XP rate for a class; defaults when unset."""

    @abstractmethod
    async def active_xp_multiplier(self, class_type: str | None, now_ms: int) -> float:
        """Highest multiplier among live events for the class (1.0 when none)."""

    @abstractmethod
    async def save_class_config(
        self,
        class_name: str,
        xp_per_minute: int | None = None,
        thresholds: dict[str, Any] | None = None,
    ) -> None: ...

    @abstractmethod
    async def add_xp_event(
        self,
        name: str,
        multiplier: float,
        target_class: str | None = None,
        expires_at_ms: int | None = None,
    ) -> int: ...

    # --- Submissions --------------------------------------------------------

    @abstractmethod
    async def record_engagement(
        self,
        submission: NewSubmission,
        xp: int,
        class_type: str | None,
        now_ms: int,
        cooldown_ms: int = 0,
    ) -> SubmissionReceipt | None:
        """
        Persist a submission and credit ``xp`` in one transaction.

        Returns:
            Receipt, or None when the (user, assignment) cooldown is still running
        """

    @abstractmethod
    async def record_submission(self, submission: NewSubmission) -> int:
        """Persist a submission without touching the ledger."""

    @abstractmethod
    async def list_submissions(
        self,
        assignment_id: str | None = None,
        user_id: str | None = None,
        include_archived: bool = False,
    ) -> list[SubmissionView]: ...

    @abstractmethod
    async def set_pinned(self, submission_id: int, pinned: bool) -> bool: ...

    @abstractmethod
    async def set_archived(self, submission_id: int, archived: bool) -> bool: ...

    @abstractmethod
    async def add_private_comment(
        self,
        submission_id: int,
        author_id: str,
        author_name: str,
        content: str,
        is_admin: bool,
    ) -> int | None: ...

    # --- Review questions ---------------------------------------------------

    @abstractmethod
    async def claim_question_award(
        self, key: AwardKey, xp: int, class_type: str | None
    ) -> LedgerCredit | None:
        """
        Write the award record if absent and credit ``xp`` in one transaction.

        Returns:
            The credit, or None if the key was already awarded (nothing changes)
        """

    @abstractmethod
    async def awarded_question_ids(self, user_id: str, assignment_id: str) -> set[str]: ...

    @abstractmethod
    async def get_question_bank(self, assignment_id: str) -> list[dict] | None: ...

    @abstractmethod
    async def save_question_bank(
        self,
        assignment_id: str,
        questions: list[dict],
        title: str = "",
        class_type: str = "",
        uploaded_by: str = "",
    ) -> int: ...

    # --- Ledger -------------------------------------------------------------

    @abstractmethod
    async def get_ledger(self, user_id: str) -> LedgerSnapshot | None: ...

    # --- Profiles & access --------------------------------------------------

    @abstractmethod
    async def get_profile(self, user_id: str) -> ProfileRecord | None: ...

    @abstractmethod
    async def create_profile(self, profile: ProfileRecord) -> None: ...

    @abstractmethod
    async def update_profile(self, user_id: str, changes: ProfileChanges) -> None: ...

    @abstractmethod
    async def get_whitelist_entry(self, email: str) -> WhitelistRecord | None: ...

    @abstractmethod
    async def add_to_whitelist(
        self, email: str, class_type: str, section: str | None = None
    ) -> WhitelistRecord: ...

    @abstractmethod
    async def group_ids_for(self, user_id: str) -> set[str]: ...

    @abstractmethod
    async def add_group_member(self, group_id: str, user_id: str) -> None: ...

    # --- Messages -----------------------------------------------------------

    @abstractmethod
    async def post_message(
        self, channel_id: str, sender_id: str, sender_name: str, content: str, timestamp_ms: int
    ) -> int: ...

    @abstractmethod
    async def recent_messages(self, limit: int | None = None) -> list[MessageView]: ...

    @abstractmethod
    async def subscribe_recent_messages(
        self, callback: Callable[[list[MessageView]], None]
    ) -> Subscription:
        """Deliver the current window now and again after every new message."""
