# SQLAlchemy models
from .access import ChannelMessage, GroupMember, WhitelistEntry
from .base import Base
from .engagement import (
    ClassConfigRecord,
    ClassXp,
    EngagementCooldown,
    QuestionAward,
    QuestionBankRecord,
    Submission,
    SubmissionComment,
    UserProfile,
    XpEvent,
)

__all__ = [
    # Base
    "Base",
    # Profiles & ledger
    "UserProfile",
    "ClassXp",
    # Policy
    "ClassConfigRecord",
    "XpEvent",
    # Submissions
    "Submission",
    "SubmissionComment",
    "EngagementCooldown",
    # Review questions
    "QuestionAward",
    "QuestionBankRecord",
    # Access & messaging
    "WhitelistEntry",
    "GroupMember",
    "ChannelMessage",
]
