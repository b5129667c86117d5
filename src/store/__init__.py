"""
Engagement Store: the persistence seam for every engagement protocol.
"""

from .base import (
    AwardKey,
    CommentView,
    EngagementStore,
    MessageView,
    NewSubmission,
    ProfileChanges,
    ProfileNotFoundError,
    ProfileRecord,
    StoreError,
    SubmissionReceipt,
    SubmissionView,
    WhitelistRecord,
)
from .feed import ChangeFeed, Subscription
from .sql_store import SqlEngagementStore

__all__ = [
    "EngagementStore",
    "SqlEngagementStore",
    "StoreError",
    "ProfileNotFoundError",
    "NewSubmission",
    "SubmissionReceipt",
    "SubmissionView",
    "CommentView",
    "AwardKey",
    "ProfileRecord",
    "ProfileChanges",
    "WhitelistRecord",
    "MessageView",
    "ChangeFeed",
    "Subscription",
]
