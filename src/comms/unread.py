"""
Unread / Presence Aggregation.

Derives which chat channels hold messages the viewer has not seen, from the
recent-message window and this device's watermarks. Every snapshot is
recomputed from scratch; nothing is accumulated between snapshots.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from loguru import logger

from src.store.base import EngagementStore, MessageView
from src.store.feed import Subscription
from src.telemetry.metrics import Clock, epoch_ms

from .watermarks import ChannelWatermarks

CLASS_PREFIX = "class_"
GROUP_PREFIX = "group_"


def class_channel_id(class_name: str) -> str:
    """Channel id of a class: ``"AP Physics"`` -> ``"class_ap_physics"``."""
    return CLASS_PREFIX + re.sub(r"\s+", "_", class_name).lower()


def group_channel_id(group_id: str) -> str:
    return GROUP_PREFIX + group_id


@dataclass
class ViewerAccess:
    """Who is looking, and which restricted channels they may read."""

    user_id: str
    is_admin: bool = False
    enrolled_classes: list[str] = field(default_factory=list)
    group_ids: set[str] = field(default_factory=set)

    def can_read(self, channel_id: str) -> bool:
        if self.is_admin:
            return True
        if channel_id.startswith(GROUP_PREFIX):
            return channel_id[len(GROUP_PREFIX):] in self.group_ids
        if channel_id.startswith(CLASS_PREFIX):
            return channel_id in {class_channel_id(c) for c in self.enrolled_classes}
        return True


class UnreadAggregator:
    """
    Maintains the viewer's unread channel set.

    Usage:
        aggregator = UnreadAggregator(ChannelWatermarks())
        subscription = await aggregator.follow(store, viewer)
        ...
        aggregator.mark_read("class_physics")
        subscription.unsubscribe()
    """

    def __init__(
        self,
        watermarks: ChannelWatermarks,
        clock: Clock = epoch_ms,
        on_change: Callable[[set[str]], None] | None = None,
    ):
        self.watermarks = watermarks
        self.clock = clock
        self.on_change = on_change
        self.unread: set[str] = set()

    def compute(self, messages: Iterable[MessageView], viewer: ViewerAccess) -> set[str]:
        """
        Replace the unread set with the one implied by ``messages``.

        A message marks its channel unread when it has a channel, was sent
        by someone else, sits in a channel the viewer can read, and is newer
        than the channel's watermark.
        """
        unread = set()
        for message in messages:
            channel = message.channel_id
            if not channel or message.sender_id == viewer.user_id:
                continue
            if not viewer.can_read(channel):
                continue
            if message.timestamp_ms > self.watermarks.get(channel):
                unread.add(channel)

        self.unread = unread
        if self.on_change:
            self.on_change(set(unread))
        return unread

    def mark_read(self, channel_id: str, now_ms: int | None = None) -> None:
        """Persist a watermark for ``channel_id`` and clear its indicator."""
        now_ms = self.clock() if now_ms is None else now_ms
        self.watermarks.mark(channel_id, now_ms)
        if channel_id in self.unread:
            self.unread.discard(channel_id)
            if self.on_change:
                self.on_change(set(self.unread))

    async def follow(self, store: EngagementStore, viewer: ViewerAccess) -> Subscription:
        """Recompute on every recent-message snapshot the store pushes."""
        logger.debug(f"Following recent messages for {viewer.user_id}")
        return await store.subscribe_recent_messages(lambda msgs: self.compute(msgs, viewer))


async def load_viewer(store: EngagementStore, user_id: str) -> ViewerAccess | None:
    """Build a viewer's access from their profile and group memberships."""
    profile = await store.get_profile(user_id)
    if profile is None:
        return None
    is_admin = profile.role == "ADMIN"
    return ViewerAccess(
        user_id=user_id,
        is_admin=is_admin,
        enrolled_classes=list(profile.enrolled_classes),
        group_ids=set() if is_admin else await store.group_ids_for(user_id),
    )
