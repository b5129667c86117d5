"""
Communications read side: unread channel indicators.
"""

from .unread import (
    UnreadAggregator,
    ViewerAccess,
    class_channel_id,
    group_channel_id,
    load_viewer,
)
from .watermarks import ChannelWatermarks

__all__ = [
    "ChannelWatermarks",
    "UnreadAggregator",
    "ViewerAccess",
    "class_channel_id",
    "group_channel_id",
    "load_viewer",
]
