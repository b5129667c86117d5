"""
Access and messaging models.

- Whitelist entries that admit an email and pre-assign classes
- Group membership (drives group channel access)
- Channel messages (source of unread indicators)
"""

from __future__ import annotations

from sqlalchemy import JSON, BigInteger, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class WhitelistEntry(Base):
    """An invited email and the classes it enrolls into on first sign-in."""

    __tablename__ = "allowed_emails"

    email: Mapped[str] = mapped_column(Text, primary_key=True)
    class_type: Mapped[str] = mapped_column(Text, default="Uncategorized")
    class_types: Mapped[list[str]] = mapped_column(JSON, default=list)
    section: Mapped[str | None] = mapped_column(Text)


class GroupMember(Base):
    __tablename__ = "group_members"

    group_id: Mapped[str] = mapped_column(Text, primary_key=True)
    user_id: Mapped[str] = mapped_column(Text, primary_key=True, index=True)


class ChannelMessage(Base):
    """A chat message; only routing fields matter to the telemetry core."""

    __tablename__ = "class_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    channel_id: Mapped[str | None] = mapped_column(Text)
    sender_id: Mapped[str] = mapped_column(Text, nullable=False)
    sender_name: Mapped[str] = mapped_column(Text, default="")
    content: Mapped[str] = mapped_column(Text, default="")
    timestamp_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (Index("idx_class_messages_timestamp", "timestamp_ms"),)
