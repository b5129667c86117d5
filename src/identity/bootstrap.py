"""
Session / Access Bootstrap.

Reconciles a freshly authenticated identity with its durable profile:
admin detection, whitelist admission, and class enrollment.

The merge is monotonic: enrollment only grows while the identity stays
whitelisted, and an explicitly chosen class is never overwritten.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from loguru import logger

from config import get_settings
from src.store.base import EngagementStore, ProfileChanges, ProfileRecord, WhitelistRecord

UNCATEGORIZED = "Uncategorized"


@dataclass(frozen=True)
class SignInIdentity:
    """What the auth provider tells us about a signed-in user."""

    uid: str
    email: str = ""
    display_name: str | None = None
    photo_url: str | None = None
    claims: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SignInResult:
    profile: ProfileRecord
    created: bool
    is_admin: bool
    is_whitelisted: bool

    @property
    def has_access(self) -> bool:
        return self.is_admin or self.is_whitelisted


def assigned_classes(entry: WhitelistRecord | None) -> list[str]:
    """Classes a whitelist entry enrolls into (its list, else its single class)."""
    if entry is None:
        return []
    if entry.class_types:
        return list(entry.class_types)
    if entry.class_type and entry.class_type != UNCATEGORIZED:
        return [entry.class_type]
    return []


def build_new_profile(
    identity: SignInIdentity,
    is_admin: bool,
    is_whitelisted: bool,
    entry: WhitelistRecord | None,
    now: datetime,
) -> ProfileRecord:
    return ProfileRecord(
        id=identity.uid,
        email=identity.email,
        name=identity.display_name or "Student",
        avatar_url=identity.photo_url or "",
        role="ADMIN" if is_admin else "STUDENT",
        class_type=entry.class_type if entry else UNCATEGORIZED,
        enrolled_classes=assigned_classes(entry) if is_whitelisted else [],
        is_whitelisted=is_whitelisted,
        created_at=now,
        last_login_at=now,
    )


def reconcile_profile(
    existing: ProfileRecord,
    is_admin: bool,
    is_whitelisted: bool,
    entry: WhitelistRecord | None,
    now: datetime,
) -> ProfileChanges:
    """
    Compute the updates a returning user's profile needs.

    Args:
        existing: Stored profile
        is_admin: Admin claim or configured admin email
        is_whitelisted: Whitelist entry present (admins always count)
        entry: Whitelist entry, if any
        now: Sign-in time

    Returns:
        ProfileChanges with only the fields that must be written
    """
    changes = ProfileChanges(last_login_at=now, is_whitelisted=is_whitelisted)

    if is_admin:
        changes.role = "ADMIN"

    if not is_whitelisted and not is_admin:
        changes.enrolled_classes = []
        return changes

    classes = assigned_classes(entry)
    if is_whitelisted and classes:
        merged = list(existing.enrolled_classes)
        merged.extend(c for c in classes if c not in merged)
        if len(merged) != len(existing.enrolled_classes):
            changes.enrolled_classes = merged
            if not existing.class_type or existing.class_type == UNCATEGORIZED:
                changes.class_type = classes[0]

    return changes


class SessionBootstrap:
    """Runs profile reconciliation for each sign-in."""

    def __init__(self, store: EngagementStore, admin_email: str | None = None):
        self.store = store
        self.admin_email = (admin_email if admin_email is not None else get_settings().admin_email).lower()

    def is_admin(self, identity: SignInIdentity) -> bool:
        if identity.claims.get("admin") is True:
            return True
        return bool(self.admin_email) and identity.email.lower() == self.admin_email

    async def sign_in(self, identity: SignInIdentity, now: datetime | None = None) -> SignInResult:
        """
        Create or refresh the profile for ``identity``.

        Store errors propagate: the caller cannot continue without a profile.
        """
        now = now or datetime.now(timezone.utc)
        is_admin = self.is_admin(identity)
        entry = await self.store.get_whitelist_entry(identity.email) if identity.email else None
        is_whitelisted = entry is not None or is_admin

        existing = await self.store.get_profile(identity.uid)
        if existing is None:
            profile = build_new_profile(identity, is_admin, is_whitelisted, entry, now)
            await self.store.create_profile(profile)
            created = True
        else:
            changes = reconcile_profile(existing, is_admin, is_whitelisted, entry, now)
            await self.store.update_profile(identity.uid, changes)
            created = False

        profile = await self.store.get_profile(identity.uid)
        if not (is_admin or is_whitelisted):
            logger.info(f"Sign-in {identity.uid}: not whitelisted, access restricted")
        else:
            logger.debug(f"Sign-in {identity.uid}: admin={is_admin} created={created}")

        return SignInResult(
            profile=profile,
            created=created,
            is_admin=is_admin,
            is_whitelisted=is_whitelisted,
        )
