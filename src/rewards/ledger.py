"""
XP Ledger arithmetic.

The ledger itself (total XP, per-class XP, currency) lives in the store and
is only ever changed by atomic increments. This module holds the pure rules
around it: level curve, rate caps and event multipliers.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from src.telemetry.classifier import round_half_up


@dataclass(frozen=True)
class LevelCurve:
    """Linear level curve: every ``xp_per_level`` XP is one level."""

    xp_per_level: int = 1000

    def level_for(self, xp: int) -> int:
        return max(0, xp) // self.xp_per_level + 1

    def progress(self, xp: int) -> float:
        """Fraction of the current level completed (0-1)."""
        return (max(0, xp) % self.xp_per_level) / self.xp_per_level


DEFAULT_CURVE = LevelCurve()


@dataclass(frozen=True)
class LedgerCredit:
    """Outcome of one atomic credit to a student's ledger."""

    user_id: str
    amount: int
    new_xp: int
    new_level: int
    leveled_up: bool
    class_type: str | None = None
    class_xp: int | None = None
    currency_bonus: int = 0


@dataclass
class LedgerSnapshot:
    """Read-only view of a student's balances."""

    user_id: str
    xp: int = 0
    currency: int = 0
    class_xp: dict[str, int] = field(default_factory=dict)

    def level(self, curve: LevelCurve = DEFAULT_CURVE) -> int:
        return curve.level_for(self.xp)


def effective_xp_rate(configured: int | None, default: int, cap: int) -> int:
    """
    Resolve a class's XP-per-minute rate.

    Unset or non-positive rates fall back to the default; anything above the
    safety cap is clamped.
    """
    if not configured or configured <= 0:
        return default
    return min(configured, cap)


def apply_multiplier(base_xp: int, multiplier: float) -> int:
    """Scale base XP by an event multiplier (never below 1x)."""
    return round_half_up(base_xp * max(1.0, multiplier))
