"""
Rewards: XP ledger rules and the two award paths.

- ledger: Level curve, rate caps, event multipliers
- engagement: Engagement Submission Protocol (``EngagementService``)
- questions: Review-Question XP Award Protocol (``QuestionAwardService``)

Services are imported from their modules; the store layer depends on the
ledger rules exported here.
"""

from .ledger import (
    DEFAULT_CURVE,
    LedgerCredit,
    LedgerSnapshot,
    LevelCurve,
    apply_multiplier,
    effective_xp_rate,
)

__all__ = [
    "DEFAULT_CURVE",
    "LedgerCredit",
    "LedgerSnapshot",
    "LevelCurve",
    "apply_multiplier",
    "effective_xp_rate",
]
