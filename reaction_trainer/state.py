from __future__ import annotations

from dataclasses import dataclass, field

from .difficulty import MIN_TIER, coerce_tier
from .stats import Trial


@dataclass(slots=True)
class SessionState:
    """Mutable state of one session.

    Owned by SessionController. TrialScheduler holds a reference for the
    duration of the session and appends to `history` through StatsTracker.
    """

    generation: int
    remaining_s: int
    active: bool = True
    difficulty_tier: int = MIN_TIER
    history: list[Trial] = field(default_factory=list)

    def set_tier(self, tier: int) -> bool:
        valid = coerce_tier(tier)
        if valid is None:
            return False
        self.difficulty_tier = valid
        return True
