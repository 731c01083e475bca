"""
Tier classifier + transition bookkeeping.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from socialweight.scoring.weights import TierThreshold


@dataclass(frozen=True)
class TierState:
    tier: TierThreshold
    changed_at: Optional[datetime]
    changed: bool = False

    def to_dict(self):
        out = self.tier.to_dict()
        out['changedAt'] = self.changed_at.isoformat() if self.changed_at else None
        return out


def classify(score: float, levels: Sequence[TierThreshold]) -> TierThreshold:
    """Highest tier whose minimum is <= score; the lowest tier otherwise."""
    ordered = sorted(levels, key=lambda t: t.min_sw)
    current = ordered[0]
    for tier in ordered:
        if tier.min_sw <= score:
            current = tier
        else:
            break
    return current


def transition(score: float, levels: Sequence[TierThreshold], previous_name: Optional[str],
               previous_changed_at: Optional[datetime], now: datetime) -> TierState:
    """
    Classify `score` and decide the tier-changed-at timestamp.

    With no previous record the user is assumed to have been in the lowest
    tier. The timestamp moves only when the tier name differs.
    """
    tier = classify(score, levels)
    if previous_name is None:
        previous_name = min(levels, key=lambda t: t.min_sw).name
    if tier.name != previous_name:
        return TierState(tier, now, changed=True)
    return TierState(tier, previous_changed_at)
