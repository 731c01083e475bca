"""
Score aggregator: collector results → base score + breakdown.
"""
from typing import Any, Dict, Mapping, Tuple

from socialweight.config import SW_CATEGORIES
from socialweight.scoring.collectors import SignalResult


def aggregate(results: Mapping[str, SignalResult]) -> Tuple[float, Dict[str, Dict[str, Any]]]:
    """
    Sum collector points into the base score.

    The breakdown lists categories in response order; categories without a
    result (should not happen, but collectors are pluggable) are omitted.
    Unknown categories are appended after the known ones.
    """
    ordered = [c for c in SW_CATEGORIES if c in results]
    ordered += [c for c in results if c not in SW_CATEGORIES]

    breakdown = {}
    base = 0.0
    for category in ordered:
        result = results[category]
        breakdown[category] = result.to_breakdown()
        base += result.points
    return base, breakdown
