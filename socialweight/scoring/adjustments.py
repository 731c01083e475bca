"""
Admin adjustment overlay.

Admin bonuses and penalties are signed, permanent deltas applied on top of
the base score before decay. The overlay is cheap, so it is re-applied on
every read, including cache hits.
"""
from typing import Any, Dict, Tuple

ADMIN_CATEGORY = 'adminAdjustments'


def apply_overlay(base: float, admin_total: int,
                  breakdown: Dict[str, Dict[str, Any]]) -> Tuple[float, Dict[str, Dict[str, Any]]]:
    """Return (adjusted total, breakdown with the adminAdjustments entry set)."""
    patched = dict(breakdown)
    patched[ADMIN_CATEGORY] = {
        'points': admin_total,
        'count': 1 if admin_total else 0,
        'weight': 1,
        'description': 'Permanent admin bonuses and penalties',
    }
    return base + admin_total, patched


def cached_base(record: Dict[str, Any]) -> float:
    """Recover the base score from a cached record."""
    return (record.get('original_total') or 0) - (record.get('admin_adjustments') or 0)
