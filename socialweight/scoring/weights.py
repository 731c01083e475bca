"""
Weight configuration provider.

The sw_weights singleton row supplies every per-category weight, the decay
parameters, the cache TTL and (optionally) the tier table. Tier defaults come
from sw_levels.yaml with a hard-coded fallback, mirroring how the rest of the
scoring config is loaded.
"""
import json
import logging
import os
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional, Tuple

import yaml

from socialweight.config import SW_DEFAULT_CACHE_TTL_MINUTES

logger = logging.getLogger('scoring.weights')


class ConfigurationError(Exception):
    """The weight configuration is missing or unusable."""


@dataclass(frozen=True)
class TierThreshold:
    name: str
    min_sw: float
    features: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {'name': self.name, 'minSW': self.min_sw, 'features': list(self.features)}


@dataclass(frozen=True)
class WeightConfig:
    registration_points: float
    profile_complete_points: float
    growth_multiplier: float
    follower_points: float
    connection_first_points: float
    connection_repeat_points: float
    post_points: float
    comment_points: float
    reaction_points: float
    invite_points: float = 50
    referral_bonus_percentage: float = 0.05
    daily_decay_rate: float = 0.001
    per_hundred_users_decay_rate: float = 0.0001
    decay_floor: float = 0.5
    cache_ttl_minutes: int = SW_DEFAULT_CACHE_TTL_MINUTES
    levels: Tuple[TierThreshold, ...] = field(default_factory=tuple)
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def cache_ttl_seconds(self) -> int:
        return int(self.cache_ttl_minutes * 60)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'WeightConfig':
        """Build from an sw_weights row. Nullable columns fall back to defaults."""
        def opt(key, default):
            value = row.get(key)
            return default if value is None else value

        try:
            config = cls(
                registration_points=row['registration_points'],
                profile_complete_points=row['profile_complete_points'],
                growth_multiplier=row['growth_total_points_multiplier'],
                follower_points=row['follower_points'],
                connection_first_points=row['connection_first_points'],
                connection_repeat_points=row['connection_repeat_points'],
                post_points=row['post_points'],
                comment_points=row['comment_points'],
                reaction_points=row['reaction_points'],
                invite_points=opt('invite_points', 50),
                referral_bonus_percentage=float(opt('growth_bonus_percentage', 0.05)),
                daily_decay_rate=float(opt('daily_inflation_rate', 0.001)),
                per_hundred_users_decay_rate=float(opt('user_growth_inflation_rate', 0.0001)),
                decay_floor=float(opt('min_inflation_rate', 0.5)),
                cache_ttl_minutes=int(opt('cache_duration_minutes', SW_DEFAULT_CACHE_TTL_MINUTES)),
                levels=tuple(parse_levels(row.get('sw_levels'))),
                raw=dict(row),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigurationError(f'Malformed sw_weights row: {e}') from e

        if config.connection_repeat_points >= config.connection_first_points:
            logger.warning(
                "connection_repeat_points (%s) >= connection_first_points (%s); repeats are meant to earn less",
                config.connection_repeat_points, config.connection_first_points,
            )
        return config

    def public_dict(self) -> Dict[str, Any]:
        """Weights as returned to API callers (DB column names)."""
        out = {k: v for k, v in self.raw.items() if k not in ('sw_levels', 'updated_at', 'updated_by')}
        if not out:
            out = {k: v for k, v in asdict(self).items() if k not in ('levels', 'raw')}
        return out


def load_weights(store) -> WeightConfig:
    """Read the active weight row. Missing weights are fatal."""
    row = store.get_weights()
    if not row:
        raise ConfigurationError('SW weights not configured')
    return WeightConfig.from_row(row)


# ── Tier table ───────────────────────────────────────────────────────────────

_default_levels = None


def _hardcoded_levels() -> List[TierThreshold]:
    """Fallback if the YAML is missing."""
    return [
        TierThreshold('Beginner', 0),
        TierThreshold('Growing', 100),
        TierThreshold('Advance', 1251),
        TierThreshold('Expert', 6251),
        TierThreshold('Leader', 10000),
        TierThreshold('Angel', 50000),
    ]


def load_default_levels() -> List[TierThreshold]:
    """Load the default tier table from YAML, with in-memory cache and hard-coded fallback."""
    global _default_levels
    if _default_levels is not None:
        return _default_levels

    path = os.path.join(os.path.dirname(__file__), 'sw_levels.yaml')
    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}
        levels = coerce_levels(data.get('levels', []))
        if not levels:
            raise ValueError('no valid levels in YAML')
        _default_levels = levels
        logger.info("Tier table loaded from YAML (version=%s)", data.get('version', '?'))
    except Exception as e:
        logger.warning("Tier YAML unavailable (%s), using defaults", e)
        _default_levels = _hardcoded_levels()

    return _default_levels


def coerce_levels(items: List[Any]) -> List[TierThreshold]:
    levels = []
    for item in items or []:
        if not isinstance(item, dict):
            continue
        name = item.get('name')
        min_sw = item.get('min_sw', item.get('minSW'))
        if not isinstance(name, str) or isinstance(min_sw, bool) or not isinstance(min_sw, (int, float)):
            continue
        levels.append(TierThreshold(name, min_sw, tuple(item.get('features') or ())))
    return sorted(levels, key=lambda t: t.min_sw)


def parse_levels(raw: Optional[Any]) -> List[TierThreshold]:
    """
    Resolve the configured tier table.

    Accepts a JSON string or an already-decoded list. Invalid entries are
    dropped; an empty or unparseable table falls back to the defaults.
    The result is always sorted ascending by min_sw.
    """
    if not raw:
        return load_default_levels()
    try:
        items = json.loads(raw) if isinstance(raw, str) else raw
    except ValueError as e:
        logger.warning("Failed to parse sw_levels config: %s", e)
        return load_default_levels()

    levels = coerce_levels(items if isinstance(items, list) else [])
    return levels or load_default_levels()
