"""
Decay calculator.

    daily  = 1 - days_since_registration * daily_rate
    growth = 1 - (user_count / 100) * per_hundred_rate
    rate   = clamp(daily * growth, floor, 1.0)
    decayed = floor(adjusted * rate)

The network-size input is memoised in-process through TTLMemo, which is the
only shared mutable state in the engine. Any failure computing the rate
yields 1.0 (no decay) so a broken count never zeroes anyone's score.
"""
import logging
import math
import threading
import time
from datetime import datetime, timezone
from typing import Callable, Generic, Optional, TypeVar

from socialweight.scoring.weights import WeightConfig
from socialweight.services.store import as_utc

logger = logging.getLogger('scoring.decay')

T = TypeVar('T')

SECONDS_PER_DAY = 86400


class TTLMemo(Generic[T]):
    """
    A single memoised value refreshed at most once per `ttl` seconds.

    Reads are lock-free; a refresh happens under a lock so concurrent callers
    don't all hit the loader. If a refresh fails the previous value is served
    (stale reads are acceptable). With no previous value the error propagates.
    """

    def __init__(self, loader: Callable[[], T], ttl: float,
                 clock: Callable[[], float] = time.monotonic):
        self._loader = loader
        self._ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._value: Optional[T] = None
        self._loaded_at: Optional[float] = None

    def _fresh(self) -> bool:
        return self._loaded_at is not None and self._clock() - self._loaded_at < self._ttl

    def get(self) -> T:
        if self._fresh():
            return self._value
        with self._lock:
            if self._fresh():
                return self._value
            try:
                value = self._loader()
            except Exception as e:
                if self._loaded_at is None:
                    raise
                logger.warning("Memo refresh failed, serving stale value: %s", e)
                return self._value
            self._value = value
            self._loaded_at = self._clock()
            return value

    def invalidate(self):
        with self._lock:
            self._loaded_at = None


def days_since(created_at, now: datetime = None) -> int:
    """Whole days elapsed since `created_at`; 0 when unknown or in the future."""
    if created_at is None:
        return 0
    now = now or datetime.now(timezone.utc)
    elapsed = (now - as_utc(created_at)).total_seconds()
    return max(0, math.floor(elapsed / SECONDS_PER_DAY))


def compute_decay(days: int, user_count: int, weights: WeightConfig) -> float:
    """The multiplier applied to the adjusted score. Always within [floor, 1.0]."""
    # Factors never go negative
    daily = max(0.0, 1 - days * weights.daily_decay_rate)
    growth = max(0.0, 1 - (user_count / 100) * weights.per_hundred_users_decay_rate)
    rate = max(weights.decay_floor, daily * growth)
    return min(1.0, rate)


def apply_decay(adjusted: float, rate: float) -> int:
    return math.floor(adjusted * rate)


class DecayCalculator:
    """Binds compute_decay to a memoised user count."""

    def __init__(self, user_count: TTLMemo):
        self.user_count = user_count

    def rate_for(self, profile: Optional[dict], weights: WeightConfig, now: datetime = None) -> float:
        try:
            days = days_since((profile or {}).get('created_at'), now)
            return compute_decay(days, self.user_count.get(), weights)
        except Exception as e:
            logger.warning("Decay calculation failed, using rate 1.0: %s", e)
            return 1.0
