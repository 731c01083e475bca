"""
SW scoring engine.

Two layers:

    ScoringEngine.compute()   pure pipeline: weights + profile → collectors
                              (concurrent) → aggregate → overlay → decay → tier.
                              Reads only, never writes.
    CachedScorer              caching policy on top of the engine:
                              peek()       possibly-stale cached record
                              recompute()  full pipeline + upsert
                              calculate()  fresh cache → overlay-only fast path,
                                           otherwise recompute()

get_scorer() builds the process-wide CachedScorer lazily so importing this
module never touches the database or Redis.
"""
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from socialweight.config import (
    SW_COLLECTOR_TIMEOUT, SW_COLLECTOR_WORKERS, SW_CONTENT_SCAN_LIMIT, SW_USER_COUNT_TTL,
)
from socialweight.scoring.adjustments import apply_overlay, cached_base
from socialweight.scoring.aggregator import aggregate
from socialweight.scoring.cache import ScoreCache, cache_age, is_fresh
from socialweight.scoring.collectors import (
    ScoringContext, SignalCollector, collect_all, default_collectors,
)
from socialweight.scoring.decay import DecayCalculator, TTLMemo, apply_decay
from socialweight.scoring.tiers import TierState, classify, transition
from socialweight.scoring.weights import WeightConfig, load_weights
from socialweight.services.auth import Caller
from socialweight.services.store import DataStore, ErrorKind, StoreError, as_utc

logger = logging.getLogger('scoring.engine')


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ScoreResult:
    """One scored user, as served to callers and (minus cache flags) persisted."""
    user_id: str
    total: int
    original_total: float
    base_total: float
    admin_adjustments: int
    breakdown: Dict[str, Dict[str, Any]]
    weights: WeightConfig
    inflation_rate: float
    tier: TierState
    computed_at: datetime
    cached: bool = False
    cache_age: Optional[float] = None
    timings: Dict[str, float] = field(default_factory=dict)

    def to_record(self) -> Dict[str, Any]:
        return {
            'user_id': self.user_id,
            'total': self.total,
            'original_total': self.original_total,
            'base_total': self.base_total,
            'admin_adjustments': self.admin_adjustments,
            'breakdown': self.breakdown,
            'inflation_rate': self.inflation_rate,
            'current_level': self.tier.tier.name,
            'last_level_change': self.tier.changed_at,
            'inflation_last_updated': self.computed_at,
            'last_updated': self.computed_at,
        }

    def to_response(self) -> Dict[str, Any]:
        out = {
            'totalSW': self.total,
            'originalSW': self.original_total,
            'baseSW': self.base_total,
            'adminAdjustments': self.admin_adjustments,
            'breakdown': self.breakdown,
            'weights': self.weights.public_dict(),
            'inflationRate': self.inflation_rate,
            'cached': self.cached,
            'level': self.tier.to_dict(),
        }
        if self.cached:
            out['cacheAge'] = round(self.cache_age or 0)
        return out


class ScoringEngine:
    """Full SW pipeline for one user."""

    def __init__(
        self,
        store: DataStore,
        decay: DecayCalculator,
        collectors: List[SignalCollector] = None,
        timeout: float = SW_COLLECTOR_TIMEOUT,
        max_workers: int = SW_COLLECTOR_WORKERS,
        scan_limit: int = SW_CONTENT_SCAN_LIMIT,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.decay = decay
        self.collectors = collectors if collectors is not None else default_collectors()
        self.timeout = timeout
        self.max_workers = max_workers
        self.scan_limit = scan_limit
        self.clock = clock

    def admin_total(self, user_id: str, elevated: bool = False) -> int:
        """Current permanent admin adjustment sum. Soft dependency: failures read as 0."""
        try:
            return int(self.store.admin_adjustments_total(user_id) or 0)
        except StoreError as e:
            if e.kind == ErrorKind.ACCESS_DENIED and elevated:
                raise
            logger.warning("Admin adjustments unavailable for %s (%s), using 0", user_id, e.kind.value)
            return 0

    def compute(self, user_id: str, caller: Optional[Caller] = None,
                previous: Optional[Dict[str, Any]] = None,
                weights: Optional[WeightConfig] = None) -> ScoreResult:
        """
        Run every stage and return the result. Nothing is written.

        `previous` is the last cached record, used only for tier bookkeeping.
        `weights` skips the weight read when the caller already loaded them.
        Weights and profile are hard dependencies: their errors propagate.
        """
        started = time.monotonic()
        now = self.clock()
        elevated = bool(caller and caller.elevated)

        if weights is None:
            weights = load_weights(self.store)
        profile = self.store.get_profile(user_id)
        if profile is None:
            logger.info("No profile for %s, scoring without registration credit", user_id)

        ctx = ScoringContext(
            user_id=user_id,
            profile=profile,
            weights=weights,
            store=self.store,
            elevated=elevated,
            scan_limit=self.scan_limit,
        )
        results = collect_all(ctx, self.collectors, timeout=self.timeout, max_workers=self.max_workers)
        collected_at = time.monotonic()

        base, breakdown = aggregate(results)
        admin = self.admin_total(user_id, elevated)
        adjusted, breakdown = apply_overlay(base, admin, breakdown)

        # Decay only applies to registered users
        rate = self.decay.rate_for(profile, weights, now) if profile else 1.0
        total = apply_decay(adjusted, rate)

        previous = previous or {}
        tier = transition(
            total, weights.levels,
            previous.get('current_level'), as_utc(previous.get('last_level_change')), now,
        )
        if tier.changed:
            logger.info("User %s moved to tier %s (SW %s)", user_id, tier.tier.name, total)

        timings = {
            'collect_ms': round((collected_at - started) * 1000, 1),
            'total_ms': round((time.monotonic() - started) * 1000, 1),
        }
        logger.info("Computed SW for %s: total=%s base=%s admin=%s rate=%.4f",
                    user_id, total, base, admin, rate,
                    extra={'user_id': user_id, 'elapsed_ms': timings['total_ms']})

        return ScoreResult(
            user_id=user_id,
            total=total,
            original_total=adjusted,
            base_total=base,
            admin_adjustments=admin,
            breakdown=breakdown,
            weights=weights,
            inflation_rate=rate,
            tier=tier,
            computed_at=now,
            timings=timings,
        )


class CachedScorer:
    """Caching policy over a ScoringEngine."""

    def __init__(self, engine: ScoringEngine, cache: ScoreCache):
        self.engine = engine
        self.cache = cache

    def peek(self, user_id: str) -> Optional[Dict[str, Any]]:
        """The cached record as stored, fresh or not."""
        return self.cache.get(user_id)

    def recompute(self, user_id: str, caller: Optional[Caller] = None,
                  weights: Optional[WeightConfig] = None) -> ScoreResult:
        """Always run the full pipeline and upsert the result."""
        return self._recompute(user_id, caller, self.peek(user_id), weights)

    def _recompute(self, user_id, caller, previous, weights) -> ScoreResult:
        result = self.engine.compute(user_id, caller, previous=previous, weights=weights)
        self.cache.put(result.to_record())
        return result

    def calculate(self, user_id: str, caller: Optional[Caller] = None, force: bool = False) -> ScoreResult:
        """Serve from cache when fresh (re-applying admin adjustments), else recompute."""
        if force:
            return self.recompute(user_id, caller)

        # Weights are needed either way, for the TTL and the response
        weights = load_weights(self.engine.store)
        record = self.peek(user_id)
        now = self.engine.clock()
        if not is_fresh(record, weights.cache_ttl_seconds, now):
            return self._recompute(user_id, caller, record, weights)
        return self._fast_path(record, weights, caller, now)

    def _fast_path(self, record, weights, caller, now) -> ScoreResult:
        user_id = record['user_id']
        elevated = bool(caller and caller.elevated)

        base = cached_base(record)
        admin = self.engine.admin_total(user_id, elevated)
        adjusted, breakdown = apply_overlay(base, admin, record.get('breakdown') or {})

        rate = record.get('inflation_rate')
        rate = 1.0 if rate is None else rate
        total = apply_decay(adjusted, rate)

        # Reclassified for the response only; tier bookkeeping happens on recompute
        tier = classify(total, weights.levels)
        changed_at = as_utc(record.get('last_level_change')) if tier.name == record.get('current_level') else None
        age = cache_age(record, now)

        logger.debug("Served cached SW for %s (age %.0fs, admin %s → %s)",
                     user_id, age, record.get('admin_adjustments'), admin,
                     extra={'user_id': user_id})

        return ScoreResult(
            user_id=user_id,
            total=total,
            original_total=adjusted,
            base_total=base,
            admin_adjustments=admin,
            breakdown=breakdown,
            weights=weights,
            inflation_rate=rate,
            tier=TierState(tier, changed_at),
            computed_at=as_utc(record['last_updated']),
            cached=True,
            cache_age=age,
        )


# ── Process-wide scorer ──────────────────────────────────────────────────────

_scorer = None


def get_scorer() -> CachedScorer:
    global _scorer
    if _scorer is None:
        from socialweight.extensions import redis_client
        from socialweight.services.store import SqlStore

        store = SqlStore()
        decay = DecayCalculator(TTLMemo(store.count_users, ttl=SW_USER_COUNT_TTL))
        _scorer = CachedScorer(ScoringEngine(store, decay), ScoreCache(store, redis_client))
    return _scorer
