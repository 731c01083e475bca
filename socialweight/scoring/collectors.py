"""
Signal collectors, one per SW category.

Every collector implements SignalCollector.collect() and returns a
SignalResult. Collectors share no mutable state, so collect_all() fans them
out on a thread pool and waits for all of them (or the timeout) before the
aggregator runs.

Failure policy, applied uniformly by run_collector():
  - schema drift   → the collector tries the next known column itself
  - access denied  → zero + skipped, unless the caller is elevated (re-raised)
  - anything else  → logged, zero
  - timeout        → zero
"""
import logging
import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from socialweight.config import (
    AUTHOR_COLUMNS, POST_BODY_COLUMNS,
    SW_COLLECTOR_TIMEOUT, SW_COLLECTOR_WORKERS, SW_CONTENT_SCAN_LIMIT,
)
from socialweight.scoring.connections import detect_connections
from socialweight.scoring.weights import WeightConfig
from socialweight.services.store import DataStore, ErrorKind, StoreError

logger = logging.getLogger('scoring.collectors')

PROFILE_FIELDS = ('username', 'full_name', 'bio', 'country', 'avatar_url')


@dataclass
class SignalResult:
    """Uniform output from every collector."""
    category: str
    count: int = 0
    points: float = 0.0
    weight: float = 0.0
    skipped: bool = False
    error: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_breakdown(self) -> Dict[str, Any]:
        entry = {'points': self.points, 'count': self.count, 'weight': self.weight}
        entry.update(self.extra)
        if self.skipped:
            entry['skipped'] = True
        if self.error:
            entry['error'] = self.error
        return entry


@dataclass
class ScoringContext:
    """Everything a collector may read. Immutable for the life of one computation."""
    user_id: str
    profile: Optional[Dict[str, Any]]
    weights: WeightConfig
    store: DataStore
    elevated: bool = False
    scan_limit: int = SW_CONTENT_SCAN_LIMIT

    @property
    def username(self) -> Optional[str]:
        return (self.profile or {}).get('username')


def with_column_fallback(columns: List[str], fn: Callable[[str], Any], table: str):
    """Call fn(column) for each candidate column until one exists."""
    last_error = None
    for column in columns:
        try:
            return fn(column)
        except StoreError as e:
            if e.kind != ErrorKind.SCHEMA_DRIFT:
                raise
            logger.warning("Column %s.%s missing, trying next candidate", table, column)
            last_error = e
    raise last_error or StoreError(ErrorKind.SCHEMA_DRIFT, f'No usable column on {table}', table=table)


class SignalCollector(ABC):
    """
    Base class for all collectors.

    A collector reads from ctx.store and returns count/points for its
    category. Ordinary empty results return zeros; only StoreError and
    unexpected exceptions escape collect().
    """
    category: str = ''
    description: str = ''

    @abstractmethod
    def collect(self, ctx: ScoringContext) -> SignalResult:
        ...

    def weight(self, weights: WeightConfig) -> float:
        return 0.0

    def empty(self, ctx: ScoringContext, skipped: bool = False, error: str = None) -> SignalResult:
        return SignalResult(self.category, weight=self.weight(ctx.weights), skipped=skipped, error=error)

    def counted(self, ctx: ScoringContext, count: int, **extra) -> SignalResult:
        w = self.weight(ctx.weights)
        return SignalResult(self.category, count=count, points=count * w, weight=w, extra=extra)


class RegistrationCollector(SignalCollector):
    category = 'registration'
    description = 'Flat credit for having a profile'

    def weight(self, weights):
        return weights.registration_points

    def collect(self, ctx):
        return self.counted(ctx, 1 if ctx.profile else 0)


class ProfileCompleteCollector(SignalCollector):
    category = 'profileComplete'
    description = 'Username, full name, bio, country and avatar all set'

    def weight(self, weights):
        return weights.profile_complete_points

    def collect(self, ctx):
        profile = ctx.profile or {}
        complete = bool(profile) and all(
            isinstance(profile.get(f), str) and profile[f].strip() for f in PROFILE_FIELDS
        )
        return self.counted(ctx, 1 if complete else 0)


class GrowthCollector(SignalCollector):
    category = 'growth'
    description = 'Growth Directions Total Points'

    def weight(self, weights):
        return weights.growth_multiplier

    def collect(self, ctx):
        entries, raw_points = ctx.store.ledger_summary([ctx.user_id])
        w = self.weight(ctx.weights)
        return SignalResult(
            self.category, count=entries, points=raw_points * w, weight=w,
            extra={'rawPoints': raw_points, 'description': self.description},
        )


class FollowersCollector(SignalCollector):
    category = 'followers'

    def weight(self, weights):
        return weights.follower_points

    def collect(self, ctx):
        return self.counted(ctx, ctx.store.count_followers(ctx.user_id))


class ConnectionsCollector(SignalCollector):
    category = 'connections'
    description = 'Mutual mentions in recent posts'

    def weight(self, weights):
        return weights.connection_first_points

    def _recent_posts(self, ctx):
        return with_column_fallback(
            AUTHOR_COLUMNS,
            lambda author_col: with_column_fallback(
                POST_BODY_COLUMNS,
                lambda body_col: ctx.store.recent_content('posts', author_col, body_col, ctx.scan_limit),
                'posts',
            ),
            'posts',
        )

    def collect(self, ctx):
        if not ctx.username:
            return self._result(ctx, None)

        stats = detect_connections(ctx.user_id, ctx.username, self._recent_posts(ctx), ctx.store.get_handles)
        return self._result(ctx, stats)

    def _result(self, ctx, stats):
        w = ctx.weights
        first = stats.first if stats else 0
        repeat = stats.repeat if stats else 0
        return SignalResult(
            self.category,
            count=first + repeat,
            points=first * w.connection_first_points + repeat * w.connection_repeat_points,
            weight=w.connection_first_points,
            extra={
                'firstCount': first,
                'repeatCount': repeat,
                'firstWeight': w.connection_first_points,
                'repeatWeight': w.connection_repeat_points,
                'theyMention': stats.they_mention if stats else 0,
                'iMention': stats.i_mention if stats else 0,
            },
        )


class _AuthoredCountCollector(SignalCollector):
    """Flat credit per row the user authored in `table`."""
    table: str = ''

    def collect(self, ctx):
        count = with_column_fallback(
            AUTHOR_COLUMNS,
            lambda column: ctx.store.count_by_column(self.table, column, ctx.user_id),
            self.table,
        )
        return self.counted(ctx, count)


class PostsCollector(_AuthoredCountCollector):
    category = 'posts'
    table = 'posts'

    def weight(self, weights):
        return weights.post_points


class CommentsCollector(_AuthoredCountCollector):
    category = 'comments'
    table = 'comments'

    def weight(self, weights):
        return weights.comment_points


class ReactionsCollector(SignalCollector):
    category = 'reactions'
    description = 'Reactions received on own posts'

    def weight(self, weights):
        return weights.reaction_points

    def collect(self, ctx):
        post_ids = with_column_fallback(
            AUTHOR_COLUMNS,
            lambda column: ctx.store.ids_by_column('posts', column, ctx.user_id),
            'posts',
        )
        return self.counted(ctx, ctx.store.count_reactions(post_ids) if post_ids else 0)


class InvitesCollector(SignalCollector):
    category = 'invites'

    def weight(self, weights):
        return weights.invite_points

    def collect(self, ctx):
        return self.counted(ctx, len(ctx.store.accepted_invites(ctx.user_id)))


class ReferralBonusCollector(SignalCollector):
    """
    Percentage bonus on the current SW of every accepted invitee.

    An invitee's cached total is used when one exists; otherwise their live
    growth-ledger points stand in. Negative totals contribute nothing.
    """
    category = 'growthBonus'

    def weight(self, weights):
        return weights.referral_bonus_percentage

    def collect(self, ctx):
        invites = ctx.store.accepted_invites(ctx.user_id)
        invitees = sorted({i['consumed_by_user_id'] for i in invites if i.get('consumed_by_user_id')})
        pct = self.weight(ctx.weights)
        if not invitees:
            return SignalResult(self.category, count=len(invites), weight=pct,
                                extra={'basis': 0, 'description': self._describe(pct)})

        cached = ctx.store.cached_totals(invitees)
        basis = sum(max(0, total or 0) for total in cached.values())

        live = [uid for uid in invitees if uid not in cached]
        if live:
            _, raw = ctx.store.ledger_summary(live)
            basis += max(0, raw * ctx.weights.growth_multiplier)

        return SignalResult(
            self.category,
            count=len(invites),
            points=round(basis * pct, 2),
            weight=pct,
            extra={'basis': basis, 'description': self._describe(pct)},
        )

    @staticmethod
    def _describe(pct):
        return f"{pct * 100:.0f}% bonus on invited users' SW"


# ── Collector registry ───────────────────────────────────────────────────────

COLLECTORS: Dict[str, type] = {
    'registration': RegistrationCollector,
    'profileComplete': ProfileCompleteCollector,
    'growth': GrowthCollector,
    'followers': FollowersCollector,
    'connections': ConnectionsCollector,
    'posts': PostsCollector,
    'comments': CommentsCollector,
    'reactions': ReactionsCollector,
    'invites': InvitesCollector,
    'growthBonus': ReferralBonusCollector,
}


def default_collectors() -> List[SignalCollector]:
    return [cls() for cls in COLLECTORS.values()]


# ── Execution ────────────────────────────────────────────────────────────────

def run_collector(collector: SignalCollector, ctx: ScoringContext) -> SignalResult:
    """Run one collector under the shared failure policy."""
    started = time.monotonic()
    try:
        result = collector.collect(ctx)
    except StoreError as e:
        if e.kind == ErrorKind.ACCESS_DENIED:
            if ctx.elevated:
                logger.error("Access denied collecting %s for %s (elevated caller)",
                             collector.category, ctx.user_id)
                raise
            logger.warning("Access denied collecting %s for %s, skipping: %s",
                           collector.category, ctx.user_id, e)
            return collector.empty(ctx, skipped=True, error=e.kind.value)
        logger.warning("Collector %s failed for %s (%s), treating as zero: %s",
                       collector.category, ctx.user_id, e.kind.value, e)
        return collector.empty(ctx, error=e.kind.value)
    except Exception as e:
        logger.error("Collector %s crashed for %s: %s", collector.category, ctx.user_id, e, exc_info=True)
        return collector.empty(ctx, error=ErrorKind.TRANSIENT.value)

    logger.debug("Collector %s for %s: count=%s points=%s",
                 collector.category, ctx.user_id, result.count, result.points,
                 extra={'user_id': ctx.user_id, 'category': collector.category,
                        'elapsed_ms': round((time.monotonic() - started) * 1000, 1)})
    return result


def collect_all(
    ctx: ScoringContext,
    collectors: List[SignalCollector] = None,
    timeout: float = SW_COLLECTOR_TIMEOUT,
    max_workers: int = SW_COLLECTOR_WORKERS,
) -> Dict[str, SignalResult]:
    """
    Run every collector concurrently and wait for all of them.

    Collectors still running when the timeout expires count as zero; their
    threads are abandoned, not joined. An access denial surfaced for an
    elevated caller propagates out of here.
    """
    collectors = collectors if collectors is not None else default_collectors()
    if not collectors:
        return {}

    executor = ThreadPoolExecutor(
        max_workers=max(1, min(max_workers, len(collectors))),
        thread_name_prefix='sw-collector',
    )
    try:
        futures = {executor.submit(run_collector, c, ctx): c for c in collectors}
        _, pending = wait(futures, timeout=timeout)

        results: Dict[str, SignalResult] = {}
        for future, collector in futures.items():
            if future in pending:
                future.cancel()
                logger.warning("Collector %s timed out after %.1fs for %s, treating as zero",
                               collector.category, timeout, ctx.user_id)
                results[collector.category] = collector.empty(ctx, error='timeout')
            else:
                results[collector.category] = future.result()
        return results
    finally:
        executor.shutdown(wait=False, cancel_futures=True)
