"""
Score cache: durable sw_scores row mirrored in Redis.

Keys:
    sw:score:{user_id}  → JSON blob of the last full computation (SETEX)

Reads try Redis first, then the database (repopulating Redis). Writes go to
the database first, then Redis. The database row is authoritative: when the
mirror write fails the old Redis copy is deleted, and if that fails too the
user is read from the database until a mirror write succeeds. Other Redis
failures are logged and ignored.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Set

import redis

from socialweight.config import SW_REDIS_SCORE_TTL
from socialweight.services.store import DataStore, as_utc

logger = logging.getLogger('scoring.cache')

_DATETIME_FIELDS = ('last_level_change', 'inflation_last_updated', 'last_updated')


def _key(user_id: str) -> str:
    return f'sw:score:{user_id}'


def _dump(record: Dict[str, Any]) -> str:
    out = dict(record)
    for name in _DATETIME_FIELDS:
        if out.get(name) is not None:
            out[name] = as_utc(out[name]).isoformat()
    return json.dumps(out)


def _load(data: str) -> Dict[str, Any]:
    record = json.loads(data)
    for name in _DATETIME_FIELDS:
        record[name] = as_utc(record.get(name))
    return record


def cache_age(record: Dict[str, Any], now: datetime = None) -> float:
    """Seconds since the record was computed."""
    now = now or datetime.now(timezone.utc)
    return max(0.0, (now - as_utc(record['last_updated'])).total_seconds())


def is_fresh(record: Optional[Dict[str, Any]], ttl_seconds: float, now: datetime = None) -> bool:
    if not record or not record.get('last_updated'):
        return False
    return cache_age(record, now) < ttl_seconds


class ScoreCache:
    """Read-through score record storage."""

    def __init__(self, store: DataStore, redis_client=None, redis_ttl: int = SW_REDIS_SCORE_TTL):
        self.store = store
        self.redis = redis_client
        self.redis_ttl = redis_ttl
        # Users whose Redis copy may be older than their database row
        self._unmirrored: Set[str] = set()

    def get(self, user_id: str) -> Optional[Dict[str, Any]]:
        record = self._redis_get(user_id)
        if record is not None:
            return record

        record = self.store.get_score(user_id)
        if record is not None:
            self._redis_set(record)
        return record

    def put(self, record: Dict[str, Any]):
        self.store.upsert_score(record)
        self._redis_set(record)

    # ── Redis mirror (fail-open) ──────────────────────────────────────────

    def _redis_get(self, user_id):
        if self.redis is None or user_id in self._unmirrored:
            return None
        try:
            data = self.redis.get(_key(user_id))
            return _load(data) if data else None
        except (redis.RedisError, ValueError, TypeError) as e:
            logger.warning("Redis read failed for %s, falling back to DB: %s", user_id, e)
            return None

    def _redis_set(self, record):
        if self.redis is None:
            return
        user_id = record['user_id']
        try:
            self.redis.setex(_key(user_id), self.redis_ttl, _dump(record))
            self._unmirrored.discard(user_id)
            return
        except (redis.RedisError, ValueError, TypeError) as e:
            logger.warning("Redis write failed for %s: %s", user_id, e)

        try:
            self.redis.delete(_key(user_id))
            self._unmirrored.discard(user_id)
        except redis.RedisError as e:
            logger.warning("Redis delete failed for %s, reading it from DB until the next write: %s",
                           user_id, e)
            self._unmirrored.add(user_id)
