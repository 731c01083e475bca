"""Tests for socialweight.scoring.cache -- Redis-mirrored score records."""
import json
from datetime import timedelta

from socialweight.scoring.cache import ScoreCache, cache_age, is_fresh


def _record(clock, user_id='me', **overrides):
    record = {
        'user_id': user_id,
        'total': 120,
        'original_total': 130,
        'base_total': 120,
        'admin_adjustments': 10,
        'breakdown': {'posts': {'points': 120, 'count': 6, 'weight': 20}},
        'inflation_rate': 0.95,
        'current_level': 'Growing',
        'last_level_change': clock.now - timedelta(days=1),
        'inflation_last_updated': clock.now,
        'last_updated': clock.now,
    }
    record.update(overrides)
    return record


class TestFreshness:
    def test_fresh_within_ttl(self, clock):
        record = _record(clock, last_updated=clock.now - timedelta(seconds=899))
        assert is_fresh(record, 900, clock.now)

    def test_stale_at_ttl(self, clock):
        record = _record(clock, last_updated=clock.now - timedelta(seconds=900))
        assert not is_fresh(record, 900, clock.now)

    def test_absent_is_not_fresh(self, clock):
        assert not is_fresh(None, 900, clock.now)

    def test_cache_age(self, clock):
        record = _record(clock, last_updated=clock.now - timedelta(seconds=42))
        assert cache_age(record, clock.now) == 42


class TestScoreCache:
    """Reads: Redis → DB (repopulating Redis). Writes: DB → Redis."""

    def test_put_writes_db_and_redis(self, store, fake_redis, clock):
        cache = ScoreCache(store, fake_redis, redis_ttl=60)
        cache.put(_record(clock))
        assert store.scores['me']['total'] == 120
        assert json.loads(fake_redis.data['sw:score:me'])['total'] == 120
        assert fake_redis.ttls['sw:score:me'] == 60

    def test_get_prefers_redis(self, store, fake_redis, clock):
        cache = ScoreCache(store, fake_redis)
        cache.put(_record(clock))
        store.calls.clear()
        record = cache.get('me')
        assert record['total'] == 120
        assert record['last_updated'] == clock.now
        assert 'get_score' not in store.ops()

    def test_get_falls_back_to_db_and_repopulates(self, store, fake_redis, clock):
        store.upsert_score(_record(clock))
        cache = ScoreCache(store, fake_redis)
        assert cache.get('me')['total'] == 120
        assert 'sw:score:me' in fake_redis.data

    def test_missing_everywhere(self, store, fake_redis):
        assert ScoreCache(store, fake_redis).get('nobody') is None

    def test_redis_down_is_fail_open(self, store, fake_redis, clock):
        fake_redis.broken = True
        cache = ScoreCache(store, fake_redis)
        cache.put(_record(clock))
        assert store.scores['me']['total'] == 120
        assert cache.get('me')['total'] == 120

    def test_corrupt_redis_payload_falls_back_to_db(self, store, fake_redis, clock):
        store.upsert_score(_record(clock))
        fake_redis.data['sw:score:me'] = '{not json'
        assert ScoreCache(store, fake_redis).get('me')['total'] == 120

    def test_without_redis(self, store, clock):
        cache = ScoreCache(store, None)
        cache.put(_record(clock))
        assert cache.get('me')['total'] == 120


class TestMirrorWriteFailure:
    """A failed Redis write never leaves an older copy in front of the DB row."""

    def test_failed_setex_drops_old_copy(self, store, fake_redis, clock):
        cache = ScoreCache(store, fake_redis)
        cache.put(_record(clock, total=50))
        fake_redis.failing.add('setex')
        cache.put(_record(clock, total=120))
        assert 'sw:score:me' not in fake_redis.data
        assert cache.get('me')['total'] == 120

    def test_failed_setex_and_delete_reads_db(self, store, fake_redis, clock):
        cache = ScoreCache(store, fake_redis)
        cache.put(_record(clock, total=50))
        fake_redis.failing.update({'setex', 'delete'})
        cache.put(_record(clock, total=120))
        fake_redis.failing.clear()
        assert json.loads(fake_redis.data['sw:score:me'])['total'] == 50

        assert cache.get('me')['total'] == 120
        assert json.loads(fake_redis.data['sw:score:me'])['total'] == 120

    def test_mirror_used_again_after_successful_write(self, store, fake_redis, clock):
        cache = ScoreCache(store, fake_redis)
        fake_redis.failing.update({'setex', 'delete'})
        cache.put(_record(clock))
        fake_redis.failing.clear()
        cache.put(_record(clock, total=130))
        store.calls.clear()
        assert cache.get('me')['total'] == 130
        assert 'get_score' not in store.ops()
