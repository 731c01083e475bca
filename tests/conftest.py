"""Shared test fixtures."""
import copy
import threading
import time
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
import redis
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from socialweight.database import Base, import_models
from socialweight.services.store import DataStore, ErrorKind, StoreError


DEFAULT_WEIGHTS = {
    'id': 1,
    'registration_points': 50,
    'profile_complete_points': 20,
    'growth_total_points_multiplier': 1,
    'follower_points': 5,
    'connection_first_points': 100,
    'connection_repeat_points': 40,
    'post_points': 20,
    'comment_points': 10,
    'reaction_points': 1,
    'invite_points': 50,
    'growth_bonus_percentage': 0.05,
    'daily_inflation_rate': 0.001,
    'user_growth_inflation_rate': 0.0001,
    'min_inflation_rate': 0.5,
    'cache_duration_minutes': 15,
    'sw_levels': None,
    'updated_by': None,
    'updated_at': None,
}

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture
def db_engine():
    """In-memory SQLite engine with schema created."""
    engine = create_engine('sqlite:///:memory:')
    import_models()
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """SQLAlchemy session bound to in-memory SQLite. Rolls back after each test."""
    Session = sessionmaker(bind=db_engine)
    session = Session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture(autouse=True)
def patch_get_session(db_engine):
    """
    Route get_session() calls inside the data-access layer to the test engine.

    services.store does `from socialweight.database import get_session`, so the
    local binding is what needs patching. Each call gets a fresh session on the
    same in-memory engine so close() in production code is harmless.
    """
    TestSession = sessionmaker(bind=db_engine)
    with patch('socialweight.services.store.get_session', side_effect=lambda: TestSession()):
        yield TestSession


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeStore(DataStore):
    """
    Dict-backed DataStore.

    Failure injection:
        missing_columns  {(table, column)} → raises SCHEMA_DRIFT
        failures         {op | table | (table, column): ErrorKind}
        delays           {op: seconds} slept before answering
    """

    def __init__(self, weights=None):
        self.weights = dict(DEFAULT_WEIGHTS) if weights is None else weights
        self.profiles = {}
        self.posts = []
        self.comments = []
        self.reactions = {}
        self.followers = {}
        self.ledger = []
        self.invites = []
        self.adjustments = []
        self.scores = {}
        self.user_count = None

        self.missing_columns = set()
        self.failures = {}
        self.delays = {}
        self.calls = []
        self._lock = threading.Lock()
        self._next_id = 1

    # ── seeding helpers ───────────────────────────────────────────────

    def _id(self):
        with self._lock:
            value = self._next_id
            self._next_id += 1
            return value

    def add_profile(self, user_id, username=None, created_at=NOW, **fields):
        self.profiles[user_id] = {
            'user_id': user_id,
            'username': username,
            'full_name': fields.get('full_name'),
            'bio': fields.get('bio'),
            'country': fields.get('country'),
            'avatar_url': fields.get('avatar_url'),
            'created_at': created_at,
        }
        return self.profiles[user_id]

    def add_post(self, author_id, body='', created_at=None):
        post_id = self._id()
        created_at = created_at or NOW - timedelta(seconds=post_id)
        # Both the primary and the legacy column names are populated
        self.posts.append({
            'id': post_id, 'author_id': author_id, 'user_id': author_id,
            'body': body, 'text': body, 'created_at': created_at,
        })
        return post_id

    def add_comment(self, author_id, body=''):
        self.comments.append({'id': self._id(), 'author_id': author_id, 'user_id': author_id, 'body': body})

    def add_ledger(self, user_id, points, created_at=NOW):
        self.ledger.append({'user_id': user_id, 'points': points, 'created_at': created_at})

    def add_invite(self, inviter_id, invitee_id, status='accepted'):
        self.invites.append({
            'id': self._id(), 'inviter_user_id': inviter_id,
            'consumed_by_user_id': invitee_id, 'status': status,
        })

    # ── failure injection ─────────────────────────────────────────────

    def _check(self, op, table=None, *columns):
        with self._lock:
            self.calls.append((op, table) + tuple(columns))
        if op in self.delays:
            time.sleep(self.delays[op])
        for column in columns:
            if (table, column) in self.missing_columns:
                raise StoreError(ErrorKind.SCHEMA_DRIFT, f'no such column: {column}', table=table, column=column)
        for key in [op, table] + [(table, c) for c in columns]:
            kind = self.failures.get(key)
            if kind:
                raise StoreError(kind, f'{op} failed', table=table)

    def _rows(self, table):
        return {'posts': self.posts, 'comments': self.comments}[table]

    # ── DataStore ─────────────────────────────────────────────────────

    def get_weights(self):
        self._check('get_weights', 'sw_weights')
        return dict(self.weights) if self.weights else None

    def update_weights(self, fields, updated_by=None):
        self._check('update_weights', 'sw_weights')
        if not self.weights:
            return None
        self.weights.update(fields)
        self.weights['updated_by'] = updated_by
        return dict(self.weights)

    def get_profile(self, user_id):
        self._check('get_profile', 'profiles')
        profile = self.profiles.get(user_id)
        return dict(profile) if profile else None

    def get_handles(self, user_ids):
        self._check('get_handles', 'profiles', 'username')
        return {
            uid: self.profiles[uid]['username']
            for uid in user_ids
            if uid in self.profiles and self.profiles[uid].get('username')
        }

    def count_users(self):
        self._check('count_users', 'profiles')
        return len(self.profiles) if self.user_count is None else self.user_count

    def count_by_column(self, table, column, value):
        self._check('count_by_column', table, column)
        return sum(1 for r in self._rows(table) if r.get(column) == value)

    def ids_by_column(self, table, column, value):
        self._check('ids_by_column', table, column)
        return [r['id'] for r in self._rows(table) if r.get(column) == value]

    def recent_content(self, table, author_column, body_column, limit):
        self._check('recent_content', table, author_column, body_column)
        rows = sorted(self._rows(table), key=lambda r: r['created_at'], reverse=True)[:limit]
        return [{'id': r['id'], 'author_id': r.get(author_column), 'body': r.get(body_column) or ''}
                for r in rows]

    def count_reactions(self, post_ids):
        self._check('count_reactions', 'post_reactions', 'post_id')
        return sum(self.reactions.get(pid, 0) for pid in post_ids)

    def count_followers(self, user_id):
        self._check('count_followers', 'follows', 'followee_id')
        return self.followers.get(user_id, 0)

    def ledger_summary(self, user_ids):
        self._check('ledger_summary', 'sw_ledger')
        entries = [e for e in self.ledger if e['user_id'] in set(user_ids)]
        return len(entries), sum(e['points'] for e in entries)

    def ledger_points_since(self, user_id, since):
        self._check('ledger_points_since', 'sw_ledger')
        return sum(e['points'] for e in self.ledger if e['user_id'] == user_id and e['created_at'] >= since)

    def accepted_invites(self, inviter_id):
        self._check('accepted_invites', 'invites', 'inviter_user_id')
        return [
            {'id': i['id'], 'consumed_by_user_id': i['consumed_by_user_id']}
            for i in self.invites
            if i['inviter_user_id'] == inviter_id and i['status'] == 'accepted'
        ]

    def cached_totals(self, user_ids):
        self._check('cached_totals', 'sw_scores')
        return {uid: self.scores[uid]['total'] for uid in user_ids if uid in self.scores}

    def admin_adjustments_total(self, user_id):
        self._check('admin_adjustments_total', 'admin_sw_adjustments')
        return sum(a['points'] for a in self.adjustments if a['user_id'] == user_id)

    def add_admin_adjustment(self, user_id, points, adjustment_type, reason=None, created_by=None):
        self._check('add_admin_adjustment', 'admin_sw_adjustments')
        adjustment_id = self._id()
        self.adjustments.append({
            'id': adjustment_id, 'user_id': user_id, 'points': points,
            'adjustment_type': adjustment_type, 'reason': reason, 'created_by': created_by,
        })
        return adjustment_id

    def get_score(self, user_id):
        self._check('get_score', 'sw_scores')
        record = self.scores.get(user_id)
        return copy.deepcopy(record) if record else None

    def upsert_score(self, record):
        self._check('upsert_score', 'sw_scores')
        self.scores[record['user_id']] = copy.deepcopy(record)

    def ops(self):
        """Names of the operations called so far."""
        return [c[0] for c in self.calls]


class FakeRedis:
    """Minimal dict-backed Redis supporting get/setex/delete."""

    def __init__(self, broken=False):
        self.data = {}
        self.ttls = {}
        self.broken = broken
        self.failing = set()   # op names that time out

    def _guard(self, op=None):
        if self.broken:
            raise redis.ConnectionError('Connection refused')
        if op in self.failing:
            raise redis.TimeoutError('Timeout writing to socket')

    def get(self, key):
        self._guard('get')
        return self.data.get(key)

    def setex(self, key, ttl, value):
        self._guard('setex')
        self.data[key] = value
        self.ttls[key] = ttl
        return True

    def delete(self, *keys):
        self._guard('delete')
        for key in keys:
            self.data.pop(key, None)


class FrozenClock:
    """Callable returning a controllable 'now'."""

    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


# ---------------------------------------------------------------------------
# Scoring fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def store():
    """FakeStore seeded with the default weights and nothing else."""
    return FakeStore()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def make_engine(clock):
    """Factory: ScoringEngine over a store, with a one-hour user-count memo and frozen clock."""
    from socialweight.scoring.decay import DecayCalculator, TTLMemo
    from socialweight.scoring.engine import ScoringEngine

    def _make(store, **kwargs):
        decay = DecayCalculator(TTLMemo(store.count_users, ttl=3600))
        kwargs.setdefault('timeout', 2.0)
        return ScoringEngine(store, decay, clock=clock, **kwargs)
    return _make


@pytest.fixture
def scorer(store, make_engine):
    """CachedScorer over the FakeStore with no Redis mirror."""
    from socialweight.scoring.cache import ScoreCache
    from socialweight.scoring.engine import CachedScorer
    return CachedScorer(make_engine(store), ScoreCache(store, None))


# ---------------------------------------------------------------------------
# Flask
# ---------------------------------------------------------------------------

@pytest.fixture
def app():
    """Flask test app."""
    from socialweight import create_app
    app = create_app()
    app.config['TESTING'] = True
    yield app


@pytest.fixture
def client(app, scorer):
    """Flask test client with every route using the FakeStore-backed scorer."""
    with patch('socialweight.routes.sw.get_scorer', return_value=scorer), \
            patch('socialweight.routes.admin.get_scorer', return_value=scorer):
        with app.test_client() as c:
            yield c


@pytest.fixture
def auth_header():
    """Factory: Authorization header carrying a signed token."""
    from socialweight.services.auth import create_access_token

    def _make(user_id='user-1', role=None, **kwargs):
        return {'Authorization': f'Bearer {create_access_token(user_id, role=role, **kwargs)}'}
    return _make
