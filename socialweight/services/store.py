"""
Data-access layer for the scoring engine.

DataStore is the abstract set of query/filter operations the engine needs.
SqlStore implements it on top of SQLAlchemy sessions from get_session().

Driver errors never leak out of this module: every DBAPIError is translated
into a StoreError carrying an ErrorKind, so callers branch on the kind
instead of sniffing error messages.
"""
import logging
import re
import sqlite3
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, text
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError

from socialweight.database import get_session
from socialweight.models.admin_adjustment import AdminAdjustment
from socialweight.models.follow import Follow
from socialweight.models.invite import Invite
from socialweight.models.ledger import LedgerEntry
from socialweight.models.post import PostReaction
from socialweight.models.profile import Profile
from socialweight.models.sw_score import SWScore
from socialweight.models.sw_weights import SWWeights

logger = logging.getLogger('services.store')


class ErrorKind(str, Enum):
    SCHEMA_DRIFT = 'schema_drift'      # expected column/table absent
    ACCESS_DENIED = 'access_denied'    # permission / row-security denial
    TRANSIENT = 'transient'            # anything else that failed at fetch time
    NOT_FOUND = 'not_found'


class StoreError(Exception):
    """A classified data-access failure."""

    def __init__(self, kind: ErrorKind, message: str = '', table: str = None,
                 column: str = None, code: str = None):
        self.kind = kind
        self.table = table
        self.column = column
        self.code = code
        super().__init__(message or f'{kind.value} on {table or "?"}.{column or "?"}')


# ── Error classification ─────────────────────────────────────────────────────

# Postgres SQLSTATE codes
_SCHEMA_DRIFT_CODES = {'42703', '42P01'}   # undefined_column, undefined_table
_ACCESS_DENIED_CODES = {'42501'}           # insufficient_privilege


def _sqlstate(exc: DBAPIError) -> Optional[str]:
    orig = getattr(exc, 'orig', None)
    # psycopg2 exposes pgcode, psycopg 3 exposes sqlstate
    return getattr(orig, 'pgcode', None) or getattr(orig, 'sqlstate', None)


def classify_db_error(exc: Exception) -> ErrorKind:
    """Map a driver error onto an ErrorKind."""
    if not isinstance(exc, DBAPIError):
        return ErrorKind.TRANSIENT

    code = _sqlstate(exc)
    if code in _SCHEMA_DRIFT_CODES:
        return ErrorKind.SCHEMA_DRIFT
    if code in _ACCESS_DENIED_CODES:
        return ErrorKind.ACCESS_DENIED

    # SQLite has no SQLSTATE; its OperationalError text is a fixed vocabulary
    orig = getattr(exc, 'orig', None)
    if isinstance(orig, sqlite3.Error):
        msg = str(orig).lower()
        if msg.startswith('no such column') or msg.startswith('no such table'):
            return ErrorKind.SCHEMA_DRIFT
        if 'not authorized' in msg:
            return ErrorKind.ACCESS_DENIED

    return ErrorKind.TRANSIENT


def _translate(exc: Exception, table: str = None, column: str = None) -> StoreError:
    kind = classify_db_error(exc)
    code = _sqlstate(exc) if isinstance(exc, DBAPIError) else None
    orig = getattr(exc, 'orig', None)
    return StoreError(kind, str(orig or exc), table=table, column=column, code=code)


# ── Helpers ──────────────────────────────────────────────────────────────────

_IDENT = re.compile(r'^[a-z_][a-z0-9_]*$')


def _ident(name: str) -> str:
    """Guard identifiers interpolated into raw SQL."""
    if not _IDENT.match(name or ''):
        raise ValueError(f'Invalid SQL identifier: {name!r}')
    return name


def as_utc(value):
    """Normalize a datetime (or ISO string) to an aware UTC datetime."""
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace('Z', '+00:00'))
    if value.tzinfo is None:
        # SQLite drops tzinfo; everything is stored as UTC
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _chunks(items: List[Any], size: int = 500) -> Iterable[List[Any]]:
    for i in range(0, len(items), size):
        yield items[i:i + size]


def _score_to_dict(row: SWScore) -> Dict[str, Any]:
    return {
        'user_id': row.user_id,
        'total': row.total,
        'original_total': row.original_total,
        'base_total': row.base_total,
        'admin_adjustments': row.admin_adjustments,
        'breakdown': row.breakdown or {},
        'inflation_rate': row.inflation_rate,
        'current_level': row.current_level,
        'last_level_change': as_utc(row.last_level_change),
        'inflation_last_updated': as_utc(row.inflation_last_updated),
        'last_updated': as_utc(row.last_updated),
    }


# ── Interface ────────────────────────────────────────────────────────────────

class DataStore(ABC):
    """
    Abstract data-access operations consumed by the scoring engine.

    Every method either returns plain Python data or raises StoreError.
    Empty results are never errors.
    """

    @abstractmethod
    def get_weights(self) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    def update_weights(self, fields: Dict[str, Any], updated_by: str = None) -> Optional[Dict[str, Any]]:
        """Apply a partial update to the weights row; None when it does not exist."""

    @abstractmethod
    def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    def get_handles(self, user_ids: List[str]) -> Dict[str, str]:
        """Map user_id → username for the users that have one."""

    @abstractmethod
    def count_users(self) -> int: ...

    @abstractmethod
    def count_by_column(self, table: str, column: str, value: str) -> int: ...

    @abstractmethod
    def ids_by_column(self, table: str, column: str, value: str) -> List[int]: ...

    @abstractmethod
    def recent_content(self, table: str, author_column: str, body_column: str,
                       limit: int) -> List[Dict[str, Any]]:
        """Most recent items as {'id', 'author_id', 'body'} dicts."""

    @abstractmethod
    def count_reactions(self, post_ids: List[int]) -> int: ...

    @abstractmethod
    def count_followers(self, user_id: str) -> int: ...

    @abstractmethod
    def ledger_summary(self, user_ids: List[str]) -> Tuple[int, int]:
        """(entry count, point sum) over the growth ledger for these users."""

    @abstractmethod
    def ledger_points_since(self, user_id: str, since: datetime) -> int: ...

    @abstractmethod
    def accepted_invites(self, inviter_id: str) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def cached_totals(self, user_ids: List[str]) -> Dict[str, int]:
        """Last cached post-decay totals, for users that have a record."""

    @abstractmethod
    def admin_adjustments_total(self, user_id: str) -> int: ...

    @abstractmethod
    def add_admin_adjustment(self, user_id: str, points: int, adjustment_type: str,
                             reason: str = None, created_by: str = None) -> int: ...

    @abstractmethod
    def get_score(self, user_id: str) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    def upsert_score(self, record: Dict[str, Any]) -> None: ...


# ── SQLAlchemy implementation ────────────────────────────────────────────────

class SqlStore(DataStore):
    """DataStore backed by the application database."""

    def _run(self, fn, table: str = None, column: str = None, write: bool = False):
        session = get_session()
        try:
            result = fn(session)
            if write:
                session.commit()
            return result
        except SQLAlchemyError as e:
            session.rollback()
            raise _translate(e, table, column) from e
        finally:
            session.close()

    def get_weights(self):
        def q(session):
            row = session.get(SWWeights, 1)
            if row is None:
                return None
            return {c.name: getattr(row, c.name) for c in SWWeights.__table__.columns}
        return self._run(q, table='sw_weights')

    def update_weights(self, fields, updated_by=None):
        def q(session):
            row = session.get(SWWeights, 1)
            if row is None:
                return None
            for k, v in fields.items():
                setattr(row, k, v)
            row.updated_by = updated_by
            row.updated_at = datetime.now(timezone.utc)
            session.flush()
            return {c.name: getattr(row, c.name) for c in SWWeights.__table__.columns}
        return self._run(q, table='sw_weights', write=True)

    def get_profile(self, user_id):
        def q(session):
            row = session.get(Profile, user_id)
            if row is None:
                return None
            return {
                'user_id': row.user_id,
                'username': row.username,
                'full_name': row.full_name,
                'bio': row.bio,
                'country': row.country,
                'avatar_url': row.avatar_url,
                'created_at': as_utc(row.created_at),
            }
        return self._run(q, table='profiles')

    def get_handles(self, user_ids):
        if not user_ids:
            return {}

        def q(session):
            handles = {}
            for chunk in _chunks(list(user_ids)):
                rows = session.query(Profile.user_id, Profile.username).filter(
                    Profile.user_id.in_(chunk),
                ).all()
                handles.update({r.user_id: r.username for r in rows if r.username})
            return handles
        return self._run(q, table='profiles', column='username')

    def count_users(self):
        return self._run(
            lambda session: session.query(func.count(Profile.user_id)).scalar() or 0,
            table='profiles',
        )

    def count_by_column(self, table, column, value):
        sql = text(f'SELECT COUNT(*) FROM {_ident(table)} WHERE {_ident(column)} = :value')
        return self._run(
            lambda session: int(session.execute(sql, {'value': value}).scalar() or 0),
            table=table, column=column,
        )

    def ids_by_column(self, table, column, value):
        sql = text(f'SELECT id FROM {_ident(table)} WHERE {_ident(column)} = :value')
        return self._run(
            lambda session: [r[0] for r in session.execute(sql, {'value': value})],
            table=table, column=column,
        )

    def recent_content(self, table, author_column, body_column, limit):
        sql = text(
            f'SELECT id, {_ident(author_column)} AS author_id, {_ident(body_column)} AS body '
            f'FROM {_ident(table)} ORDER BY created_at DESC LIMIT :limit'
        )

        def q(session):
            return [
                {'id': r.id, 'author_id': r.author_id, 'body': r.body or ''}
                for r in session.execute(sql, {'limit': limit})
            ]
        return self._run(q, table=table, column=body_column)

    def count_reactions(self, post_ids):
        if not post_ids:
            return 0

        def q(session):
            total = 0
            for chunk in _chunks(list(post_ids)):
                total += session.query(func.count(PostReaction.id)).filter(
                    PostReaction.post_id.in_(chunk),
                ).scalar() or 0
            return total
        return self._run(q, table='post_reactions', column='post_id')

    def count_followers(self, user_id):
        return self._run(
            lambda session: session.query(func.count(Follow.id)).filter(
                Follow.followee_id == user_id,
            ).scalar() or 0,
            table='follows', column='followee_id',
        )

    def ledger_summary(self, user_ids):
        if not user_ids:
            return 0, 0

        def q(session):
            row = session.query(
                func.count(LedgerEntry.id),
                func.coalesce(func.sum(LedgerEntry.points), 0),
            ).filter(LedgerEntry.user_id.in_(list(user_ids))).one()
            return int(row[0] or 0), int(row[1] or 0)
        return self._run(q, table='sw_ledger')

    def ledger_points_since(self, user_id, since):
        return self._run(
            lambda session: int(session.query(
                func.coalesce(func.sum(LedgerEntry.points), 0),
            ).filter(
                LedgerEntry.user_id == user_id,
                LedgerEntry.created_at >= since,
            ).scalar() or 0),
            table='sw_ledger',
        )

    def accepted_invites(self, inviter_id):
        def q(session):
            rows = session.query(Invite.id, Invite.consumed_by_user_id).filter(
                Invite.inviter_user_id == inviter_id,
                Invite.status == 'accepted',
            ).all()
            return [{'id': r.id, 'consumed_by_user_id': r.consumed_by_user_id} for r in rows]
        return self._run(q, table='invites', column='inviter_user_id')

    def cached_totals(self, user_ids):
        if not user_ids:
            return {}

        def q(session):
            rows = session.query(SWScore.user_id, SWScore.total).filter(
                SWScore.user_id.in_(list(user_ids)),
            ).all()
            return {r.user_id: r.total for r in rows}
        return self._run(q, table='sw_scores')

    def admin_adjustments_total(self, user_id):
        return self._run(
            lambda session: int(session.query(
                func.coalesce(func.sum(AdminAdjustment.points), 0),
            ).filter(
                AdminAdjustment.user_id == user_id,
                AdminAdjustment.permanent.is_(True),
            ).scalar() or 0),
            table='admin_sw_adjustments',
        )

    def add_admin_adjustment(self, user_id, points, adjustment_type, reason=None, created_by=None):
        def q(session):
            row = AdminAdjustment(
                user_id=user_id,
                points=points,
                adjustment_type=adjustment_type,
                reason=reason,
                permanent=True,
                created_by=created_by,
            )
            session.add(row)
            session.flush()
            return row.id
        return self._run(q, table='admin_sw_adjustments', write=True)

    def get_score(self, user_id):
        def q(session):
            row = session.get(SWScore, user_id)
            return _score_to_dict(row) if row is not None else None
        return self._run(q, table='sw_scores')

    def upsert_score(self, record):
        fields = {k: v for k, v in record.items() if k in SWScore.__table__.columns}

        def apply(session):
            row = session.get(SWScore, fields['user_id'])
            if row is None:
                session.add(SWScore(**fields))
            else:
                for k, v in fields.items():
                    setattr(row, k, v)

        try:
            self._run(apply, table='sw_scores', write=True)
        except StoreError as e:
            # A concurrent first computation inserted the row; take the update path
            if not isinstance(e.__cause__, IntegrityError):
                raise
            logger.info("sw_scores insert raced for %s, retrying as update", fields['user_id'])
            self._run(apply, table='sw_scores', write=True)
