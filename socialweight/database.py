"""
Database engine, session factory and model registry.

SQLite for local dev, Postgres in production. On Postgres every statement
carries a server-side timeout (DB_STATEMENT_TIMEOUT_MS).
"""
import importlib

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from socialweight.config import (
    DATABASE_URL, DB_POOL_SIZE, DB_MAX_OVERFLOW, DB_STATEMENT_TIMEOUT_MS,
)


class Base(DeclarativeBase):
    pass


# Modules under socialweight.models that declare tables on Base
MODEL_MODULES = (
    'profile', 'post', 'comment', 'follow', 'ledger', 'invite',
    'admin_adjustment', 'sw_weights', 'sw_score',
)


def import_models():
    """Import every model module so Base.metadata knows all SW tables."""
    for name in MODEL_MODULES:
        importlib.import_module(f'socialweight.models.{name}')


def _engine_for(url: str):
    # Hosted Postgres often injects postgres:// but SQLAlchemy 2.x requires postgresql://
    url = url.replace('postgres://', 'postgresql://', 1)
    if url.startswith('sqlite'):
        return create_engine(url, connect_args={'check_same_thread': False})
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=DB_POOL_SIZE,
        max_overflow=DB_MAX_OVERFLOW,
        connect_args={'options': f'-c statement_timeout={DB_STATEMENT_TIMEOUT_MS}'},
    )


engine = _engine_for(DATABASE_URL)

SessionLocal = sessionmaker(bind=engine)


def get_session():
    """Return a new DB session."""
    return SessionLocal()
