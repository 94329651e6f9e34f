"""
Database engine + session factory.

SQLite for local dev, Postgres in production. Every unit of work (a request,
one sweep level) opens its own session via get_session() and closes it.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from leadcrm.config import DATABASE_URL, DB_POOL_SIZE, DB_MAX_OVERFLOW


class Base(DeclarativeBase):
    pass


def normalize_url(url):
    """Hosting platforms inject postgres:// but SQLAlchemy 2.x requires postgresql://"""
    return url.replace('postgres://', 'postgresql://', 1)


def engine_options(url, pool_size=DB_POOL_SIZE, max_overflow=DB_MAX_OVERFLOW):
    """create_engine() keyword arguments for a database URL."""
    if url.startswith('sqlite'):
        # The sweep thread shares the engine with request threads
        return {'connect_args': {'check_same_thread': False}}
    return {
        'pool_pre_ping': True,
        'pool_size': pool_size,
        'max_overflow': max_overflow,
        # Sweep sessions can sit idle between daily triggers
        'pool_recycle': 1800,
    }


url = normalize_url(DATABASE_URL)
engine = create_engine(url, **engine_options(url))

SessionLocal = sessionmaker(bind=engine)


def get_session():
    """Return a new DB session."""
    return SessionLocal()
