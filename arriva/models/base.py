"""
SQLAlchemy base configuration and session management.

Uses SQLAlchemy 2.0 style with type hints and declarative base.
Designed to be portable between SQLite (dev) and PostgreSQL (prod).
Engines and session factories are built from a DatabaseConfig rather
than at import time, so tests and the app can each own one.
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker, Session
from sqlalchemy.pool import StaticPool

from arriva.config import DatabaseConfig


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def _set_sqlite_pragma(dbapi_connection, connection_record):
    """
    Configure SQLite for concurrent reads during ingestion writes.
    """
    cursor = dbapi_connection.cursor()
    # Write-Ahead Logging for concurrent access
    cursor.execute('PRAGMA journal_mode=WAL')
    cursor.execute('PRAGMA synchronous=NORMAL')
    # Notification log rows reference subscriptions
    cursor.execute('PRAGMA foreign_keys=ON')
    cursor.close()


def create_db_engine(database: DatabaseConfig, echo: bool = False) -> Engine:
    """Create an engine with settings appropriate for the database type."""
    engine_kwargs = {
        'echo': echo,  # Log SQL in debug mode
    }

    if database.is_sqlite:
        engine_kwargs['connect_args'] = {'check_same_thread': False}
        if database.is_memory:
            # One shared connection, otherwise each checkout sees an empty database
            engine_kwargs['poolclass'] = StaticPool

    engine = create_engine(database.url, **engine_kwargs)

    if database.is_sqlite:
        event.listen(engine, 'connect', _set_sqlite_pragma)

    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    """Session factory bound to the given engine."""
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,  # Avoid lazy loading issues
    )


@contextmanager
def get_session(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Usage:
        with get_session(factory) as session:
            session.execute(...)

    Automatically handles commit/rollback and session cleanup.
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine: Engine) -> None:
    """
    Initialize database schema.

    Creates all tables if they don't exist. For production,
    use Alembic migrations instead.
    """
    Base.metadata.create_all(bind=engine)
