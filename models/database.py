"""
Database Configuration Module
=============================

Provides SQLAlchemy database engine and session management for the
badge access system. Uses SQLite by default; any SQLAlchemy URL can be
supplied through ``BADGE_ACCESS_DATABASE_URL``.

The rule engine relies on two things from the store:
- unique constraints that turn a lost race into an IntegrityError
- SAVEPOINT support, so a failed insert does not poison the session

pysqlite does not emit BEGIN/SAVEPOINT the way SQLAlchemy expects, so
SQLite engines are configured with the SQLAlchemy-documented workaround.
"""

from contextlib import contextmanager
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base

from core.config import settings

# Base class for declarative models
Base = declarative_base()


def build_engine(url: str, echo: bool = False, **kwargs) -> Engine:
    """
    Create an engine for ``url``.

    SQLite connections get foreign key enforcement and explicit
    transaction control so nested transactions behave.
    """
    if url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        kwargs["connect_args"] = connect_args

    new_engine = create_engine(url, echo=echo, **kwargs)

    if new_engine.dialect.name == "sqlite":
        @event.listens_for(new_engine, "connect")
        def _on_connect(dbapi_connection, connection_record):
            # Hand transaction control to SQLAlchemy
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(new_engine, "begin")
        def _on_begin(conn):
            conn.exec_driver_sql("BEGIN")

    return new_engine


engine = build_engine(settings.database_url, echo=settings.sql_echo)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def configure_database(url: str, **kwargs) -> Engine:
    """
    Point the module at a different database.

    Rebinds both ``engine`` and ``SessionLocal``; sessions opened before
    the call keep their old binding.
    """
    global engine
    engine = build_engine(url, echo=settings.sql_echo, **kwargs)
    SessionLocal.configure(bind=engine)
    return engine


@contextmanager
def get_session():
    """
    Context manager for database sessions.

    Ensures proper session lifecycle management with automatic
    commit on success and rollback on failure.

    Usage:
        with get_session() as session:
            employee = session.query(Employee).first()
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db():
    """
    Initialize the database schema.

    Creates all tables defined in the models if they don't exist.
    Safe to call multiple times.
    """
    from . import entities  # noqa: F401 - Ensure models are loaded
    Base.metadata.create_all(bind=engine)


def reset_db():
    """
    Reset the database by dropping and recreating all tables.

    WARNING: This destroys all data, swipe history included.
    """
    from . import entities  # noqa: F401
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
