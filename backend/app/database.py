"""
Database engine and session management.

DATABASE_URL selects the backend:
- postgresql://...        production (schema via Alembic migrations)
- sqlite:///./file.db     local development, tables created at startup
- sqlite://               in-memory, used by the test suite

The importers rely on INSERT ... ON CONFLICT, which both backends support
(see app.services.upsert).
"""

import os
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./attendance_ops.db")

# Some hosting providers still hand out the pre-1.4 scheme
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = "postgresql://" + DATABASE_URL[len("postgres://"):]

POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "10"))
MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "20"))


def set_sqlite_pragma(dbapi_connection, connection_record):
    """Enforce foreign keys on every SQLite connection; file databases also get WAL."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


def build_engine(url: str, **overrides) -> Engine:
    """
    Create an engine with per-dialect settings.

    PostgreSQL gets a sized, pre-pinged pool. SQLite is opened for use
    from FastAPI's worker threads and gets the pragma hook.
    """
    kwargs = {"echo": False}
    if url.startswith("postgresql"):
        kwargs.update(pool_size=POOL_SIZE, max_overflow=MAX_OVERFLOW, pool_pre_ping=True)
    elif url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    kwargs.update(overrides)

    new_engine = create_engine(url, **kwargs)
    if url.startswith("sqlite"):
        event.listen(new_engine, "connect", set_sqlite_pragma)
    return new_engine


engine = build_engine(DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    pass


def get_db():
    """FastAPI dependency: one session per request, always closed."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables(bind=None):
    """Create all tables from the models (SQLite and tests; PostgreSQL uses Alembic)."""
    Base.metadata.create_all(bind=bind or engine)
