"""
Engine and session handling for Convoscope.

One engine per process. PostgreSQL gets a bounded connection pool; SQLite
(development and tests) gets foreign keys switched on and its tables created
from the models at import time.
"""

import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import Session, sessionmaker

from convoscope.config import settings

logger = logging.getLogger(__name__)


def enable_sqlite_foreign_keys(engine) -> None:
    """
    Turn on foreign key enforcement for every SQLite connection.

    SQLite ignores ON DELETE CASCADE unless the pragma is set per connection.
    """

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


if settings.is_sqlite:
    engine = create_engine(
        settings.database_url,
        echo=False,
        connect_args={"check_same_thread": False},
        pool_pre_ping=True,
    )
    enable_sqlite_foreign_keys(engine)
else:
    # Pool is per uvicorn worker: workers x (pool_size + max_overflow) in total
    engine = create_engine(
        settings.database_url,
        echo=False,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_pool_max_overflow,
        pool_pre_ping=True,
        pool_timeout=settings.db_pool_timeout,
        pool_recycle=settings.db_pool_recycle,
    )

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

if settings.is_sqlite:
    from convoscope.models.db import Base

    Base.metadata.create_all(bind=engine)


def get_session() -> Session:
    """Open a session the caller must commit and close."""
    return SessionLocal()


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency yielding one session per request.

    The request is a single unit of work: committed when the handler returns,
    rolled back if it raises.
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


@contextmanager
def db_session() -> Generator[Session, None, None]:
    """
    Session scope for scripts and the CLI.

    Example:
        >>> with db_session() as db:
        >>>     SummaryRepository(db).count()
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


def init_db() -> None:
    """
    Create all tables from the models.

    Development convenience; deployed databases are managed with
    `alembic upgrade head`.
    """
    from convoscope.models.db import Base

    Base.metadata.create_all(bind=engine)


def check_connection() -> bool:
    """Return True if the database answers a trivial query."""
    try:
        with db_session() as db:
            db.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
