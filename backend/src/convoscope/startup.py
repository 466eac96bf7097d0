"""
Startup checks for the Convoscope API.

The API refuses to serve until its settings, database and schema are usable.
Each failed check explains what is wrong and how to fix it.
"""

import logging
import sys
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from alembic.config import Config as AlembicConfig
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import text

from convoscope.config import settings
from convoscope.db.connection import SessionLocal, engine

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "db" / "migrations"

_BANNER = "=" * 70


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class StartupMetrics:
    """Timings of the last startup run, in milliseconds."""

    started_at: datetime
    completed_at: Optional[datetime] = None
    total_duration_ms: Optional[float] = None
    check_durations_ms: dict[str, float] = field(default_factory=dict)
    checks_passed: bool = False


startup_metrics = StartupMetrics(started_at=_utc_now())


class StartupCheckError(Exception):
    """A startup requirement is not met."""

    def __init__(self, message: str, hint: Optional[str] = None):
        self.message = message
        self.hint = hint
        super().__init__(message)

    def __str__(self) -> str:
        lines = [_BANNER, "STARTUP CHECK FAILED", _BANNER, "", self.message]
        if self.hint:
            lines += ["", f"Hint: {self.hint}"]
        lines.append(_BANNER)
        return "\n" + "\n".join(lines) + "\n"


def _missing_database_settings() -> list[str]:
    if settings.database_url_override:
        return []
    required = {
        "POSTGRES_HOST": settings.postgres_host,
        "POSTGRES_DB": settings.postgres_db,
        "POSTGRES_USER": settings.postgres_user,
        "POSTGRES_PASSWORD": settings.postgres_password,
    }
    return [name for name, value in required.items() if not value]


def _missing_secrets() -> list[str]:
    required = {
        "API_KEY": settings.api_key,
        "DASHBOARD_USERNAME": settings.dashboard_username,
        "DASHBOARD_PASSWORD": settings.dashboard_password,
        "SESSION_SECRET": settings.session_secret,
    }
    return [name for name, value in required.items() if not value]


def check_required_environment() -> None:
    """
    Make sure the database settings and every secret are configured.

    Raises:
        StartupCheckError: Listing every missing variable
    """
    missing = _missing_database_settings() + _missing_secrets()
    if missing:
        raise StartupCheckError(
            "Required settings are not configured:\n"
            + "\n".join(f"  - {name}" for name in missing),
            "Export them or add them to .env (DATABASE_URL replaces the POSTGRES_* group)",
        )


def _connection_hint(error: Exception) -> str:
    reason = str(error).lower()
    if "connection refused" in reason or "could not connect" in reason:
        return "PostgreSQL is not running or not reachable from this host"
    if "password" in reason or "authentication failed" in reason:
        return f"Credentials were rejected for user '{settings.postgres_user}'"
    if "does not exist" in reason:
        return (
            f"Create the database first (createdb {settings.postgres_db}), "
            "then run: alembic upgrade head"
        )
    return f"Check the database settings in .env ({error})"


def check_database_connection() -> None:
    """
    Run a trivial query to prove the database answers.

    Raises:
        StartupCheckError: If the query fails or returns nonsense
    """
    try:
        with SessionLocal() as session:
            answer = session.execute(text("SELECT 1")).scalar()
    except Exception as e:
        raise StartupCheckError(
            f"Cannot connect to database at {settings.postgres_host}:"
            f"{settings.postgres_port}/{settings.postgres_db}",
            _connection_hint(e),
        ) from e

    if answer != 1:
        raise StartupCheckError(
            f"Database returned an unexpected result for SELECT 1: {answer!r}",
            "The database may be misconfigured",
        )


def check_database_migrations() -> None:
    """
    Compare the database's Alembic revision with the newest script.

    SQLite databases are built from model metadata, so the check is skipped
    there.

    Raises:
        StartupCheckError: If the schema is missing or behind
    """
    if settings.is_sqlite:
        return

    try:
        alembic_cfg = AlembicConfig()
        alembic_cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
        head_revision = ScriptDirectory.from_config(alembic_cfg).get_current_head()

        with engine.connect() as connection:
            current_revision = MigrationContext.configure(
                connection
            ).get_current_revision()
    except Exception as e:
        raise StartupCheckError(
            f"Could not read migration state: {e}",
            "Check that the Alembic scripts are installed with the package",
        ) from e

    if current_revision is None:
        raise StartupCheckError(
            "Database schema has not been created",
            "Run: alembic upgrade head",
        )
    if current_revision != head_revision:
        raise StartupCheckError(
            f"Database schema is at {current_revision}, expected {head_revision}",
            "Run: alembic upgrade head",
        )


STARTUP_CHECKS: list[tuple[str, Callable[[], None]]] = [
    ("environment", check_required_environment),
    ("database", check_database_connection),
    ("migrations", check_database_migrations),
]


def run_all_startup_checks() -> None:
    """
    Run every startup check in order and exit the process on the first failure.

    Raises:
        SystemExit: With status 1 after logging the failure
    """
    run_started = time.perf_counter()

    for name, check in STARTUP_CHECKS:
        check_started = time.perf_counter()
        try:
            check()
        except StartupCheckError as e:
            logger.critical(f"Startup check '{name}' failed{e}")
            sys.exit(1)
        finally:
            startup_metrics.check_durations_ms[name] = (
                time.perf_counter() - check_started
            ) * 1000
        logger.info(
            f"Startup check '{name}' passed "
            f"({startup_metrics.check_durations_ms[name]:.1f}ms)"
        )

    startup_metrics.completed_at = _utc_now()
    startup_metrics.total_duration_ms = (time.perf_counter() - run_started) * 1000
    startup_metrics.checks_passed = True
    logger.info(f"Startup checks passed in {startup_metrics.total_duration_ms:.1f}ms")


def check_readiness() -> tuple[bool, dict]:
    """
    Report whether the API can take traffic.

    Ready means startup checks have passed and the database still answers.
    """
    try:
        with SessionLocal() as session:
            session.execute(text("SELECT 1"))
        db_ready = True
    except Exception as e:
        logger.warning(f"Readiness probe could not reach the database: {e}")
        db_ready = False

    is_ready = db_ready and startup_metrics.checks_passed
    return is_ready, {
        "ready": is_ready,
        "database": "healthy" if db_ready else "unhealthy",
        "startup_completed": startup_metrics.checks_passed,
        "uptime_seconds": round(
            (_utc_now() - startup_metrics.started_at).total_seconds(), 1
        ),
    }
