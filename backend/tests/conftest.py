"""
Pytest configuration and fixtures for Convoscope tests.

This module provides shared fixtures for testing database models, repositories,
services and API routes.
"""

import os

# Settings are read once at import time; point them at throwaway values first.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["API_KEY"] = "test-api-key"
os.environ["DASHBOARD_USERNAME"] = "admin"
os.environ["DASHBOARD_PASSWORD"] = "s3cret"
os.environ["SESSION_SECRET"] = "test-session-secret"
os.environ["LOG_FILE_ENABLED"] = "false"

from contextlib import contextmanager  # noqa: E402
from datetime import datetime, timedelta  # noqa: E402
from typing import Generator  # noqa: E402
from unittest.mock import patch  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from convoscope.db.connection import enable_sqlite_foreign_keys  # noqa: E402
from convoscope.db.repositories import (  # noqa: E402
    InsightRepository,
    SummaryRepository,
)
from convoscope.models.db import Base, ConversationSummary, SummaryType  # noqa: E402

DASHBOARD_USERNAME = "admin"
DASHBOARD_PASSWORD = "s3cret"

BASE_TIME = datetime(2025, 1, 1, 9, 0, 0)


@pytest.fixture(scope="session")
def test_engine():
    """Create a test database engine using SQLite in-memory."""
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={
            "check_same_thread": False
        },  # Allow cross-thread access for TestClient
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(test_engine) -> Generator[Session, None, None]:
    """
    Create a new database session for a test.

    Each test gets a fresh session with a transaction that is rolled back
    after the test completes, ensuring test isolation.
    """
    connection = test_engine.connect()
    transaction = connection.begin()
    session = sessionmaker(bind=connection)()

    yield session

    session.close()
    if transaction.is_active:
        transaction.rollback()
    connection.close()


@pytest.fixture
def api_client(db_session: Session):
    """Create a test client for FastAPI with database dependency override."""
    from fastapi.testclient import TestClient

    from convoscope.api.app import app
    from convoscope.db.connection import get_db

    def override_get_db():
        try:
            yield db_session
            db_session.commit()
        except Exception:
            db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db

    # Disable lifespan startup checks and logging reconfiguration for testing
    with patch("convoscope.api.app.run_all_startup_checks"), patch(
        "convoscope.api.app.setup_logging"
    ):
        client = TestClient(app)
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def authed_client(api_client):
    """Test client holding a dashboard session cookie."""
    response = api_client.post(
        "/auth/login",
        json={"username": DASHBOARD_USERNAME, "password": DASHBOARD_PASSWORD},
    )
    assert response.status_code == 200
    return api_client


@pytest.fixture
def cli_db(db_session: Session):
    """Route CLI database access to the test session."""

    @contextmanager
    def _test_db_session():
        yield db_session
        db_session.flush()

    with patch("convoscope.db.connection.db_session", _test_db_session), patch(
        "convoscope.cli.setup_logging"
    ):
        yield db_session


@pytest.fixture
def make_summary(db_session: Session):
    """
    Factory for stored summaries.

    Each call gets a date_created one minute after the previous call unless
    one is given, so insertion order and date order agree by default.
    """
    repo = SummaryRepository(db_session)
    insight_repo = InsightRepository(db_session)
    state = {"calls": 0}

    def _make(
        summary_type: SummaryType = SummaryType.AGENT,
        summary_id: str = None,
        conversation_id: str = None,
        date_created: datetime = None,
        insights: list = None,
        **overrides,
    ) -> ConversationSummary:
        state["calls"] += 1
        values = {
            "summary_type": summary_type,
            "media_type": "chat",
            "language": "en",
            "summary_id": summary_id or f"summary-{state['calls']}",
            "agent_id": "agent-007",
            "source_id": "source-1",
            "summary": f"Summary number {state['calls']}",
            "generated": True,
            "date_created": date_created
            or BASE_TIME + timedelta(minutes=state["calls"]),
            "conversation_id": conversation_id,
        }
        values.update(overrides)
        record = repo.insert_summary(**values)
        for insight in insights or []:
            insight_repo.insert_insight(owner_id=record.id, **insight)
        return record

    return _make


@pytest.fixture
def sample_group(make_summary):
    """A Conversation parent with an Agent and a VirtualAgent child."""
    parent = make_summary(
        SummaryType.CONVERSATION,
        summary_id="C1",
        insights=[
            {
                "type": "sentiment",
                "title": "Positive close",
                "description": "Customer thanked the agent",
            }
        ],
    )
    agent = make_summary(
        SummaryType.AGENT,
        summary_id="A1",
        conversation_id="C1",
        insights=[
            {
                "type": "resolution",
                "title": "Refund issued",
                "description": "Agent refunded the order",
                "outcome": "resolved",
            }
        ],
    )
    virtual = make_summary(
        SummaryType.VIRTUAL_AGENT, summary_id="V1", conversation_id="C1"
    )
    return parent, agent, virtual


@pytest.fixture
def make_entity():
    """Factory for ingestion entities as an external caller would send them."""

    def _make(**overrides) -> dict:
        entity = {
            "summaryType": "Conversation",
            "mediaType": "chat",
            "language": "en",
            "summaryId": "C1",
            "agentId": "",
            "sourceId": "source-1",
            "summary": "Customer asked about a late delivery",
            "generated": True,
            "dateCreated": "2025-01-01T10:00:00",
        }
        entity.update(overrides)
        return entity

    return _make
