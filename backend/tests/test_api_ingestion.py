"""
Tests for the ingestion API route.

Tests POST /api/conversations.
"""

import json
from unittest.mock import patch

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from convoscope.db.repositories import InsightRepository, SummaryRepository
from convoscope.models.db import (
    ID_MAX_LENGTH,
    INSIGHT_TITLE_MAX_LENGTH,
    LANGUAGE_MAX_LENGTH,
    MEDIA_TYPE_MAX_LENGTH,
    SummaryType,
)

URL = "/api/conversations"
HEADERS = {"x-api-key": "test-api-key"}

INSIGHT = {
    "type": "resolution",
    "title": "Refund issued",
    "description": "Agent refunded the order",
}


class TestIngestionAuth:
    """API key checks."""

    def test_missing_key_rejected(self, api_client: TestClient, make_entity):
        response = api_client.post(URL, json={"entities": [make_entity()]})

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    def test_wrong_key_rejected(
        self, api_client: TestClient, db_session: Session, make_entity
    ):
        response = api_client.post(
            URL,
            json={"entities": [make_entity()]},
            headers={"x-api-key": "not-the-key"},
        )

        assert response.status_code == 401
        assert SummaryRepository(db_session).count() == 0

    def test_auth_checked_before_body(self, api_client: TestClient):
        response = api_client.post(URL, content=b"garbage")

        assert response.status_code == 401


class TestIngestionValidation:
    """Batch shape and linkage validation."""

    def test_invalid_json(self, api_client: TestClient):
        response = api_client.post(
            URL,
            content=b"{not json",
            headers={**HEADERS, "content-type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == (
            "Invalid request format. Expected { entities: [...] }"
        )

    def test_missing_entities(self, api_client: TestClient):
        response = api_client.post(URL, json={"items": []}, headers=HEADERS)

        assert response.status_code == 400
        assert "Expected { entities: [...] }" in response.json()["error"]

    def test_invalid_entity(self, api_client: TestClient, make_entity):
        response = api_client.post(
            URL,
            json={"entities": [make_entity(summaryType="Supervisor")]},
            headers=HEADERS,
        )

        assert response.status_code == 400
        assert "Invalid entity data" in response.json()["error"]

    def test_oversized_insight_title_rejected(
        self, api_client: TestClient, db_session: Session, make_entity
    ):
        insight = {**INSIGHT, "title": "x" * (INSIGHT_TITLE_MAX_LENGTH + 1)}

        response = api_client.post(
            URL, json={"entities": [make_entity(insights=[insight])]}, headers=HEADERS
        )

        assert response.status_code == 400
        assert "Invalid entity data" in response.json()["error"]
        assert SummaryRepository(db_session).count() == 0

    def test_oversized_column_values_rejected(
        self, api_client: TestClient, db_session: Session, make_entity
    ):
        for field, limit in [
            ("mediaType", MEDIA_TYPE_MAX_LENGTH),
            ("language", LANGUAGE_MAX_LENGTH),
            ("summaryId", ID_MAX_LENGTH),
            ("conversationId", ID_MAX_LENGTH),
        ]:
            entity = make_entity(**{field: "x" * (limit + 1)})

            response = api_client.post(URL, json={"entities": [entity]}, headers=HEADERS)

            assert response.status_code == 400, field
            assert field in response.json()["error"]
        assert SummaryRepository(db_session).count() == 0

    def test_values_at_column_width_accepted(
        self, api_client: TestClient, make_entity
    ):
        insight = {**INSIGHT, "title": "x" * INSIGHT_TITLE_MAX_LENGTH}
        entity = make_entity(
            language="x" * LANGUAGE_MAX_LENGTH,
            summaryId="x" * ID_MAX_LENGTH,
            insights=[insight],
        )

        response = api_client.post(URL, json={"entities": [entity]}, headers=HEADERS)

        assert response.status_code == 200

    def test_agent_without_conversation_id_rejects_batch(
        self, api_client: TestClient, db_session: Session, make_entity
    ):
        response = api_client.post(
            URL,
            json={
                "entities": [
                    make_entity(insights=[INSIGHT]),
                    make_entity(summaryType="Agent", summaryId="A1"),
                ]
            },
            headers=HEADERS,
        )

        assert response.status_code == 400
        assert response.json()["error"] == (
            "Entity 1 (summaryId=A1): conversationId is required for "
            "summaryType 'Agent'"
        )
        assert SummaryRepository(db_session).count() == 0
        assert InsightRepository(db_session).count() == 0


class TestIngestionSuccess:
    """Successful ingestion."""

    def test_ingest_batch(
        self, api_client: TestClient, db_session: Session, make_entity
    ):
        response = api_client.post(
            URL,
            json={
                "entities": [
                    make_entity(insights=[INSIGHT]),
                    make_entity(
                        summaryType="VirtualAgent",
                        summaryId="V1",
                        conversationId="C1",
                        insights=json.dumps([INSIGHT, INSIGHT]),
                    ),
                ]
            },
            headers=HEADERS,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["inserted"] == 2
        assert [item["summaryId"] for item in data["conversations"]] == ["C1", "V1"]

        repo = SummaryRepository(db_session)
        parent_id, child_id = (item["id"] for item in data["conversations"])
        assert repo.find_summary(parent_id).summary_type == SummaryType.CONVERSATION
        assert repo.find_summary(child_id).conversation_id == "C1"
        insight_repo = InsightRepository(db_session)
        assert insight_repo.count_for_summary(parent_id) == 1
        assert insight_repo.count_for_summary(child_id) == 2

    def test_empty_batch(self, api_client: TestClient):
        response = api_client.post(URL, json={"entities": []}, headers=HEADERS)

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "inserted": 0,
            "conversations": [],
        }

    def test_bad_insights_string_still_stored(
        self, api_client: TestClient, db_session: Session, make_entity
    ):
        response = api_client.post(
            URL,
            json={"entities": [make_entity(insights="[{broken")]},
            headers=HEADERS,
        )

        assert response.status_code == 200
        record_id = response.json()["conversations"][0]["id"]
        assert InsightRepository(db_session).count_for_summary(record_id) == 0

    def test_storage_failure_returns_500(self, api_client: TestClient, make_entity):
        with patch(
            "convoscope.api.routes.ingestion.IngestionService.ingest_batch",
            side_effect=RuntimeError("disk full"),
        ):
            response = api_client.post(
                URL, json={"entities": [make_entity()]}, headers=HEADERS
            )

        assert response.status_code == 500
        assert response.json() == {
            "error": "Internal server error",
            "details": "disk full",
        }
