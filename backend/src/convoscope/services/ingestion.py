"""
Ingestion service for conversation summaries.

Accepts a batch of summary entities (one API call = one batch), validates
the whole batch before writing anything, normalizes each entity's insights
and persists summary then insights, in order.

Validation policy is strict: if any Agent or VirtualAgent entity lacks a
conversationId, the batch is rejected and nothing is written.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from pydantic import TypeAdapter, ValidationError
from sqlalchemy.orm import Session

from convoscope.api.schemas import IngestionRequest, InsightPayload, SummaryEntity
from convoscope.db.repositories import InsightRepository, SummaryRepository
from convoscope.exceptions import BatchValidationError
from convoscope.models.db import CHILD_SUMMARY_TYPES

logger = logging.getLogger(__name__)

_insight_list_adapter = TypeAdapter(list[InsightPayload])

INVALID_FORMAT_MESSAGE = "Invalid request format. Expected { entities: [...] }"


@dataclass
class IngestedSummary:
    """Store id assigned to one ingested entity."""

    id: int
    summary_id: str
    insights_inserted: int = 0


@dataclass
class IngestionResult:
    """Result of ingesting one batch."""

    summaries: list[IngestedSummary] = field(default_factory=list)

    @property
    def inserted(self) -> int:
        return len(self.summaries)


def _format_validation_error(error: ValidationError) -> str:
    """Condense a pydantic error into one line naming the failing fields."""
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"])
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


def normalize_insights(
    raw: list[InsightPayload] | str | None, summary_id: Optional[str] = None
) -> list[InsightPayload]:
    """
    Normalize an entity's insights to a list.

    Structured lists pass through. A string is decoded as JSON and validated;
    if that fails the problem is logged and the entity is stored without
    insights rather than rejected.

    Args:
        raw: Insights as received
        summary_id: External id of the owning entity, for log context

    Returns:
        List of insights (possibly empty)
    """
    if raw is None:
        return []
    if not isinstance(raw, str):
        return list(raw)

    if not raw.strip():
        return []

    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning(
            f"Could not decode insights for summary {summary_id}: {e}; "
            "storing without insights"
        )
        return []

    if decoded is None:
        return []

    try:
        return _insight_list_adapter.validate_python(decoded)
    except ValidationError as e:
        logger.warning(
            f"Decoded insights for summary {summary_id} are malformed "
            f"({_format_validation_error(e)}); storing without insights"
        )
        return []


class IngestionService:
    """
    Validates and persists batches of conversation summaries.

    All writes go through the given session; the caller owns the transaction
    (the API request scope commits on success and rolls back on failure, so
    a batch is stored all-or-nothing).
    """

    def __init__(self, session: Session):
        self.session = session
        self.summary_repo = SummaryRepository(session)
        self.insight_repo = InsightRepository(session)

    @staticmethod
    def parse_request(payload: Any) -> IngestionRequest:
        """
        Parse a raw JSON body into an IngestionRequest.

        Raises:
            BatchValidationError: If the body is not ``{entities: [...]}`` or
                any entity is malformed
        """
        if not isinstance(payload, dict) or not isinstance(
            payload.get("entities"), list
        ):
            raise BatchValidationError(INVALID_FORMAT_MESSAGE)

        try:
            return IngestionRequest.model_validate(payload)
        except ValidationError as e:
            raise BatchValidationError(
                f"Invalid entity data: {_format_validation_error(e)}"
            ) from e

    @staticmethod
    def validate_batch(entities: Sequence[SummaryEntity]) -> None:
        """
        Check linkage requirements for every entity before any write.

        Raises:
            BatchValidationError: On the first Agent/VirtualAgent entity
                without a conversationId
        """
        for index, entity in enumerate(entities):
            if entity.summary_type in CHILD_SUMMARY_TYPES and not (
                entity.conversation_id and entity.conversation_id.strip()
            ):
                raise BatchValidationError(
                    f"conversationId is required for summaryType "
                    f"'{entity.summary_type.value}'",
                    entity_index=index,
                    summary_id=entity.summary_id,
                )

    def ingest_batch(self, request: IngestionRequest) -> IngestionResult:
        """
        Validate and persist a batch.

        Args:
            request: Parsed ingestion request

        Returns:
            IngestionResult with the store id of every inserted summary

        Raises:
            BatchValidationError: If the batch fails validation (nothing written)
            SQLAlchemyError: Storage failures propagate untouched
        """
        self.validate_batch(request.entities)

        result = IngestionResult()
        for entity in request.entities:
            insights = normalize_insights(entity.insights, entity.summary_id)

            record = self.summary_repo.insert_summary(
                summary_type=entity.summary_type,
                media_type=entity.media_type,
                language=entity.language,
                summary_id=entity.summary_id,
                agent_id=entity.agent_id or None,
                source_id=entity.source_id,
                summary=entity.summary,
                generated=entity.generated,
                date_created=entity.date_created,
                conversation_id=(
                    entity.conversation_id.strip()
                    if entity.conversation_id and entity.conversation_id.strip()
                    else None
                ),
            )

            for insight in insights:
                self.insight_repo.insert_insight(
                    owner_id=record.id,
                    type=insight.type,
                    title=insight.title,
                    description=insight.description,
                    outcome=insight.outcome or None,
                )

            result.summaries.append(
                IngestedSummary(
                    id=record.id,
                    summary_id=record.summary_id,
                    insights_inserted=len(insights),
                )
            )

        logger.info(
            f"Ingested {result.inserted} summaries "
            f"({sum(s.insights_inserted for s in result.summaries)} insights)"
        )
        return result
