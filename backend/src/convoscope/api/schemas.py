"""
API schemas for Convoscope.

Pydantic models for request/response validation. Ingestion payloads use the
camelCase field names external callers send; dashboard responses use
snake_case like the rest of the API.
"""

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from convoscope.models.db import (
    ID_MAX_LENGTH,
    INSIGHT_TITLE_MAX_LENGTH,
    INSIGHT_TYPE_MAX_LENGTH,
    LANGUAGE_MAX_LENGTH,
    MEDIA_TYPE_MAX_LENGTH,
    SummaryType,
)

# ===== Ingestion Schemas =====


class InsightPayload(BaseModel):
    """Insight as submitted alongside a summary."""

    type: str = Field(max_length=INSIGHT_TYPE_MAX_LENGTH)
    title: str = Field(max_length=INSIGHT_TITLE_MAX_LENGTH)
    description: str
    outcome: Optional[str] = None


class SummaryEntity(BaseModel):
    """One summary in an ingestion batch."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    summary_type: SummaryType
    media_type: str = Field(max_length=MEDIA_TYPE_MAX_LENGTH)
    language: str = Field(max_length=LANGUAGE_MAX_LENGTH)
    summary_id: str = Field(max_length=ID_MAX_LENGTH)
    agent_id: Optional[str] = Field(default=None, max_length=ID_MAX_LENGTH)
    source_id: str = Field(max_length=ID_MAX_LENGTH)
    summary: str
    generated: bool
    date_created: datetime
    conversation_id: Optional[str] = Field(default=None, max_length=ID_MAX_LENGTH)
    # Structured list or a JSON-encoded string of the same list
    insights: Union[list[InsightPayload], str, None] = None


class IngestionRequest(BaseModel):
    """Request body for POST /api/conversations."""

    entities: list[SummaryEntity]


class InsertedSummary(BaseModel):
    """Store id assigned to one ingested entity."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: int
    summary_id: str


class IngestionResponse(BaseModel):
    """Successful ingestion result."""

    success: bool = True
    inserted: int
    conversations: list[InsertedSummary] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """Error body returned by the ingestion endpoint."""

    error: str
    details: Optional[str] = None


# ===== Dashboard Schemas =====


class InsightResponse(BaseModel):
    """Response schema for Insight."""

    id: int
    type: str
    title: str
    description: str
    outcome: Optional[str] = None

    class Config:
        from_attributes = True


class SummaryListItem(BaseModel):
    """Summary as shown on the dashboard, with its insight count."""

    id: int
    summary_type: SummaryType
    media_type: str
    language: str
    summary_id: str
    agent_id: Optional[str] = None
    source_id: str
    summary: str
    generated: bool
    date_created: datetime
    conversation_id: Optional[str] = None
    created_at: datetime
    insight_count: int = 0

    class Config:
        from_attributes = True


class GroupResponse(BaseModel):
    """Parent conversation summary with its child summaries."""

    parent: SummaryListItem
    children: list[SummaryListItem] = Field(default_factory=list)


class SharedGroupResponse(BaseModel):
    """Summaries sharing a grouping key with no parent present."""

    conversation_id: str
    members: list[SummaryListItem]


class SummaryCounts(BaseModel):
    """Aggregate counts over all stored summaries."""

    total: int = 0
    agent: int = 0
    virtual_agent: int = 0
    conversation: int = 0


class DashboardResponse(BaseModel):
    """Grouped dashboard view."""

    groups: list[GroupResponse] = Field(default_factory=list)
    shared_groups: list[SharedGroupResponse] = Field(default_factory=list)
    standalone: list[SummaryListItem] = Field(default_factory=list)
    counts: SummaryCounts = Field(default_factory=SummaryCounts)


class SummaryDetail(SummaryListItem):
    """Full summary with insights and its place in the hierarchy."""

    insights: list[InsightResponse] = Field(default_factory=list)
    children: list[SummaryListItem] = Field(default_factory=list)
    parent: Optional[SummaryListItem] = None


# ===== Deletion Schemas =====


class DeleteResponse(BaseModel):
    """Result of deleting one summary (and its group when it is a parent)."""

    success: bool
    deleted: int = 0
    error: Optional[str] = None


class BatchDeleteRequest(BaseModel):
    """Request body for deleting several summaries."""

    ids: list[int] = Field(..., min_length=1)


class BatchDeleteItem(BaseModel):
    """Outcome for one id of a batch delete."""

    id: int
    status: str  # deleted, not_found, error
    deleted: int = 0
    error: Optional[str] = None


class BatchDeleteResponse(BaseModel):
    """Result of a best-effort batch delete."""

    success: bool
    deleted: int
    results: list[BatchDeleteItem] = Field(default_factory=list)
    error: Optional[str] = None


# ===== Auth Schemas =====


class LoginRequest(BaseModel):
    """Dashboard login credentials."""

    username: str
    password: str


class SessionStatus(BaseModel):
    """Whether the caller holds a valid dashboard session."""

    authenticated: bool
    expires_at: Optional[datetime] = None
