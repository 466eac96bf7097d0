"""
Dashboard summary API routes.

Endpoints for the grouped dashboard view, summary details and cascade
deletion. All endpoints require a dashboard session.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from convoscope.api.auth import DashboardSession, require_session
from convoscope.api.schemas import (
    BatchDeleteItem,
    BatchDeleteRequest,
    BatchDeleteResponse,
    DashboardResponse,
    DeleteResponse,
    GroupResponse,
    InsightResponse,
    SharedGroupResponse,
    SummaryCounts,
    SummaryDetail,
    SummaryListItem,
)
from convoscope.db.connection import get_db
from convoscope.db.repositories import InsightRepository, SummaryRepository
from convoscope.models.db import ConversationSummary, SummaryType
from convoscope.services.deletion import DeletionService
from convoscope.services.grouping import (
    DashboardGroups,
    child_keys,
    filter_groups,
    group_summaries,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _to_list_item(
    record: ConversationSummary, insight_count: Optional[int] = None
) -> SummaryListItem:
    """Convert a ConversationSummary to its dashboard schema."""
    item = SummaryListItem.model_validate(record)
    if insight_count is not None:
        item.insight_count = insight_count
    else:
        item.insight_count = len(record.insights) if record.insights else 0
    return item


def _matches(
    item: SummaryListItem,
    summary_type: Optional[SummaryType],
    media_type: Optional[str],
    language: Optional[str],
) -> bool:
    if summary_type is not None and item.summary_type != summary_type:
        return False
    if media_type and item.media_type.lower() != media_type.lower():
        return False
    if language and item.language.lower() != language.lower():
        return False
    return True


def _to_dashboard_response(
    grouped: DashboardGroups[SummaryListItem],
) -> DashboardResponse:
    return DashboardResponse(
        groups=[
            GroupResponse(parent=group.parent, children=group.children)
            for group in grouped.groups
        ],
        shared_groups=[
            SharedGroupResponse(conversation_id=shared.key, members=shared.members)
            for shared in grouped.shared_groups
        ],
        standalone=grouped.standalone,
        counts=SummaryCounts(
            total=grouped.counts.total,
            agent=grouped.counts.agent,
            virtual_agent=grouped.counts.virtual_agent,
            conversation=grouped.counts.conversation,
        ),
    )


@router.get("", response_model=DashboardResponse)
async def get_dashboard(
    summary_type: Optional[SummaryType] = Query(
        None, description="Show only groups/summaries involving this type"
    ),
    media_type: Optional[str] = Query(None, description="Filter by media type"),
    language: Optional[str] = Query(None, description="Filter by language"),
    _auth: DashboardSession = Depends(require_session),
    session: Session = Depends(get_db),
) -> DashboardResponse:
    """
    Get the grouped dashboard view.

    Groups are recomputed from all stored summaries on every request. Filters
    narrow what is shown but never split a group; counts always cover every
    stored summary.
    """
    repo = SummaryRepository(session)

    # Oldest first so that, for duplicate parents, the earliest one wins
    rows = repo.list_summaries(descending=False)
    items = [_to_list_item(record, count) for record, count in rows]

    grouped = group_summaries(items)
    if summary_type is not None or media_type or language:
        grouped = filter_groups(
            grouped,
            lambda item: _matches(item, summary_type, media_type, language),
        )

    return _to_dashboard_response(grouped)


@router.get("/stats", response_model=SummaryCounts)
async def get_summary_stats(
    _auth: DashboardSession = Depends(require_session),
    session: Session = Depends(get_db),
) -> SummaryCounts:
    """Get total and per-type summary counts."""
    by_type = SummaryRepository(session).count_by_type()
    return SummaryCounts(
        total=sum(by_type.values()),
        agent=by_type.get(SummaryType.AGENT.value, 0),
        virtual_agent=by_type.get(SummaryType.VIRTUAL_AGENT.value, 0),
        conversation=by_type.get(SummaryType.CONVERSATION.value, 0),
    )


@router.get("/{summary_id}", response_model=SummaryDetail)
async def get_summary(
    summary_id: int,
    _auth: DashboardSession = Depends(require_session),
    session: Session = Depends(get_db),
) -> SummaryDetail:
    """
    Get one summary with its insights.

    For a Conversation summary the children are included (oldest first);
    for a summary pointing at a parent, the parent is included.
    """
    repo = SummaryRepository(session)
    insight_repo = InsightRepository(session)

    record = repo.find_summary(summary_id)
    if not record:
        raise HTTPException(status_code=404, detail="Summary not found")

    insights = insight_repo.list_for_summary(record.id)
    detail = SummaryDetail.model_validate(
        {
            **_to_list_item(record, len(insights)).model_dump(),
            "insights": [InsightResponse.model_validate(i) for i in insights],
        }
    )

    if record.summary_type == SummaryType.CONVERSATION:
        detail.children = [
            _to_list_item(child, insight_repo.count_for_summary(child.id))
            for child in repo.list_children_of(
                child_keys(record), exclude_id=record.id
            )
        ]

    parent = repo.find_parent_of(record)
    if parent is not None:
        detail.parent = _to_list_item(parent, insight_repo.count_for_summary(parent.id))

    return detail


@router.delete("/{summary_id}", response_model=DeleteResponse)
async def delete_summary(
    summary_id: int,
    response: Response,
    _auth: DashboardSession = Depends(require_session),
    session: Session = Depends(get_db),
) -> DeleteResponse:
    """
    Delete a summary.

    Deleting a Conversation summary also deletes every summary grouped under
    it. Insights are always deleted with their summary.
    """
    outcome = DeletionService(session).delete_one(summary_id)

    if outcome.status == "not_found":
        response.status_code = status.HTTP_404_NOT_FOUND
    elif outcome.status == "error":
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    return DeleteResponse(
        success=outcome.success,
        deleted=outcome.deleted,
        error=outcome.error_message,
    )


@router.post("/delete", response_model=BatchDeleteResponse)
async def delete_summaries(
    request: BatchDeleteRequest,
    _auth: DashboardSession = Depends(require_session),
    session: Session = Depends(get_db),
) -> BatchDeleteResponse:
    """
    Delete several summaries, best effort.

    Each id is handled independently; ``deleted`` counts the ids that were
    deleted successfully.
    """
    batch = DeletionService(session).delete_many(request.ids)

    return BatchDeleteResponse(
        success=True,
        deleted=batch.deleted,
        results=[
            BatchDeleteItem(
                id=outcome.id,
                status=outcome.status,
                deleted=outcome.deleted,
                error=outcome.error_message,
            )
            for outcome in batch.outcomes
        ],
    )
