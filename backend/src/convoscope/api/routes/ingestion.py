"""
Ingestion API routes.

Endpoint for external systems pushing conversation summaries and insights.
"""

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from convoscope.api.auth import verify_api_key
from convoscope.api.schemas import (
    ErrorResponse,
    IngestionResponse,
    InsertedSummary,
)
from convoscope.db.connection import get_db
from convoscope.exceptions import BatchValidationError
from convoscope.services.ingestion import INVALID_FORMAT_MESSAGE, IngestionService

logger = logging.getLogger(__name__)

router = APIRouter()


def _error(status_code: int, message: str, details: Optional[str] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message, details=details).model_dump(
            exclude_none=True
        ),
    )


@router.post(
    "/api/conversations",
    response_model=IngestionResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid batch"},
        401: {"model": ErrorResponse, "description": "Missing or wrong API key"},
        500: {"model": ErrorResponse, "description": "Unexpected failure"},
    },
    summary="Ingest a batch of conversation summaries",
)
async def ingest_conversations(
    request: Request,
    x_api_key: Optional[str] = Header(None, alias="x-api-key"),
    session: Session = Depends(get_db),
):
    """
    Ingest summaries with their insights.

    The body is ``{ "entities": [...] }``. Agent and VirtualAgent entities
    must carry a conversationId; if any does not, the whole batch is rejected
    and nothing is stored.
    """
    if not verify_api_key(x_api_key):
        return _error(status.HTTP_401_UNAUTHORIZED, "Unauthorized")

    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return _error(status.HTTP_400_BAD_REQUEST, INVALID_FORMAT_MESSAGE)

    service = IngestionService(session)
    try:
        batch = service.parse_request(payload)
        result = service.ingest_batch(batch)
        session.commit()
    except BatchValidationError as e:
        logger.warning(f"Rejected ingestion batch: {e}")
        return _error(status.HTTP_400_BAD_REQUEST, str(e))
    except Exception as e:
        session.rollback()
        logger.error(f"Ingestion failed: {e}", exc_info=True)
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", str(e)
        )

    response = IngestionResponse(
        inserted=result.inserted,
        conversations=[
            InsertedSummary(id=item.id, summary_id=item.summary_id)
            for item in result.summaries
        ],
    )
    return JSONResponse(content=response.model_dump(mode="json", by_alias=True))
