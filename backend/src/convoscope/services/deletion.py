"""
Cascade deletion of conversation summaries.

Deleting a Conversation summary (a structural parent) removes every summary
whose conversation_id equals the parent's summary_id or the parent's own
grouping key, then the parent.
Deleting any other summary removes just that record. Insights always go with
their summary.

Each target is committed independently so one failing id in a batch does not
undo the others.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from convoscope.db.repositories import SummaryRepository
from convoscope.models.db import SummaryType
from convoscope.services.grouping import child_keys

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "Summary not found"


@dataclass
class DeletionOutcome:
    """Result of deleting one target."""

    id: int
    status: str  # deleted, not_found, error
    deleted: int = 0  # Records removed, children included
    error_message: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == "deleted"


@dataclass
class BatchDeletionOutcome:
    """Result of a best-effort batch delete."""

    outcomes: list[DeletionOutcome] = field(default_factory=list)

    @property
    def deleted(self) -> int:
        """Number of targets deleted successfully."""
        return sum(1 for outcome in self.outcomes if outcome.success)

    @property
    def records_deleted(self) -> int:
        """Number of records removed across all targets, children included."""
        return sum(outcome.deleted for outcome in self.outcomes)


class DeletionService:
    """Deletes summaries, cascading to children of structural parents."""

    def __init__(self, session: Session):
        self.session = session
        self.summary_repo = SummaryRepository(session)

    def delete_one(self, record_id: int) -> DeletionOutcome:
        """
        Delete a summary and, when it is a structural parent, its group.

        Children are looked up by the parent's external summary_id (not its
        store id) and by its grouping key, matching the dashboard groups, and
        deleted first. If that step fails the parent is left in
        place and the failure is reported. Calling this again for an id that
        is already gone reports not_found.

        Args:
            record_id: Store id of the summary

        Returns:
            DeletionOutcome
        """
        record = self.summary_repo.find_summary(record_id)
        if record is None:
            logger.info(f"Delete requested for missing summary {record_id}")
            return DeletionOutcome(
                id=record_id, status="not_found", error_message=NOT_FOUND_MESSAGE
            )

        removed = 0
        try:
            if record.summary_type == SummaryType.CONVERSATION:
                removed += self.summary_repo.delete_by_conversation_id(
                    child_keys(record), exclude_id=record.id
                )
            self.summary_repo.delete_summary(record)
            removed += 1
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Failed to delete summary {record_id}: {e}", exc_info=True)
            return DeletionOutcome(id=record_id, status="error", error_message=str(e))

        logger.info(
            f"Deleted summary {record_id} ({removed} record(s) including children)"
        )
        return DeletionOutcome(id=record_id, status="deleted", deleted=removed)

    def delete_many(self, record_ids: Iterable[int]) -> BatchDeletionOutcome:
        """
        Delete several summaries one after another.

        A failure on one id does not stop the remaining ids.
        """
        batch = BatchDeletionOutcome()
        for record_id in record_ids:
            batch.outcomes.append(self.delete_one(record_id))
        return batch
