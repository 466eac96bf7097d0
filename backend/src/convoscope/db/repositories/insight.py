"""Repository for insights attached to conversation summaries."""

from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from convoscope.db.repositories.base import BaseRepository
from convoscope.models.db import Insight


class InsightRepository(BaseRepository[Insight]):
    """Repository for Insight model.

    Insights have no lifecycle of their own: they are written right after
    their owning summary and removed with it.
    """

    def __init__(self, session: Session):
        super().__init__(Insight, session)

    def insert_insight(
        self,
        owner_id: int,
        type: str,
        title: str,
        description: str,
        outcome: Optional[str] = None,
    ) -> Insight:
        """Attach a new insight to the summary with store id ``owner_id``."""
        return self.create(
            owner_record_id=owner_id,
            type=type,
            title=title,
            description=description,
            outcome=outcome,
        )

    def list_for_summary(self, owner_id: int) -> List[Insight]:
        """Insights of one summary in insertion order."""
        stmt = (
            select(Insight)
            .where(Insight.owner_record_id == owner_id)
            .order_by(Insight.id.asc())
        )
        return list(self.session.execute(stmt).scalars().all())

    def count_for_summary(self, owner_id: int) -> int:
        return self.session.execute(
            select(func.count(Insight.id)).where(Insight.owner_record_id == owner_id)
        ).scalar_one()
