"""
Conversation summary repository.

Storage primitives for the summary table: insert, lookup, ordered listing
with insight counts, grouping-key queries and deletes. Deleting a summary
removes its insights through the ORM cascade and the FK's ON DELETE CASCADE.
"""

from typing import Any, List, Optional, Sequence, Tuple, Union

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from convoscope.db.repositories.base import BaseRepository
from convoscope.models.db import ConversationSummary, Insight, SummaryType

Keys = Union[str, Sequence[str]]


def _as_keys(keys: Keys) -> List[str]:
    return [keys] if isinstance(keys, str) else list(keys)


class SummaryRepository(BaseRepository[ConversationSummary]):
    """Repository for ConversationSummary model."""

    def __init__(self, session: Session):
        super().__init__(ConversationSummary, session)

    def insert_summary(self, **kwargs: Any) -> ConversationSummary:
        """
        Persist a new summary and return it with its store-assigned id.

        Args:
            **kwargs: ConversationSummary field values

        Returns:
            Created summary (flushed, id populated)
        """
        return self.create(**kwargs)

    def find_summary(self, id: int) -> Optional[ConversationSummary]:
        """Get a summary by store id, or None."""
        return self.get(id)

    def list_summaries(
        self,
        descending: bool = True,
        summary_type: Optional[str] = None,
        media_type: Optional[str] = None,
        language: Optional[str] = None,
    ) -> List[Tuple[ConversationSummary, int]]:
        """
        List summaries annotated with their insight counts.

        Args:
            descending: Order by date_created newest first (dashboard order)
                when True, oldest first when False. Ties fall back to id in
                the same direction.
            summary_type: Optional exact filter on summary type
            media_type: Optional case-insensitive filter on media type
            language: Optional case-insensitive filter on language

        Returns:
            List of (summary, insight_count) tuples
        """
        insight_count = func.count(Insight.id).label("insight_count")
        stmt = (
            select(ConversationSummary, insight_count)
            .outerjoin(Insight, Insight.owner_record_id == ConversationSummary.id)
            .group_by(ConversationSummary.id)
        )

        if summary_type:
            stmt = stmt.where(ConversationSummary.summary_type == summary_type)
        if media_type:
            stmt = stmt.where(
                func.lower(ConversationSummary.media_type) == media_type.lower()
            )
        if language:
            stmt = stmt.where(
                func.lower(ConversationSummary.language) == language.lower()
            )

        if descending:
            stmt = stmt.order_by(
                ConversationSummary.date_created.desc(), ConversationSummary.id.desc()
            )
        else:
            stmt = stmt.order_by(
                ConversationSummary.date_created.asc(), ConversationSummary.id.asc()
            )

        return [(row[0], row[1]) for row in self.session.execute(stmt).all()]

    def list_children_of(
        self,
        conversation_id: Keys,
        exclude_type: Optional[SummaryType] = SummaryType.CONVERSATION,
        exclude_id: Optional[int] = None,
    ) -> List[ConversationSummary]:
        """
        Get records carrying any of the given grouping keys, oldest first.

        Args:
            conversation_id: Grouping key or keys (a parent's summary_id and
                its own grouping key)
            exclude_type: Summary type to leave out, normally the structural
                parent type. None keeps every type.
            exclude_id: Optional store id to leave out (the parent itself)

        Returns:
            Summaries ordered by date_created ascending
        """
        stmt = select(ConversationSummary).where(
            ConversationSummary.conversation_id.in_(_as_keys(conversation_id))
        )
        if exclude_type is not None:
            stmt = stmt.where(ConversationSummary.summary_type != exclude_type)
        if exclude_id is not None:
            stmt = stmt.where(ConversationSummary.id != exclude_id)
        stmt = stmt.order_by(
            ConversationSummary.date_created.asc(), ConversationSummary.id.asc()
        )
        return list(self.session.execute(stmt).scalars().all())

    def find_parent_of(self, record: ConversationSummary) -> Optional[ConversationSummary]:
        """
        Get the structural parent a record points at through its grouping key.

        Returns the earliest other Conversation-typed record keyed by the
        record's conversation_id, either as its summary_id or as its own
        conversation_id, or None.
        """
        if not record.conversation_id:
            return None
        stmt = (
            select(ConversationSummary)
            .where(
                ConversationSummary.summary_type == SummaryType.CONVERSATION,
                or_(
                    ConversationSummary.summary_id == record.conversation_id,
                    ConversationSummary.conversation_id == record.conversation_id,
                ),
                ConversationSummary.id != record.id,
            )
            .order_by(
                ConversationSummary.date_created.asc(), ConversationSummary.id.asc()
            )
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def delete_summary(self, record: ConversationSummary) -> None:
        """Delete a summary; its insights go with it."""
        self.delete(record)

    def delete_by_conversation_id(
        self, conversation_id: Keys, exclude_id: Optional[int] = None
    ) -> int:
        """
        Delete every record carrying any of the given grouping keys.

        Rows are deleted through the ORM so insight cascades apply even on
        engines without foreign key enforcement.

        Args:
            conversation_id: Grouping key or keys to match
            exclude_id: Optional store id to spare (the parent itself)

        Returns:
            Number of records deleted
        """
        stmt = select(ConversationSummary).where(
            ConversationSummary.conversation_id.in_(_as_keys(conversation_id))
        )
        if exclude_id is not None:
            stmt = stmt.where(ConversationSummary.id != exclude_id)

        records = self.session.execute(stmt).scalars().all()
        for record in records:
            self.session.delete(record)
        self.session.flush()
        return len(records)

    def count_by_type(self) -> dict[str, int]:
        """Count summaries per summary type."""
        stmt = select(
            ConversationSummary.summary_type, func.count(ConversationSummary.id)
        ).group_by(ConversationSummary.summary_type)
        counts = {summary_type.value: 0 for summary_type in SummaryType}
        for summary_type, count in self.session.execute(stmt).all():
            key = summary_type.value if isinstance(summary_type, SummaryType) else summary_type
            counts[key] = count
        return counts
