"""
Tests for repository classes.
"""

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from convoscope.db.repositories import InsightRepository, SummaryRepository
from convoscope.models.db import Insight, SummaryType


class TestSummaryRepository:
    """Tests for SummaryRepository."""

    def test_insert_assigns_id(self, db_session: Session):
        repo = SummaryRepository(db_session)

        record = repo.insert_summary(
            summary_type=SummaryType.CONVERSATION,
            media_type="voice",
            language="fr",
            summary_id="C1",
            agent_id=None,
            source_id="ivr",
            summary="Caller wanted a refund",
            generated=False,
            date_created=datetime(2025, 2, 1, 8, 30),
        )

        assert record.id is not None
        fetched = repo.find_summary(record.id)
        assert fetched is record
        assert fetched.summary_type == SummaryType.CONVERSATION
        assert fetched.conversation_id is None
        assert fetched.generated is False

    def test_find_missing_returns_none(self, db_session: Session):
        assert SummaryRepository(db_session).find_summary(99999) is None

    def test_list_orders_by_date(self, db_session: Session, make_summary):
        late = make_summary(date_created=datetime(2025, 1, 3))
        early = make_summary(date_created=datetime(2025, 1, 1))
        middle = make_summary(date_created=datetime(2025, 1, 2))
        repo = SummaryRepository(db_session)

        newest_first = [record.id for record, _ in repo.list_summaries()]
        oldest_first = [
            record.id for record, _ in repo.list_summaries(descending=False)
        ]

        assert newest_first == [late.id, middle.id, early.id]
        assert oldest_first == [early.id, middle.id, late.id]

    def test_list_equal_dates_fall_back_to_id(self, db_session: Session, make_summary):
        same = datetime(2025, 1, 1)
        first = make_summary(date_created=same)
        second = make_summary(date_created=same)
        repo = SummaryRepository(db_session)

        ids = [record.id for record, _ in repo.list_summaries(descending=False)]

        assert ids == [first.id, second.id]

    def test_list_includes_insight_counts(
        self, db_session: Session, sample_group
    ):
        parent, agent, virtual = sample_group

        counts = {
            record.id: count
            for record, count in SummaryRepository(db_session).list_summaries()
        }

        assert counts == {parent.id: 1, agent.id: 1, virtual.id: 0}

    def test_list_filters(self, db_session: Session, make_summary):
        make_summary(SummaryType.CONVERSATION, media_type="Voice", language="EN")
        make_summary(SummaryType.AGENT, conversation_id="X", media_type="chat")
        make_summary(SummaryType.AGENT, conversation_id="X", language="de")
        repo = SummaryRepository(db_session)

        assert len(repo.list_summaries(summary_type=SummaryType.AGENT)) == 2
        assert len(repo.list_summaries(media_type="voice")) == 1
        assert len(repo.list_summaries(language="en")) == 2
        assert len(repo.list_summaries(summary_type=SummaryType.AGENT, language="DE")) == 1

    def test_list_children_of(self, db_session: Session, sample_group, make_summary):
        parent, agent, virtual = sample_group
        make_summary(SummaryType.AGENT, conversation_id="other")
        duplicate = make_summary(
            SummaryType.CONVERSATION, summary_id="C1", conversation_id="C1"
        )
        repo = SummaryRepository(db_session)

        children = repo.list_children_of("C1")
        everything = repo.list_children_of("C1", exclude_type=None)

        assert [child.id for child in children] == [agent.id, virtual.id]
        assert [record.id for record in everything] == [
            agent.id,
            virtual.id,
            duplicate.id,
        ]

    def test_find_parent_of(self, db_session: Session, sample_group, make_summary):
        parent, agent, _virtual = sample_group
        orphan = make_summary(SummaryType.AGENT, conversation_id="nobody")
        repo = SummaryRepository(db_session)

        assert repo.find_parent_of(agent).id == parent.id
        assert repo.find_parent_of(orphan) is None
        assert repo.find_parent_of(parent) is None

    def test_list_children_of_several_keys(
        self, db_session: Session, make_summary
    ):
        parent = make_summary(
            SummaryType.CONVERSATION, summary_id="S-CONV", conversation_id="CONV-1"
        )
        grouped = make_summary(SummaryType.AGENT, conversation_id="CONV-1")
        by_summary_id = make_summary(SummaryType.AGENT, conversation_id="S-CONV")
        make_summary(SummaryType.AGENT, conversation_id="CONV-2")
        repo = SummaryRepository(db_session)

        children = repo.list_children_of(
            ["S-CONV", "CONV-1"], exclude_type=None, exclude_id=parent.id
        )

        assert [child.id for child in children] == [grouped.id, by_summary_id.id]

    def test_find_parent_by_parent_conversation_id(
        self, db_session: Session, make_summary
    ):
        parent = make_summary(
            SummaryType.CONVERSATION, summary_id="S-CONV", conversation_id="CONV-1"
        )
        child = make_summary(SummaryType.AGENT, conversation_id="CONV-1")
        repo = SummaryRepository(db_session)

        assert repo.find_parent_of(child).id == parent.id
        assert repo.find_parent_of(parent) is None

    def test_delete_summary_removes_insights(
        self, db_session: Session, sample_group
    ):
        parent, _agent, _virtual = sample_group
        parent_id = parent.id
        repo = SummaryRepository(db_session)

        repo.delete_summary(parent)

        assert repo.find_summary(parent_id) is None
        remaining = db_session.execute(
            select(Insight).where(Insight.owner_record_id == parent_id)
        ).scalars().all()
        assert remaining == []

    def test_delete_by_conversation_id(
        self, db_session: Session, sample_group, make_summary
    ):
        parent, _agent, _virtual = sample_group
        bystander = make_summary(SummaryType.AGENT, conversation_id="C2")
        repo = SummaryRepository(db_session)

        removed = repo.delete_by_conversation_id("C1", exclude_id=parent.id)

        assert removed == 2
        assert repo.list_children_of("C1") == []
        assert repo.find_summary(parent.id) is not None
        assert repo.find_summary(bystander.id) is not None
        assert InsightRepository(db_session).count() == 1

    def test_delete_by_conversation_id_no_matches(self, db_session: Session):
        assert SummaryRepository(db_session).delete_by_conversation_id("nope") == 0

    def test_count_by_type(self, db_session: Session, sample_group, make_summary):
        make_summary(SummaryType.AGENT, conversation_id="C1")

        counts = SummaryRepository(db_session).count_by_type()

        assert counts == {"Agent": 2, "VirtualAgent": 1, "Conversation": 1}

    def test_count_by_type_empty(self, db_session: Session):
        counts = SummaryRepository(db_session).count_by_type()

        assert counts == {"Agent": 0, "VirtualAgent": 0, "Conversation": 0}


class TestInsightRepository:
    """Tests for InsightRepository."""

    def test_insert_and_list(self, db_session: Session, make_summary):
        owner = make_summary(SummaryType.CONVERSATION)
        repo = InsightRepository(db_session)

        first = repo.insert_insight(
            owner_id=owner.id,
            type="sentiment",
            title="Frustrated",
            description="Customer repeated the question",
        )
        second = repo.insert_insight(
            owner_id=owner.id,
            type="resolution",
            title="Escalated",
            description="Handed to tier 2",
            outcome="pending",
        )

        insights = repo.list_for_summary(owner.id)

        assert [insight.id for insight in insights] == [first.id, second.id]
        assert insights[0].outcome is None
        assert insights[1].outcome == "pending"
        assert repo.count_for_summary(owner.id) == 2

    def test_insights_loaded_through_relationship(
        self, db_session: Session, sample_group
    ):
        parent, _agent, _virtual = sample_group
        db_session.expire(parent)

        assert [insight.title for insight in parent.insights] == ["Positive close"]
        assert parent.insights[0].owner is parent

    def test_count_for_summary_without_insights(self, db_session: Session, sample_group):
        _parent, _agent, virtual = sample_group

        assert InsightRepository(db_session).count_for_summary(virtual.id) == 0
