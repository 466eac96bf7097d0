"""
SQLAlchemy database models for Convoscope.

These models represent the database schema for storing conversation
summaries and the insights derived from them.
"""

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class SummaryType(str, enum.Enum):
    """Who or what a summary describes - determines its role in grouping."""

    AGENT = "Agent"  # Human agent's summary of their part of the interaction
    VIRTUAL_AGENT = "VirtualAgent"  # Bot/IVR summary
    CONVERSATION = "Conversation"  # Whole-conversation summary (structural parent)


# Summary types that must carry a grouping key
CHILD_SUMMARY_TYPES = frozenset({SummaryType.AGENT, SummaryType.VIRTUAL_AGENT})

# Column widths; the ingestion schemas enforce the same limits
ID_MAX_LENGTH = 255
MEDIA_TYPE_MAX_LENGTH = 50
LANGUAGE_MAX_LENGTH = 20
INSIGHT_TYPE_MAX_LENGTH = 50
INSIGHT_TITLE_MAX_LENGTH = 500


class ConversationSummary(Base):
    """A single conversation summary submitted through the ingestion API."""

    __tablename__ = "conversation_summaries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    summary_type: Mapped[SummaryType] = mapped_column(
        Enum(
            SummaryType,
            native_enum=False,
            length=32,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        index=True,
    )
    media_type: Mapped[str] = mapped_column(
        String(MEDIA_TYPE_MAX_LENGTH), nullable=False
    )  # 'call', 'email', 'message', ...
    language: Mapped[str] = mapped_column(
        String(LANGUAGE_MAX_LENGTH), nullable=False
    )

    # External identifiers supplied by the caller
    summary_id: Mapped[str] = mapped_column(
        String(ID_MAX_LENGTH), nullable=False, index=True
    )
    agent_id: Mapped[Optional[str]] = mapped_column(String(ID_MAX_LENGTH), nullable=True)
    source_id: Mapped[str] = mapped_column(String(ID_MAX_LENGTH), nullable=False)

    summary: Mapped[str] = mapped_column(Text, nullable=False)
    generated: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default="false"
    )
    date_created: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )

    # Grouping key: children carry their parent's summary_id here
    conversation_id: Mapped[Optional[str]] = mapped_column(
        String(ID_MAX_LENGTH), nullable=True, index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    insights: Mapped[list["Insight"]] = relationship(
        back_populates="owner",
        cascade="all, delete-orphan",
        order_by="Insight.id",
    )

    def __repr__(self) -> str:
        return (
            f"<ConversationSummary(id={self.id}, "
            f"summary_type={self.summary_type!r}, "
            f"summary_id={self.summary_id!r}, "
            f"conversation_id={self.conversation_id!r})>"
        )


class Insight(Base):
    """Insight (reason, resolution, action item, ...) attached to a summary."""

    __tablename__ = "insights"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_record_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("conversation_summaries.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type: Mapped[str] = mapped_column(
        String(INSIGHT_TYPE_MAX_LENGTH), nullable=False
    )  # 'reason', 'resolution', 'actionItem', ...
    title: Mapped[str] = mapped_column(
        String(INSIGHT_TITLE_MAX_LENGTH), nullable=False
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    outcome: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    owner: Mapped["ConversationSummary"] = relationship(back_populates="insights")

    def __repr__(self) -> str:
        return (
            f"<Insight(id={self.id}, owner_record_id={self.owner_record_id}, "
            f"type={self.type!r})>"
        )
