"""
Grouping of conversation summaries for the dashboard.

Turns a flat list of summaries into:

- groups: a ``Conversation`` summary (the structural parent) plus every other
  summary that shares its grouping key, children oldest first;
- shared groups: two or more summaries sharing a key with no parent present;
- standalone summaries: no key at all, or alone under their key.

The result is derived on every read and never stored. Functions here are
pure: same input, same output, no database access.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Generic, Iterable, Optional, Protocol, Sequence, TypeVar

from convoscope.models.db import SummaryType


class GroupableSummary(Protocol):
    """Attributes the grouping engine reads from a summary."""

    summary_type: SummaryType | str
    summary_id: str
    conversation_id: Optional[str]
    date_created: datetime


T = TypeVar("T", bound=GroupableSummary)


@dataclass
class Group(Generic[T]):
    """A structural parent and the summaries grouped under it."""

    key: str
    parent: T
    children: list[T] = field(default_factory=list)

    @property
    def members(self) -> list[T]:
        return [self.parent, *self.children]


@dataclass
class SharedGroup(Generic[T]):
    """Summaries that share a grouping key without a parent."""

    key: str
    members: list[T]

    @property
    def earliest(self) -> datetime:
        return min(member.date_created for member in self.members)


@dataclass
class SummaryCounts:
    """Counts over the whole record set."""

    total: int = 0
    agent: int = 0
    virtual_agent: int = 0
    conversation: int = 0


@dataclass
class DashboardGroups(Generic[T]):
    """Partition of a record set into groups, shared groups and standalones."""

    groups: list[Group[T]] = field(default_factory=list)
    shared_groups: list[SharedGroup[T]] = field(default_factory=list)
    standalone: list[T] = field(default_factory=list)
    counts: SummaryCounts = field(default_factory=SummaryCounts)

    def all_records(self) -> list[T]:
        """Every record in the partition, each exactly once."""
        records: list[T] = []
        for group in self.groups:
            records.extend(group.members)
        for shared in self.shared_groups:
            records.extend(shared.members)
        records.extend(self.standalone)
        return records


def _is_parent(record: GroupableSummary) -> bool:
    return record.summary_type == SummaryType.CONVERSATION


def grouping_key(record: GroupableSummary) -> Optional[str]:
    """
    Grouping key of a summary, or None when it belongs to no group.

    Children carry their parent's summary_id as conversation_id. A
    Conversation summary submitted without a conversation_id is keyed by its
    own summary_id so its children still find it.
    """
    if record.conversation_id and record.conversation_id.strip():
        return record.conversation_id
    if _is_parent(record) and record.summary_id:
        return record.summary_id
    return None


def child_keys(record: GroupableSummary) -> list[str]:
    """
    Keys a structural parent's children may carry as conversation_id.

    The parent's own summary_id, plus its grouping key when the parent was
    submitted with a conversation_id of its own.
    """
    keys = [record.summary_id]
    key = grouping_key(record)
    if key is not None and key not in keys:
        keys.append(key)
    return keys


def _by_date(record: GroupableSummary) -> datetime:
    return record.date_created


def count_summaries(records: Iterable[GroupableSummary]) -> SummaryCounts:
    """Total and per-type counts."""
    counts = SummaryCounts()
    for record in records:
        counts.total += 1
        if record.summary_type == SummaryType.AGENT:
            counts.agent += 1
        elif record.summary_type == SummaryType.VIRTUAL_AGENT:
            counts.virtual_agent += 1
        elif record.summary_type == SummaryType.CONVERSATION:
            counts.conversation += 1
    return counts


def group_summaries(records: Sequence[T]) -> DashboardGroups[T]:
    """
    Partition summaries into groups, shared groups and standalones.

    Args:
        records: Summaries in the order they should be considered. When a
            key has more than one Conversation summary (not rejected at
            ingestion), the first one in this order becomes the parent and
            the others are treated as ordinary children.

    Returns:
        DashboardGroups with groups sorted by parent date_created (newest
        first), shared groups by their earliest member (newest first), and
        standalones newest first. Children and shared members are sorted
        oldest first; equal timestamps keep input order.
    """
    buckets: dict[str, list[T]] = {}
    standalone: list[T] = []

    for record in records:
        key = grouping_key(record)
        if key is None:
            standalone.append(record)
        else:
            buckets.setdefault(key, []).append(record)

    groups: list[Group[T]] = []
    shared_groups: list[SharedGroup[T]] = []

    for key, bucket in buckets.items():
        parent = next((record for record in bucket if _is_parent(record)), None)
        if parent is not None:
            children = [record for record in bucket if record is not parent]
            groups.append(
                Group(key=key, parent=parent, children=sorted(children, key=_by_date))
            )
        elif len(bucket) > 1:
            shared_groups.append(
                SharedGroup(key=key, members=sorted(bucket, key=_by_date))
            )
        else:
            standalone.append(bucket[0])

    groups.sort(key=lambda group: group.parent.date_created, reverse=True)
    shared_groups.sort(key=lambda shared: shared.earliest, reverse=True)
    standalone.sort(key=_by_date, reverse=True)

    return DashboardGroups(
        groups=groups,
        shared_groups=shared_groups,
        standalone=standalone,
        counts=count_summaries(records),
    )


def filter_groups(
    grouped: DashboardGroups[T], predicate: Callable[[T], bool]
) -> DashboardGroups[T]:
    """
    Narrow a grouped view for display without breaking groups apart.

    A group is kept whole when its parent or any child matches, a shared
    group when any member matches, a standalone when it matches. Counts are
    carried over unchanged so they keep describing the full record set.
    """
    return DashboardGroups(
        groups=[
            group
            for group in grouped.groups
            if any(predicate(member) for member in group.members)
        ],
        shared_groups=[
            shared
            for shared in grouped.shared_groups
            if any(predicate(member) for member in shared.members)
        ],
        standalone=[record for record in grouped.standalone if predicate(record)],
        counts=grouped.counts,
    )
