"""
Module: insolvency_kernel.selectors.activity_selector
Responsibility: Read-only access to the activity log: keyset-paginated pages
    and the lazy, restartable history sequence built on top of them.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Newest first: ordering is (created_at DESC, seq DESC).  seq breaks
      ties between entries recorded at the same instant.
    - Keyset pagination: each page continues strictly after the last
      (created_at, seq) of the previous one, so concurrent appends never
      shift or duplicate entries already yielded.
    - Restartable: iterating an ActivityHistory again starts a fresh query
      from the newest entry.
"""

from collections.abc import Callable, Iterator
from datetime import datetime
from uuid import UUID

from sqlalchemy import and_, or_, select

from insolvency_kernel.domain.dtos import ActivityEntryInfo
from insolvency_kernel.models.activity_log import ActivityLogEntry
from insolvency_kernel.selectors.base import BaseSelector
from insolvency_kernel.selectors.dto_mapping import activity_to_dto, to_utc

# (created_at, seq) of the last entry already yielded
Cursor = tuple[datetime, int]

PageFetcher = Callable[[Cursor | None, int], list[ActivityEntryInfo]]

DEFAULT_PAGE_SIZE = 100


class ActivityHistory:
    """
    Lazy, restartable, unbounded sequence of activity log entries.

    Pages are fetched on demand through ``fetch_page(cursor, limit)``; no
    more than one page is held in memory.  Each ``iter()`` starts over.
    """

    def __init__(self, fetch_page: PageFetcher, page_size: int = DEFAULT_PAGE_SIZE):
        if page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {page_size}")
        self._fetch_page = fetch_page
        self.page_size = page_size

    def __iter__(self) -> Iterator[ActivityEntryInfo]:
        cursor: Cursor | None = None
        while True:
            page = self._fetch_page(cursor, self.page_size)
            yield from page
            if len(page) < self.page_size:
                return
            last = page[-1]
            cursor = (last.created_at, last.seq)

    def take(self, limit: int) -> list[ActivityEntryInfo]:
        """The newest ``limit`` entries."""
        entries: list[ActivityEntryInfo] = []
        if limit <= 0:
            return entries
        for entry in self:
            entries.append(entry)
            if len(entries) >= limit:
                break
        return entries


class ActivitySelector(BaseSelector):
    """Queries over the append-only activity log."""

    def page(
        self,
        case_id: UUID | None,
        since: datetime | None = None,
        after: Cursor | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> list[ActivityEntryInfo]:
        """
        One page of a case scope's history, newest first.

        Args:
            case_id: The case, or None for case-less entries.
            since: Only entries with created_at >= since.
            after: Cursor of the last entry of the previous page.
            limit: Maximum number of entries.
        """
        if case_id is None:
            stmt = select(ActivityLogEntry).where(ActivityLogEntry.case_id.is_(None))
        else:
            stmt = select(ActivityLogEntry).where(ActivityLogEntry.case_id == case_id)

        if since is not None:
            stmt = stmt.where(ActivityLogEntry.created_at >= to_utc(since))

        if after is not None:
            after_time, after_seq = after
            after_time = to_utc(after_time)
            stmt = stmt.where(
                or_(
                    ActivityLogEntry.created_at < after_time,
                    and_(
                        ActivityLogEntry.created_at == after_time,
                        ActivityLogEntry.seq < after_seq,
                    ),
                )
            )

        stmt = stmt.order_by(
            ActivityLogEntry.created_at.desc(),
            ActivityLogEntry.seq.desc(),
        ).limit(limit)

        return [activity_to_dto(e) for e in self.session.execute(stmt).scalars()]

    def history(
        self,
        case_id: UUID | None,
        since: datetime | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> ActivityHistory:
        """
        Lazy history bound to this selector's session.

        The session must stay open while the result is iterated.  Use
        ``CaseLedger.history`` for a history that opens its own sessions.
        """
        return ActivityHistory(
            lambda cursor, limit: self.page(case_id, since=since, after=cursor, limit=limit),
            page_size=page_size,
        )

    def entries_for_entity(self, entity_type: str, entity_id: UUID) -> list[ActivityEntryInfo]:
        """Every entry about one entity, oldest first."""
        stmt = (
            select(ActivityLogEntry)
            .where(
                ActivityLogEntry.entity_type == entity_type,
                ActivityLogEntry.entity_id == entity_id,
            )
            .order_by(ActivityLogEntry.created_at, ActivityLogEntry.seq)
        )
        return [activity_to_dto(e) for e in self.session.execute(stmt).scalars()]
