"""Bookmark Repository — SQLAlchemy persistence for channel bookmark records.

Invariants:
    - Reads return core BookmarkRecord objects, never ORM rows
    - lock_channel() takes row locks on the channel's active rows (FOR UPDATE) where the
      dialect supports them, bounded by lock_timeout_ms on PostgreSQL
    - Writes are staged on the session; nothing is visible until commit()
    - changed_since() evaluates the sync watermark predicate in SQL

Design Decisions:
    - populate_existing on every read: a row seen earlier in the same session must not
      mask a concurrent writer's committed change
    - Lock-timeout driver errors (PostgreSQL 55P03, SQLite "database is locked") surface as
      LockTimeoutError so callers see one retryable error kind
"""

import logging
from typing import Iterable

from sqlalchemy import select, or_, text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from channel_bookmarks.core.bookmark_record import BookmarkRecord
from channel_bookmarks.core.domain_types import (
    BookmarkId,
    ChannelId,
    FULL_SNAPSHOT,
    Millis,
)
from channel_bookmarks.core.errors import LockTimeoutError
from channel_bookmarks.models.channel_bookmark import ChannelBookmark

logger = logging.getLogger(__name__)

_LOCK_NOT_AVAILABLE = "55P03"


def _is_lock_timeout(exc: DBAPIError) -> bool:
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code == _LOCK_NOT_AVAILABLE:
        return True
    message = str(orig).lower()
    return "lock timeout" in message or "database is locked" in message


class SqlBookmarkRepository:
    """Channel bookmark persistence over one AsyncSession (one unit of work)."""

    def __init__(self, db: AsyncSession, lock_timeout_ms: int | None = None):
        self.db = db
        self.lock_timeout_ms = lock_timeout_ms

    @property
    def _dialect(self) -> str:
        return self.db.get_bind().dialect.name

    async def get(self, bookmark_id: BookmarkId) -> BookmarkRecord | None:
        result = await self.db.execute(
            select(ChannelBookmark)
            .where(ChannelBookmark.id == bookmark_id)
            .execution_options(populate_existing=True),
        )
        row = result.scalar_one_or_none()
        return row.to_record() if row else None

    async def lock_channel(self, channel_id: ChannelId) -> list[BookmarkRecord]:
        """Lock and return the channel's active rows, ordered by sort_order."""
        if self._dialect == "postgresql" and self.lock_timeout_ms:
            await self.db.execute(
                text(f"SET LOCAL lock_timeout = '{int(self.lock_timeout_ms)}ms'"),
            )
        query = (
            select(ChannelBookmark)
            .where(ChannelBookmark.channel_id == channel_id)
            .where(ChannelBookmark.delete_at == 0)
            .order_by(ChannelBookmark.sort_order, ChannelBookmark.create_at)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        try:
            result = await self.db.execute(query)
        except DBAPIError as e:
            if _is_lock_timeout(e):
                timeout = (self.lock_timeout_ms or 0) / 1000
                raise LockTimeoutError(channel_id, timeout)
            raise
        return [row.to_record() for row in result.scalars().all()]

    async def insert(self, record: BookmarkRecord) -> None:
        self.db.add(ChannelBookmark.from_record(record))

    async def save(self, records: Iterable[BookmarkRecord]) -> None:
        """Upsert by id: existing rows take the record's columns, new ids are added."""
        for record in records:
            row = await self.db.get(ChannelBookmark, record.id)
            if row is None:
                self.db.add(ChannelBookmark.from_record(record))
            else:
                row.apply(record)

    async def changed_since(
        self, channel_ids: Iterable[ChannelId], since: Millis,
    ) -> list[BookmarkRecord]:
        channel_ids = list(channel_ids)
        if not channel_ids:
            return []
        query = select(ChannelBookmark).where(
            ChannelBookmark.channel_id.in_(channel_ids),
        )
        if since == FULL_SNAPSHOT:
            query = query.where(ChannelBookmark.delete_at == 0)
        else:
            query = query.where(or_(
                ChannelBookmark.create_at > since,
                ChannelBookmark.update_at > since,
                ChannelBookmark.delete_at > since,
            ))
        query = query.order_by(
            ChannelBookmark.channel_id,
            ChannelBookmark.sort_order,
            ChannelBookmark.create_at,
        ).execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return [row.to_record() for row in result.scalars().all()]

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()
