"""Bookmark Service — public facade for channel bookmark mutations and delta reads.

Invariants:
    - Every mutation runs inside the channel's exclusive section AND one DB transaction
    - Identifiers are checked before delegating: a bookmark outside the stated channel is
      NotFound, a tombstone is AlreadyDeleted
    - Fail closed: any error rolls back the transaction, nothing is written or published
    - The resulting active set of every mutation is checked for dense positions before
      commit; a violation rolls back with PositionInvariantError
    - Exactly one event per committed mutation, published after commit while the channel
      section is still held (per-channel event order == commit order)
    - Reads never take the channel section

Design Decisions:
    - Stored positions are repaired on every locked load: a channel whose active rows are
      not {0..n-1} is renumbered in the same transaction before the requested change
    - A no-op reorder writes nothing and publishes nothing
    - One `now` per mutation: the fork pair, a reorder batch and a delete's compaction all
      share a single timestamp
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Callable, Iterable, Mapping
from channel_bookmarks.core.bookmark_record import BookmarkDraft, BookmarkRecord
from channel_bookmarks.core.domain_types import (
    BookmarkEventType,
    BookmarkId,
    ChannelId,
    DEFAULT_MAX_BOOKMARKS_PER_CHANNEL,
    FULL_SNAPSHOT,
    Millis,
    UserId,
)
from channel_bookmarks.core.errors import (
    BookmarkLimitError,
    ErrorContext,
    PositionInvariantError,
    ResourceNotFoundError,
)
from channel_bookmarks.core.ordering import (
    is_dense,
    plan_compaction,
    plan_reorder,
    renumber,
    sort_active,
)
from channel_bookmarks.core.repository_protocols import (
    BookmarkEventNotifier,
    BookmarkRepository,
)
from channel_bookmarks.core.sync import group_changes, validate_since
from channel_bookmarks.core.versioning import ForkResult, fork, new_bookmark, tombstone
from channel_bookmarks.infrastructure.clock import MillisClock
from channel_bookmarks.services.bookmark_events import (
    created_payload,
    deleted_payload,
    sorted_payload,
    updated_payload,
)
from channel_bookmarks.services.channel_locks import ChannelLockRegistry

logger = logging.getLogger(__name__)


class BookmarkService:
    """Create/Update/Delete/Reorder and delta reads over one repository session."""

    def __init__(
        self,
        repository: BookmarkRepository,
        locks: ChannelLockRegistry,
        notifier: BookmarkEventNotifier,
        clock: Callable[[], Millis] | None = None,
        max_bookmarks_per_channel: int = DEFAULT_MAX_BOOKMARKS_PER_CHANNEL,
    ):
        self.repository = repository
        self.locks = locks
        self.notifier = notifier
        self.clock = clock or MillisClock()
        self.max_bookmarks_per_channel = max_bookmarks_per_channel

    # ─── Mutations ───────────────────────────────────────────────

    async def create(
        self, draft: BookmarkDraft, connection_id: str | None = None,
    ) -> BookmarkRecord:
        async with self.locks.hold(draft.channel_id):
            async with self._transaction():
                now = self.clock()
                active = await self._load_active(draft.channel_id, now)
                if len(active) >= self.max_bookmarks_per_channel:
                    raise BookmarkLimitError(
                        self.max_bookmarks_per_channel,
                        ErrorContext(channel_id=draft.channel_id),
                    )
                record = new_bookmark(draft, len(active), now)
                self._ensure_dense(draft.channel_id, [*active, record])
                await self.repository.insert(record)

            logger.info(
                "Bookmark created",
                extra={"channel_id": record.channel_id, "bookmark_id": str(record.id)},
            )
            await self._publish(
                BookmarkEventType.CREATED, record.channel_id,
                created_payload(record), connection_id,
            )
        return record

    async def update(
        self,
        bookmark_id: BookmarkId,
        patch: Mapping[str, Any],
        channel_id: ChannelId | None = None,
        acting_user_id: UserId | None = None,
        connection_id: str | None = None,
    ) -> ForkResult:
        current = await self._get_in_channel(bookmark_id, channel_id)

        async with self.locks.hold(current.channel_id):
            async with self._transaction():
                now = self.clock()
                active = await self._load_active(current.channel_id, now)
                predecessor = await self._locked_target(current, active)
                result = fork(predecessor, patch, now, acting_user_id)
                self._ensure_dense(current.channel_id, [
                    result.updated if r.id == predecessor.id else r for r in active
                ])
                await self.repository.save([result.deleted, result.updated])

            logger.info(
                "Bookmark forked",
                extra={
                    "channel_id": current.channel_id,
                    "bookmark_id": str(result.updated.id),
                },
            )
            await self._publish(
                BookmarkEventType.UPDATED, current.channel_id,
                updated_payload(result), connection_id,
            )
        return result

    async def delete(
        self,
        bookmark_id: BookmarkId,
        channel_id: ChannelId | None = None,
        connection_id: str | None = None,
    ) -> BookmarkRecord:
        current = await self._get_in_channel(bookmark_id, channel_id)

        async with self.locks.hold(current.channel_id):
            async with self._transaction():
                now = self.clock()
                active = await self._load_active(current.channel_id, now)
                target = await self._locked_target(current, active)
                deleted = tombstone(target, now)
                compaction = plan_compaction(active, deleted.id, now)
                self._ensure_dense(deleted.channel_id, compaction.ordered)
                await self.repository.save([deleted, *compaction.changed])

            logger.info(
                "Bookmark deleted",
                extra={
                    "channel_id": deleted.channel_id,
                    "bookmark_id": str(deleted.id),
                    "changed_rows": len(compaction.changed),
                },
            )
            await self._publish(
                BookmarkEventType.DELETED, deleted.channel_id,
                deleted_payload(deleted), connection_id,
            )
        return deleted

    async def reorder(
        self,
        bookmark_id: BookmarkId,
        channel_id: ChannelId,
        new_index: int,
        connection_id: str | None = None,
    ) -> list[BookmarkRecord]:
        async with self.locks.hold(channel_id):
            async with self._transaction():
                now = self.clock()
                active = await self._load_active(channel_id, now)
                plan = plan_reorder(active, bookmark_id, new_index, now)
                self._ensure_dense(channel_id, plan.ordered)
                await self.repository.save(plan.changed)

            if plan.is_noop:
                return plan.ordered

            logger.info(
                f"Bookmark moved to position {new_index}",
                extra={
                    "channel_id": channel_id,
                    "bookmark_id": str(bookmark_id),
                    "changed_rows": len(plan.changed),
                },
            )
            await self._publish(
                BookmarkEventType.SORTED, channel_id,
                sorted_payload(plan.ordered), connection_id,
            )
        return plan.ordered

    # ─── Reads ───────────────────────────────────────────────────

    async def get_for_channel(
        self, channel_id: ChannelId, since: Millis = FULL_SNAPSHOT,
    ) -> list[BookmarkRecord]:
        changes = await self.get_for_channels([channel_id], since)
        return changes.get(channel_id, [])

    async def get_for_channels(
        self, channel_ids: Iterable[ChannelId], since: Millis = FULL_SNAPSHOT,
    ) -> dict[ChannelId, list[BookmarkRecord]]:
        validate_since(since)
        channel_ids = list(dict.fromkeys(channel_ids))
        if not channel_ids:
            return {}
        records = await self.repository.changed_since(channel_ids, since)
        return group_changes(records, since, channel_ids)

    # ─── Helpers ─────────────────────────────────────────────────

    @asynccontextmanager
    async def _transaction(self):
        try:
            yield
            await self.repository.commit()
        except (Exception, asyncio.CancelledError):
            await self.repository.rollback()
            raise

    async def _get_in_channel(
        self, bookmark_id: BookmarkId, channel_id: ChannelId | None,
    ) -> BookmarkRecord:
        record = await self.repository.get(bookmark_id)
        if record is None or (channel_id is not None and record.channel_id != channel_id):
            raise ResourceNotFoundError(
                "Bookmark", str(bookmark_id),
                ErrorContext(channel_id=channel_id, bookmark_id=str(bookmark_id)),
            )
        return record

    async def _load_active(
        self, channel_id: ChannelId, now: Millis,
    ) -> list[BookmarkRecord]:
        """Lock the channel's active rows and repair their positions if needed."""
        plan = renumber(sort_active(await self.repository.lock_channel(channel_id)), now)
        if plan.changed:
            logger.warning(
                "Repaired non-dense bookmark positions",
                extra={"channel_id": channel_id, "changed_rows": len(plan.changed)},
            )
            await self.repository.save(plan.changed)
        return plan.ordered

    def _ensure_dense(
        self, channel_id: ChannelId, ordered: list[BookmarkRecord],
    ) -> None:
        """Refuse to commit a mutation whose active set is not exactly 0..n-1."""
        if not is_dense(ordered):
            positions = sorted(r.sort_order for r in ordered if r.is_active)
            logger.error(
                "Mutation would leave non-dense bookmark positions",
                extra={"channel_id": channel_id, "error_code": "POSITION_INVARIANT_VIOLATED"},
            )
            raise PositionInvariantError(channel_id, positions)

    async def _locked_target(
        self, current: BookmarkRecord, active: list[BookmarkRecord],
    ) -> BookmarkRecord:
        """Re-read the target under the channel lock.

        Tombstones are returned as-is so the versioning engine rejects them with
        AlreadyDeleted.
        """
        for record in active:
            if record.id == current.id:
                return record
        latest = await self.repository.get(current.id)
        if latest is None:
            raise ResourceNotFoundError(
                "Bookmark", str(current.id),
                ErrorContext(channel_id=current.channel_id, bookmark_id=str(current.id)),
            )
        return latest

    async def _publish(
        self,
        event_type: BookmarkEventType,
        channel_id: ChannelId,
        payload: dict,
        connection_id: str | None,
    ) -> None:
        try:
            await self.notifier.publish(event_type, channel_id, payload, connection_id)
        except Exception as e:
            # Committed already; the push layer re-syncs from the delta query.
            logger.error(
                f"Failed to publish {event_type.value}: {e}",
                extra={"channel_id": channel_id, "event": event_type.value},
                exc_info=True,
            )
