"""Boundary Protocols — contracts between core and shell.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - All IO operations accessed through Protocol types
    - Implementations provided by shell via dependency injection

Design Decisions:
    - Protocol over ABC: structural subtyping, no inheritance hierarchy
    - Async in Protocol: boundary methods are async because implementations do IO,
      but the core engines that produce the records are never async themselves
"""

from typing import Iterable, Protocol

from channel_bookmarks.core.bookmark_record import BookmarkRecord
from channel_bookmarks.core.domain_types import (
    BookmarkEventType,
    BookmarkId,
    ChannelId,
    Millis,
)


class BookmarkRepository(Protocol):
    """Contract for channel bookmark persistence — implemented by shell."""
    async def get(self, bookmark_id: BookmarkId) -> BookmarkRecord | None: ...
    async def lock_channel(self, channel_id: ChannelId) -> list[BookmarkRecord]: ...
    async def insert(self, record: BookmarkRecord) -> None: ...
    async def save(self, records: Iterable[BookmarkRecord]) -> None: ...
    async def changed_since(
        self, channel_ids: Iterable[ChannelId], since: Millis,
    ) -> list[BookmarkRecord]: ...
    async def commit(self) -> None: ...
    async def rollback(self) -> None: ...


class BookmarkEventNotifier(Protocol):
    """Contract for post-commit change notification — implemented by shell."""
    async def publish(
        self,
        event_type: BookmarkEventType,
        channel_id: ChannelId,
        payload: dict,
        connection_id: str | None = None,
    ) -> None: ...
