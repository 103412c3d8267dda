"""Channel Bookmark Routes — HTTP surface for create/update/delete/reorder and delta sync.

Invariants:
    - Routes hold no business logic: each builds a BookmarkService and delegates
    - Connection-Id header is forwarded to events so the originator can skip the echo
    - User-Id header (set by the upstream auth layer) becomes the acting user of a fork
      and the default owner of a new bookmark
    - Channel and user identifiers are trusted as pre-validated upstream

Design Decisions:
    - Service wiring in a dependency (get_bookmark_service): tests override it or swap the
      shared collaborators on app.state
    - Sort order sent as {"new_index": n} rather than a bare number: keeps the body
      extensible and validated like every other route
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from channel_bookmarks.config import get_settings
from channel_bookmarks.infrastructure.database import get_db
from channel_bookmarks.schemas.channel_bookmark import (
    BookmarkCreate,
    BookmarkPatch,
    BookmarkResponse,
    BookmarkSyncRequest,
    SortOrderUpdate,
    UpdateBookmarkResponse,
)
from channel_bookmarks.services.bookmark_repository import SqlBookmarkRepository
from channel_bookmarks.services.bookmark_service import BookmarkService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["bookmarks"])


def get_bookmark_service(
    request: Request, db: AsyncSession = Depends(get_db),
) -> BookmarkService:
    """Wire a per-request service onto the app-wide locks, notifier and clock."""
    settings = get_settings()
    state = request.app.state
    return BookmarkService(
        SqlBookmarkRepository(
            db, lock_timeout_ms=int(settings.channel_lock_timeout_seconds * 1000),
        ),
        locks=state.channel_locks,
        notifier=state.bookmark_notifier,
        clock=state.clock,
        max_bookmarks_per_channel=settings.max_bookmarks_per_channel,
    )


@router.get(
    "/channels/{channel_id}/bookmarks", response_model=list[BookmarkResponse],
)
async def list_channel_bookmarks(
    channel_id: str,
    bookmarks_since: int = Query(0),
    service: BookmarkService = Depends(get_bookmark_service),
):
    """Active bookmarks (since=0) or every row changed after the watermark."""
    records = await service.get_for_channel(channel_id, bookmarks_since)
    return [BookmarkResponse.from_record(r) for r in records]


@router.post(
    "/bookmarks/sync", response_model=dict[str, list[BookmarkResponse]],
)
async def sync_bookmarks(
    body: BookmarkSyncRequest,
    service: BookmarkService = Depends(get_bookmark_service),
):
    """Delta for many channels at once; channels without changes are omitted."""
    changes = await service.get_for_channels(body.channel_ids, body.since)
    return {
        channel_id: [BookmarkResponse.from_record(r) for r in records]
        for channel_id, records in changes.items()
    }


@router.post(
    "/channels/{channel_id}/bookmarks",
    response_model=BookmarkResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_bookmark(
    channel_id: str,
    body: BookmarkCreate,
    service: BookmarkService = Depends(get_bookmark_service),
    user_id: str | None = Header(None, alias="User-Id"),
    connection_id: str | None = Header(None, alias="Connection-Id"),
):
    """Append a bookmark to the channel."""
    record = await service.create(
        body.to_draft(channel_id, owner_id=user_id), connection_id=connection_id,
    )
    return BookmarkResponse.from_record(record)


@router.patch(
    "/channels/{channel_id}/bookmarks/{bookmark_id}",
    response_model=UpdateBookmarkResponse,
)
async def update_bookmark(
    channel_id: str,
    bookmark_id: UUID,
    body: BookmarkPatch,
    service: BookmarkService = Depends(get_bookmark_service),
    user_id: str | None = Header(None, alias="User-Id"),
    connection_id: str | None = Header(None, alias="Connection-Id"),
):
    """Fork the bookmark with the patch applied; returns both versions."""
    result = await service.update(
        bookmark_id,
        body.to_patch(),
        channel_id=channel_id,
        acting_user_id=user_id,
        connection_id=connection_id,
    )
    return UpdateBookmarkResponse.from_result(result)


@router.post(
    "/channels/{channel_id}/bookmarks/{bookmark_id}/sort_order",
    response_model=list[BookmarkResponse],
)
async def update_bookmark_sort_order(
    channel_id: str,
    bookmark_id: UUID,
    body: SortOrderUpdate,
    service: BookmarkService = Depends(get_bookmark_service),
    connection_id: str | None = Header(None, alias="Connection-Id"),
):
    """Move a bookmark; returns the channel's active bookmarks in their new order."""
    ordered = await service.reorder(
        bookmark_id, channel_id, body.new_index, connection_id=connection_id,
    )
    return [BookmarkResponse.from_record(r) for r in ordered]


@router.delete(
    "/channels/{channel_id}/bookmarks/{bookmark_id}",
    response_model=BookmarkResponse,
)
async def delete_bookmark(
    channel_id: str,
    bookmark_id: UUID,
    service: BookmarkService = Depends(get_bookmark_service),
    connection_id: str | None = Header(None, alias="Connection-Id"),
):
    """Tombstone the bookmark and close the gap in the channel's order."""
    record = await service.delete(
        bookmark_id, channel_id=channel_id, connection_id=connection_id,
    )
    return BookmarkResponse.from_record(record)
