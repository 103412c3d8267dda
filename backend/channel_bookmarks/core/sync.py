"""Sync Engine — watermark predicate and per-channel grouping for delta queries.

Invariants:
    - since == 0: only active rows (full snapshot)
    - since > 0: rows with create_at, update_at or delete_at strictly greater than since,
      whether active or tombstoned
    - since outside [0, MAX_MILLIS] is rejected before any query runs
    - Channels with no qualifying rows are omitted (never an empty list)

Design Decisions:
    - The same predicate runs in SQL (services/bookmark_repository.py) to narrow the scan
      and here to decide membership, so the in-memory result never depends on how
      loosely the query was written
"""

from typing import Iterable

from channel_bookmarks.core.bookmark_record import BookmarkRecord
from channel_bookmarks.core.domain_types import (
    ChannelId,
    FULL_SNAPSHOT,
    MAX_MILLIS,
    Millis,
)
from channel_bookmarks.core.errors import BookmarkValidationError


def validate_since(since: Millis) -> None:
    if since < 0 or since > MAX_MILLIS:
        raise BookmarkValidationError(
            "bookmarks_since must be zero or a positive timestamp "
            f"no greater than {MAX_MILLIS}",
            "since",
        )


def matches_watermark(record: BookmarkRecord, since: Millis) -> bool:
    """True when a client holding a view as of `since` needs this row."""
    if since == FULL_SNAPSHOT:
        return record.delete_at == 0
    return (
        record.create_at > since
        or record.update_at > since
        or record.delete_at > since
    )


def group_changes(
    records: Iterable[BookmarkRecord],
    since: Millis,
    channel_ids: Iterable[ChannelId] | None = None,
) -> dict[ChannelId, list[BookmarkRecord]]:
    """Bucket qualifying rows by channel, restricted to channel_ids when given."""
    validate_since(since)
    wanted = set(channel_ids) if channel_ids is not None else None
    grouped: dict[ChannelId, list[BookmarkRecord]] = {}
    for record in records:
        if wanted is not None and record.channel_id not in wanted:
            continue
        if matches_watermark(record, since):
            grouped.setdefault(record.channel_id, []).append(record)
    return grouped
