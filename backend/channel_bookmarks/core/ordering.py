"""Ordering Engine — dense zero-based positions for the active bookmarks of a channel.

Invariants:
    - Output positions of every plan are exactly {0, 1, ..., n-1}
    - Only rows whose sort_order actually changes appear in a plan's `changed` list
    - Every changed row gets update_at = now (one instant per plan) so delta sync sees it
    - Tombstones are never passed through or modified

Design Decisions:
    - Positions are recomputed from the list order rather than by arithmetic on stored
      values: on dense input this is the classic shift rule (rows in (old, new] move down,
      rows in [new, old) move up), and on damaged input it repairs gaps and duplicates
    - Ties in stored sort_order break by create_at, then id, so repair is deterministic
"""

from dataclasses import dataclass, replace
from typing import Iterable

from channel_bookmarks.core.bookmark_record import BookmarkRecord
from channel_bookmarks.core.domain_types import BookmarkId, Millis
from channel_bookmarks.core.errors import (
    ErrorContext,
    ResourceNotFoundError,
    SortOrderOutOfRangeError,
)


@dataclass(frozen=True)
class OrderingPlan:
    """Result of an ordering computation — full active list plus the rows to write."""
    ordered: list[BookmarkRecord]
    changed: list[BookmarkRecord]

    @property
    def is_noop(self) -> bool:
        return not self.changed


def sort_active(records: Iterable[BookmarkRecord]) -> list[BookmarkRecord]:
    """Active rows in display order."""
    return sorted(
        (r for r in records if r.is_active),
        key=lambda r: (r.sort_order, r.create_at, str(r.id)),
    )


def is_dense(records: Iterable[BookmarkRecord]) -> bool:
    positions = sorted(r.sort_order for r in records if r.is_active)
    return positions == list(range(len(positions)))


def renumber(ordered: list[BookmarkRecord], now: Millis) -> OrderingPlan:
    """Assign position i to the i-th row of `ordered`, touching only rows that move."""
    result: list[BookmarkRecord] = []
    changed: list[BookmarkRecord] = []
    for position, record in enumerate(ordered):
        if record.sort_order != position:
            record = replace(record, sort_order=position, update_at=now)
            changed.append(record)
        result.append(record)
    return OrderingPlan(ordered=result, changed=changed)


def plan_reorder(
    active: Iterable[BookmarkRecord],
    bookmark_id: BookmarkId,
    new_index: int,
    now: Millis,
) -> OrderingPlan:
    """Move one bookmark to new_index, shifting the rows between old and new by one.

    Raises SortOrderOutOfRangeError when new_index is outside [0, n-1] and
    ResourceNotFoundError when bookmark_id is not among the active rows.
    """
    ordered = sort_active(active)
    channel_id = ordered[0].channel_id if ordered else None
    ctx = ErrorContext(channel_id=channel_id, bookmark_id=str(bookmark_id))

    if new_index < 0 or new_index >= len(ordered):
        raise SortOrderOutOfRangeError(new_index, len(ordered), ctx)

    old_index = next(
        (i for i, r in enumerate(ordered) if r.id == bookmark_id), None,
    )
    if old_index is None:
        raise ResourceNotFoundError("Bookmark", str(bookmark_id), ctx)

    target = ordered.pop(old_index)
    ordered.insert(new_index, target)
    return renumber(ordered, now)


def plan_compaction(
    active: Iterable[BookmarkRecord], removed_id: BookmarkId, now: Millis,
) -> OrderingPlan:
    """Close the gap left by removed_id: every row above it moves down by one."""
    remaining = [r for r in sort_active(active) if r.id != removed_id]
    return renumber(remaining, now)
