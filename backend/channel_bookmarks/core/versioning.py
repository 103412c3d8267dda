"""Versioning Engine — create, fork-on-update and tombstone-on-delete.

Invariants:
    - An update never mutates an active row in place: it forks a new row and tombstones
      the predecessor, both stamped with the same `now`
    - fork: fresh id, channel_id/sort_order/create_at copied, original_id = predecessor.id
    - type and channel_id never change; a patch naming a different value is rejected
    - A tombstone (delete_at > 0) is immutable: fork and tombstone both refuse it
    - Validation happens before any record is built (fail closed)

Design Decisions:
    - Always fork, regardless of who is acting. Ownership of the fork moves to the acting
      user when one is given; otherwise the predecessor's owner is kept
    - Patch is a plain mapping of provided fields: "absent" and "set to None" stay distinct,
      which is how a caller clears emoji or image_url
"""

import uuid
from dataclasses import dataclass, replace
from typing import Any, Mapping

from channel_bookmarks.core.bookmark_record import (
    BookmarkDraft,
    BookmarkRecord,
    MUTABLE_FIELDS,
    blank_to_none,
    validate_bookmark_fields,
)
from channel_bookmarks.core.domain_types import BookmarkId, BookmarkType, Millis, UserId
from channel_bookmarks.core.errors import (
    AlreadyDeletedError,
    BookmarkValidationError,
    ErrorContext,
)

_IMMUTABLE_FIELDS = ("type", "channel_id")


@dataclass(frozen=True)
class ForkResult:
    """The two sides of an update: the live replacement and the retired predecessor."""
    updated: BookmarkRecord
    deleted: BookmarkRecord

    def to_dict(self) -> dict:
        return {"updated": self.updated.to_dict(), "deleted": self.deleted.to_dict()}


def new_bookmark(
    draft: BookmarkDraft,
    active_count: int,
    now: Millis,
    bookmark_id: BookmarkId | None = None,
) -> BookmarkRecord:
    """Build the first version of a bookmark, appended after the active rows."""
    display_name = (draft.display_name or "").strip()
    link_url = blank_to_none(draft.link_url)
    file_id = blank_to_none(draft.file_id)
    image_url = blank_to_none(draft.image_url)
    emoji = blank_to_none(draft.emoji)
    owner_id = blank_to_none(draft.owner_id)

    validate_bookmark_fields(
        channel_id=draft.channel_id,
        display_name=display_name,
        type=draft.type,
        link_url=link_url,
        file_id=file_id,
        image_url=image_url,
        emoji=emoji,
        owner_id=owner_id,
    )
    return BookmarkRecord(
        id=bookmark_id or BookmarkId(uuid.uuid4()),
        channel_id=draft.channel_id,
        owner_id=owner_id,
        display_name=display_name,
        type=draft.type,
        link_url=link_url,
        file_id=file_id,
        image_url=image_url,
        emoji=emoji,
        sort_order=active_count,
        create_at=now,
        update_at=now,
        delete_at=0,
        original_id=None,
    )


def _check_active(record: BookmarkRecord) -> None:
    if not record.is_active:
        raise AlreadyDeletedError(
            str(record.id),
            ErrorContext(channel_id=record.channel_id, bookmark_id=str(record.id)),
        )


def _merge_patch(
    predecessor: BookmarkRecord, patch: Mapping[str, Any],
) -> dict[str, Any]:
    ctx = ErrorContext(
        channel_id=predecessor.channel_id, bookmark_id=str(predecessor.id),
    )
    merged = {name: getattr(predecessor, name) for name in MUTABLE_FIELDS}

    for name, value in patch.items():
        if name in _IMMUTABLE_FIELDS:
            current = getattr(predecessor, name)
            if name == "type" and value is not None:
                try:
                    value = BookmarkType(value)
                except ValueError:
                    raise BookmarkValidationError(
                        f"Unknown bookmark type: {value!r}", "type", ctx,
                    )
            if value != current:
                raise BookmarkValidationError(f"{name} cannot be changed", name, ctx)
            continue
        if name not in MUTABLE_FIELDS:
            raise BookmarkValidationError(f"Unknown field in patch: {name}", name, ctx)
        if name == "display_name":
            merged[name] = (value or "").strip()
        else:
            merged[name] = blank_to_none(value)
    return merged


def fork(
    predecessor: BookmarkRecord,
    patch: Mapping[str, Any],
    now: Millis,
    acting_user_id: UserId | None = None,
    new_id: BookmarkId | None = None,
) -> ForkResult:
    """Apply patch as a new version and retire the predecessor in the same instant."""
    _check_active(predecessor)
    merged = _merge_patch(predecessor, patch)
    owner_id = blank_to_none(acting_user_id) or predecessor.owner_id

    validate_bookmark_fields(
        channel_id=predecessor.channel_id,
        type=predecessor.type,
        owner_id=owner_id,
        **merged,
    )
    updated = replace(
        predecessor,
        id=new_id or BookmarkId(uuid.uuid4()),
        owner_id=owner_id,
        update_at=now,
        delete_at=0,
        original_id=predecessor.id,
        **merged,
    )
    deleted = replace(predecessor, update_at=now, delete_at=now)
    return ForkResult(updated=updated, deleted=deleted)


def tombstone(record: BookmarkRecord, now: Millis) -> BookmarkRecord:
    """Mark a row deleted in place — same id, delete_at = now."""
    _check_active(record)
    return replace(record, update_at=now, delete_at=now)
