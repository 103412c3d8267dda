"""Bookmark Record — the immutable in-memory shape of one channel_bookmarks row.

Invariants:
    - BookmarkRecord is frozen: every version of a bookmark is a distinct object
    - link_url is present iff type == LINK; file_id is present iff type == FILE
    - delete_at == 0 means active; anything greater is a tombstone
    - Empty strings in optional payload fields normalize to None

Design Decisions:
    - Frozen dataclass over ORM object in core: engines stay pure and testable without a DB
    - validate_bookmark_fields raises BookmarkValidationError (core/errors.py) and never
      returns partial results
"""

from dataclasses import dataclass, asdict

from channel_bookmarks.core.domain_types import (
    BookmarkId,
    BookmarkType,
    ChannelId,
    FileId,
    Millis,
    UserId,
    MAX_DISPLAY_NAME_LENGTH,
    MAX_URL_LENGTH,
    MAX_EMOJI_LENGTH,
    MAX_ID_LENGTH,
)
from channel_bookmarks.core.errors import BookmarkValidationError, ErrorContext

# Fields a patch may override on fork; everything else is copied or derived.
MUTABLE_FIELDS = ("display_name", "link_url", "file_id", "image_url", "emoji")


@dataclass(frozen=True)
class BookmarkDraft:
    """Caller input for a new bookmark, before identity and position are assigned."""
    channel_id: ChannelId
    display_name: str
    type: BookmarkType
    owner_id: UserId | None = None
    link_url: str | None = None
    file_id: FileId | None = None
    image_url: str | None = None
    emoji: str | None = None


@dataclass(frozen=True)
class BookmarkRecord:
    """One persisted version of a channel bookmark."""
    id: BookmarkId
    channel_id: ChannelId
    display_name: str
    type: BookmarkType
    sort_order: int
    create_at: Millis
    update_at: Millis
    delete_at: Millis = Millis(0)
    owner_id: UserId | None = None
    link_url: str | None = None
    file_id: FileId | None = None
    image_url: str | None = None
    emoji: str | None = None
    original_id: BookmarkId | None = None

    @property
    def is_active(self) -> bool:
        return self.delete_at == 0

    def to_dict(self) -> dict:
        data = asdict(self)
        data["id"] = str(self.id)
        data["type"] = self.type.value
        data["original_id"] = str(self.original_id) if self.original_id else None
        return data


def blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def validate_bookmark_fields(
    *,
    channel_id: ChannelId,
    display_name: str,
    type: BookmarkType,
    link_url: str | None,
    file_id: FileId | None,
    image_url: str | None = None,
    emoji: str | None = None,
    owner_id: UserId | None = None,
) -> None:
    """Raise BookmarkValidationError unless the field set forms a valid bookmark."""
    ctx = ErrorContext(channel_id=channel_id or None)

    if not channel_id or len(channel_id) > MAX_ID_LENGTH:
        raise BookmarkValidationError("channel_id is required", "channel_id", ctx)
    if not isinstance(type, BookmarkType):
        raise BookmarkValidationError(f"Unknown bookmark type: {type!r}", "type", ctx)
    if not display_name or not display_name.strip():
        raise BookmarkValidationError("display_name cannot be empty", "display_name", ctx)
    if len(display_name) > MAX_DISPLAY_NAME_LENGTH:
        raise BookmarkValidationError(
            f"display_name exceeds {MAX_DISPLAY_NAME_LENGTH} characters",
            "display_name", ctx,
        )
    if emoji is not None and len(emoji) > MAX_EMOJI_LENGTH:
        raise BookmarkValidationError(
            f"emoji exceeds {MAX_EMOJI_LENGTH} characters", "emoji", ctx,
        )
    if owner_id is not None and len(owner_id) > MAX_ID_LENGTH:
        raise BookmarkValidationError("owner_id is too long", "owner_id", ctx)
    if image_url is not None and len(image_url) > MAX_URL_LENGTH:
        raise BookmarkValidationError(
            f"image_url exceeds {MAX_URL_LENGTH} characters", "image_url", ctx,
        )

    if type == BookmarkType.LINK:
        if not link_url:
            raise BookmarkValidationError("link bookmarks require link_url", "link_url", ctx)
        if len(link_url) > MAX_URL_LENGTH:
            raise BookmarkValidationError(
                f"link_url exceeds {MAX_URL_LENGTH} characters", "link_url", ctx,
            )
        if file_id:
            raise BookmarkValidationError(
                "link bookmarks cannot carry file_id", "file_id", ctx,
            )
    else:
        if not file_id:
            raise BookmarkValidationError("file bookmarks require file_id", "file_id", ctx)
        if len(file_id) > MAX_ID_LENGTH:
            raise BookmarkValidationError("file_id is too long", "file_id", ctx)
        if link_url:
            raise BookmarkValidationError(
                "file bookmarks cannot carry link_url", "link_url", ctx,
            )
