"""Channel Bookmark Schemas — Pydantic models with field-level validation for API boundaries.

Invariants:
    - BookmarkCreate cross-validates type against link_url/file_id
    - BookmarkPatch forbids unknown fields; only provided fields reach the service
    - Responses are built from core records, never from ORM rows
    - The authenticated User-Id header wins over a body owner_id; the body value only
      applies when no identity header is present

Design Decisions:
    - Literal type for `type` over str enum: Pydantic handles validation natively
    - Range checks on sort order and since stay in core: the engines own those error codes
"""

from uuid import UUID
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from channel_bookmarks.core.bookmark_record import BookmarkDraft, BookmarkRecord
from channel_bookmarks.core.domain_types import (
    BookmarkType,
    ChannelId,
    UserId,
    MAX_DISPLAY_NAME_LENGTH,
    MAX_URL_LENGTH,
    MAX_EMOJI_LENGTH,
    MAX_ID_LENGTH,
)
from channel_bookmarks.core.versioning import ForkResult


class BookmarkCreate(BaseModel):
    """Bookmark creation — validates lengths and the type/payload pairing."""
    model_config = ConfigDict(extra="forbid")

    display_name: str = Field(min_length=1, max_length=MAX_DISPLAY_NAME_LENGTH)
    type: Literal["link", "file"]
    link_url: str | None = Field(None, max_length=MAX_URL_LENGTH)
    file_id: str | None = Field(None, max_length=MAX_ID_LENGTH)
    image_url: str | None = Field(None, max_length=MAX_URL_LENGTH)
    emoji: str | None = Field(None, max_length=MAX_EMOJI_LENGTH)
    owner_id: str | None = Field(None, max_length=MAX_ID_LENGTH)

    @field_validator("display_name")
    @classmethod
    def strip_display_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("display_name cannot be empty or whitespace")
        return v

    @model_validator(mode="after")
    def validate_payload(self):
        if self.type == "link":
            if not self.link_url:
                raise ValueError("link bookmarks require link_url")
            if self.file_id:
                raise ValueError("link bookmarks cannot carry file_id")
        else:
            if not self.file_id:
                raise ValueError("file bookmarks require file_id")
            if self.link_url:
                raise ValueError("file bookmarks cannot carry link_url")
        return self

    def to_draft(
        self, channel_id: ChannelId, owner_id: UserId | None = None,
    ) -> BookmarkDraft:
        return BookmarkDraft(
            channel_id=channel_id,
            display_name=self.display_name,
            type=BookmarkType(self.type),
            owner_id=owner_id or self.owner_id,
            link_url=self.link_url,
            file_id=self.file_id,
            image_url=self.image_url,
            emoji=self.emoji,
        )


class BookmarkPatch(BaseModel):
    """Partial update — absent fields keep the predecessor's value, null clears it."""
    model_config = ConfigDict(extra="forbid")

    display_name: str | None = Field(None, min_length=1, max_length=MAX_DISPLAY_NAME_LENGTH)
    type: Literal["link", "file"] | None = None
    link_url: str | None = Field(None, max_length=MAX_URL_LENGTH)
    file_id: str | None = Field(None, max_length=MAX_ID_LENGTH)
    image_url: str | None = Field(None, max_length=MAX_URL_LENGTH)
    emoji: str | None = Field(None, max_length=MAX_EMOJI_LENGTH)

    @model_validator(mode="after")
    def reject_empty_patch(self):
        if not self.model_fields_set:
            raise ValueError("patch must set at least one field")
        return self

    def to_patch(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class SortOrderUpdate(BaseModel):
    """Target position for a reorder."""
    new_index: int


class BookmarkSyncRequest(BaseModel):
    """Delta request for several channels."""
    channel_ids: list[str] = Field(max_length=1000)
    since: int = 0


class BookmarkResponse(BaseModel):
    """Bookmark response — one version of a bookmark, tombstones included."""
    id: UUID
    channel_id: str
    owner_id: str | None = None
    display_name: str
    type: Literal["link", "file"]
    link_url: str | None = None
    file_id: str | None = None
    image_url: str | None = None
    emoji: str | None = None
    sort_order: int
    create_at: int
    update_at: int
    delete_at: int
    original_id: UUID | None = None

    @classmethod
    def from_record(cls, record: BookmarkRecord) -> "BookmarkResponse":
        return cls(
            id=record.id,
            channel_id=record.channel_id,
            owner_id=record.owner_id,
            display_name=record.display_name,
            type=record.type.value,
            link_url=record.link_url,
            file_id=record.file_id,
            image_url=record.image_url,
            emoji=record.emoji,
            sort_order=record.sort_order,
            create_at=record.create_at,
            update_at=record.update_at,
            delete_at=record.delete_at,
            original_id=record.original_id,
        )


class UpdateBookmarkResponse(BaseModel):
    """Both sides of a fork."""
    updated: BookmarkResponse
    deleted: BookmarkResponse

    @classmethod
    def from_result(cls, result: ForkResult) -> "UpdateBookmarkResponse":
        return cls(
            updated=BookmarkResponse.from_record(result.updated),
            deleted=BookmarkResponse.from_record(result.deleted),
        )
