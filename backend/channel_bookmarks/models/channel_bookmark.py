"""ChannelBookmark ORM — persists every version of every bookmark, tombstones included.

Invariants:
    - id is UUID primary key, assigned by the versioning engine (not the database)
    - delete_at == 0 for active rows; tombstones are never physically removed here
    - Timestamps are BigInteger epoch milliseconds (0 is a valid sentinel)
    - original_id points at the superseded version; NULL for an original row

Design Decisions:
    - No FK from original_id: retention of tombstones is an external policy, a dangling
      pointer after cleanup is acceptable
    - Composite indexes on (channel_id, <timestamp>) serve the delta-sync OR predicate and
      (channel_id, delete_at, sort_order) serves the active list
    - to_record()/from_record() keep the core free of ORM types
"""

import uuid

from sqlalchemy import BigInteger, Integer, String, Index
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from channel_bookmarks.core.bookmark_record import BookmarkRecord
from channel_bookmarks.core.domain_types import (
    BookmarkType,
    MAX_DISPLAY_NAME_LENGTH,
    MAX_URL_LENGTH,
    MAX_EMOJI_LENGTH,
    MAX_ID_LENGTH,
)
from channel_bookmarks.db.base import Base


class ChannelBookmark(Base):
    """One version of a channel bookmark."""
    __tablename__ = "channel_bookmarks"
    __table_args__ = (
        Index("ix_channel_bookmarks_active", "channel_id", "delete_at", "sort_order"),
        Index("ix_channel_bookmarks_create_at", "channel_id", "create_at"),
        Index("ix_channel_bookmarks_update_at", "channel_id", "update_at"),
        Index("ix_channel_bookmarks_delete_at", "channel_id", "delete_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    channel_id: Mapped[str] = mapped_column(String(MAX_ID_LENGTH), nullable=False)
    owner_id: Mapped[str | None] = mapped_column(String(MAX_ID_LENGTH), nullable=True)
    display_name: Mapped[str] = mapped_column(
        String(MAX_DISPLAY_NAME_LENGTH), nullable=False,
    )
    type: Mapped[str] = mapped_column(String(10), nullable=False)
    link_url: Mapped[str | None] = mapped_column(String(MAX_URL_LENGTH), nullable=True)
    file_id: Mapped[str | None] = mapped_column(String(MAX_ID_LENGTH), nullable=True)
    image_url: Mapped[str | None] = mapped_column(String(MAX_URL_LENGTH), nullable=True)
    emoji: Mapped[str | None] = mapped_column(String(MAX_EMOJI_LENGTH), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    create_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    update_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    delete_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    original_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), nullable=True,
    )

    def to_record(self) -> BookmarkRecord:
        return BookmarkRecord(
            id=self.id,
            channel_id=self.channel_id,
            owner_id=self.owner_id,
            display_name=self.display_name,
            type=BookmarkType(self.type),
            link_url=self.link_url,
            file_id=self.file_id,
            image_url=self.image_url,
            emoji=self.emoji,
            sort_order=self.sort_order,
            create_at=self.create_at,
            update_at=self.update_at,
            delete_at=self.delete_at,
            original_id=self.original_id,
        )

    @classmethod
    def from_record(cls, record: BookmarkRecord) -> "ChannelBookmark":
        row = cls(id=record.id)
        row.apply(record)
        return row

    def apply(self, record: BookmarkRecord) -> None:
        """Copy every column from a record onto this row (same id)."""
        self.channel_id = record.channel_id
        self.owner_id = record.owner_id
        self.display_name = record.display_name
        self.type = record.type.value
        self.link_url = record.link_url
        self.file_id = record.file_id
        self.image_url = record.image_url
        self.emoji = record.emoji
        self.sort_order = record.sort_order
        self.create_at = record.create_at
        self.update_at = record.update_at
        self.delete_at = record.delete_at
        self.original_id = record.original_id
