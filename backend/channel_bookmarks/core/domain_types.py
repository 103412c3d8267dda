"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - BookmarkId wraps UUID; ChannelId, UserId and FileId are opaque strings owned upstream
    - Millis is epoch milliseconds; 0 means "never" (delete_at) or "full snapshot" (since)
    - All valid states encoded as Enums — no raw string matching

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON without custom encoders
"""

from enum import Enum
from typing import NewType
from uuid import UUID


# ─── Identity Types ──────────────────────────────────────────────

BookmarkId = NewType("BookmarkId", UUID)
ChannelId = NewType("ChannelId", str)
UserId = NewType("UserId", str)
FileId = NewType("FileId", str)


# ─── Value Types ─────────────────────────────────────────────────

Millis = NewType("Millis", int)   # epoch milliseconds


# ─── Enums ───────────────────────────────────────────────────────

class BookmarkType(str, Enum):
    """Bookmark payload kind — immutable once created."""
    LINK = "link"
    FILE = "file"


class BookmarkEventType(str, Enum):
    """Logical events emitted after a committed mutation."""
    CREATED = "channel_bookmark_created"
    UPDATED = "channel_bookmark_updated"
    DELETED = "channel_bookmark_deleted"
    SORTED = "channel_bookmark_sorted"


# ─── Limits ──────────────────────────────────────────────────────

MAX_DISPLAY_NAME_LENGTH = 64
MAX_URL_LENGTH = 1024
MAX_EMOJI_LENGTH = 64
MAX_ID_LENGTH = 64
DEFAULT_MAX_BOOKMARKS_PER_CHANNEL = 50

FULL_SNAPSHOT: Millis = Millis(0)
# Timestamps are stored in signed 64-bit BIGINT columns
MAX_MILLIS: Millis = Millis(2**63 - 1)
