"""Domain Types — verifies enum values and identity wrappers."""

from uuid import uuid4

from channel_bookmarks.core.domain_types import (
    BookmarkEventType,
    BookmarkId,
    BookmarkType,
    ChannelId,
    FULL_SNAPSHOT,
    MAX_MILLIS,
)


def test_identity_types_wrap_values():
    uid = uuid4()
    assert BookmarkId(uid) == uid
    assert ChannelId("c1") == "c1"


def test_bookmark_type_has_link_and_file_only():
    assert {t.value for t in BookmarkType} == {"link", "file"}


def test_event_types_have_wire_names():
    assert BookmarkEventType.CREATED.value == "channel_bookmark_created"
    assert BookmarkEventType.SORTED.value == "channel_bookmark_sorted"
    assert len(BookmarkEventType) == 4


def test_full_snapshot_sentinel_is_zero():
    assert FULL_SNAPSHOT == 0


def test_max_millis_matches_signed_bigint():
    assert MAX_MILLIS == 2**63 - 1
