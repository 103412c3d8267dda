"""Bookmark Service — mutations and delta reads against a real SQLite session.

Invariants:
    - Create appends at the end; delete compacts; reorder shifts; update forks
    - Failed mutations write nothing and publish nothing
    - One event per committed mutation, in commit order, carrying the connection id
    - Delta sync returns exactly the rows touched after the watermark

Design Decisions:
    - StepClock makes every mutation's `now` predictable (1000, 1010, 1020, ...)
"""

import uuid
from dataclasses import replace

import pytest

from channel_bookmarks.core.domain_types import BookmarkEventType, BookmarkType, MAX_MILLIS
from channel_bookmarks.core.errors import (
    AlreadyDeletedError,
    BookmarkLimitError,
    BookmarkValidationError,
    PositionInvariantError,
    ResourceNotFoundError,
    SortOrderOutOfRangeError,
)
from channel_bookmarks.core.ordering import OrderingPlan
from channel_bookmarks.services import bookmark_service
from channel_bookmarks.services.bookmark_service import BookmarkService
from tests.factories import (
    CHANNEL,
    OTHER_CHANNEL,
    file_draft,
    link_draft,
    make_record,
    positions,
)


async def _create_many(service, count, channel_id=CHANNEL):
    return [
        await service.create(link_draft(channel_id, display_name=f"B{i}"))
        for i in range(count)
    ]


async def _active_ids(service, channel_id=CHANNEL):
    return [r.id for r in await service.get_for_channel(channel_id)]


# ─── Create ──────────────────────────────────────────────────────

async def test_create_appends_in_insertion_order(service):
    created = await _create_many(service, 3)
    assert [r.sort_order for r in created] == [0, 1, 2]
    assert await _active_ids(service) == [r.id for r in created]


async def test_create_stamps_clock_time(service):
    record = await service.create(link_draft())
    assert record.create_at == record.update_at == 1_000
    assert record.delete_at == 0


async def test_create_file_bookmark(service):
    record = await service.create(file_draft())
    assert record.type == BookmarkType.FILE
    assert record.file_id == "file-1"


async def test_create_publishes_created_event_with_connection_id(service, notifier):
    record = await service.create(link_draft(), connection_id="conn-1")
    [event] = notifier.events
    assert event.event_type == BookmarkEventType.CREATED
    assert event.channel_id == CHANNEL
    assert event.connection_id == "conn-1"
    assert event.payload["bookmark"]["id"] == str(record.id)


async def test_create_invalid_writes_nothing_and_publishes_nothing(service, notifier):
    with pytest.raises(BookmarkValidationError):
        await service.create(file_draft(file_id=None, link_url="https://x.test"))
    assert await service.get_for_channel(CHANNEL) == []
    assert notifier.events == []


async def test_create_beyond_limit_is_rejected(repository, locks, notifier, clock):
    service = BookmarkService(
        repository, locks, notifier, clock, max_bookmarks_per_channel=2,
    )
    await _create_many(service, 2)
    with pytest.raises(BookmarkLimitError):
        await service.create(link_draft())
    assert len(await service.get_for_channel(CHANNEL)) == 2


async def test_limit_counts_only_active_bookmarks(repository, locks, notifier, clock):
    service = BookmarkService(
        repository, locks, notifier, clock, max_bookmarks_per_channel=2,
    )
    first, _ = await _create_many(service, 2)
    await service.delete(first.id)
    assert (await service.create(link_draft())).sort_order == 1


async def test_create_repairs_damaged_positions(service, repository):
    await repository.save([
        make_record(0, create_at=100),
        make_record(4, create_at=101),
        make_record(4, create_at=102),
    ])
    await repository.commit()

    record = await service.create(link_draft())

    active = await service.get_for_channel(CHANNEL)
    assert [r.sort_order for r in active] == [0, 1, 2, 3]
    assert active[-1].id == record.id


# ─── Update ──────────────────────────────────────────────────────

async def test_update_forks_new_version(service, repository):
    original = await service.create(link_draft(display_name="Before"))
    result = await service.update(original.id, {"display_name": "After"})

    assert result.updated.id != original.id
    assert result.updated.original_id == original.id
    assert result.updated.display_name == "After"
    assert result.updated.sort_order == original.sort_order
    assert result.updated.create_at == original.create_at
    assert result.deleted.delete_at == result.updated.update_at == 1_010

    stored = await repository.get(original.id)
    assert stored.delete_at == 1_010
    assert stored.display_name == "Before"


async def test_update_keeps_position_among_siblings(service):
    b0, b1, b2 = await _create_many(service, 3)
    result = await service.update(b1.id, {"emoji": ":tada:"})
    assert await _active_ids(service) == [b0.id, result.updated.id, b2.id]


async def test_update_publishes_both_sides(service, notifier):
    original = await service.create(link_draft())
    notifier.drain()
    result = await service.update(original.id, {"display_name": "X"}, connection_id="c9")
    [event] = notifier.events
    assert event.event_type == BookmarkEventType.UPDATED
    assert event.payload["updated"]["id"] == str(result.updated.id)
    assert event.payload["deleted"]["id"] == str(original.id)
    assert event.connection_id == "c9"


async def test_update_moves_owner_to_acting_user(service):
    original = await service.create(link_draft(owner_id="alice"))
    result = await service.update(original.id, {"emoji": None}, acting_user_id="bob")
    assert result.updated.owner_id == "bob"
    assert result.deleted.owner_id == "alice"


async def test_update_of_superseded_version_is_already_deleted(service):
    original = await service.create(link_draft())
    await service.update(original.id, {"display_name": "Second"})
    with pytest.raises(AlreadyDeletedError):
        await service.update(original.id, {"display_name": "Third"})


async def test_update_in_wrong_channel_is_not_found(service):
    original = await service.create(link_draft())
    with pytest.raises(ResourceNotFoundError):
        await service.update(original.id, {"display_name": "X"}, channel_id=OTHER_CHANNEL)


async def test_update_unknown_bookmark_is_not_found(service):
    with pytest.raises(ResourceNotFoundError):
        await service.update(uuid.uuid4(), {"display_name": "X"})


async def test_update_rejecting_type_change_leaves_row_active(service, notifier):
    original = await service.create(link_draft())
    notifier.drain()
    with pytest.raises(BookmarkValidationError):
        await service.update(original.id, {"type": "file", "file_id": "f1"})
    assert await _active_ids(service) == [original.id]
    assert notifier.events == []


# ─── Delete ──────────────────────────────────────────────────────

async def test_delete_tombstones_and_compacts(service):
    b0, b1, b2, b3 = await _create_many(service, 4)
    deleted = await service.delete(b1.id)

    assert deleted.id == b1.id
    assert deleted.delete_at > 0
    active = await service.get_for_channel(CHANNEL)
    assert [r.id for r in active] == [b0.id, b2.id, b3.id]
    assert [r.sort_order for r in active] == [0, 1, 2]


async def test_delete_middle_of_five_leaves_dense_four(service):
    b = await _create_many(service, 5)
    await service.delete(b[2].id)
    active = await service.get_for_channel(CHANNEL)
    assert b[2].id not in {r.id for r in active}
    assert [r.sort_order for r in active] == [0, 1, 2, 3]


async def test_delete_publishes_deleted_event(service, notifier):
    record = await service.create(link_draft())
    notifier.drain()
    await service.delete(record.id, connection_id="c2")
    [event] = notifier.events
    assert event.event_type == BookmarkEventType.DELETED
    assert event.payload["bookmark"]["delete_at"] > 0


async def test_delete_twice_is_already_deleted(service):
    record = await service.create(link_draft())
    await service.delete(record.id)
    with pytest.raises(AlreadyDeletedError):
        await service.delete(record.id)


async def test_delete_in_wrong_channel_is_not_found(service):
    record = await service.create(link_draft())
    with pytest.raises(ResourceNotFoundError):
        await service.delete(record.id, channel_id=OTHER_CHANNEL)
    assert await _active_ids(service) == [record.id]


# ─── Reorder ─────────────────────────────────────────────────────

async def test_reorder_first_to_last_and_back(service):
    b = await _create_many(service, 5)

    ordered = await service.reorder(b[0].id, CHANNEL, 4)
    assert [r.id for r in ordered] == [b[1].id, b[2].id, b[3].id, b[4].id, b[0].id]
    assert await _active_ids(service) == [r.id for r in ordered]

    ordered = await service.reorder(b[0].id, CHANNEL, 0)
    assert [r.id for r in ordered] == [r.id for r in b]
    stored = positions(await service.get_for_channel(CHANNEL))
    assert sorted(stored.values()) == [0, 1, 2, 3, 4]


async def test_reorder_publishes_full_ordered_list(service, notifier):
    b = await _create_many(service, 3)
    notifier.drain()
    await service.reorder(b[2].id, CHANNEL, 0, connection_id="c3")
    [event] = notifier.events
    assert event.event_type == BookmarkEventType.SORTED
    assert [item["id"] for item in event.payload["bookmarks"]] == [
        str(b[2].id), str(b[0].id), str(b[1].id),
    ]


async def test_reorder_to_same_index_writes_and_publishes_nothing(service, notifier):
    b = await _create_many(service, 3)
    notifier.drain()
    ordered = await service.reorder(b[1].id, CHANNEL, 1)
    assert [r.id for r in ordered] == [r.id for r in b]
    assert notifier.events == []
    # update_at untouched: nothing newer than the last create
    assert await service.get_for_channel(CHANNEL, b[2].update_at) == []


@pytest.mark.parametrize("new_index", [-1, 3])
async def test_reorder_out_of_range_changes_nothing(service, notifier, new_index):
    b = await _create_many(service, 3)
    notifier.drain()
    with pytest.raises(SortOrderOutOfRangeError):
        await service.reorder(b[0].id, CHANNEL, new_index)
    assert await _active_ids(service) == [r.id for r in b]
    assert notifier.events == []


async def test_reorder_bookmark_from_other_channel_is_not_found(service):
    await _create_many(service, 2)
    [foreign] = await _create_many(service, 1, OTHER_CHANNEL)
    with pytest.raises(ResourceNotFoundError):
        await service.reorder(foreign.id, CHANNEL, 0)


# ─── Delta sync ──────────────────────────────────────────────────

async def test_delta_sync_tracks_update_and_delete(service):
    b0, b1, b2 = await _create_many(service, 3)       # 1000, 1010, 1020
    watermark = b2.create_at

    result = await service.update(b1.id, {"display_name": "B1 v2"})   # 1030
    delta = await service.get_for_channel(CHANNEL, watermark)
    assert {r.id for r in delta} == {b1.id, result.updated.id}

    await service.delete(b0.id)                        # 1040, compacts b1' and b2
    delta = await service.get_for_channel(CHANNEL, watermark)
    assert {r.id for r in delta} == {b0.id, b1.id, result.updated.id, b2.id}
    tombstones = {r.id for r in delta if r.delete_at > 0}
    assert tombstones == {b0.id, b1.id}

    snapshot = await service.get_for_channel(CHANNEL)
    assert [(r.id, r.sort_order) for r in snapshot] == [
        (result.updated.id, 0), (b2.id, 1),
    ]

    assert await service.get_for_channel(CHANNEL, 1_040) == []


async def test_delta_sync_sees_reordered_rows(service):
    b = await _create_many(service, 3)
    watermark = b[-1].create_at
    await service.reorder(b[0].id, CHANNEL, 2)
    delta = await service.get_for_channel(CHANNEL, watermark)
    assert {r.id for r in delta} == {r.id for r in b}


async def test_get_for_channels_omits_channels_without_changes(service):
    [a] = await _create_many(service, 1, CHANNEL)
    [b] = await _create_many(service, 1, OTHER_CHANNEL)
    await service.update(b.id, {"emoji": ":new:"})

    changes = await service.get_for_channels([CHANNEL, OTHER_CHANNEL], b.create_at)
    assert list(changes) == [OTHER_CHANNEL]
    assert len(changes[OTHER_CHANNEL]) == 2

    snapshot = await service.get_for_channels([CHANNEL, OTHER_CHANNEL, "empty"])
    assert set(snapshot) == {CHANNEL, OTHER_CHANNEL}
    assert [r.id for r in snapshot[CHANNEL]] == [a.id]


async def test_get_for_channels_with_no_channels_is_empty(service):
    assert await service.get_for_channels([]) == {}


async def test_negative_since_is_rejected(service):
    with pytest.raises(BookmarkValidationError):
        await service.get_for_channel(CHANNEL, -5)


async def test_since_beyond_storage_range_is_rejected_before_querying(service):
    await service.create(link_draft())
    with pytest.raises(BookmarkValidationError):
        await service.get_for_channel(CHANNEL, MAX_MILLIS + 1)
    with pytest.raises(BookmarkValidationError):
        await service.get_for_channels([CHANNEL], 2**64)


# ─── Notifier failures ───────────────────────────────────────────

class _BrokenNotifier:
    async def publish(self, event_type, channel_id, payload, connection_id=None):
        raise RuntimeError("push transport down")


async def test_publish_failure_does_not_undo_commit(repository, locks, clock):
    service = BookmarkService(repository, locks, _BrokenNotifier(), clock)
    record = await service.create(link_draft())
    assert await _active_ids(service) == [record.id]
    assert not locks.is_locked(CHANNEL)


# ─── Density guard ───────────────────────────────────────────────

async def test_reorder_with_gapped_result_rolls_back(service, notifier, monkeypatch):
    b = await _create_many(service, 3)
    notifier.drain()

    def gapped_reorder(active, bookmark_id, new_index, now):
        ordered = [replace(r, sort_order=r.sort_order * 2, update_at=now) for r in active]
        return OrderingPlan(ordered=ordered, changed=ordered[1:])

    monkeypatch.setattr(bookmark_service, "plan_reorder", gapped_reorder)

    with pytest.raises(PositionInvariantError):
        await service.reorder(b[2].id, CHANNEL, 0)

    active = await service.get_for_channel(CHANNEL)
    assert [(r.id, r.sort_order) for r in active] == [(r.id, i) for i, r in enumerate(b)]
    assert await service.get_for_channel(CHANNEL, b[2].update_at) == []
    assert notifier.events == []


async def test_delete_without_compaction_rolls_back(service, notifier, monkeypatch):
    b = await _create_many(service, 3)
    notifier.drain()

    def skipped_compaction(active, removed_id, now):
        return OrderingPlan(
            ordered=[r for r in active if r.id != removed_id], changed=[],
        )

    monkeypatch.setattr(bookmark_service, "plan_compaction", skipped_compaction)

    with pytest.raises(PositionInvariantError):
        await service.delete(b[0].id)

    assert await _active_ids(service) == [r.id for r in b]
    assert notifier.events == []
