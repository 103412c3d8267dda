"""Bookmark Events — post-commit notification of channel bookmark changes.

Invariants:
    - One logical event per committed mutation: created, updated (both sides), deleted,
      sorted (full ordered list)
    - Events carry the originating connection_id so push transports can skip the echo
    - Publication happens strictly after commit; a failed publish never undoes a commit

Design Decisions:
    - LoggingNotifier is the default: the push transport lives outside this service and
      tails the structured log or replaces the notifier on app.state
"""

import logging
from dataclasses import dataclass, field

from channel_bookmarks.core.bookmark_record import BookmarkRecord
from channel_bookmarks.core.domain_types import BookmarkEventType
from channel_bookmarks.core.versioning import ForkResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookmarkEvent:
    """A committed change, ready for a transport."""
    event_type: BookmarkEventType
    channel_id: str
    payload: dict = field(default_factory=dict)
    connection_id: str | None = None


def created_payload(record: BookmarkRecord) -> dict:
    return {"bookmark": record.to_dict()}


def updated_payload(result: ForkResult) -> dict:
    return result.to_dict()


def deleted_payload(record: BookmarkRecord) -> dict:
    return {"bookmark": record.to_dict()}


def sorted_payload(ordered: list[BookmarkRecord]) -> dict:
    return {"bookmarks": [r.to_dict() for r in ordered]}


class LoggingNotifier:
    """Writes each event to the structured log."""

    async def publish(
        self,
        event_type: BookmarkEventType,
        channel_id: str,
        payload: dict,
        connection_id: str | None = None,
    ) -> None:
        logger.info(
            f"Bookmark event {event_type.value}",
            extra={
                "event": event_type.value,
                "channel_id": channel_id,
                "connection_id": connection_id,
            },
        )


class InMemoryNotifier:
    """Keeps published events in order; used by embedders that poll for changes."""

    def __init__(self):
        self.events: list[BookmarkEvent] = []

    async def publish(
        self,
        event_type: BookmarkEventType,
        channel_id: str,
        payload: dict,
        connection_id: str | None = None,
    ) -> None:
        self.events.append(BookmarkEvent(event_type, channel_id, payload, connection_id))

    def drain(self) -> list[BookmarkEvent]:
        events, self.events = self.events, []
        return events
