"""Channel Locks — partitioned async mutual exclusion keyed by channel id.

Invariants:
    - Writers to the same channel are serialized; different channels never contend
    - Acquisition waits at most timeout_seconds, then raises LockTimeoutError (retryable)
    - A lock entry exists only while someone holds or waits for it (no unbounded growth)

Design Decisions:
    - One asyncio.Lock per channel, created on demand: requests are asyncio tasks in one
      event loop, so bookkeeping between awaits needs no extra guard
    - The registry is owned by the application (app.state), never a module global
    - Cross-process writers are covered by row locks in the repository, not here
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from channel_bookmarks.core.errors import LockTimeoutError

logger = logging.getLogger(__name__)


class ChannelLockRegistry:
    """Hands out the exclusive write section for a channel."""

    def __init__(self, timeout_seconds: float = 5.0):
        self.timeout_seconds = timeout_seconds
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def is_locked(self, channel_id: str) -> bool:
        lock = self._locks.get(channel_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(
        self, channel_id: str, timeout_seconds: float | None = None,
    ) -> AsyncIterator[None]:
        timeout = self.timeout_seconds if timeout_seconds is None else timeout_seconds
        lock = self._locks.setdefault(channel_id, asyncio.Lock())
        self._holders[channel_id] = self._holders.get(channel_id, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    f"Channel lock wait exceeded {timeout}s",
                    extra={"channel_id": channel_id, "error_code": "CHANNEL_LOCK_TIMEOUT"},
                )
                raise LockTimeoutError(channel_id, timeout)
            try:
                yield
            finally:
                lock.release()
        finally:
            self._holders[channel_id] -= 1
            if self._holders[channel_id] == 0:
                del self._holders[channel_id]
                del self._locks[channel_id]
