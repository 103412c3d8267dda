"""Millisecond Clock — strictly increasing epoch-millisecond timestamps.

Invariants:
    - now() never returns a value <= the previous one from the same instance
    - Values track wall-clock time except when two calls land in the same millisecond

Design Decisions:
    - Injectable object rather than a bare time.time() call: tests pass a stepping clock
    - Strict monotonicity keeps delta sync exact: two mutations in one process never share
      a timestamp, so a watermark taken between them separates them
"""

import threading
import time


class MillisClock:
    """Wall-clock milliseconds, nudged forward when calls collide."""

    def __init__(self):
        self._last = 0
        self._lock = threading.Lock()

    def now(self) -> int:
        with self._lock:
            current = time.time_ns() // 1_000_000
            if current <= self._last:
                current = self._last + 1
            self._last = current
            return current

    def __call__(self) -> int:
        return self.now()
