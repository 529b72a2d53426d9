"""
MoneyCoach Assistant — Inbound Dedup Cache.

WhatsApp retries webhook deliveries it thinks were lost, so the same message
id can arrive several times within seconds. The cache remembers each id for a
fixed window and tells the webhook to drop repeats.

Entries are only ever evicted after their window has passed, so a failure in
the sweep can over-suppress but never lets a retry through early.
"""

from __future__ import annotations

import heapq
import logging
import threading
import time
from typing import Callable

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 60.0


class DedupCache:
    """Process-local map of recently seen message ids.

    Expiry times are kept on a min-heap and swept on every call, so no
    per-entry timers are needed. A lock makes the check-and-insert atomic.
    """

    def __init__(
        self,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._window = window_seconds
        self._clock = clock
        self._seen: dict[str, float] = {}
        self._expiry_heap: list[tuple[float, str]] = []
        self._lock = threading.Lock()

    def should_process(self, message_id: str) -> bool:
        """Return True the first time an id is seen within the window."""
        with self._lock:
            now = self._clock()
            self._sweep(now)

            if message_id in self._seen:
                logger.debug("Duplicate message suppressed: %s", message_id)
                return False

            expires_at = now + self._window
            self._seen[message_id] = expires_at
            heapq.heappush(self._expiry_heap, (expires_at, message_id))
            return True

    def _sweep(self, now: float) -> None:
        while self._expiry_heap and self._expiry_heap[0][0] <= now:
            expires_at, message_id = heapq.heappop(self._expiry_heap)
            if self._seen.get(message_id) == expires_at:
                del self._seen[message_id]

    def __len__(self) -> int:
        with self._lock:
            self._sweep(self._clock())
            return len(self._seen)
