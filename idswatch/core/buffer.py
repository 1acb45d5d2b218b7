"""
Alert Buffer
Bounded, newest-first store of the most recent alerts from the channel.

- O(1) append with automatic eviction of the oldest alert
- No deduplication by ``id``: the buffer is a sequence, not a set
- Readers get snapshots; the underlying deque is never handed out
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Iterator

from idswatch.contracts.alert import Alert

log = logging.getLogger(__name__)

DEFAULT_CAPACITY = 100

BufferListener = Callable[[str], None]


class AlertBuffer:
    """
    Newest-first alert buffer.

    Usage:
        buffer = AlertBuffer(capacity=100)
        buffer.append(alert)
        recent = buffer.snapshot()   # newest first
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._data: deque[Alert] = deque(maxlen=capacity)
        self._listeners: list[BufferListener] = []
        self._total: int = 0

    @property
    def capacity(self) -> int:
        return self._data.maxlen or 0

    @property
    def total_received(self) -> int:
        """Alerts appended since creation, evicted ones included."""
        return self._total

    def append(self, alert: Alert) -> None:
        """Insert at the front; drops the oldest alert when full."""
        self._data.appendleft(alert)
        self._total += 1
        self._notify("append")

    def clear(self) -> None:
        self._data.clear()
        self._notify("clear")

    def snapshot(self) -> tuple[Alert, ...]:
        """Return the current contents, newest first."""
        return tuple(self._data)

    def latest(self) -> Alert | None:
        return self._data[0] if self._data else None

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[Alert]:
        return iter(self.snapshot())

    # ── observers ─────────────────────────────────────────────────────────

    def subscribe(self, listener: BufferListener) -> Callable[[], None]:
        """Register *listener*; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, event: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                log.exception("Buffer listener failed on '%s'", event)
