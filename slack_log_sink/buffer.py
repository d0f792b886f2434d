"""Event buffer: thread-safe FIFO queue between producers and the scheduler."""

import threading
from collections import deque
from typing import Callable, Optional

from slack_log_sink.models import LogEvent


class EventBuffer:
    """Bounded (or unbounded) FIFO of log events.

    Any number of producer threads may call ``add``; a single consumer
    drains batches. When a queue limit is set and the buffer is full, the
    incoming event is dropped and ``add`` returns False.

    ``on_threshold`` is called, outside the lock, by the producer whose add
    brings the buffer up to ``batch_size``.

    Once ``close`` has run, ``add`` rejects every event, so nothing can be
    left behind after the consumer's last drain.
    """

    def __init__(
        self,
        batch_size: int,
        queue_limit: Optional[int] = None,
        on_threshold: Optional[Callable[[], None]] = None,
    ):
        self._batch_size = batch_size
        self._queue_limit = queue_limit
        self._on_threshold = on_threshold
        self._events: deque[LogEvent] = deque()
        self._lock = threading.Lock()
        self._closed = False

    def add(self, event: LogEvent) -> bool:
        """Append an event. Returns False if it was dropped because the
        buffer is full or closed."""
        with self._lock:
            if self._closed:
                return False
            if self._queue_limit is not None and len(self._events) >= self._queue_limit:
                return False
            self._events.append(event)
            reached = len(self._events) >= self._batch_size

        if reached and self._on_threshold is not None:
            self._on_threshold()
        return True

    def drain(self, max_items: Optional[int] = None) -> list[LogEvent]:
        """Remove and return up to *max_items* of the oldest events."""
        with self._lock:
            count = len(self._events) if max_items is None else min(max_items, len(self._events))
            return [self._events.popleft() for _ in range(count)]

    def close(self) -> int:
        """Stop accepting events and discard what is left. Returns how many
        were discarded."""
        with self._lock:
            self._closed = True
            count = len(self._events)
            self._events.clear()
            return count

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def batch_size(self) -> int:
        return self._batch_size

    @property
    def queue_limit(self) -> Optional[int]:
        return self._queue_limit

    @property
    def pending_count(self) -> int:
        """Number of events currently waiting in the buffer."""
        with self._lock:
            return len(self._events)

    def __len__(self) -> int:
        return self.pending_count
