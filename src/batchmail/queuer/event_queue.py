"""In-memory event queue for the batchmail sink.

This module provides the thread-safe, unbounded buffer that sits between the
application threads emitting log events and the scheduler that drains them
into batches. It is the only structure shared between those two contexts.
"""

from __future__ import annotations

import threading
from collections import deque

from ..config.logger_config import diagnostics
from ..core.events import LogEvent


class EventQueue:
    """Thread-safe unbounded FIFO queue of pending log events."""

    def __init__(self):
        self._queue: deque[LogEvent] = deque()
        self._lock = threading.Lock()
        self._closed = False

        # Statistics
        self._total_enqueued = 0
        self._total_dequeued = 0
        self._total_rejected = 0

    def enqueue(self, event: LogEvent) -> bool:
        """Append an event to the tail of the queue.

        Never blocks on anything but the queue's own short critical section
        and never raises. Once the queue is closed, events are dropped.

        Args:
            event: Event to enqueue

        Returns:
            True if the event was queued, False if the queue is closed
        """
        with self._lock:
            if not self._closed:
                self._queue.append(event)
                self._total_enqueued += 1
                return True

            self._total_rejected += 1
            first_rejection = self._total_rejected == 1

        if first_rejection:
            diagnostics.warning("Event queue is closed, dropping events emitted after shutdown")
        return False

    def drain_up_to(self, max_count: int) -> list[LogEvent]:
        """Atomically remove and return up to ``max_count`` events in FIFO order.

        Only the scheduler calls this; there are never concurrent drains.

        Args:
            max_count: Maximum number of events to return

        Returns:
            List of events (may be empty)
        """
        if max_count <= 0:
            return []

        with self._lock:
            count = min(max_count, len(self._queue))
            events = [self._queue.popleft() for _ in range(count)]
            self._total_dequeued += count

        if events:
            diagnostics.debug(f"Dequeued {len(events)} events, queue size: {self.size()}")

        return events

    def size(self) -> int:
        """Return the current queue size."""
        with self._lock:
            return len(self._queue)

    def is_empty(self) -> bool:
        """Check if the queue is empty."""
        with self._lock:
            return len(self._queue) == 0

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Stop accepting events. Events already queued stay until drained or cleared."""
        with self._lock:
            self._closed = True

    def clear(self) -> list[LogEvent]:
        """Remove all events from the queue and return them."""
        with self._lock:
            events = list(self._queue)
            self._queue.clear()

        if events:
            diagnostics.info(f"Cleared {len(events)} events from queue")
        return events

    def get_stats(self) -> dict:
        """Get queue statistics."""
        with self._lock:
            return {
                "current_size": len(self._queue),
                "total_enqueued": self._total_enqueued,
                "total_dequeued": self._total_dequeued,
                "total_rejected": self._total_rejected,
                "closed": self._closed,
            }
