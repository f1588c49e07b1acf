"""Batch cutter for turning queued events into deliverable batches.

Each call takes exactly the oldest ``min(batch_size_limit, queue_length)``
events off the queue. An empty queue yields no batch, so no delivery is
attempted for it.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from ..config.logger_config import diagnostics
from ..core.events import Batch
from ..queuer import EventQueue


class BatchCutter:
    """Cuts batches of at most ``batch_size_limit`` events from an event queue."""

    def __init__(self, event_queue: EventQueue, batch_size_limit: int):
        """Initialize the batch cutter.

        Args:
            event_queue: Queue to read from
            batch_size_limit: Maximum number of events per batch
        """
        if batch_size_limit <= 0:
            raise ValueError("batch_size_limit must be positive")

        self.event_queue = event_queue
        self.batch_size_limit = batch_size_limit

        self._total_batches_cut = 0
        self._total_events_cut = 0

    def cut_batch(self) -> Optional[Batch]:
        """Cut the next batch, or return None when the queue is empty."""
        events = self.event_queue.drain_up_to(self.batch_size_limit)
        if not events:
            return None

        batch = Batch.of(events)
        self._total_batches_cut += 1
        self._total_events_cut += batch.size()

        diagnostics.debug(f"Cut batch {batch.batch_id} with {batch.size()} events")
        return batch

    def get_stats(self) -> Dict[str, Any]:
        """Get cutter statistics."""
        return {
            "batch_size_limit": self.batch_size_limit,
            "total_batches_cut": self._total_batches_cut,
            "total_events_cut": self._total_events_cut,
        }
