"""Delivery invoker for handing batches to a transport.

This module isolates transport failures from the rest of the sink: whatever
the transport raises is turned into a ``DeliveryFailed`` reported on the
diagnostic channel, and the batch is dropped. At most one delivery is ever
outstanding.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..config.logger_config import diagnostics
from ..core.errors import DeliveryFailed
from ..core.events import Batch
from .transport import Transport


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of one delivery attempt."""

    batch_id: str
    event_count: int
    success: bool
    reason: Optional[str] = None
    duration_seconds: float = 0.0

    @property
    def error(self) -> Optional[DeliveryFailed]:
        if self.success:
            return None
        return DeliveryFailed(self.reason or "unknown error", self.batch_id)


class DeliveryInvoker:
    """Hands batches to a transport one at a time."""

    def __init__(self, transport: Transport):
        """Initialize the delivery invoker.

        Args:
            transport: Transport that performs the actual network delivery
        """
        self.transport = transport
        self._single_flight = asyncio.Lock()
        self._in_flight = 0

        # Statistics
        self._total_batches_delivered = 0
        self._total_batches_failed = 0
        self._total_events_delivered = 0
        self._total_events_dropped = 0
        self._total_delivery_time = 0.0
        self._last_successful_delivery: Optional[datetime] = None
        self._last_error: Optional[str] = None

    @property
    def in_flight(self) -> int:
        return self._in_flight

    async def deliver(self, batch: Batch) -> DeliveryResult:
        """Deliver a batch through the transport.

        Never raises for transport failures; a cancelled delivery propagates
        the cancellation after being counted as failed.

        Args:
            batch: Batch to deliver

        Returns:
            The delivery result
        """
        async with self._single_flight:
            self._in_flight += 1
            start_time = time.monotonic()
            try:
                await self.transport.deliver(batch)
            except asyncio.CancelledError:
                self._record_failure(batch, "delivery abandoned", time.monotonic() - start_time)
                raise
            except Exception as e:
                duration = time.monotonic() - start_time
                reason = f"{type(e).__name__}: {e}"
                self._record_failure(batch, reason, duration)
                diagnostics.opt(exception=e).error(f"Failed to deliver batch {batch.batch_id} ({batch.size()} events): {reason}")
                return DeliveryResult(batch.batch_id, batch.size(), False, reason, duration)
            finally:
                self._in_flight -= 1

        duration = time.monotonic() - start_time
        self._total_batches_delivered += 1
        self._total_events_delivered += batch.size()
        self._total_delivery_time += duration
        self._last_successful_delivery = datetime.now(timezone.utc)
        self._last_error = None

        diagnostics.info(f"Delivered batch {batch.batch_id} with {batch.size()} events in {duration:.2f}s")
        return DeliveryResult(batch.batch_id, batch.size(), True, None, duration)

    def _record_failure(self, batch: Batch, reason: str, duration: float) -> None:
        self._total_batches_failed += 1
        self._total_events_dropped += batch.size()
        self._total_delivery_time += duration
        self._last_error = reason

    def get_stats(self) -> Dict[str, Any]:
        """Get delivery statistics."""
        attempts = self._total_batches_delivered + self._total_batches_failed

        return {
            "total_batches_delivered": self._total_batches_delivered,
            "total_batches_failed": self._total_batches_failed,
            "total_events_delivered": self._total_events_delivered,
            "total_events_dropped": self._total_events_dropped,
            "success_rate": self._total_batches_delivered / max(1, attempts),
            "average_delivery_time_seconds": self._total_delivery_time / max(1, attempts),
            "last_successful_delivery": self._last_successful_delivery.isoformat() if self._last_successful_delivery else None,
            "last_error": self._last_error,
            "in_flight": self._in_flight,
        }
