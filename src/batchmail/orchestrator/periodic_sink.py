"""Periodic batching sink: the application-facing side of batchmail.

This module wires the event queue, batch cutter, delivery invoker and
scheduler together, manages their lifecycle, and exposes the single inbound
operation the application needs: ``emit``.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import timedelta
from enum import Enum
from typing import Any, Dict, Optional, Union

from ..batcher import BatchCutter
from ..config.logger_config import diagnostics, is_diagnostic_record
from ..config.settings import SinkConfig
from ..core.errors import SinkConfigurationError, SinkDisposedError
from ..core.events import LogEvent
from ..queuer import EventQueue
from ..sender import DeliveryInvoker, Transport
from .batch_scheduler import BatchScheduler

Seconds = Union[float, int, timedelta]


def to_seconds(value: Seconds) -> float:
    if isinstance(value, timedelta):
        return value.total_seconds()
    return float(value)


class SinkState(str, Enum):
    """Lifecycle states of a sink. DISPOSED is terminal."""

    STOPPED = "stopped"
    RUNNING = "running"
    FLUSHING = "flushing"
    DISPOSED = "disposed"


class PeriodicBatchingSink:
    """Accepts log events and periodically delivers them in batches."""

    def __init__(
        self,
        transport: Transport,
        config: Optional[SinkConfig] = None,
        batch_size_limit: Optional[int] = None,
        period: Optional[Seconds] = None,
        shutdown_timeout: Optional[Seconds] = None,
    ):
        """Initialize the sink. Configuration problems raise immediately.

        Args:
            transport: Transport that delivers each batch
            config: Batching configuration, defaults to ``SinkConfig()``
            batch_size_limit: Override of ``config.batch_size_limit``
            period: Override of ``config.period_seconds`` (seconds or timedelta)
            shutdown_timeout: Override of ``config.shutdown_timeout_seconds``

        Raises:
            SinkConfigurationError: If the transport is missing or the configuration is invalid
        """
        if transport is None:
            raise SinkConfigurationError("A transport is required")

        config = replace(config) if config else SinkConfig()
        if batch_size_limit is not None:
            config.batch_size_limit = batch_size_limit
        if period is not None:
            config.period_seconds = to_seconds(period)
        if shutdown_timeout is not None:
            config.shutdown_timeout_seconds = to_seconds(shutdown_timeout)

        is_valid, errors = config.validate()
        if not is_valid:
            raise SinkConfigurationError(errors)

        self.config = config
        self.queue = EventQueue()
        self.cutter = BatchCutter(self.queue, config.batch_size_limit)
        self.invoker = DeliveryInvoker(transport)
        self.scheduler = BatchScheduler(
            cutter=self.cutter,
            invoker=self.invoker,
            period_seconds=config.period_seconds,
            shutdown_timeout_seconds=config.shutdown_timeout_seconds,
        )

        self._state = SinkState.STOPPED
        self._lock = threading.RLock()
        self._dispose_result: Optional[bool] = None
        self._active_flushes = 0

    @property
    def state(self) -> SinkState:
        return self._state

    @property
    def transport(self) -> Transport:
        return self.invoker.transport

    @property
    def shutdown_error(self):
        """The ``ShutdownIncomplete`` reported by the last dispose, if any."""
        return self.scheduler.shutdown_error

    def emit(self, event: LogEvent) -> None:
        """Accept an event for delivery. Never blocks on the network and never raises."""
        self.queue.enqueue(event)

    def write(self, message) -> None:
        """Loguru sink entry point: ``logger.add(sink.write)``.

        Records from batchmail's own diagnostic channel are ignored.
        """
        record = message.record
        if is_diagnostic_record(record):
            return
        try:
            event = LogEvent.from_loguru_record(record)
        except Exception as e:
            diagnostics.opt(exception=e).warning(f"Could not convert loguru record to a log event: {e}")
            return
        self.emit(event)

    def start(self) -> None:
        """Start periodic delivery.

        Raises:
            SinkDisposedError: If the sink has already been disposed
        """
        with self._lock:
            if self._state is SinkState.DISPOSED:
                raise SinkDisposedError("Cannot start a disposed sink")
            if self._state is not SinkState.STOPPED:
                diagnostics.warning("Sink is already running")
                return

            self.scheduler.start()
            self._state = SinkState.RUNNING
            diagnostics.info(f"Started periodic batching sink - batch size limit: {self.config.batch_size_limit}, period: {self.config.period_seconds}s")

    def flush(self, timeout: Optional[Seconds] = None) -> bool:
        """Deliver everything queued so far without waiting for the next tick.

        Args:
            timeout: Maximum time to wait, or None to wait until drained

        Returns:
            True if the queue was drained within the timeout
        """
        with self._lock:
            if self._state not in (SinkState.RUNNING, SinkState.FLUSHING):
                return self.queue.is_empty()
            self._state = SinkState.FLUSHING
            self._active_flushes += 1

        try:
            done = self.scheduler.request_flush()
            drained = done.wait(None if timeout is None else to_seconds(timeout))
        finally:
            with self._lock:
                self._active_flushes -= 1
                if self._active_flushes == 0 and self._state is SinkState.FLUSHING:
                    self._state = SinkState.RUNNING

        return drained and self.queue.is_empty()

    def dispose(self) -> bool:
        """Stop the sink, draining the queue within the shutdown timeout.

        Idempotent; later calls return the first call's result.

        Returns:
            True if every queued event was handed to the transport before
            returning, False if the shutdown timeout elapsed first
        """
        with self._lock:
            if self._state is SinkState.DISPOSED:
                return bool(self._dispose_result)

            self._state = SinkState.FLUSHING
            self.queue.close()
            try:
                self._dispose_result = self.scheduler.request_shutdown()
            finally:
                self._state = SinkState.DISPOSED

        stats = self.invoker.get_stats()
        diagnostics.info(f"Disposed periodic batching sink. Stats - Delivered: {stats['total_events_delivered']}, Dropped: {stats['total_events_dropped']}, Batches failed: {stats['total_batches_failed']}")
        return self._dispose_result

    stop = dispose
    close = dispose

    def __enter__(self) -> "PeriodicBatchingSink":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    def get_stats(self) -> Dict[str, Any]:
        """Get statistics from every component of the sink."""
        return {
            "state": self._state.value,
            "queue": self.queue.get_stats(),
            "cutter": self.cutter.get_stats(),
            "delivery": self.invoker.get_stats(),
            "scheduler": self.scheduler.get_stats(),
        }
