"""Batch scheduler driving the periodic cut-and-deliver cycle.

The scheduler owns a single background thread running its own asyncio event
loop. Only that loop cuts batches, talks to the delivery invoker and touches
the transport; application threads interact with it solely through the event
queue and the thread-safe ``request_flush``/``request_shutdown`` signals.

Cycle:
    IDLE ──tick──▶ CYCLING (cut one batch, deliver, await settle) ──▶ IDLE
    IDLE/CYCLING ──shutdown──▶ SHUTTING_DOWN (bounded final drain, terminal)
"""

from __future__ import annotations

import asyncio
import threading
import time
from enum import Enum
from typing import Any, Dict, List, Optional

from ..batcher import BatchCutter
from ..config.logger_config import diagnostics
from ..core.errors import ShutdownIncomplete
from ..sender import DeliveryInvoker, DeliveryResult

_STARTUP_TIMEOUT_SECONDS = 5.0
_JOIN_GRACE_SECONDS = 1.0
_LEFTOVER_TASK_TIMEOUT_SECONDS = 1.0


class SchedulerState(str, Enum):
    """States of the scheduling loop."""

    IDLE = "idle"
    CYCLING = "cycling"
    SHUTTING_DOWN = "shutting_down"


class BatchScheduler:
    """Runs batch cycles on a period from a dedicated thread."""

    def __init__(
        self,
        cutter: BatchCutter,
        invoker: DeliveryInvoker,
        period_seconds: float,
        shutdown_timeout_seconds: float,
        name: str = "batchmail-scheduler",
    ):
        """Initialize the scheduler.

        Args:
            cutter: Cuts batches from the event queue
            invoker: Delivers batches through the transport
            period_seconds: Time between the end of one tick and the next tick
            shutdown_timeout_seconds: Bound on the final drain at shutdown
            name: Name of the background thread
        """
        self.cutter = cutter
        self.invoker = invoker
        self.period_seconds = period_seconds
        self.shutdown_timeout_seconds = shutdown_timeout_seconds
        self.name = name

        self._state = SchedulerState.IDLE
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._ready = threading.Event()
        self._finished = threading.Event()

        # Created on the scheduler's own loop
        self._wake: Optional[asyncio.Event] = None
        self._stop: Optional[asyncio.Event] = None
        self._current_delivery: Optional[asyncio.Task] = None
        self._current_batch_size = 0

        self._stop_requested = False
        self._shutdown_deadline: Optional[float] = None
        self._flush_waiters: List[threading.Event] = []

        self.shutdown_completed: Optional[bool] = None
        self.shutdown_error: Optional[ShutdownIncomplete] = None

        # Statistics
        self._total_ticks = 0
        self._total_cycles = 0
        self._total_empty_cycles = 0

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def started(self) -> bool:
        return self._thread is not None

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    def start(self) -> None:
        """Start the scheduler thread and wait until its loop is ready."""
        with self._lock:
            if self._thread is not None:
                diagnostics.warning("Scheduler is already running")
                return

            self._thread = threading.Thread(target=self._thread_main, name=self.name, daemon=True)
            self._thread.start()

        if not self._ready.wait(_STARTUP_TIMEOUT_SECONDS):
            diagnostics.error(f"Scheduler thread {self.name} did not become ready within {_STARTUP_TIMEOUT_SECONDS:.0f}s")
        else:
            diagnostics.debug(f"Started scheduler thread {self.name}")

    def request_flush(self) -> threading.Event:
        """Ask the loop to run cycles until the queue is empty.

        Returns:
            An event set once the queue has been drained (or the scheduler stopped)
        """
        done = threading.Event()
        with self._lock:
            if self._stop_requested or self._finished.is_set() or self._thread is None:
                done.set()
                return done
            self._flush_waiters.append(done)

        if not self._signal(self._set_wake):
            self._release_flush_waiters()
        return done

    def request_shutdown(self) -> bool:
        """Stop the scheduler, draining the queue within the shutdown timeout.

        Blocks the caller until the final drain finishes or the timeout
        elapses. An in-flight delivery is waited for, not cancelled, unless
        the timeout runs out first.

        Returns:
            True if every queued event was delivered or attempted, False otherwise
        """
        with self._lock:
            if not self._stop_requested:
                self._stop_requested = True
                self._shutdown_deadline = time.monotonic() + self.shutdown_timeout_seconds
            needs_start = self._thread is None

        if needs_start:
            # Never started: run the loop only for the final drain
            self.start()

        self._signal(self._set_stop)

        thread = self._thread
        if thread is not None:
            thread.join(self.shutdown_timeout_seconds + _JOIN_GRACE_SECONDS)

        if not self._finished.is_set():
            remaining = self.cutter.event_queue.size()
            error = ShutdownIncomplete(remaining, self.shutdown_timeout_seconds)
            if self.shutdown_error is None:
                self.shutdown_error = error
                diagnostics.error(str(error))
            self.shutdown_completed = False
            return False

        return bool(self.shutdown_completed)

    def get_stats(self) -> Dict[str, Any]:
        """Get scheduler statistics."""
        return {
            "state": self._state.value,
            "period_seconds": self.period_seconds,
            "total_ticks": self._total_ticks,
            "total_cycles": self._total_cycles,
            "total_empty_cycles": self._total_empty_cycles,
            "shutdown_completed": self.shutdown_completed,
        }

    def _signal(self, callback) -> bool:
        loop = self._loop
        if loop is None or loop.is_closed():
            return False
        try:
            loop.call_soon_threadsafe(callback)
        except RuntimeError:
            # Loop closed between the check and the call
            return False
        return True

    def _set_wake(self) -> None:
        if self._wake is not None:
            self._wake.set()

    def _set_stop(self) -> None:
        if self._stop is not None:
            self._stop.set()
        self._set_wake()

    def _release_flush_waiters(self) -> None:
        with self._lock:
            waiters, self._flush_waiters = self._flush_waiters, []
        for waiter in waiters:
            waiter.set()

    def _thread_main(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop

        try:
            loop.run_until_complete(self._run())
        except Exception as e:
            diagnostics.opt(exception=e).error(f"Scheduler loop crashed: {e}")
            self.shutdown_completed = False
        finally:
            try:
                self._cancel_leftover_tasks(loop)
                loop.run_until_complete(loop.shutdown_asyncgens())
            finally:
                loop.close()
                self._release_flush_waiters()
                self._finished.set()

    def _cancel_leftover_tasks(self, loop: asyncio.AbstractEventLoop) -> None:
        tasks = [task for task in asyncio.all_tasks(loop) if not task.done()]
        if not tasks:
            return

        for task in tasks:
            task.cancel()
        loop.run_until_complete(asyncio.wait(tasks, timeout=_LEFTOVER_TASK_TIMEOUT_SECONDS))

    async def _run(self) -> None:
        """Main scheduling loop."""
        loop = asyncio.get_running_loop()
        self._wake = asyncio.Event()
        self._stop = asyncio.Event()
        if self._stop_requested:
            self._stop.set()
        self._ready.set()

        next_tick = loop.time() + self.period_seconds

        try:
            while not self._stop.is_set():
                timeout = max(0.0, next_tick - loop.time())
                try:
                    await asyncio.wait_for(self._wake.wait(), timeout=timeout)
                except asyncio.TimeoutError:
                    pass
                self._wake.clear()

                if self._stop.is_set():
                    break

                try:
                    if self._has_flush_waiters():
                        try:
                            await self._drain_until_empty()
                        finally:
                            if not self._stop.is_set():
                                self._release_flush_waiters()

                    # Stop may arrive while a flush delivery is in flight
                    if self._stop.is_set():
                        break

                    if loop.time() >= next_tick:
                        self._total_ticks += 1
                        await self._run_cycle()
                        next_tick = loop.time() + self.period_seconds
                except Exception as e:
                    diagnostics.opt(exception=e).error(f"Error in scheduler cycle: {e}")
                    next_tick = loop.time() + self.period_seconds
        finally:
            await self._shutdown()

    def _has_flush_waiters(self) -> bool:
        with self._lock:
            return bool(self._flush_waiters)

    async def _run_cycle(self) -> Optional[DeliveryResult]:
        """Cut one batch and deliver it, waiting for the delivery to settle."""
        if self._current_delivery is not None and not self._current_delivery.done():
            # Single flight: the unsettled delivery is left for the final drain
            return None

        self._state = SchedulerState.CYCLING
        try:
            self._total_cycles += 1
            batch = self.cutter.cut_batch()
            if batch is None:
                self._total_empty_cycles += 1
                return None

            task = asyncio.ensure_future(self.invoker.deliver(batch))
            self._current_delivery = task
            self._current_batch_size = batch.size()
            stop_wait = asyncio.ensure_future(self._stop.wait())
            try:
                await asyncio.wait({task, stop_wait}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                stop_wait.cancel()

            if not task.done():
                # Shutdown requested mid-delivery; the final drain waits for it
                return None

            self._current_delivery = None
            return task.result()
        finally:
            if self._state is SchedulerState.CYCLING:
                self._state = SchedulerState.IDLE

    async def _drain_until_empty(self) -> None:
        while not self._stop.is_set() and not self.cutter.event_queue.is_empty():
            await self._run_cycle()

    def _time_left(self) -> float:
        if self._shutdown_deadline is None:
            return self.shutdown_timeout_seconds
        return self._shutdown_deadline - time.monotonic()

    async def _settle(self, task: asyncio.Task) -> bool:
        """Wait for an in-flight delivery until the shutdown deadline. Returns True if it settled."""
        remaining = self._time_left()
        if remaining > 0:
            await asyncio.wait({task}, timeout=remaining)
        if task.done():
            return True

        task.cancel()
        diagnostics.error("Abandoned in-flight delivery: shutdown timeout elapsed before the transport responded")
        return False

    async def _shutdown(self) -> None:
        """Final best-effort drain, bounded by the shutdown deadline."""
        self._state = SchedulerState.SHUTTING_DOWN
        if self._shutdown_deadline is None:
            self._shutdown_deadline = time.monotonic() + self.shutdown_timeout_seconds

        queue = self.cutter.event_queue
        diagnostics.debug(f"Scheduler shutting down with {queue.size()} queued events")

        discarded = 0
        completed = True

        if self._current_delivery is not None and not self._current_delivery.done():
            if not await self._settle(self._current_delivery):
                discarded += self._current_batch_size
                completed = False
        self._current_delivery = None

        while completed:
            if queue.is_empty():
                break
            if self._time_left() <= 0:
                completed = False
                break

            batch = self.cutter.cut_batch()
            if batch is None:
                break

            task = asyncio.ensure_future(self.invoker.deliver(batch))
            if not await self._settle(task):
                discarded += batch.size()
                completed = False

        if not completed:
            discarded += len(queue.clear())
            self.shutdown_error = ShutdownIncomplete(discarded, self.shutdown_timeout_seconds)
            diagnostics.error(str(self.shutdown_error))

        await self._close_transport()
        self.shutdown_completed = completed
        self._release_flush_waiters()

    async def _close_transport(self) -> None:
        timeout = max(self._time_left(), 0.1)
        try:
            await asyncio.wait_for(self.invoker.transport.aclose(), timeout=timeout)
        except asyncio.TimeoutError:
            diagnostics.warning("Timed out closing transport")
        except Exception as e:
            diagnostics.opt(exception=e).warning(f"Error closing transport: {e}")
