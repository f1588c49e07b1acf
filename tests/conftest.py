"""Shared fixtures and mock transports for the batchmail tests."""

from __future__ import annotations

import asyncio
import threading
import time
from typing import Callable, List

import pytest
from loguru import logger

from batchmail.config.logger_config import is_diagnostic_record
from batchmail.core.events import Batch, LogEvent
from batchmail.sender.transport import Transport


class RecordingTransport(Transport):
    """Records every batch and tracks how many deliveries overlap."""

    def __init__(self, delay: float = 0.0, fail: bool = False):
        self.delay = delay
        self.fail = fail
        self.batches: List[Batch] = []
        self.delivered_at: List[float] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False
        self._lock = threading.Lock()

    async def deliver(self, batch: Batch) -> None:
        with self._lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            self.batches.append(batch)
            self.delivered_at.append(time.monotonic())
            if self.fail:
                raise ConnectionError("mail server unreachable")
        finally:
            with self._lock:
                self.in_flight -= 1

    async def aclose(self) -> None:
        self.closed = True

    @property
    def delivered_messages(self) -> List[str]:
        return [event.message_template for batch in self.batches for event in batch]

    @property
    def batch_messages(self) -> List[List[str]]:
        return [[event.message_template for event in batch] for batch in self.batches]


class HangingTransport(Transport):
    """A transport that never responds."""

    def __init__(self):
        self.started = 0

    async def deliver(self, batch: Batch) -> None:
        self.started += 1
        await asyncio.Event().wait()


def make_events(*messages: str) -> List[LogEvent]:
    return [LogEvent(message_template=message) for message in messages]


def wait_until(predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.01) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def diagnostic_messages():
    """Collect messages written to the diagnostic channel."""
    messages: List[str] = []
    handler_id = logger.add(lambda message: messages.append(message.record["message"]), filter=is_diagnostic_record, level="DEBUG")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def recording_transport():
    return RecordingTransport()
