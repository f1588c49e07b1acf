"""Exception types raised or reported by the batchmail sink."""

from __future__ import annotations

from typing import Optional


class BatchMailError(Exception):
    """Base class for all batchmail errors."""


class SinkConfigurationError(BatchMailError):
    """Raised at construction time when required configuration is missing or invalid."""

    def __init__(self, errors: list[str] | str):
        self.errors = [errors] if isinstance(errors, str) else list(errors)
        super().__init__("Invalid sink configuration: " + "; ".join(self.errors))


class SinkDisposedError(BatchMailError):
    """Raised when a disposed sink is asked to start again."""


class DeliveryFailed(BatchMailError):
    """A transport could not deliver a batch. The batch is dropped."""

    def __init__(self, reason: str, batch_id: Optional[str] = None):
        self.reason = reason
        self.batch_id = batch_id
        message = f"Delivery of {batch_id} failed: {reason}" if batch_id else f"Delivery failed: {reason}"
        super().__init__(message)


class ShutdownIncomplete(BatchMailError):
    """The queue could not be drained before the shutdown timeout elapsed."""

    def __init__(self, remaining: int, timeout: float):
        self.remaining = remaining
        self.timeout = timeout
        super().__init__(f"Shutdown did not complete within {timeout:.1f}s; {remaining} event(s) discarded")
