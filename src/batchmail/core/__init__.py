"""Core models and errors for the batchmail sink."""

from .errors import BatchMailError, DeliveryFailed, ShutdownIncomplete, SinkConfigurationError, SinkDisposedError
from .events import Batch, LogEvent, LogLevel

__all__ = [
    "Batch",
    "LogEvent",
    "LogLevel",
    "BatchMailError",
    "DeliveryFailed",
    "ShutdownIncomplete",
    "SinkConfigurationError",
    "SinkDisposedError",
]
