"""batchmail - periodic batching log sink with e-mail delivery."""

from .config import LoggingConfig, SinkConfig, setup_logging
from .core import Batch, DeliveryFailed, LogEvent, LogLevel, ShutdownIncomplete, SinkConfigurationError, SinkDisposedError
from .formatting import TemplateTextFormatter, TextFormatter
from .orchestrator import PeriodicBatchingSink, SinkState
from .sender import EmailConnectionInfo, Transport, TransportVariant
from .sinks import EmailSink

__version__ = "1.0.0"

__all__ = [
    "Batch",
    "LogEvent",
    "LogLevel",
    "Transport",
    "TransportVariant",
    "PeriodicBatchingSink",
    "SinkState",
    "EmailSink",
    "EmailConnectionInfo",
    "TextFormatter",
    "TemplateTextFormatter",
    "SinkConfig",
    "LoggingConfig",
    "setup_logging",
    "DeliveryFailed",
    "ShutdownIncomplete",
    "SinkConfigurationError",
    "SinkDisposedError",
]
