"""Configuration module for the batchmail sink."""

from .logger_config import DIAGNOSTIC_CHANNEL, LoggingConfig, diagnostics, is_diagnostic_record, setup_logging
from .settings import DEFAULT_BATCH_SIZE_LIMIT, DEFAULT_PERIOD_SECONDS, DEFAULT_SHUTDOWN_TIMEOUT_SECONDS, SinkConfig

__all__ = [
    "SinkConfig",
    "LoggingConfig",
    "DIAGNOSTIC_CHANNEL",
    "DEFAULT_BATCH_SIZE_LIMIT",
    "DEFAULT_PERIOD_SECONDS",
    "DEFAULT_SHUTDOWN_TIMEOUT_SECONDS",
    "diagnostics",
    "is_diagnostic_record",
    "setup_logging",
]
