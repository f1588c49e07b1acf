"""Configuration management for the batchmail sink.

This module provides the batching configuration consumed by the periodic
sink and allows environment variable overrides.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from .logger_config import diagnostics

DEFAULT_BATCH_SIZE_LIMIT = 100
DEFAULT_PERIOD_SECONDS = 30.0
DEFAULT_SHUTDOWN_TIMEOUT_SECONDS = 30.0

TRANSPORT_VARIANTS = ("legacy", "modern")


@dataclass
class SinkConfig:
    """Configuration for the periodic batching sink."""

    batch_size_limit: int = DEFAULT_BATCH_SIZE_LIMIT  # Maximum events per batch
    period_seconds: float = DEFAULT_PERIOD_SECONDS  # Time between batch cycles
    shutdown_timeout_seconds: float = DEFAULT_SHUTDOWN_TIMEOUT_SECONDS  # Bound on the final drain
    transport_variant: str = "modern"  # "legacy" (smtplib) or "modern" (aiosmtplib)

    @classmethod
    def from_env(cls, **overrides) -> "SinkConfig":
        """Create a configuration, applying environment variables then explicit overrides."""
        config = cls()
        config._apply_env_overrides()
        for name, value in overrides.items():
            if not hasattr(config, name):
                raise TypeError(f"Unknown sink setting: {name}")
            setattr(config, name, value)
        return config

    def _apply_env_overrides(self) -> None:
        """Apply configuration overrides from environment variables."""
        if batch_size_limit := os.getenv("BATCHMAIL_BATCH_SIZE_LIMIT"):
            try:
                self.batch_size_limit = int(batch_size_limit)
            except ValueError:
                diagnostics.warning(f"Invalid batch size limit: {batch_size_limit}")

        if period := os.getenv("BATCHMAIL_PERIOD"):
            try:
                self.period_seconds = float(period)
            except ValueError:
                diagnostics.warning(f"Invalid period: {period}")

        if shutdown_timeout := os.getenv("BATCHMAIL_SHUTDOWN_TIMEOUT"):
            try:
                self.shutdown_timeout_seconds = float(shutdown_timeout)
            except ValueError:
                diagnostics.warning(f"Invalid shutdown timeout: {shutdown_timeout}")

        if transport := os.getenv("BATCHMAIL_TRANSPORT"):
            self.transport_variant = transport.strip().lower()

    def validate(self) -> tuple[bool, list[str]]:
        """Validate the configuration.

        Returns:
            Tuple of (is_valid, error_messages)
        """
        errors = []

        if not isinstance(self.batch_size_limit, int) or self.batch_size_limit <= 0:
            errors.append("Batch size limit must be a positive integer")

        if self.period_seconds <= 0:
            errors.append("Period must be positive")

        if self.shutdown_timeout_seconds < 0:
            errors.append("Shutdown timeout must not be negative")

        if self.transport_variant not in TRANSPORT_VARIANTS:
            errors.append(f"Transport variant must be one of {', '.join(TRANSPORT_VARIANTS)}")

        return len(errors) == 0, errors
