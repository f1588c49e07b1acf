"""Logger configuration for the sink's diagnostic channel.

Everything the sink reports about itself (delivery failures, shutdown problems,
lifecycle changes) is written through ``diagnostics``, a loguru logger bound to
a dedicated channel. Records on that channel are never fed back into a sink,
so a failing transport cannot generate more e-mail about itself.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Mapping, Optional

from loguru import logger

DIAGNOSTIC_CHANNEL = "batchmail.diagnostics"

diagnostics = logger.bind(channel=DIAGNOSTIC_CHANNEL)


@dataclass
class LoggingConfig:
    """Where and how diagnostic records are written."""

    level: str = "WARNING"
    log_to_console: bool = True
    log_file_path: Optional[Path] = None
    rotation: str = "10 MB"
    retention: str = "7 days"


def is_diagnostic_record(record: Mapping[str, Any]) -> bool:
    """Return True when a loguru record was emitted on the diagnostic channel."""
    return record["extra"].get("channel") == DIAGNOSTIC_CHANNEL


def setup_logging(config: Optional[LoggingConfig] = None) -> List[int]:
    """Configure loguru handlers for the diagnostic channel.

    Sets up:
    - Console output on stderr, colored
    - Optional file output with rotation and retention

    Only diagnostic records are routed to these handlers; the application's
    own logging setup is left alone.

    Returns:
        The loguru handler ids, so callers can remove them again
    """
    config = config or LoggingConfig()
    handler_ids = []

    if config.log_to_console:
        handler_ids.append(
            logger.add(
                sink=sys.stderr,
                format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>batchmail</cyan> - <level>{message}</level>",
                level=config.level,
                filter=is_diagnostic_record,
                colorize=True,
            )
        )

    if config.log_file_path:
        handler_ids.append(
            logger.add(
                sink=str(config.log_file_path),
                format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
                level=config.level,
                filter=is_diagnostic_record,
                rotation=config.rotation,
                retention=config.retention,
                compression="gz",
                enqueue=True,
            )
        )
        diagnostics.info(f"Diagnostic file logging enabled: {config.log_file_path}")

    return handler_ids
