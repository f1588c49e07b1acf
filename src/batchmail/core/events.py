"""Event models for the batchmail sink.

This module defines the immutable records that flow through the sink:
Application → Event Queue → Batch Cutter → Delivery Invoker → Transport
"""

from __future__ import annotations

import re
import traceback
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional, Sequence, Tuple

_PLACEHOLDER = re.compile(r"\{\{|\}\}|\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::(?P<spec>[^{}]*))?\}")


class LogLevel(str, Enum):
    """Severity of a log event."""

    VERBOSE = "Verbose"
    DEBUG = "Debug"
    INFORMATION = "Information"
    WARNING = "Warning"
    ERROR = "Error"
    FATAL = "Fatal"

    @classmethod
    def from_name(cls, name: str) -> "LogLevel":
        """Map a level name from loguru, the logging module or this enum to a LogLevel."""
        key = name.strip().upper()
        if key in _LEVEL_ALIASES:
            return _LEVEL_ALIASES[key]
        for level in cls:
            if level.name == key:
                return level
        raise ValueError(f"Unknown log level: {name}")


_LEVEL_ALIASES: Dict[str, LogLevel] = {
    "TRACE": LogLevel.VERBOSE,
    "INFO": LogLevel.INFORMATION,
    "SUCCESS": LogLevel.INFORMATION,
    "WARN": LogLevel.WARNING,
    "CRITICAL": LogLevel.FATAL,
}


@dataclass(frozen=True)
class LogEvent:
    """One logged occurrence. Never mutated once created."""

    message_template: str
    level: LogLevel = LogLevel.INFORMATION
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    properties: Mapping[str, Any] = field(default_factory=dict)
    exception: Optional[str] = None

    def __post_init__(self):
        # Freeze a private copy so later changes to the caller's dict are not seen
        object.__setattr__(self, "properties", MappingProxyType(dict(self.properties)))

    def render_message(self) -> str:
        """Render the message template, substituting known properties.

        Placeholders naming an unknown property are left as written, and
        ``{{``/``}}`` render as literal braces.
        """

        def _substitute(match: re.Match) -> str:
            name = match.group("name")
            if name is None:
                return match.group(0)[0]
            if name not in self.properties:
                return match.group(0)
            value = self.properties[name]
            spec = match.group("spec")
            if spec:
                try:
                    return format(value, spec)
                except (TypeError, ValueError):
                    return str(value)
            return str(value)

        return _PLACEHOLDER.sub(_substitute, self.message_template)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level.value,
            "message_template": self.message_template,
            "message": self.render_message(),
            "properties": dict(self.properties),
            "exception": self.exception,
        }

    @classmethod
    def from_loguru_record(cls, record: Mapping[str, Any]) -> "LogEvent":
        """Build an event from a loguru record dict.

        Loguru has already formatted the message, so its braces are escaped
        and the template renders back to exactly that text.
        """
        exception_text = None
        record_exception = record.get("exception")
        if record_exception is not None and record_exception.type is not None:
            exception_text = "".join(traceback.format_exception(record_exception.type, record_exception.value, record_exception.traceback))

        properties = dict(record.get("extra", {}))
        properties.setdefault("SourceContext", record.get("name"))

        return cls(
            message_template=record["message"].replace("{", "{{").replace("}", "}}"),
            level=LogLevel.from_name(record["level"].name),
            timestamp=record["time"],
            properties=properties,
            exception=exception_text,
        )


@dataclass(frozen=True)
class Batch:
    """An ordered, immutable group of events delivered together."""

    events: Tuple[LogEvent, ...] = ()
    batch_id: str = field(default_factory=lambda: f"batch_{uuid.uuid4().hex[:12]}")
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def of(cls, events: Sequence[LogEvent]) -> "Batch":
        return cls(events=tuple(events))

    def size(self) -> int:
        """Return the number of events in this batch."""
        return len(self.events)

    def __len__(self) -> int:
        return len(self.events)

    def __iter__(self) -> Iterator[LogEvent]:
        return iter(self.events)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "batch_id": self.batch_id,
            "created_at": self.created_at.isoformat(),
            "events": [event.to_dict() for event in self.events],
            "event_count": len(self.events),
        }
