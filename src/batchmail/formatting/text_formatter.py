"""Text formatters that render log events for a transport payload."""

from __future__ import annotations

import io
from abc import ABC, abstractmethod
from typing import Iterable, TextIO

from ..core.events import LogEvent

DEFAULT_OUTPUT_TEMPLATE = "{timestamp:%Y-%m-%d %H:%M:%S.%f %z} [{level}] {message}{newline}{exception}"


class TextFormatter(ABC):
    """Renders one log event to a text stream."""

    @abstractmethod
    def format(self, event: LogEvent, output: TextIO) -> None:
        """Write ``event`` to ``output``."""

    def format_all(self, events: Iterable[LogEvent]) -> str:
        """Render several events, in order, into one string."""
        payload = io.StringIO()
        for event in events:
            self.format(event, payload)
        return payload.getvalue()


class TemplateTextFormatter(TextFormatter):
    """Formats events with a ``str.format`` style output template.

    Available fields: ``timestamp`` (datetime), ``level``, ``message``
    (rendered), ``message_template``, ``exception``, ``properties`` and
    ``newline``.
    """

    def __init__(self, output_template: str = DEFAULT_OUTPUT_TEMPLATE, newline: str = "\n"):
        self.output_template = output_template
        self.newline = newline

    def format(self, event: LogEvent, output: TextIO) -> None:
        output.write(
            self.output_template.format(
                timestamp=event.timestamp,
                level=event.level.value,
                message=event.render_message(),
                message_template=event.message_template,
                exception=event.exception or "",
                properties=dict(event.properties),
                newline=self.newline,
            )
        )
