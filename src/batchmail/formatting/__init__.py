"""Formatting of log events into transport payload text."""

from .text_formatter import DEFAULT_OUTPUT_TEMPLATE, TemplateTextFormatter, TextFormatter

__all__ = ["TextFormatter", "TemplateTextFormatter", "DEFAULT_OUTPUT_TEMPLATE"]
