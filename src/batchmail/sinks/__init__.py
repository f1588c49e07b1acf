"""Concrete sinks built on the periodic batching core."""

from .email_sink import DEFAULT_BATCH_POSTING_LIMIT, DEFAULT_PERIOD, EmailSink

__all__ = ["EmailSink", "DEFAULT_BATCH_POSTING_LIMIT", "DEFAULT_PERIOD"]
