"""Event queuing module for the batchmail sink."""

from .event_queue import EventQueue

__all__ = ["EventQueue"]
