"""Scheduling and lifecycle of the periodic batching sink."""

from .batch_scheduler import BatchScheduler, SchedulerState
from .periodic_sink import PeriodicBatchingSink, SinkState

__all__ = ["BatchScheduler", "SchedulerState", "PeriodicBatchingSink", "SinkState"]
