"""Event batching module for the batchmail sink."""

from .batch_cutter import BatchCutter

__all__ = ["BatchCutter"]
