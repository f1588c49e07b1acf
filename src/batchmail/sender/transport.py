"""Transport capability used by the delivery invoker.

A transport knows how to ship one batch over the network. The core never
inspects which transport it holds; variants are chosen once, at construction.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum

from ..core.events import Batch


class TransportVariant(str, Enum):
    """Concrete transports shipped with batchmail."""

    SMTP_LEGACY = "legacy"
    SMTP_MODERN = "modern"


class Transport(ABC):
    """Deliver a batch, asynchronously and fallibly."""

    @abstractmethod
    async def deliver(self, batch: Batch) -> None:
        """Deliver ``batch``. Any exception raised means the delivery failed."""

    async def aclose(self) -> None:
        """Release transport resources. Called once, from the scheduler, at shutdown."""
        return None
