"""Delivery of batches to transports."""

from .delivery_invoker import DeliveryInvoker, DeliveryResult
from .smtp_transport import EmailConnectionInfo, SmtpLegacyTransport, SmtpModernTransport, build_message, create_transport, split_recipients
from .transport import Transport, TransportVariant

__all__ = [
    "DeliveryInvoker",
    "DeliveryResult",
    "Transport",
    "TransportVariant",
    "EmailConnectionInfo",
    "SmtpLegacyTransport",
    "SmtpModernTransport",
    "build_message",
    "create_transport",
    "split_recipients",
]
