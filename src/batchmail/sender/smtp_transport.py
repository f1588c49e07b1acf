"""SMTP transports for delivering log batches by e-mail.

Each batch becomes one message whose body is every event rendered through
the configured text formatter, in order. Two interchangeable transports are
provided:

- ``SmtpLegacyTransport``: the standard library's blocking ``smtplib``, run
  on a worker thread so the scheduler's event loop is never blocked
- ``SmtpModernTransport``: native asyncio delivery through ``aiosmtplib``

Both open a connection per batch and close it once the batch is sent.
"""

from __future__ import annotations

import asyncio
import re
import smtplib
import ssl
from email.message import EmailMessage
from typing import List, Optional, Union

import aiosmtplib
from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

from ..config.logger_config import diagnostics
from ..core.events import Batch
from ..formatting import TemplateTextFormatter, TextFormatter
from .transport import Transport, TransportVariant

DEFAULT_SUBJECT = "Log Email"
DEFAULT_PORT = 25
IMPLICIT_TLS_PORT = 465

_RECIPIENT_SEPARATORS = re.compile(r"[,;]")


def split_recipients(value: str) -> List[str]:
    """Split a ``,`` or ``;`` separated recipient list, dropping empty entries."""
    return [part.strip() for part in _RECIPIENT_SEPARATORS.split(value) if part.strip()]


class EmailConnectionInfo(BaseModel):
    """Connection and addressing details for e-mail delivery."""

    model_config = ConfigDict(str_strip_whitespace=True, frozen=True, extra="forbid")

    from_email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+$", description="Sender address")
    to_email: str = Field(..., min_length=1, description="Recipients, separated by ',' or ';'")
    mail_server: str = Field(default="localhost", min_length=1, description="SMTP server hostname")
    port: int = Field(default=DEFAULT_PORT, gt=0, le=65535, description="SMTP server port")
    enable_ssl: bool = Field(default=False, description="Use TLS: implicit on port 465, STARTTLS otherwise")
    email_subject: str = Field(default=DEFAULT_SUBJECT, description="Subject line of every message")
    is_body_html: bool = Field(default=False, description="Send the payload as text/html instead of text/plain")
    username: Optional[str] = Field(default=None, description="SMTP login name")
    password: Optional[SecretStr] = Field(default=None, description="SMTP login password")
    timeout_seconds: float = Field(default=30.0, gt=0, description="Network timeout for each SMTP operation")

    @field_validator("to_email")
    @classmethod
    def require_recipient(cls, v: str) -> str:
        """Reject a recipient list made only of separators."""
        if not split_recipients(v):
            raise ValueError("at least one recipient is required")
        return v

    @property
    def recipients(self) -> List[str]:
        return split_recipients(self.to_email)

    @property
    def has_credentials(self) -> bool:
        return bool(self.username)

    @property
    def use_implicit_tls(self) -> bool:
        return self.enable_ssl and self.port == IMPLICIT_TLS_PORT

    @property
    def use_starttls(self) -> bool:
        return self.enable_ssl and self.port != IMPLICIT_TLS_PORT

    def password_value(self) -> str:
        return self.password.get_secret_value() if self.password else ""


def build_message(batch: Batch, connection_info: EmailConnectionInfo, formatter: TextFormatter) -> EmailMessage:
    """Build the e-mail carrying one batch.

    Args:
        batch: Events to send, rendered in order
        connection_info: Addressing and subject details
        formatter: Renders each event into the body

    Returns:
        A UTF-8 message, text/plain or text/html depending on ``is_body_html``
    """
    payload = formatter.format_all(batch)

    message = EmailMessage()
    message["From"] = connection_info.from_email
    message["To"] = ", ".join(connection_info.recipients)
    message["Subject"] = connection_info.email_subject
    message.set_content(payload, subtype="html" if connection_info.is_body_html else "plain", charset="utf-8")
    return message


class _SmtpTransportBase(Transport):
    def __init__(self, connection_info: EmailConnectionInfo, formatter: Optional[TextFormatter] = None):
        if connection_info is None:
            raise ValueError("connection_info is required")

        self.connection_info = connection_info
        self.formatter = formatter or TemplateTextFormatter()

    def build_message(self, batch: Batch) -> EmailMessage:
        return build_message(batch, self.connection_info, self.formatter)


class SmtpLegacyTransport(_SmtpTransportBase):
    """Blocking smtplib delivery, off-loaded to a worker thread."""

    async def deliver(self, batch: Batch) -> None:
        message = self.build_message(batch)
        await asyncio.to_thread(self._send_blocking, message)

    def _send_blocking(self, message: EmailMessage) -> None:
        info = self.connection_info
        smtp_cls = smtplib.SMTP_SSL if info.use_implicit_tls else smtplib.SMTP

        with smtp_cls(info.mail_server, info.port, timeout=info.timeout_seconds) as client:
            if info.use_starttls:
                client.starttls(context=ssl.create_default_context())
            if info.has_credentials:
                client.login(info.username, info.password_value())
            client.send_message(message)

        diagnostics.debug(f"Sent message via smtplib to {info.mail_server}:{info.port}")


class SmtpModernTransport(_SmtpTransportBase):
    """Native asyncio delivery through aiosmtplib."""

    async def deliver(self, batch: Batch) -> None:
        message = self.build_message(batch)
        info = self.connection_info

        client = aiosmtplib.SMTP(
            hostname=info.mail_server,
            port=info.port,
            use_tls=info.use_implicit_tls,
            start_tls=info.use_starttls,
            timeout=info.timeout_seconds,
        )
        async with client:
            if info.has_credentials:
                await client.login(info.username, info.password_value())
            await client.send_message(message)

        diagnostics.debug(f"Sent message via aiosmtplib to {info.mail_server}:{info.port}")


def create_transport(
    variant: Union[TransportVariant, str],
    connection_info: EmailConnectionInfo,
    formatter: Optional[TextFormatter] = None,
) -> Transport:
    """Create an SMTP transport of the requested variant.

    Args:
        variant: ``TransportVariant`` member or its value ("legacy"/"modern")
        connection_info: SMTP connection details
        formatter: Event formatter, defaults to ``TemplateTextFormatter``

    Returns:
        The configured transport
    """
    variant = TransportVariant(variant)
    if variant is TransportVariant.SMTP_LEGACY:
        return SmtpLegacyTransport(connection_info, formatter)
    return SmtpModernTransport(connection_info, formatter)
