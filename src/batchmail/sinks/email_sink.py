"""E-mail sink: a periodic batching sink delivering each batch as one message."""

from __future__ import annotations

from datetime import timedelta
from typing import Optional, Union

from ..config.settings import DEFAULT_BATCH_SIZE_LIMIT, DEFAULT_PERIOD_SECONDS, SinkConfig
from ..core.errors import SinkConfigurationError
from ..formatting import TemplateTextFormatter, TextFormatter
from ..orchestrator.periodic_sink import PeriodicBatchingSink, Seconds
from ..sender.smtp_transport import EmailConnectionInfo, create_transport
from ..sender.transport import TransportVariant

# A reasonable default for the number of events posted in each batch
DEFAULT_BATCH_POSTING_LIMIT = DEFAULT_BATCH_SIZE_LIMIT

# A reasonable default time to wait between checking for event batches
DEFAULT_PERIOD = timedelta(seconds=DEFAULT_PERIOD_SECONDS)


class EmailSink(PeriodicBatchingSink):
    """Sink e-mailing batches of log events over SMTP."""

    def __init__(
        self,
        connection_info: EmailConnectionInfo,
        batch_size_limit: Optional[int] = None,
        period: Optional[Seconds] = None,
        text_formatter: Optional[TextFormatter] = None,
        transport_variant: Optional[Union[TransportVariant, str]] = None,
        config: Optional[SinkConfig] = None,
    ):
        """Construct a sink e-mailing with the specified details.

        Args:
            connection_info: Connection information used to build the SMTP client and messages
            batch_size_limit: The maximum number of events to post in a single message; defaults to the config's limit
            period: The time to wait between checking for event batches; defaults to the config's period
            text_formatter: Renders each event into the message body; a template formatter by default
            transport_variant: "legacy" (smtplib) or "modern" (aiosmtplib); defaults to the config's choice
            config: Batching settings, overridden by the explicit arguments above

        Raises:
            SinkConfigurationError: If connection information is missing or settings are invalid
        """
        if connection_info is None:
            raise SinkConfigurationError("Connection information is required")

        config = config or SinkConfig()
        variant = transport_variant if transport_variant is not None else config.transport_variant
        try:
            variant = TransportVariant(variant)
        except ValueError as e:
            raise SinkConfigurationError(f"Unknown transport variant: {variant}") from e

        self.connection_info = connection_info
        self.text_formatter = text_formatter or TemplateTextFormatter()

        transport = create_transport(variant, connection_info, self.text_formatter)
        super().__init__(transport, config=config, batch_size_limit=batch_size_limit, period=period)
