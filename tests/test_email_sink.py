"""Tests for SMTP transports, message construction and the e-mail sink."""

import asyncio
import smtplib

import aiosmtplib
import pytest
from conftest import make_events
from pydantic import ValidationError

from batchmail.config import SinkConfig
from batchmail.core.errors import SinkConfigurationError
from batchmail.core.events import Batch
from batchmail.formatting import TemplateTextFormatter
from batchmail.sender import EmailConnectionInfo, SmtpLegacyTransport, SmtpModernTransport, TransportVariant, build_message, create_transport, split_recipients
from batchmail.sinks import DEFAULT_BATCH_POSTING_LIMIT, DEFAULT_PERIOD, EmailSink


def _connection_info(**overrides) -> EmailConnectionInfo:
    values = {
        "from_email": "app@example.com",
        "to_email": "ops@example.com; oncall@example.com,",
        "mail_server": "smtp.example.com",
    }
    values.update(overrides)
    return EmailConnectionInfo(**values)


class FakeSMTP:
    """Stand-in for smtplib.SMTP / SMTP_SSL recording what was done."""

    instances = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.calls = []
        self.sent = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        self.calls.append("connect")
        return self

    def __exit__(self, *exc_info):
        self.calls.append("quit")

    def starttls(self, context=None):
        self.calls.append("starttls")

    def login(self, user, password):
        self.calls.append(("login", user, password))

    def send_message(self, message):
        self.calls.append("send")
        self.sent.append(message)


class FakeAsyncSMTP:
    """Stand-in for aiosmtplib.SMTP."""

    instances = []

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.calls = []
        self.sent = []
        FakeAsyncSMTP.instances.append(self)

    async def __aenter__(self):
        self.calls.append("connect")
        return self

    async def __aexit__(self, *exc_info):
        self.calls.append("quit")

    async def login(self, user, password):
        self.calls.append(("login", user, password))

    async def send_message(self, message):
        self.calls.append("send")
        self.sent.append(message)


@pytest.fixture(autouse=True)
def _reset_fakes():
    FakeSMTP.instances = []
    FakeAsyncSMTP.instances = []


def test_recipients_are_split_on_commas_and_semicolons():
    assert split_recipients("a@x.com;b@x.com, c@x.com;;") == ["a@x.com", "b@x.com", "c@x.com"]
    assert _connection_info().recipients == ["ops@example.com", "oncall@example.com"]


def test_connection_info_validation():
    with pytest.raises(ValidationError):
        _connection_info(to_email=" ; , ")

    with pytest.raises(ValidationError):
        _connection_info(from_email="not-an-address")

    with pytest.raises(ValidationError):
        _connection_info(port=0)

    info = _connection_info()
    assert info.port == 25
    assert info.email_subject == "Log Email"
    with pytest.raises(ValidationError):
        info.port = 587


def test_tls_mode_follows_port():
    assert _connection_info(enable_ssl=True, port=465).use_implicit_tls
    assert _connection_info(enable_ssl=True, port=587).use_starttls
    plain = _connection_info()
    assert not plain.use_implicit_tls and not plain.use_starttls


def test_build_message_renders_every_event_in_order():
    formatter = TemplateTextFormatter("{level}: {message}{newline}")
    batch = Batch.of(make_events("first", "second"))

    message = build_message(batch, _connection_info(email_subject="Errors"), formatter)

    assert message["From"] == "app@example.com"
    assert message["To"] == "ops@example.com, oncall@example.com"
    assert message["Subject"] == "Errors"
    assert message.get_content_type() == "text/plain"
    assert message.get_content() == "Information: first\nInformation: second\n"

    html = build_message(batch, _connection_info(is_body_html=True), formatter)
    assert html.get_content_type() == "text/html"


def test_legacy_transport_uses_smtplib(monkeypatch):
    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)
    info = _connection_info(port=587, enable_ssl=True, username="mailer", password="s3cret")
    transport = SmtpLegacyTransport(info)

    asyncio.run(transport.deliver(Batch.of(make_events("hello"))))

    client = FakeSMTP.instances[0]
    assert (client.host, client.port) == ("smtp.example.com", 587)
    assert client.calls == ["connect", "starttls", ("login", "mailer", "s3cret"), "send", "quit"]
    assert "hello" in client.sent[0].get_content()


def test_legacy_transport_uses_implicit_tls_on_465(monkeypatch):
    monkeypatch.setattr(smtplib, "SMTP_SSL", FakeSMTP)
    transport = SmtpLegacyTransport(_connection_info(port=465, enable_ssl=True))

    asyncio.run(transport.deliver(Batch.of(make_events("hello"))))

    assert FakeSMTP.instances[0].calls == ["connect", "send", "quit"]


def test_modern_transport_uses_aiosmtplib(monkeypatch):
    monkeypatch.setattr(aiosmtplib, "SMTP", FakeAsyncSMTP)
    info = _connection_info(port=465, enable_ssl=True, username="mailer", password="s3cret")
    transport = SmtpModernTransport(info)

    asyncio.run(transport.deliver(Batch.of(make_events("hello"))))

    client = FakeAsyncSMTP.instances[0]
    assert client.kwargs["hostname"] == "smtp.example.com"
    assert client.kwargs["use_tls"] is True
    assert client.kwargs["start_tls"] is False
    assert client.calls == ["connect", ("login", "mailer", "s3cret"), "send", "quit"]


def test_modern_transport_skips_login_without_credentials(monkeypatch):
    monkeypatch.setattr(aiosmtplib, "SMTP", FakeAsyncSMTP)

    asyncio.run(SmtpModernTransport(_connection_info()).deliver(Batch.of(make_events("hello"))))

    assert FakeAsyncSMTP.instances[0].calls == ["connect", "send", "quit"]


def test_create_transport_selects_variant():
    info = _connection_info()

    assert isinstance(create_transport("legacy", info), SmtpLegacyTransport)
    assert isinstance(create_transport(TransportVariant.SMTP_MODERN, info), SmtpModernTransport)
    with pytest.raises(ValueError):
        create_transport("fax", info)


def test_email_sink_defaults_and_fail_fast():
    assert DEFAULT_BATCH_POSTING_LIMIT == 100
    assert DEFAULT_PERIOD.total_seconds() == 30

    sink = EmailSink(_connection_info())
    assert sink.config.batch_size_limit == 100
    assert sink.config.period_seconds == 30
    assert isinstance(sink.transport, SmtpModernTransport)

    with pytest.raises(SinkConfigurationError):
        EmailSink(None)

    with pytest.raises(SinkConfigurationError):
        EmailSink(_connection_info(), transport_variant="fax")


def test_email_sink_sends_one_message_per_batch(monkeypatch):
    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)
    sink = EmailSink(_connection_info(), batch_size_limit=2, period=60, transport_variant="legacy")

    with sink:
        for event in make_events("alpha", "bravo", "charlie"):
            sink.emit(event)
        assert sink.flush(timeout=5.0)

    bodies = [client.sent[0].get_content() for client in FakeSMTP.instances]
    assert len(bodies) == 2
    assert "alpha" in bodies[0] and "bravo" in bodies[0] and "charlie" in bodies[1]


def test_email_sink_takes_batching_settings_from_config(monkeypatch):
    monkeypatch.setenv("BATCHMAIL_BATCH_SIZE_LIMIT", "5")
    monkeypatch.setenv("BATCHMAIL_PERIOD", "2")

    sink = EmailSink(_connection_info(), config=SinkConfig.from_env())

    assert sink.config.batch_size_limit == 5
    assert sink.config.period_seconds == 2.0
    assert sink.cutter.batch_size_limit == 5
    assert sink.scheduler.period_seconds == 2.0

    explicit = EmailSink(_connection_info(), batch_size_limit=7, config=SinkConfig(batch_size_limit=5, period_seconds=2.0))
    assert explicit.config.batch_size_limit == 7, "Explicit arguments win over the config"
    assert explicit.config.period_seconds == 2.0
