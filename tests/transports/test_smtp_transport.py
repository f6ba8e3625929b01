import smtplib
from typing import List

import pytest

from outbox_scheduler.config import Settings
from outbox_scheduler.transports.smtp import SmtpTransport


class FakeSMTP:
    instances: List["FakeSMTP"] = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.logged_in = None
        self.messages = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def login(self, user, password):
        self.logged_in = (user, password)

    def send_message(self, message):
        self.messages.append(message)


class FakeSMTPSSL(FakeSMTP):
    pass


class RefusingSMTP(FakeSMTP):
    def send_message(self, message):
        raise smtplib.SMTPRecipientsRefused({"nobody@example.com": (550, b"no such user")})


@pytest.fixture(autouse=True)
def fake_smtp(monkeypatch):
    FakeSMTP.instances = []
    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)
    monkeypatch.setattr(smtplib, "SMTP_SSL", FakeSMTPSSL)


@pytest.mark.asyncio
async def test_send_builds_multipart_message():
    transport = SmtpTransport("smtp.example.com", 587, "noreply@example.com")
    await transport.send("ana@example.com", "Hello", "<p>Hello</p>", "Hello")

    [server] = FakeSMTP.instances
    assert type(server) is FakeSMTP
    assert (server.host, server.port) == ("smtp.example.com", 587)
    assert server.logged_in is None

    [message] = server.messages
    assert message["Subject"] == "Hello"
    assert message["From"] == "noreply@example.com"
    assert message["To"] == "ana@example.com"
    assert message.get_content_type() == "multipart/alternative"
    parts = message.get_payload()
    assert [part.get_content_type() for part in parts] == ["text/plain", "text/html"]
    assert parts[1].get_payload(decode=True).decode() == "<p>Hello</p>"


@pytest.mark.asyncio
async def test_secure_transport_uses_ssl_and_logs_in():
    transport = SmtpTransport(
        "smtp.example.com", 465, "noreply@example.com",
        username="mailer", password="secret", use_tls=True,
    )
    await transport.send("ana@example.com", "Hello", "<p>Hello</p>", "Hello")

    [server] = FakeSMTP.instances
    assert type(server) is FakeSMTPSSL
    assert server.logged_in == ("mailer", "secret")


@pytest.mark.asyncio
async def test_send_propagates_smtp_errors(monkeypatch):
    monkeypatch.setattr(smtplib, "SMTP", RefusingSMTP)
    transport = SmtpTransport("smtp.example.com", 25, "noreply@example.com")
    with pytest.raises(smtplib.SMTPRecipientsRefused):
        await transport.send("nobody@example.com", "Hello", "<p>Hello</p>", "Hello")


def test_from_settings_requires_host_port_and_sender():
    assert SmtpTransport.from_settings(Settings(_env_file=None)) is None
    assert SmtpTransport.from_settings(Settings(_env_file=None, smtp_host="smtp.example.com", smtp_port=25)) is None

    transport = SmtpTransport.from_settings(Settings(
        _env_file=None,
        smtp_host="smtp.example.com",
        smtp_port=465,
        smtp_from="noreply@example.com",
        smtp_secure=True,
        smtp_user="mailer",
        smtp_password="secret",
    ))
    assert transport is not None
    assert transport.use_tls is True
    assert transport.username == "mailer"
    assert transport.sender == "noreply@example.com"
