import smtplib

import pytest

from internquest.core import mailer as mailer_module
from internquest.core.errors import ErrorKind, ServiceError
from internquest.core.mailer import SmtpMailer


class _RecordingSMTP:
    instances = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.actions = []
        self.messages = []
        _RecordingSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        try:
            self.quit()
        except smtplib.SMTPServerDisconnected:
            pass
        self.actions.append("close")

    def starttls(self):
        self.actions.append("starttls")

    def login(self, user, password):
        self.actions.append(("login", user, password))

    def send_message(self, message):
        self.actions.append("send")
        self.messages.append(message)

    def quit(self):
        self.actions.append("quit")


@pytest.fixture()
def smtp(monkeypatch):
    _RecordingSMTP.instances = []
    monkeypatch.setattr(smtplib, "SMTP", _RecordingSMTP)
    monkeypatch.setattr(smtplib, "SMTP_SSL", _RecordingSMTP)
    return _RecordingSMTP


def _mailer(port=587, **overrides):
    fields = dict(host="smtp.gmail.com", port=port, user="relay@neu.edu.ph", password="app-password")
    fields.update(overrides)
    return SmtpMailer(**fields)


def test_starttls_relay(smtp):
    _mailer(from_address="InternQuest <no-reply@neu.edu.ph>").send("a@neu.edu.ph", "Subject", "<p>Hi</p>")

    [server] = smtp.instances
    assert (server.host, server.port, server.timeout) == ("smtp.gmail.com", 587, mailer_module.SMTP_TIMEOUT)
    assert server.actions == ["starttls", ("login", "relay@neu.edu.ph", "app-password"), "send", "quit", "close"]
    message = server.messages[0]
    assert message["To"] == "a@neu.edu.ph"
    assert message["From"] == "InternQuest <no-reply@neu.edu.ph>"
    assert message["Subject"] == "Subject"
    assert "<p>Hi</p>" in message.get_body(preferencelist=("html",)).get_content()


def test_implicit_tls_port_skips_starttls(smtp):
    _mailer(port=465).send("a@neu.edu.ph", "Subject", "<p>Hi</p>")
    assert "starttls" not in smtp.instances[0].actions


def test_default_from_address(smtp):
    _mailer().send("a@neu.edu.ph", "Subject", "<p>Hi</p>")
    assert smtp.instances[0].messages[0]["From"] == mailer_module.DEFAULT_FROM_ADDRESS


def test_server_closed_on_failure(smtp, monkeypatch):
    def _refuse(self, message):
        raise smtplib.SMTPRecipientsRefused({"a@neu.edu.ph": (550, b"no")})

    monkeypatch.setattr(_RecordingSMTP, "send_message", _refuse)
    with pytest.raises(smtplib.SMTPRecipientsRefused):
        _mailer().send("a@neu.edu.ph", "Subject", "<p>Hi</p>")
    assert smtp.instances[0].actions[-2:] == ["quit", "close"]


def test_failed_starttls_is_not_masked_by_quit(smtp, monkeypatch):
    def _no_tls(self):
        raise smtplib.SMTPNotSupportedError("STARTTLS extension not supported by server.")

    def _disconnected(self):
        raise smtplib.SMTPServerDisconnected("please run connect() first")

    monkeypatch.setattr(_RecordingSMTP, "starttls", _no_tls)
    monkeypatch.setattr(_RecordingSMTP, "quit", _disconnected)
    with pytest.raises(smtplib.SMTPNotSupportedError):
        _mailer().send("a@neu.edu.ph", "Subject", "<p>Hi</p>")
    assert smtp.instances[0].actions == ["close"]


@pytest.mark.parametrize("missing", ["host", "port", "user", "password"])
def test_unconfigured_relay(smtp, missing):
    with pytest.raises(ServiceError) as exc:
        _mailer(**{missing: None}).send("a@neu.edu.ph", "Subject", "<p>Hi</p>")
    assert exc.value.kind is ErrorKind.FAILED_PRECONDITION
    assert smtp.instances == []


@pytest.mark.parametrize(
    "to,subject,html,message",
    [
        ("", "S", "<p/>", "Email 'to' is required."),
        ("a@neu.edu.ph", "", "<p/>", "Email 'subject' is required."),
        ("a@neu.edu.ph", "S", None, "Email 'html' is required."),
    ],
)
def test_missing_fields(smtp, to, subject, html, message):
    with pytest.raises(ServiceError) as exc:
        _mailer().send(to, subject, html)
    assert exc.value.kind is ErrorKind.INVALID_ARGUMENT
    assert exc.value.message == message
