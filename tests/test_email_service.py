import smtplib

from app.core.config import settings
from app.core.result import Err, ErrorKind, Ok
from app.models import TokenPurpose
from app.services.email_service import EmailNotifier, build_link


def test_links_point_to_the_frontend_page_of_each_kind(monkeypatch):
    monkeypatch.setattr(settings, "frontend_url", "https://app.example.com/")

    assert build_link(TokenPurpose.EMAIL_VERIFICATION, "123456") == "https://app.example.com/verify-email?token=123456"
    assert build_link(TokenPurpose.PASSWORD_RESET, "123456") == "https://app.example.com/new-password?token=123456"
    assert build_link(TokenPurpose.DOCTOR_REGISTRATION, "123456") == (
        "https://app.example.com/doctor-register?token=123456"
    )


def test_message_contains_code_link_and_greeting():
    msg = EmailNotifier(backend="smtp").build_message(
        TokenPurpose.PASSWORD_RESET, "ana@x.com", "654321", {"name": "Ana", "ttl_minutes": 30}
    )

    assert msg["To"] == "ana@x.com"
    assert msg["Subject"] == "Reset your password"
    text = msg.get_body(preferencelist=("plain",)).get_content()
    assert "Hi Ana" in text
    assert "654321" in text
    assert "new-password?token=654321" in text
    html_part = msg.get_body(preferencelist=("html",)).get_content()
    assert "654321" in html_part


def test_console_backend_logs_instead_of_sending(caplog):
    caplog.set_level("INFO")

    result = EmailNotifier(backend="console").send(TokenPurpose.EMAIL_VERIFICATION, "ana@x.com", "111111")

    assert result == Ok(None)
    assert "verify-email?token=111111" in caplog.text


def test_disabled_backend_reports_failure():
    result = EmailNotifier(backend="disabled").send(TokenPurpose.EMAIL_VERIFICATION, "ana@x.com", "111111")

    assert result == Err(ErrorKind.DEPENDENCY, "Failed to send email")


def test_smtp_without_host_reports_failure(monkeypatch):
    monkeypatch.setattr(settings, "smtp_host", None)

    result = EmailNotifier(backend="smtp").send(TokenPurpose.EMAIL_VERIFICATION, "ana@x.com", "111111")

    assert isinstance(result, Err) and result.kind is ErrorKind.DEPENDENCY


class _FakeSMTP:
    sent = []

    def __init__(self, host, port, timeout=None):
        self.host = host

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def ehlo(self):
        pass

    def starttls(self, context=None):
        pass

    def login(self, username, password):
        pass

    def send_message(self, msg):
        _FakeSMTP.sent.append(msg)


def test_smtp_delivery(monkeypatch):
    monkeypatch.setattr(settings, "smtp_host", "smtp.example.com")
    monkeypatch.setattr(smtplib, "SMTP", _FakeSMTP)
    _FakeSMTP.sent = []

    result = EmailNotifier(backend="smtp").send(
        TokenPurpose.DOCTOR_REGISTRATION, "doc@x.com", "222222", {"name": "Laura"}
    )

    assert result == Ok(None)
    [msg] = _FakeSMTP.sent
    assert msg["Subject"] == "Welcome to the Psicoreinventar Team!"
    assert "Psicoreinventar" in msg["From"]


def test_smtp_transport_error_is_not_retried(monkeypatch):
    calls = []

    def refuse(host, port, timeout=None):
        calls.append(host)
        raise ConnectionRefusedError("connection refused")

    monkeypatch.setattr(settings, "smtp_host", "smtp.example.com")
    monkeypatch.setattr(smtplib, "SMTP", refuse)

    result = EmailNotifier(backend="smtp").send(TokenPurpose.EMAIL_VERIFICATION, "ana@x.com", "111111")

    assert result == Err(ErrorKind.DEPENDENCY, "Failed to send email")
    assert calls == ["smtp.example.com"]
