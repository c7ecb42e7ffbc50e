# tests/test_mailer.py
import smtplib
from typing import ClassVar

import pytest
from pydantic import ValidationError

from conftest import make_settings

from mailer import XLSX_MIMETYPE, NotificationError, ReportMailer

FILE_NAME = "Backup_Reports-v1-(2024-06-14).xlsx"


class DummySMTP:
    instances: ClassVar[list] = []

    def __init__(self, host: str, port: int, timeout: float | None = None, **kwargs) -> None:
        self.host = host
        self.port = port
        self.timeout = timeout
        self.kwargs = kwargs
        self.starttls_called = False
        self.login_args = None
        self.sent = None
        DummySMTP.instances.append(self)

    def __enter__(self) -> "DummySMTP":
        return self

    def __exit__(self, *_exc: object) -> None:
        return None

    def starttls(self, *_args: object, **_kwargs: object) -> None:
        self.starttls_called = True

    def login(self, username: str, password: str) -> None:
        self.login_args = (username, password)

    def send_message(self, message, to_addrs: list[str]) -> dict:
        self.sent = (message, to_addrs)
        return {}


@pytest.fixture
def report_file(tmp_path):
    path = tmp_path / FILE_NAME
    path.write_bytes(b"PK\x03\x04 fake workbook")
    return path


@pytest.fixture
def dummy_smtp(monkeypatch):
    DummySMTP.instances = []
    monkeypatch.setattr(smtplib, "SMTP", DummySMTP)
    return DummySMTP


def test_report_is_sent_to_all_recipients_at_once(dummy_smtp, report_file):
    mailer = ReportMailer(make_settings())

    response = mailer.send_report(report_file, FILE_NAME, ["a@x.com", "b@x.com"])

    smtp = dummy_smtp.instances[0]
    assert (smtp.host, smtp.port, smtp.timeout) == ("smtp.gmail.com", 587, 20.0)
    assert smtp.starttls_called is True
    assert smtp.login_args == ("reports@example.com", "smtp-secret")

    message, to_addrs = smtp.sent
    assert to_addrs == ["a@x.com", "b@x.com"]
    assert message["To"] == "a@x.com, b@x.com"
    assert message["From"] == "reports@example.com"
    assert message["Subject"] == FILE_NAME
    assert message["Message-ID"] in response
    assert response.startswith("Email successfully sent")


def test_message_has_body_and_xlsx_attachment(dummy_smtp, report_file):
    ReportMailer(make_settings()).send_report(report_file, FILE_NAME, ["a@x.com"])

    message, _ = dummy_smtp.instances[0].sent
    assert FILE_NAME in message.get_body(preferencelist=("plain",)).get_content()

    attachments = list(message.iter_attachments())
    assert len(attachments) == 1
    assert attachments[0].get_filename() == FILE_NAME
    assert attachments[0].get_content_type() == XLSX_MIMETYPE
    assert attachments[0].get_content() == report_file.read_bytes()


def test_custom_sender_is_used(dummy_smtp, report_file):
    mailer = ReportMailer(make_settings(SMTP_SENDER="noreply@example.com"))

    mailer.send_report(report_file, FILE_NAME, ["a@x.com"])

    message, _ = dummy_smtp.instances[0].sent
    assert message["From"] == "noreply@example.com"
    assert dummy_smtp.instances[0].login_args[0] == "reports@example.com"


def test_implicit_ssl_skips_starttls(monkeypatch, report_file):
    DummySMTP.instances = []
    monkeypatch.setattr(smtplib, "SMTP_SSL", DummySMTP)
    mailer = ReportMailer(make_settings(SMTP_PORT=465, SMTP_USE_TLS=False, SMTP_USE_SSL=True))

    mailer.send_report(report_file, FILE_NAME, ["a@x.com"])

    smtp = DummySMTP.instances[0]
    assert smtp.port == 465
    assert "context" in smtp.kwargs
    assert smtp.starttls_called is False


def test_relay_failure_raises_notification_error(dummy_smtp, report_file, monkeypatch):
    def reject_login(self, *_args):
        raise smtplib.SMTPAuthenticationError(535, b"Username and Password not accepted")

    monkeypatch.setattr(DummySMTP, "login", reject_login)

    with pytest.raises(NotificationError):
        ReportMailer(make_settings()).send_report(report_file, FILE_NAME, ["a@x.com"])


def test_missing_report_file_raises_notification_error(dummy_smtp, tmp_path):
    with pytest.raises(NotificationError):
        ReportMailer(make_settings()).send_report(tmp_path / "gone.xlsx", FILE_NAME, ["a@x.com"])
    assert dummy_smtp.instances == []


def test_empty_recipient_list_is_rejected(dummy_smtp, report_file):
    with pytest.raises(NotificationError):
        ReportMailer(make_settings()).send_report(report_file, FILE_NAME, [])
    assert dummy_smtp.instances == []


def test_tls_and_ssl_are_mutually_exclusive():
    with pytest.raises(ValidationError, match="mutually exclusive"):
        make_settings(SMTP_USE_TLS=True, SMTP_USE_SSL=True)
