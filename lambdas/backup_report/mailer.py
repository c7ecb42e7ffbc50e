# lambdas/backup_report/mailer.py
import smtplib
import ssl
from email.message import EmailMessage
from email.utils import make_msgid
from pathlib import Path
from typing import List, Sequence, Union

from models import BackupReportError, ReportSettings

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class NotificationError(BackupReportError):
    """Raised when a report email cannot be delivered."""


def format_report_body(file_name: str) -> str:
    return f"Please review the attached daily CBR report for {file_name}"


class ReportMailer:
    """Sends rendered reports through the configured SMTP relay."""

    def __init__(self, settings: ReportSettings):
        self.settings = settings

    def build_message(self, file_path: Union[str, Path], file_name: str, recipients: Sequence[str]) -> EmailMessage:
        """Builds the report email. Every recipient goes into a single To header."""
        message = EmailMessage()
        message["Subject"] = file_name
        message["From"] = self.settings.sender
        message["To"] = ", ".join(recipients)
        message["Message-ID"] = make_msgid(domain=self.settings.smtp_host)
        message.set_content(format_report_body(file_name))

        maintype, _, subtype = XLSX_MIMETYPE.partition("/")
        message.add_attachment(
            Path(file_path).read_bytes(), maintype=maintype, subtype=subtype, filename=file_name
        )
        return message

    def send_report(self, file_path: Union[str, Path], file_name: str, recipients: Sequence[str]) -> str:
        """
        Emails one report to all of its recipients in a single submission.

        Args:
            file_path: Location of the rendered workbook.
            file_name: Display name, used as subject and attachment name.
            recipients: Ordered recipient addresses.

        Returns:
            A confirmation string with the Message-ID of the sent email.

        Raises:
            NotificationError: If the message cannot be built or the relay
                rejects it.
        """
        recipients = list(recipients)
        if not recipients:
            print(f"❌ No recipients given for '{file_name}'.")
            raise NotificationError("Email send failed")

        print(f"Sending '{file_name}' from '{self.settings.sender}' to: {', '.join(recipients)}")
        try:
            message = self.build_message(file_path, file_name, recipients)
            refused = self._send_via_smtp(message, recipients)
        except (smtplib.SMTPException, OSError) as e:
            print(f"❌ Failed to send email '{file_name}': {e}")
            raise NotificationError("Email send failed") from e

        if refused:
            print(f"⚠️ Relay refused some recipients of '{file_name}': {', '.join(refused)}")

        print(f"✅ Email successfully sent: {message['Message-ID']}")
        return f"Email successfully sent: {message['Message-ID']}"

    def _send_via_smtp(self, message: EmailMessage, recipients: List[str]) -> dict:
        context = ssl.create_default_context()
        if self.settings.smtp_use_ssl:
            smtp = smtplib.SMTP_SSL(
                self.settings.smtp_host, self.settings.smtp_port, timeout=self.settings.smtp_timeout, context=context
            )
        else:
            smtp = smtplib.SMTP(self.settings.smtp_host, self.settings.smtp_port, timeout=self.settings.smtp_timeout)

        with smtp:
            if self.settings.smtp_use_tls:
                smtp.starttls(context=context)
            smtp.login(str(self.settings.smtp_user), self.settings.smtp_pass.get_secret_value())
            return smtp.send_message(message, to_addrs=recipients)
