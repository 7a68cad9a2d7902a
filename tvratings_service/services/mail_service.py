"""SMTP mail delivery."""

import logging
import smtplib
from email.message import EmailMessage

from tvratings_service.config import Configuration
from tvratings_service.exceptions import TransientError

logger = logging.getLogger(__name__)


class Mailer:
    """Sends HTML emails through one SMTP server."""

    def __init__(
            self,
            host: str,
            port: int | str,
            auth: bool,
            start_tls: bool,
            username: str,
            password: str,
            email_from: str = "",
            timeout: float = 30
    ):
        self.host = host
        self.port = int(port)
        self.auth = auth
        self.start_tls = start_tls
        self.username = username
        self.password = password
        self.email_from = email_from
        self.timeout = timeout

    @classmethod
    def from_configuration(cls, configuration: Configuration) -> "Mailer":
        return cls(
            host=configuration.smtpHost,
            port=configuration.smtpPort,
            auth=configuration.smtpAuth,
            start_tls=configuration.smtpStartTLS,
            username=configuration.emailUsername,
            password=configuration.emailPassword,
            email_from=configuration.emailFrom,
        )

    def build_message(self, to: str, subject: str, html_content: str) -> EmailMessage:
        message = EmailMessage()
        if self.email_from.strip():
            message["From"] = self.email_from
        elif self.auth:
            message["From"] = self.username
        message["To"] = to
        message["Subject"] = subject
        message.set_content(html_content, subtype="html", charset="utf-8")
        return message

    def send_mail(self, to: str, subject: str, html_content: str) -> None:
        """
        Send one HTML email.

        Raises:
            TransientError: If the SMTP conversation fails
        """
        message = self.build_message(to, subject, html_content)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                if self.start_tls:
                    smtp.starttls()
                if self.auth:
                    smtp.login(self.username, self.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            raise TransientError(f"Sending mail to {to} failed: {e}") from e

        logger.info(f"Sent '{subject}' to {to}")
