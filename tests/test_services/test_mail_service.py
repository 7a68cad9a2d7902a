"""Unit tests for Mailer."""
import smtplib
from unittest.mock import patch

import pytest

from tvratings_service.config import Configuration
from tvratings_service.exceptions import TransientError
from tvratings_service.services.mail_service import Mailer


@pytest.fixture
def mailer():
    return Mailer(
        host="smtp.example.test",
        port="587",
        auth=True,
        start_tls=True,
        username="user@example.test",
        password="pass",
    )


class TestMailer:
    """Tests for Mailer."""

    def test_from_configuration(self):
        """Test settings are taken from the configuration."""
        mailer = Mailer.from_configuration(Configuration(smtpHost="mail.test", smtpPort="2525"))

        assert mailer.host == "mail.test"
        assert mailer.port == 2525
        assert mailer.auth is True

    def test_build_message_from_username(self, mailer):
        """Test the username is the sender when no from address is configured."""
        message = mailer.build_message("a@b.c", "subject", "<html>hi</html>")

        assert message["From"] == "user@example.test"
        assert message["To"] == "a@b.c"
        assert message["Subject"] == "subject"
        assert message.get_content_type() == "text/html"

    def test_build_message_from_address(self, mailer):
        """Test a configured from address wins."""
        mailer.email_from = "noreply@tvratin.gs"

        message = mailer.build_message("a@b.c", "subject", "<html>hi</html>")

        assert message["From"] == "noreply@tvratin.gs"

    @patch('tvratings_service.services.mail_service.smtplib.SMTP')
    def test_send_mail(self, mock_smtp, mailer):
        """Test the SMTP conversation."""
        # Act
        mailer.send_mail("a@b.c", "subject", "<html>hi</html>")

        # Assert
        mock_smtp.assert_called_once_with("smtp.example.test", 587, timeout=30)
        smtp = mock_smtp.return_value.__enter__.return_value
        smtp.starttls.assert_called_once()
        smtp.login.assert_called_once_with("user@example.test", "pass")
        smtp.send_message.assert_called_once()

    @patch('tvratings_service.services.mail_service.smtplib.SMTP')
    def test_send_mail_without_auth(self, mock_smtp, mailer):
        """Test no login or TLS when disabled."""
        mailer.auth = False
        mailer.start_tls = False

        mailer.send_mail("a@b.c", "subject", "<html>hi</html>")

        smtp = mock_smtp.return_value.__enter__.return_value
        smtp.starttls.assert_not_called()
        smtp.login.assert_not_called()

    @patch('tvratings_service.services.mail_service.smtplib.SMTP')
    def test_send_mail_failure_raises_transient(self, mock_smtp, mailer):
        """Test SMTP errors become TransientError."""
        mock_smtp.return_value.__enter__.return_value.login.side_effect = smtplib.SMTPAuthenticationError(
            535, b"bad credentials"
        )

        with pytest.raises(TransientError):
            mailer.send_mail("a@b.c", "subject", "<html>hi</html>")
