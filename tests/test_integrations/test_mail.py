"""Tests for the SMTP mail sender."""

import asyncio
import smtplib
from pathlib import Path
from unittest.mock import patch

import pytest

from autodirector.core.exceptions import MailError
from autodirector.integrations.mail import SmtpMailSender


@pytest.fixture
def sender() -> SmtpMailSender:
    return SmtpMailSender("smtp.example.com", 465, "svc@x.com", "pw", from_name="Mediad")


class TestBuildMessage:
    """MIME assembly."""

    def test_headers(self, sender):
        msg = sender.build_message("a@b.com", "Hello", "Body")
        assert msg["To"] == "a@b.com"
        assert msg["Subject"] == "Hello"
        assert msg["From"] == "Mediad <svc@x.com>"
        assert msg["Message-ID"]

    def test_attachment_type_guessed(self, sender, tmp_path: Path):
        shot = tmp_path / "shot.png"
        shot.write_bytes(b"\x89PNG")
        msg = sender.build_message("a@b.com", "s", "b", attachments=[shot])
        [part] = list(msg.iter_attachments())
        assert part.get_filename() == "shot.png"
        assert part.get_content_type() == "image/png"

    def test_html_alternative(self, sender):
        msg = sender.build_message("a@b.com", "s", "plain", html="<p>rich</p>")
        assert msg.get_body(preferencelist=("html",)) is not None


class TestSendSync:
    """SMTP transaction."""

    def test_sends_and_quits(self, sender):
        with patch("autodirector.integrations.mail.smtplib.SMTP_SSL") as smtp_cls:
            receipt = sender.send_sync("a@b.com", "Hello", "Body")
        client = smtp_cls.return_value
        smtp_cls.assert_called_once_with("smtp.example.com", 465, timeout=30.0)
        client.login.assert_called_once_with("svc@x.com", "pw")
        client.send_message.assert_called_once()
        client.quit.assert_called_once()
        assert receipt.to == "a@b.com"
        assert receipt.dry_run is False

    def test_dry_run_sends_nothing(self):
        sender = SmtpMailSender("h", 465, "svc@x.com", "pw", dry_run=True)
        with patch("autodirector.integrations.mail.smtplib.SMTP_SSL") as smtp_cls:
            receipt = sender.send_sync("a@b.com", "Hello", "Body")
        smtp_cls.assert_not_called()
        assert receipt.dry_run is True

    def test_unconfigured_raises(self):
        with pytest.raises(MailError, match="not configured"):
            SmtpMailSender("h", 465, "svc@x.com", None).send_sync("a@b.com", "s", "b")

    def test_login_failure_wrapped(self, sender):
        with patch("autodirector.integrations.mail.smtplib.SMTP_SSL") as smtp_cls:
            smtp_cls.return_value.login.side_effect = smtplib.SMTPAuthenticationError(
                535, b"bad credentials"
            )
            with pytest.raises(MailError, match="SMTP send to a@b.com failed"):
                sender.send_sync("a@b.com", "s", "b")
            smtp_cls.return_value.quit.assert_called_once()

    def test_missing_attachment_wrapped(self, sender, tmp_path: Path):
        with pytest.raises(MailError, match="Could not read attachment"):
            sender.send_sync("a@b.com", "s", "b", attachments=[tmp_path / "gone.png"])

    def test_async_send(self, sender):
        with patch("autodirector.integrations.mail.smtplib.SMTP_SSL"):
            receipt = asyncio.run(sender.send("a@b.com", "Hello", "Body"))
        assert receipt.subject == "Hello"


class TestFromConfig:
    def test_from_config(self, mock_config):
        sender = SmtpMailSender.from_config(mock_config)
        assert sender.is_configured() is True
        assert (sender.host, sender.port) == ("smtp.gmail.com", 465)
