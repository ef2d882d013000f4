"""Outbound mail over SMTP with implicit TLS (Gmail app-password defaults).

smtplib is blocking, so send() hands the transaction to a worker thread and
callers simply await it.

Usage:
    from autodirector.integrations.mail import SmtpMailSender

    sender = SmtpMailSender.from_config(config)
    await sender.send("a@b.com", "Subject", "Body", attachments=[Path("shot.png")])
"""

import asyncio
import mimetypes
import smtplib
from dataclasses import dataclass, field
from email.message import EmailMessage
from email.utils import formataddr, make_msgid
from pathlib import Path
from typing import Optional, Sequence

from autodirector.core.config import Config
from autodirector.core.exceptions import MailError
from autodirector.core.logging import get_logger
from autodirector.integrations.base import IntegrationBase

logger = get_logger(__name__)


@dataclass
class MailReceipt:
    """What was handed to the SMTP server.

    Attributes:
        message_id: Message-ID header of the sent message
        to: Recipient address
        subject: Subject line
        attachments: File names attached
        dry_run: True when nothing was actually sent
    """

    message_id: str
    to: str
    subject: str
    attachments: list[str] = field(default_factory=list)
    dry_run: bool = False


class SmtpMailSender(IntegrationBase):
    """SMTP_SSL mail sender."""

    def __init__(
        self,
        host: str,
        port: int,
        user: Optional[str],
        password: Optional[str],
        from_name: str = "Mediad",
        timeout: float = 30.0,
        dry_run: bool = False,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.from_name = from_name
        self.timeout = timeout
        self.dry_run = dry_run

    @classmethod
    def from_config(cls, config: Config) -> "SmtpMailSender":
        return cls(
            host=config.smtp_host,
            port=config.smtp_port,
            user=config.smtp_user,
            password=config.smtp_password,
            from_name=config.mail_from_name,
            timeout=config.mail_timeout,
            dry_run=config.dry_run,
        )

    def is_configured(self) -> bool:
        return bool(self.user and self.password)

    def build_message(
        self,
        to: str,
        subject: str,
        text: str,
        html: Optional[str] = None,
        attachments: Sequence[Path] = (),
    ) -> EmailMessage:
        """Assemble the MIME message (text, optional HTML alternative, files)."""
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = formataddr((self.from_name, self.user or ""))
        msg["To"] = to
        msg["Message-ID"] = make_msgid()

        msg.set_content(text or "")
        if html:
            msg.add_alternative(html, subtype="html")

        for path in attachments:
            ctype, _ = mimetypes.guess_type(path.name)
            maintype, subtype = (ctype or "application/octet-stream").split("/", 1)
            msg.add_attachment(
                path.read_bytes(), maintype=maintype, subtype=subtype, filename=path.name
            )
        return msg

    def _deliver(self, msg: EmailMessage) -> None:
        client = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
        try:
            client.login(self.user or "", self.password or "")
            client.send_message(msg)
        finally:
            try:
                client.quit()
            except smtplib.SMTPException:
                client.close()

    def send_sync(
        self,
        to: str,
        subject: str,
        text: str,
        html: Optional[str] = None,
        attachments: Sequence[Path] = (),
    ) -> MailReceipt:
        """Build and send one message, blocking.

        Raises:
            MailError: If credentials are missing or the transaction fails
        """
        if not self.is_configured():
            raise MailError("Mail sender is not configured (GMAIL_USER / GMAIL_APP_PASSWORD)")

        try:
            msg = self.build_message(to, subject, text, html, attachments)
        except OSError as e:
            raise MailError(f"Could not read attachment: {e}") from e

        receipt = MailReceipt(
            message_id=msg["Message-ID"],
            to=to,
            subject=subject,
            attachments=[p.name for p in attachments],
            dry_run=self.dry_run,
        )

        if self.dry_run:
            logger.info(
                f"[DRY RUN] Would send mail to {to}: {subject}",
                extra={"context": {"attachments": receipt.attachments}},
            )
            return receipt

        try:
            self._deliver(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise MailError(f"SMTP send to {to} failed: {e}") from e

        logger.info(
            f"Mail sent to {to}",
            extra={"context": {"subject": subject, "attachments": receipt.attachments}},
        )
        return receipt

    async def send(
        self,
        to: str,
        subject: str,
        text: str,
        html: Optional[str] = None,
        attachments: Sequence[Path] = (),
    ) -> MailReceipt:
        """Async wrapper around send_sync()."""
        return await asyncio.to_thread(self.send_sync, to, subject, text, html, attachments)
