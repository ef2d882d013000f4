"""Inbound mailbox reader over IMAP with implicit TLS.

Only one operation is needed: fetch the most recent message of a folder,
addressed by sequence number (the mailbox size reported by SELECT).
"""

import asyncio
import imaplib
from dataclasses import dataclass
from email import message_from_bytes, policy
from typing import Optional

from autodirector.core.config import Config
from autodirector.core.exceptions import MailboxError
from autodirector.core.logging import get_logger
from autodirector.integrations.base import IntegrationBase

logger = get_logger(__name__)


@dataclass
class MailboxMessage:
    """A fetched message.

    Attributes:
        raw: Full RFC822 bytes
        subject: Decoded Subject header
        sender: Decoded From header
    """

    raw: bytes
    subject: str = ""
    sender: str = ""

    @property
    def text(self) -> str:
        return self.raw.decode("utf-8", errors="replace")


class ImapMailboxReader(IntegrationBase):
    """IMAP4_SSL reader, read-only selects."""

    def __init__(
        self,
        host: str,
        user: Optional[str],
        password: Optional[str],
        folder: str = "INBOX",
        port: int = 993,
        timeout: float = 30.0,
    ):
        self.host = host
        self.user = user
        self.password = password
        self.folder = folder
        self.port = port
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: Config) -> "ImapMailboxReader":
        return cls(
            host=config.imap_host,
            user=config.imap_user,
            password=config.imap_password,
            timeout=config.mail_timeout,
        )

    def is_configured(self) -> bool:
        return bool(self.user and self.password)

    def latest_message_sync(self) -> Optional[MailboxMessage]:
        """Fetch the newest message, or None when the folder is empty.

        Raises:
            MailboxError: On connection, login, select or fetch failure
        """
        if not self.is_configured():
            raise MailboxError("Mailbox reader is not configured (IMAP_USER / IMAP_PASSWORD)")

        try:
            client = imaplib.IMAP4_SSL(self.host, self.port, timeout=self.timeout)
        except OSError as e:
            raise MailboxError(f"Could not connect to {self.host}: {e}") from e

        try:
            client.login(self.user or "", self.password or "")
            typ, data = client.select(self.folder, readonly=True)
            if typ != "OK":
                raise MailboxError(f"Failed to select folder {self.folder}")

            count = int(data[0] or 0)
            if count == 0:
                return None

            typ, parts = client.fetch(str(count), "(RFC822)")
            if typ != "OK":
                raise MailboxError(f"Failed to fetch message {count}")

            raw = b""
            for part in parts:
                if isinstance(part, tuple) and len(part) > 1:
                    raw = part[1]
                    break
            if not raw:
                return None
        except imaplib.IMAP4.error as e:
            raise MailboxError(f"IMAP error: {e}") from e
        except OSError as e:
            raise MailboxError(f"Connection to {self.host} failed: {e}") from e
        finally:
            try:
                client.logout()
            except (imaplib.IMAP4.error, OSError):
                pass

        parsed = message_from_bytes(raw, policy=policy.default)
        message = MailboxMessage(
            raw=raw,
            subject=str(parsed.get("Subject", "")),
            sender=str(parsed.get("From", "")),
        )
        logger.info(
            "Fetched latest message",
            extra={"context": {"folder": self.folder, "seq": count, "subject": message.subject}},
        )
        return message

    async def latest_message(self) -> Optional[MailboxMessage]:
        return await asyncio.to_thread(self.latest_message_sync)
