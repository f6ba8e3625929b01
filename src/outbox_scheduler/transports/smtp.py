import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from outbox_scheduler.config import Settings
from outbox_scheduler.transports.protocol import DeliveryTransport

logger = logging.getLogger(__name__)


class SmtpTransport(DeliveryTransport):
    """
    Delivery transport sending multipart (text + HTML) email over SMTP.

    smtplib is blocking, so each send runs in a worker thread.
    """

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        *,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = False,
        timeout: float = 30.0,
    ):
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> Optional["SmtpTransport"]:
        """
        Build a transport from settings, or return None when SMTP is not configured.
        """
        if not settings.smtp_configured:
            return None
        return cls(
            settings.smtp_host,
            settings.smtp_port,
            settings.smtp_from,
            username=settings.smtp_user,
            password=settings.smtp_password,
            use_tls=settings.smtp_secure,
            timeout=settings.smtp_timeout_seconds,
        )

    def build_message(self, recipient: str, subject: str, html_body: str, text_body: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = recipient
        # Last alternative is the preferred one.
        msg.attach(MIMEText(text_body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))
        return msg

    def _connect(self) -> smtplib.SMTP:
        if self.use_tls:
            return smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
        return smtplib.SMTP(self.host, self.port, timeout=self.timeout)

    def send_sync(self, recipient: str, subject: str, html_body: str, text_body: str) -> None:
        message = self.build_message(recipient, subject, html_body, text_body)
        with self._connect() as server:
            if self.username:
                server.login(self.username, self.password or "")
            server.send_message(message)
        logger.debug("Sent email to %s via %s:%s", recipient, self.host, self.port)

    async def send(self, recipient: str, subject: str, html_body: str, text_body: str) -> None:
        await asyncio.to_thread(self.send_sync, recipient, subject, html_body, text_body)
