"""Outbound email over SMTP, plus the verification and reset templates."""

import asyncio
import html
import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr
from typing import Optional

from helioscribe.common.config import settings

logger = logging.getLogger(__name__)

_TEMPLATE = """\
<!DOCTYPE html>
<html lang="en">
<body style="font-family: Arial, sans-serif; color: #333;">
  <h2>{title}</h2>
  <p>Hi {first_name},</p>
  <p>{intro}</p>
  <p style="font-size: 32px; font-weight: bold; letter-spacing: 8px;">{code}</p>
  <p>This code expires in {minutes} minutes. If you did not request it, you can ignore this email.</p>
  <p>The {app_name} Team</p>
</body>
</html>
"""


def verification_email(first_name: str, code: str, minutes: int) -> str:
    return _TEMPLATE.format(
        title="Verify Your Email",
        first_name=html.escape(first_name or "there"),
        intro="Use the code below to verify your email address.",
        code=code,
        minutes=minutes,
        app_name=settings.app_name,
    )


def password_reset_email(first_name: str, code: str, minutes: int) -> str:
    return _TEMPLATE.format(
        title="Reset Your Password",
        first_name=html.escape(first_name or "there"),
        intro="Use the code below to reset your password.",
        code=code,
        minutes=minutes,
        app_name=settings.app_name,
    )


class EmailSender:
    """Blocking smtplib delivery run in a worker thread."""

    def __init__(
        self,
        host: str,
        port: int,
        user: Optional[str],
        password: Optional[str],
        from_email: str,
        from_name: str,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.from_email = from_email
        self.from_name = from_name

    async def send(self, to: str, subject: str, html: str) -> None:
        message = EmailMessage()
        message["From"] = formataddr((self.from_name, self.from_email))
        message["To"] = to
        message["Subject"] = subject
        message.set_content("This message requires an HTML-capable email client.")
        message.add_alternative(html, subtype="html")
        await asyncio.to_thread(self._send_sync, message)
        logger.info(f"Email '{subject}' sent to {to}")

    def _send_sync(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port) as server:
            if self.user and self.password:
                server.starttls()
                server.login(self.user, self.password)
            server.send_message(message)


_sender: Optional[EmailSender] = None


def get_email_sender() -> EmailSender:
    global _sender
    if _sender is None:
        _sender = EmailSender(
            host=settings.smtp_host,
            port=settings.smtp_port,
            user=settings.smtp_user,
            password=settings.smtp_pass,
            from_email=settings.email_from,
            from_name=settings.email_from_name,
        )
    return _sender
