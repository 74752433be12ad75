"""Outgoing account emails (verification and password reset).

Mail is sent through FastAPI-Mail. With MAIL_ENABLED off the message is only
logged, which keeps local development and tests free of an SMTP server.
"""

import logging
from typing import Optional

from fastapi_mail import ConnectionConfig, FastMail, MessageSchema, MessageType

from config import (
    BASE_URL,
    MAIL_ENABLED,
    MAIL_FROM,
    MAIL_FROM_NAME,
    MAIL_PASSWORD,
    MAIL_PORT,
    MAIL_SERVER,
    MAIL_SSL_TLS,
    MAIL_STARTTLS,
    MAIL_USERNAME,
    PASSWORD_RESET_TOKEN_EXPIRY_MINUTES,
)

logger = logging.getLogger(__name__)


class EmailSender:
    """Builds and delivers the account emails."""

    def __init__(self, enabled: bool = MAIL_ENABLED, base_url: str = BASE_URL):
        self.enabled = enabled
        self.base_url = base_url.rstrip("/")
        self._mailer: Optional[FastMail] = None

    def _get_mailer(self) -> FastMail:
        if self._mailer is None:
            conf = ConnectionConfig(
                MAIL_USERNAME=MAIL_USERNAME,
                MAIL_PASSWORD=MAIL_PASSWORD,
                MAIL_FROM=MAIL_FROM,
                MAIL_FROM_NAME=MAIL_FROM_NAME,
                MAIL_PORT=MAIL_PORT,
                MAIL_SERVER=MAIL_SERVER,
                MAIL_STARTTLS=MAIL_STARTTLS,
                MAIL_SSL_TLS=MAIL_SSL_TLS,
                USE_CREDENTIALS=True,
                VALIDATE_CERTS=True,
            )
            self._mailer = FastMail(conf)
        return self._mailer

    async def send(self, recipient: str, subject: str, body: str) -> bool:
        """Send one HTML email.

        Returns:
            True if the message was handed to the mail server (or logged
            while mail is disabled), False if delivery failed.
        """
        if not self.enabled:
            logger.info("Mail disabled, not sending '%s' to %s", subject, recipient)
            return True
        message = MessageSchema(
            subject=subject,
            recipients=[recipient],
            body=body,
            subtype=MessageType.html,
        )
        try:
            await self._get_mailer().send_message(message)
        except Exception:
            logger.exception("Failed to send '%s' to %s", subject, recipient)
            return False
        logger.info("Sent '%s' to %s", subject, recipient)
        return True

    async def send_verification_email(self, recipient: str, name: str, token: str) -> bool:
        link = f"{self.base_url}/api/auth/verify-email/{token}"
        body = (
            f"<p>Hello {name},</p>"
            f"<p>Please confirm your email address for your Quizzie account: "
            f'<a href="{link}">{link}</a></p>'
            f"<p>This link will expire in 24 hours.</p>"
        )
        return await self.send(recipient, "Quizzie: Verify your email", body)

    async def send_password_reset_email(self, recipient: str, name: str, token: str) -> bool:
        link = f"{self.base_url}/reset-password/{token}"
        body = (
            f"<p>Hello {name},</p>"
            f"<p>You have requested to reset your password for your Quizzie account. "
            f'Please open the following link to set a new password: <a href="{link}">{link}</a></p>'
            f"<p>This link will expire in {PASSWORD_RESET_TOKEN_EXPIRY_MINUTES} minutes.</p>"
            f"<p>If you did not request a password reset, please ignore this email.</p>"
        )
        return await self.send(recipient, "Quizzie: Password Reset Request", body)
