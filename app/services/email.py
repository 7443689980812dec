"""Outbound email for account activation and password reset."""

import logging
import smtplib
from email.mime.text import MIMEText

from app.config import get_settings
from app.exceptions import EmailDeliveryFailed

logger = logging.getLogger("account_api")


class EmailService:
    """Sends account emails over SMTP. Without ``SMTP_HOST`` the message is only logged."""

    def send_activation_token(self, email: str, token: str) -> None:
        settings = get_settings()
        link = f"{settings.CLIENT_BASE_URL}/#/login?token={token}"
        body = (
            "<div><b>Please click on the link below to activate your account</b></div>"
            f"<div><a href='{link}'>Activate</a></div>"
        )
        self._send(email, "Account Activation", body)

    def send_password_reset_token(self, email: str, token: str) -> None:
        settings = get_settings()
        link = f"{settings.CLIENT_BASE_URL}/#/password-reset?reset={token}"
        body = (
            "<div><b>Please click on the link below to reset your password</b></div>"
            f"<div><a href='{link}'>Reset</a></div>"
        )
        self._send(email, "Password Reset", body)

    def _send(self, to_email: str, subject: str, html: str) -> None:
        """Deliver one message. Raises EmailDeliveryFailed on any transport error."""
        settings = get_settings()
        if not settings.SMTP_HOST:
            logger.info("EMAIL (log only) to=%s subject=%s body=%s", to_email, subject, html)
            return

        msg = MIMEText(html, "html", "utf-8")
        msg["Subject"] = subject
        msg["From"] = settings.MAIL_FROM
        msg["To"] = to_email

        try:
            with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=15) as server:
                if settings.SMTP_USE_TLS:
                    server.starttls()
                if settings.SMTP_USERNAME and settings.SMTP_PASSWORD:
                    server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
                server.sendmail(settings.MAIL_FROM, [to_email], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed to send '%s' email to %s: %s", subject, to_email, e)
            raise EmailDeliveryFailed() from e

        logger.info("Sent '%s' email to %s", subject, to_email)


_email_service: EmailService | None = None


def get_email_service() -> EmailService:
    """Get singleton email service instance."""
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service
