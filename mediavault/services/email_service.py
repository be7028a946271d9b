"""
Outbound email for verification and password reset links.

Delivery failures are logged and never raised: a lost email must not fail
the request that triggered it.
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from functools import lru_cache
from pathlib import Path
from typing import Optional

import jinja2

from mediavault.config import settings

logger = logging.getLogger(__name__)

TEMPLATES_PATH = Path(__file__).resolve().parent.parent / "templates" / "emails"

template_env = jinja2.Environment(
    loader=jinja2.FileSystemLoader(searchpath=str(TEMPLATES_PATH)),
    autoescape=jinja2.select_autoescape(["html"]),
)


class EmailService:
    """Sends transactional email over SMTP, or logs it when SMTP is not configured."""

    def __init__(
        self,
        smtp_host: Optional[str] = None,
        smtp_port: Optional[int] = None,
        smtp_user: Optional[str] = None,
        smtp_password: Optional[str] = None,
        from_email: Optional[str] = None,
        app_url: Optional[str] = None,
    ):
        self.smtp_host = smtp_host if smtp_host is not None else settings.smtp_host
        self.smtp_port = smtp_port or settings.smtp_port
        self.smtp_user = smtp_user if smtp_user is not None else settings.smtp_user
        self.smtp_password = smtp_password if smtp_password is not None else settings.smtp_password
        self.from_email = from_email or settings.email_from
        self.app_url = (app_url or settings.app_url).rstrip("/")

    def _render(self, template_name: str, fallback: str, **context) -> str:
        try:
            return template_env.get_template(template_name).render(**context)
        except jinja2.TemplateNotFound:
            logger.warning(f"Email template {template_name} not found, using plain fallback")
            return fallback

    def send(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
    ) -> bool:
        """
        Send one message.

        Returns:
            True if the message was handed to the SMTP server (or logged in
            development mode), False if delivery failed
        """
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_email
        msg["To"] = to_email
        if text_content:
            msg.attach(MIMEText(text_content, "plain"))
        msg.attach(MIMEText(html_content, "html"))

        if not self.smtp_host:
            logger.info(f"DEV MODE - Would send email to {to_email}")
            logger.info(f"Subject: {subject}")
            logger.debug(f"Content: {text_content or html_content[:200]}")
            return True

        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30) as server:
                if settings.smtp_use_tls:
                    server.starttls()
                if self.smtp_user and self.smtp_password:
                    server.login(self.smtp_user, self.smtp_password)
                server.send_message(msg)
            logger.info(f"Email sent successfully to {to_email}")
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to_email}: {e}")
            return False

    def send_verification_email(self, to_email: str, username: str, token: str) -> bool:
        """Send the link that verifies a new account's email address."""
        link = f"{self.app_url}/api/auth/verify-email?token={token}"
        hours = settings.verification_token_ttl_hours
        text_content = (
            f"Hi {username},\n\n"
            f"Please verify your email address by opening the link below:\n{link}\n\n"
            f"This link will expire in {hours} hours.\n\n"
            "If you didn't create an account, please ignore this email.\n"
        )
        html_content = self._render(
            "verification.html",
            fallback=f"<p>Hi {username},</p><p><a href=\"{link}\">Verify your email</a></p>",
            username=username,
            verification_link=link,
            expire_hours=hours,
            app_name=settings.app_name,
        )
        return self.send(to_email, f"Verify your {settings.app_name} account", html_content, text_content)

    def send_password_reset_email(self, to_email: str, username: str, token: str) -> bool:
        """Send a password reset link."""
        link = f"{self.app_url}/reset-password?token={token}"
        minutes = settings.password_reset_token_ttl_minutes
        text_content = (
            f"Hi {username},\n\n"
            f"A password reset was requested for your account. Open the link below to choose a new password:\n{link}\n\n"
            f"This link will expire in {minutes} minutes.\n\n"
            "If you didn't request this, you can ignore this email.\n"
        )
        html_content = self._render(
            "password_reset.html",
            fallback=f"<p>Hi {username},</p><p><a href=\"{link}\">Reset your password</a></p>",
            username=username,
            reset_link=link,
            expire_minutes=minutes,
            app_name=settings.app_name,
        )
        return self.send(to_email, f"Reset your {settings.app_name} password", html_content, text_content)


@lru_cache()
def get_email_service() -> EmailService:
    """Get cached email service built from settings."""
    return EmailService()
