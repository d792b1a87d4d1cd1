"""
Email Utility

Helper functions for sending emails.
"""

import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import List, Optional
from urllib.parse import urlencode
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)


def send_email(
    recipients: List[str],
    subject: str,
    content: str,
    content_type: str = "plain"
) -> bool:
    """
    Send an email using SMTP settings from config.

    Args:
        recipients: List of email addresses
        subject: Email subject
        content: Email body
        content_type: "plain" or "html"

    Returns:
        True if successful, False otherwise
    """
    if not settings.SMTP_SERVER or not settings.SMTP_EMAIL:
        logger.warning(f"SMTP settings not configured. Email to {recipients} not sent: {subject}")
        return False

    try:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = settings.SMTP_EMAIL
        msg["To"] = ", ".join(recipients)

        part = MIMEText(content, content_type)
        msg.attach(part)

        port = int(settings.SMTP_PORT) if settings.SMTP_PORT else 587

        with smtplib.SMTP(settings.SMTP_SERVER, port) as server:
            server.starttls()
            if settings.SMTP_PASSWORD:
                server.login(settings.SMTP_EMAIL, settings.SMTP_PASSWORD)
            server.send_message(msg)

        logger.info(f"Email sent to {recipients}")
        return True

    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send email: {str(e)}")
        return False


def build_reset_url(user_id: str, token: str) -> str:
    """Frontend link carrying the plaintext reset token."""
    query = urlencode({"token": token, "userId": user_id})
    return f"{settings.FRONTEND_URL.rstrip('/')}/reset-password?{query}"


def send_password_reset_link(
    email: str,
    url: str,
    name: Optional[str] = None,
    expires_in_minutes: int = 30
) -> bool:
    """
    Send a password reset link email.

    Args:
        email: User email address
        url: Reset link containing the token
        name: Display name for the greeting
        expires_in_minutes: Link expiration time in minutes

    Returns:
        True if email sent successfully, False otherwise
    """
    subject = f"Reset your password - {settings.PROJECT_NAME}"
    greeting = f"Hi {name}," if name else "Hi there,"

    html_content = f"""
    <!DOCTYPE html>
    <html lang="en">
    <body style="font-family: -apple-system, 'Segoe UI', Roboto, Arial, sans-serif; color: #111827;">
        <h2 style="margin-top: 0;">Reset your password</h2>
        <p>{greeting}</p>
        <p>
            We received a request to reset the password for your
            <strong>{settings.PROJECT_NAME}</strong> account.
        </p>
        <p>
            <a href="{url}" style="display: inline-block; padding: 12px 20px;
               background-color: #4f46e5; color: #ffffff; border-radius: 8px;
               text-decoration: none;">Choose a new password</a>
        </p>
        <p style="font-size: 14px; color: #92400e;">
            This link expires in <strong>{expires_in_minutes} minutes</strong>.
        </p>
        <p style="font-size: 14px; color: #6b7280;">
            If you didn't request this, you can safely ignore this email.
        </p>
    </body>
    </html>
    """

    plain_content = f"""
    {settings.PROJECT_NAME} - Password Reset Request

    {greeting}

    Open the link below to choose a new password:
    {url}

    This link will expire in {expires_in_minutes} minutes.

    If you did not request this password reset, please ignore this email.
    """

    # Try HTML first, fallback to plain text
    success = send_email([email], subject, html_content, "html")
    if not success:
        return send_email([email], subject, plain_content, "plain")
    return success
