"""
quizora.utils.email_sender

- Uses smtplib with STARTTLS (or SMTPS when MAIL_SSL_TLS is set).
- Raises on SMTP failures so callers can decide; notify_safely() is the
  best-effort wrapper used for background notifications.
- If SMTP is not fully configured (SMTP_USER/SMTP_PASS missing), the message
  is logged instead and, when OTP_LOG_FILE is set, appended to that file.
"""

import logging
import smtplib
from datetime import datetime
from email.message import EmailMessage
from pathlib import Path
from typing import Optional

from quizora.core.clock import utcnow
from quizora.core.config import settings

logger = logging.getLogger(__name__)


def _write_dev_log(to: str, subject: str, body: str):
    if not settings.OTP_LOG_FILE:
        return
    path = Path(settings.OTP_LOG_FILE)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(str(path), "a", encoding="utf-8") as fh:
            fh.write(f"{utcnow().isoformat()}\t{to}\t{subject}\t{body!r}\n")
    except OSError as e:
        logger.warning("[mail] failed to write dev mail log %s: %s", path, e)


def send_email(to: str, subject: str, body: str) -> None:
    """Send a plain-text email, or log it when SMTP is not configured."""
    if not settings.SMTP_USER or not settings.SMTP_PASS:
        logger.info("[mail][DEV] No SMTP credentials configured. To %s | %s\n%s", to, subject, body)
        _write_dev_log(to, subject, body)
        return

    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = f"Quizora <{settings.MAIL_FROM or settings.SMTP_USER}>"
    msg["To"] = to
    msg.set_content(body)

    try:
        if settings.MAIL_SSL_TLS:
            with smtplib.SMTP_SSL(settings.MAIL_SERVER, settings.MAIL_PORT) as server:
                server.login(settings.SMTP_USER, settings.SMTP_PASS)
                server.send_message(msg)
        else:
            with smtplib.SMTP(settings.MAIL_SERVER, settings.MAIL_PORT) as server:
                server.ehlo()
                if settings.MAIL_STARTTLS:
                    server.starttls()
                    server.ehlo()
                server.login(settings.SMTP_USER, settings.SMTP_PASS)
                server.send_message(msg)
        logger.info("[mail] sent %r to %s", subject, to)
    except smtplib.SMTPAuthenticationError as e:
        logger.error("[mail] SMTP authentication failed for %s: %s", settings.SMTP_USER, e)
        raise
    except smtplib.SMTPException as e:
        logger.error("[mail] SMTP exception when sending to %s: %s", to, e)
        raise


def notify_safely(func, *args, **kwargs) -> bool:
    """Run a notification; failures are logged and never propagate."""
    try:
        func(*args, **kwargs)
        return True
    except Exception:
        logger.exception("[mail] notification %s failed", getattr(func, "__name__", func))
        return False


def schedule(background_tasks, func, *args, **kwargs) -> None:
    """Queue a best-effort notification after the response, or run it now without a task queue."""
    if background_tasks is not None:
        background_tasks.add_task(notify_safely, func, *args, **kwargs)
    else:
        notify_safely(func, *args, **kwargs)


# -------------------- templates --------------------
def send_otp_email(email: str, otp: str, name: Optional[str] = None, purpose: str = "password change") -> None:
    minutes = settings.OTP_TTL_SECONDS // 60
    body = (
        f"Hello {name or ''},\n\n"
        f"Your Quizora {purpose} verification code is: {otp}\n"
        f"This code will expire in {minutes} minutes. If you did not request it, you can ignore this email."
    )
    send_email(email, f"Your Quizora {purpose} code", body)


def send_welcome_email(email: str, name: str, temp_password: Optional[str], role: str) -> None:
    login_url = f"{settings.FRONTEND_URL}/login"
    lines = [
        f"Hello {name},",
        "",
        f"An account has been created for you on Quizora with the role '{role}'.",
        f"Email: {email}",
    ]
    if temp_password:
        lines.append(f"Temporary password: {temp_password}")
        lines.append("Please change this password after your first sign-in.")
    lines.append(f"Sign in at {login_url}")
    send_email(email, "Welcome to Quizora!", "\n".join(lines))


def send_password_reset_email(email: str, reset_token: str, name: Optional[str] = None) -> None:
    reset_url = f"{settings.FRONTEND_URL}/reset-password?token={reset_token}"
    body = (
        f"Hello {name or ''},\n\n"
        f"Reset your Quizora password here: {reset_url}\n"
        f"The link expires in {settings.RESET_TOKEN_TTL_MINUTES} minutes."
    )
    send_email(email, "Reset Your Quizora Password", body)


def send_account_locked_email(email: str, name: Optional[str], unlock_time: datetime) -> None:
    body = (
        f"Hello {name or ''},\n\n"
        "Your Quizora account was locked after too many failed sign-in attempts.\n"
        f"It will unlock automatically at {unlock_time.isoformat()} UTC."
    )
    send_email(email, "Your Quizora account has been locked", body)
