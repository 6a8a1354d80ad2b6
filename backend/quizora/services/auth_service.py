# backend/quizora/services/auth_service.py
"""
Authentication flows: register, login, refresh, password change (plain and
OTP), forgot-password (OTP and reset-link) and the small lookup helpers.

Every flow raises an AppError subclass on failure; routers only wrap the
return values in the response envelope.
"""
import logging
from datetime import datetime
from typing import Dict, Optional, Tuple

from sqlalchemy.orm import Session

from quizora.core import security, tokens
from quizora.core.clock import utcnow
from quizora.core.errors import (
    AccountLockedError,
    AppError,
    AuthenticationError,
    BadRequestError,
    TokenInvalidError,
)
from quizora.models import Account
from quizora.services import account_security, user_service
from quizora.services.account_security import OTP_MESSAGES, OneTimeCode, OtpCheck
from quizora.utils.email_sender import (
    schedule,
    send_account_locked_email,
    send_otp_email,
    send_password_reset_email,
    send_welcome_email,
)

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"


def register(db: Session, payload, background_tasks=None) -> Tuple[Account, Dict[str, str]]:
    if not payload.password:
        raise BadRequestError("Password is required")
    user_service.ensure_unique(
        db,
        email=payload.email,
        student_id=getattr(payload, "student_id", None),
        employee_id=getattr(payload, "employee_id", None),
    )

    account = user_service.build_account(payload, payload.password)
    db.add(account)
    db.commit()
    db.refresh(account)
    logger.info("[auth] registered %s account %s", account.role, account.email)

    schedule(background_tasks, send_welcome_email, account.email, account.name, None, account.role)
    return account, tokens.issue_pair(account)


def login(
    db: Session,
    email: str,
    password: str,
    now: Optional[datetime] = None,
    background_tasks=None,
) -> Tuple[Account, Dict[str, str]]:
    now = now or utcnow()
    account = user_service.get_by_email(db, email)
    if not account:
        raise AuthenticationError(INVALID_CREDENTIALS)

    # lockout is checked before any secret comparison
    if account_security.is_locked(account, now):
        logger.warning("[auth] login attempt on locked account %s", account.email)
        raise AccountLockedError()

    if not account.is_active_account:
        raise AuthenticationError("Account is not active. Please contact an administrator.")

    if not security.verify_password(password, account.password_hash):
        newly_locked = account_security.record_failed_login(account, now)
        db.commit()
        if newly_locked:
            schedule(background_tasks, send_account_locked_email, account.email, account.name, account.lock_until)
        raise AuthenticationError(INVALID_CREDENTIALS)

    account_security.record_successful_login(account, now)
    db.commit()
    db.refresh(account)
    logger.info("[auth] %s logged in", account.email)
    return account, tokens.issue_pair(account)


def refresh(db: Session, refresh_token: str) -> Dict[str, str]:
    claims = tokens.verify(refresh_token)
    if claims.get("type") != tokens.REFRESH:
        raise TokenInvalidError("Invalid refresh token")

    account = db.get(Account, claims.get("id"))
    if not account or not account.is_active_account:
        raise AuthenticationError("Account not found or inactive")
    return tokens.issue_pair(account)


def change_password(db: Session, account: Account, current_password: str, new_password: str) -> None:
    if not security.verify_password(current_password, account.password_hash):
        raise BadRequestError("Current password is incorrect")
    if security.verify_password(new_password, account.password_hash):
        raise BadRequestError("New password must be different from the current password")
    account.password = new_password
    db.commit()
    logger.info("[auth] password changed for %s", account.email)


def _raise_for_otp(db: Session, outcome: OtpCheck):
    if outcome is OtpCheck.OK:
        return
    # persist the attempt counter before failing
    db.commit()
    raise BadRequestError(OTP_MESSAGES[outcome])


def request_password_change_otp(db: Session, account: Account, current_password: str, now: Optional[datetime] = None) -> None:
    if not security.verify_password(current_password, account.password_hash):
        raise BadRequestError("Current password is incorrect")

    slot = OneTimeCode(account, account_security.PASSWORD_CHANGE)
    otp = slot.generate(now)
    db.commit()

    # the user cannot continue without this email, so a send failure is fatal
    try:
        send_otp_email(account.email, otp, account.name, purpose="password change")
    except Exception:
        logger.exception("[auth] failed to send password change OTP to %s", account.email)
        slot.clear()
        db.commit()
        raise AppError("Failed to send OTP email. Please try again.", status_code=500)


def verify_otp_and_change_password(
    db: Session,
    account: Account,
    otp: str,
    new_password: str,
    now: Optional[datetime] = None,
) -> None:
    slot = OneTimeCode(account, account_security.PASSWORD_CHANGE)
    _raise_for_otp(db, slot.verify(otp, now))

    if security.verify_password(new_password, account.password_hash):
        raise BadRequestError("New password must be different from the current password")

    slot.clear()
    account.password = new_password
    db.commit()
    logger.info("[auth] password changed via OTP for %s", account.email)


def request_forgot_password_otp(db: Session, email: str, now: Optional[datetime] = None, background_tasks=None) -> None:
    """Send a forgot-password code. Callers always report success, known email or not."""
    account = user_service.get_by_email(db, email)
    if not account or not account.is_active_account:
        logger.info("[auth] forgot-password OTP requested for unknown or inactive email")
        return

    slot = OneTimeCode(account, account_security.FORGOT_PASSWORD)
    try:
        otp = slot.generate(now)
    except AppError as exc:
        logger.info("[auth] forgot-password OTP for %s not sent: %s", account.email, exc.message)
        return
    db.commit()
    schedule(background_tasks, send_otp_email, account.email, otp, account.name, purpose="password reset")


def verify_forgot_password_otp(db: Session, email: str, otp: str, password: str, now: Optional[datetime] = None) -> None:
    account = user_service.get_by_email(db, email)
    if not account:
        raise BadRequestError(OTP_MESSAGES[OtpCheck.NO_CODE])

    slot = OneTimeCode(account, account_security.FORGOT_PASSWORD)
    _raise_for_otp(db, slot.verify(otp, now))

    slot.clear()
    account.password = password
    account_security.reset_lockout(account)
    db.commit()
    logger.info("[auth] password reset via OTP for %s", account.email)


def forgot_password(db: Session, email: str, now: Optional[datetime] = None, background_tasks=None) -> None:
    account = user_service.get_by_email(db, email)
    if not account or not account.is_active_account:
        logger.info("[auth] reset link requested for unknown or inactive email")
        return

    token = account_security.issue_reset_token(account, now)
    db.commit()
    schedule(background_tasks, send_password_reset_email, account.email, token, account.name)


def _account_for_reset_token(db: Session, token: str, now: Optional[datetime] = None) -> Account:
    account = db.query(Account).filter(Account.password_reset_token == token).first() if token else None
    if not account_security.reset_token_valid(account, now):
        raise BadRequestError("Invalid or expired reset token")
    return account


def verify_reset_token(db: Session, token: str, now: Optional[datetime] = None) -> Account:
    return _account_for_reset_token(db, token, now)


def reset_password(db: Session, token: str, password: str, now: Optional[datetime] = None) -> None:
    account = _account_for_reset_token(db, token, now)
    account.password = password
    account_security.clear_reset_token(account)
    account_security.reset_lockout(account)
    db.commit()
    logger.info("[auth] password reset via link for %s", account.email)
