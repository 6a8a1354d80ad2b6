# backend/quizora/services/account_security.py
"""
Account security rules: login lockout, one-time codes, reset tokens and
password strength.

Functions here only mutate the Account object; committing is the caller's
job. Counters are updated read-modify-write without a version check, so
two concurrent requests for the same account can race (last write wins).
"""
import enum
import logging
import re
from datetime import datetime, timedelta
from typing import Optional

from quizora.core import security
from quizora.core.clock import utcnow
from quizora.core.config import settings
from quizora.core.errors import RateLimitError
from quizora.models import Account

logger = logging.getLogger(__name__)


# -------------------- lockout --------------------
def is_locked(account: Account, now: Optional[datetime] = None) -> bool:
    now = now or utcnow()
    return account.lock_until is not None and account.lock_until > now


def record_failed_login(account: Account, now: Optional[datetime] = None) -> bool:
    """Count a failed login. Returns True when this failure locked the account."""
    now = now or utcnow()

    # a previous lock has run out: start counting again
    if account.lock_until is not None and account.lock_until <= now:
        account.login_attempts = 1
        account.lock_until = None
        return False

    attempts = (account.login_attempts or 0) + 1
    account.login_attempts = attempts
    if attempts >= settings.MAX_LOGIN_ATTEMPTS and not is_locked(account, now):
        account.lock_until = now + timedelta(minutes=settings.LOCK_TIME_MINUTES)
        logger.warning("[security] account %s locked until %s", account.email, account.lock_until.isoformat())
        return True
    return False


def record_successful_login(account: Account, now: Optional[datetime] = None) -> None:
    account.login_attempts = 0
    account.lock_until = None
    account.last_login = now or utcnow()


def reset_lockout(account: Account) -> None:
    account.login_attempts = 0
    account.lock_until = None


# -------------------- one-time codes --------------------
class OtpCheck(str, enum.Enum):
    OK = "ok"
    NO_CODE = "no_code"
    EXPIRED = "expired"
    TOO_MANY_ATTEMPTS = "too_many_attempts"
    MISMATCH = "mismatch"


OTP_MESSAGES = {
    OtpCheck.NO_CODE: "No OTP found. Please request a new one.",
    OtpCheck.EXPIRED: "OTP has expired. Please request a new one.",
    OtpCheck.TOO_MANY_ATTEMPTS: "Too many failed attempts. Please request a new OTP.",
    OtpCheck.MISMATCH: "Invalid OTP",
}

PASSWORD_CHANGE = "password_change"
FORGOT_PASSWORD = "forgot_password"


class OneTimeCode:
    """One OTP slot on an account ("password_change" or "forgot_password").

    The slot is three columns: ``<purpose>_otp`` (salted digest),
    ``<purpose>_otp_expires`` and ``<purpose>_otp_attempts``.
    """

    def __init__(self, account: Account, purpose: str):
        if purpose not in (PASSWORD_CHANGE, FORGOT_PASSWORD):
            raise ValueError(f"unknown OTP purpose: {purpose}")
        self.account = account
        self.purpose = purpose

    def _get(self, suffix):
        return getattr(self.account, f"{self.purpose}_otp{suffix}")

    def _set(self, suffix, value):
        setattr(self.account, f"{self.purpose}_otp{suffix}", value)

    @property
    def code(self) -> Optional[str]:
        return self._get("")

    @property
    def expires(self) -> Optional[datetime]:
        return self._get("_expires")

    @property
    def attempts(self) -> int:
        return self._get("_attempts") or 0

    def generate(self, now: Optional[datetime] = None) -> str:
        """Issue a new code and return it in plain text (only the digest is stored)."""
        now = now or utcnow()
        ttl = timedelta(seconds=settings.OTP_TTL_SECONDS)
        if self.code and self.expires:
            issued_at = self.expires - ttl
            if now < issued_at + timedelta(seconds=settings.OTP_RESEND_COOLDOWN_SECONDS):
                raise RateLimitError("An OTP was sent recently. Please wait before requesting another.")

        plain = security.generate_numeric_code()
        self._set("", security.hash_code(plain))
        self._set("_expires", now + ttl)
        self._set("_attempts", 0)
        return plain

    def verify(self, candidate: str, now: Optional[datetime] = None) -> OtpCheck:
        now = now or utcnow()
        if not self.code or not self.expires:
            return OtpCheck.NO_CODE
        if self.expires < now:
            return OtpCheck.EXPIRED
        if self.attempts >= settings.OTP_MAX_ATTEMPTS:
            return OtpCheck.TOO_MANY_ATTEMPTS
        if not security.verify_code(candidate, self.code):
            self._set("_attempts", self.attempts + 1)
            return OtpCheck.MISMATCH
        return OtpCheck.OK

    def clear(self) -> None:
        self._set("", None)
        self._set("_expires", None)
        self._set("_attempts", 0)


# -------------------- reset tokens --------------------
def issue_reset_token(account: Account, now: Optional[datetime] = None) -> str:
    now = now or utcnow()
    token = security.generate_random_token()
    account.password_reset_token = token
    account.password_reset_expires = now + timedelta(minutes=settings.RESET_TOKEN_TTL_MINUTES)
    return token


def reset_token_valid(account: Optional[Account], now: Optional[datetime] = None) -> bool:
    now = now or utcnow()
    return (
        account is not None
        and account.password_reset_token is not None
        and account.password_reset_expires is not None
        and account.password_reset_expires > now
    )


def clear_reset_token(account: Account) -> None:
    account.password_reset_token = None
    account.password_reset_expires = None


# -------------------- password strength --------------------
_SPECIAL = re.compile(r"[!@#$%^&*(),.?\":{}|<>]")


def validate_password_strength(password: str) -> dict:
    checks = {
        "length": len(password) >= 8,
        "uppercase": re.search(r"[A-Z]", password) is not None,
        "lowercase": re.search(r"[a-z]", password) is not None,
        "number": re.search(r"\d", password) is not None,
        "special": _SPECIAL.search(password) is not None,
    }
    score = sum(1 for ok in checks.values() if ok)
    if len(password) >= 12:
        score += 1

    if score <= 2:
        strength = "weak"
    elif score <= 4:
        strength = "medium"
    else:
        strength = "strong"
    return {"isValid": all(checks.values()), "checks": checks, "strength": strength}
