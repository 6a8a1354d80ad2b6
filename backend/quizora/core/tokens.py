# backend/quizora/core/tokens.py
"""
Signed, time-limited session tokens (PyJWT).

Access and refresh tokens carry the same identity claims; refresh tokens add
``type=refresh`` and a longer ttl. Nothing is stored server-side, so an
issued access token stays valid until it expires.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt  # PyJWT

from quizora.core.config import settings
from quizora.core.errors import TokenExpiredError, TokenInvalidError

ACCESS = "access"
REFRESH = "refresh"


def issue(claims: Dict[str, Any], ttl: timedelta, now: Optional[datetime] = None) -> str:
    issued_at = now or datetime.now(timezone.utc)
    payload = dict(claims)
    payload["iat"] = issued_at
    payload["exp"] = issued_at + ttl
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def verify(token: str) -> Dict[str, Any]:
    """Decode and validate a token, raising TokenExpiredError / TokenInvalidError."""
    if not token:
        raise TokenInvalidError()
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise TokenExpiredError()
    except jwt.InvalidTokenError:
        raise TokenInvalidError()


def account_claims(account) -> Dict[str, Any]:
    return {"id": account.id, "email": account.email, "role": account.role}


def issue_pair(account) -> Dict[str, str]:
    claims = account_claims(account)
    access_token = issue(
        {**claims, "type": ACCESS},
        timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    refresh_token = issue(
        {**claims, "type": REFRESH},
        timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    )
    return {"accessToken": access_token, "refreshToken": refresh_token}
