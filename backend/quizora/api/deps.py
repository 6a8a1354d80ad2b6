# backend/quizora/api/deps.py
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from quizora.core import tokens
from quizora.core.errors import AccountLockedError, AuthenticationError, AuthorizationError, TokenInvalidError
from quizora.db.session import get_db
from quizora.models import Account, RoleEnum
from quizora.services import account_security

# Security scheme for extraction
bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> Account:
    """
    Resolve the Account behind ``Authorization: Bearer <access token>``.

    Refresh tokens are refused here. The account is reloaded on every request
    so deactivated or locked accounts stop working immediately.
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Not authenticated")

    claims = tokens.verify(credentials.credentials)
    if claims.get("type") != tokens.ACCESS:
        raise TokenInvalidError("Invalid token type")

    account = db.get(Account, claims.get("id"))
    if not account:
        raise AuthenticationError("User not found")
    if not account.is_active_account:
        raise AuthenticationError("Account is not active")
    if account_security.is_locked(account):
        raise AccountLockedError()
    return account


def require_roles(*roles: RoleEnum):
    allowed = {r.value for r in roles}

    def checker(current_user: Account = Depends(get_current_user)) -> Account:
        if current_user.role not in allowed:
            raise AuthorizationError(f"{' or '.join(sorted(allowed)).capitalize()} privileges required")
        return current_user

    return checker


require_admin = require_roles(RoleEnum.admin)
require_teacher = require_roles(RoleEnum.teacher)
require_student = require_roles(RoleEnum.student)
