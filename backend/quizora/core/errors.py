# backend/quizora/core/errors.py
"""
Application error taxonomy.

Services raise these; the handlers registered in quizora.main turn them into
the standard response envelope with the matching status code.
"""
from typing import Any, List, Optional


class AppError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[Any]] = None, status_code: Optional[int] = None):
        self.message = message or self.default_message
        self.errors = errors or []
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class BadRequestError(AppError):
    status_code = 400
    default_message = "Bad request"


class ValidationError(AppError):
    status_code = 422
    default_message = "Validation failed"


class AuthenticationError(AppError):
    status_code = 401
    default_message = "Not authenticated"


class TokenExpiredError(AuthenticationError):
    default_message = "Token expired"


class TokenInvalidError(AuthenticationError):
    default_message = "Invalid token"


class AccountLockedError(AuthenticationError):
    default_message = "Account is temporarily locked due to too many failed login attempts"


class AuthorizationError(AppError):
    status_code = 403
    default_message = "Access denied"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Resource not found"


class ConflictError(AppError):
    status_code = 409
    default_message = "Resource already exists"


class RateLimitError(AppError):
    status_code = 429
    default_message = "Too many requests, please try again later"
