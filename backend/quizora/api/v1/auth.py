# backend/quizora/api/v1/auth.py
"""
Auth endpoints for Quizora:
- register, login, refresh, logout, me
- password change (admin: current password; student/teacher: emailed OTP)
- forgot password via OTP or reset link
- validate-password and check-email helpers
"""
import logging

from fastapi import APIRouter, BackgroundTasks, Body, Depends, status
from sqlalchemy.orm import Session

from quizora import schemas
from quizora.api.deps import get_current_user, require_admin, require_roles
from quizora.core.responses import success_response
from quizora.db.session import get_db
from quizora.models import Account, RoleEnum
from quizora.services import account_security, auth_service, user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

require_student_or_teacher = require_roles(RoleEnum.student, RoleEnum.teacher)

FORGOT_MESSAGE = "If your email is registered, you will receive instructions shortly"


def _session_payload(account: Account, token_pair: dict) -> dict:
    return {"user": schemas.AccountOut.model_validate(account), **token_pair}


@router.post("/register")
def register(
    background_tasks: BackgroundTasks,
    payload: schemas.RegisterRequest = Body(..., discriminator="role"),
    db: Session = Depends(get_db),
):
    account, token_pair = auth_service.register(db, payload, background_tasks)
    return success_response(
        _session_payload(account, token_pair),
        "User registered successfully",
        status.HTTP_201_CREATED,
    )


@router.post("/login")
def login(req: schemas.LoginRequest, background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
    account, token_pair = auth_service.login(db, req.email, req.password, background_tasks=background_tasks)
    return success_response(_session_payload(account, token_pair), "Login successful")


@router.post("/refresh")
def refresh_token(req: schemas.RefreshRequest, db: Session = Depends(get_db)):
    return success_response(auth_service.refresh(db, req.refreshToken), "Token refreshed successfully")


@router.post("/logout")
def logout(current_user: Account = Depends(get_current_user)):
    # tokens are stateless; the client drops them
    logger.info("[auth] %s logged out", current_user.email)
    return success_response(None, "Logout successful")


@router.get("/me")
def me(current_user: Account = Depends(get_current_user)):
    return success_response(schemas.AccountOut.model_validate(current_user), "User profile retrieved")


@router.put("/change-password")
def change_password(
    req: schemas.ChangePasswordRequest,
    current_user: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    auth_service.change_password(db, current_user, req.currentPassword, req.password)
    return success_response(None, "Password changed successfully")


@router.post("/request-password-change-otp")
def request_password_change_otp(
    req: schemas.PasswordChangeOtpRequest,
    current_user: Account = Depends(require_student_or_teacher),
    db: Session = Depends(get_db),
):
    auth_service.request_password_change_otp(db, current_user, req.currentPassword)
    return success_response({"message": "OTP sent to your email address"}, "OTP sent successfully")


@router.post("/verify-otp-and-change-password")
def verify_otp_and_change_password(
    req: schemas.VerifyOtpChangePasswordRequest,
    current_user: Account = Depends(require_student_or_teacher),
    db: Session = Depends(get_db),
):
    auth_service.verify_otp_and_change_password(db, current_user, req.otp, req.newPassword)
    return success_response(None, "Password changed successfully")


@router.post("/forgot-password-otp")
def forgot_password_otp(req: schemas.EmailRequest, background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
    auth_service.request_forgot_password_otp(db, req.email, background_tasks=background_tasks)
    return success_response(None, FORGOT_MESSAGE)


@router.post("/verify-forgot-password-otp")
def verify_forgot_password_otp(req: schemas.VerifyForgotPasswordOtpRequest, db: Session = Depends(get_db)):
    auth_service.verify_forgot_password_otp(db, req.email, req.otp, req.password)
    return success_response(None, "Password reset successfully")


@router.post("/forgot-password")
def forgot_password(req: schemas.EmailRequest, background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
    auth_service.forgot_password(db, req.email, background_tasks=background_tasks)
    return success_response(None, FORGOT_MESSAGE)


@router.get("/verify-reset-token/{token}")
def verify_reset_token(token: str, db: Session = Depends(get_db)):
    account = auth_service.verify_reset_token(db, token)
    return success_response({"valid": True, "email": account.email}, "Reset token is valid")


@router.post("/reset-password")
def reset_password(req: schemas.ResetPasswordRequest, db: Session = Depends(get_db)):
    auth_service.reset_password(db, req.token, req.password)
    return success_response(None, "Password reset successfully")


@router.post("/validate-password")
def validate_password(req: schemas.PasswordRequest):
    return success_response(account_security.validate_password_strength(req.password), "Password validation result")


@router.get("/check-email")
def check_email(email: str, db: Session = Depends(get_db)):
    return success_response({"exists": user_service.email_exists(db, email)}, "Email check completed")
