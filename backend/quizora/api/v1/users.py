# backend/quizora/api/v1/users.py
"""Admin user management."""
from typing import Literal, Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Query, status
from sqlalchemy.orm import Session

from quizora import schemas
from quizora.api.deps import require_admin
from quizora.core.responses import paginate, success_response
from quizora.db.session import get_db
from quizora.models import Account
from quizora.services import user_service

router = APIRouter(prefix="/admin/users", tags=["admin"])


def _out(account: Account) -> schemas.AccountOut:
    return schemas.AccountOut.model_validate(account)


@router.get("/stats")
def user_stats(admin: Account = Depends(require_admin), db: Session = Depends(get_db)):
    return success_response(user_service.user_stats(db), "User statistics retrieved")


@router.get("/")
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    role: Optional[Literal["student", "teacher", "admin"]] = None,
    status_filter: Optional[Literal["active", "inactive", "suspended"]] = Query(None, alias="status"),
    department: Optional[str] = None,
    course: Optional[str] = None,
    enrollment_year: Optional[int] = Query(None, alias="enrollmentYear"),
    search: Optional[str] = None,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    items, total = user_service.list_users(
        db,
        page=page,
        limit=limit,
        role=role,
        status=status_filter,
        department=department,
        course=course,
        enrollment_year=enrollment_year,
        search=search,
    )
    return success_response(paginate([_out(a) for a in items], page, limit, total), "Users retrieved successfully")


@router.get("/{user_id}")
def get_user(user_id: int, admin: Account = Depends(require_admin), db: Session = Depends(get_db)):
    return success_response(_out(user_service.get_user(db, user_id)), "User retrieved successfully")


@router.post("/")
def create_user(
    background_tasks: BackgroundTasks,
    payload: schemas.AccountCreate = Body(..., discriminator="role"),
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    account = user_service.create_user(db, payload, admin, background_tasks)
    return success_response(_out(account), "User created successfully", status.HTTP_201_CREATED)


@router.put("/{user_id}")
def update_user(
    user_id: int,
    payload: schemas.AccountUpdate,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    account = user_service.update_user(db, user_id, payload, admin)
    return success_response(_out(account), "User updated successfully")


@router.delete("/{user_id}")
def delete_user(
    user_id: int,
    permanent: bool = False,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    user_service.delete_user(db, user_id, admin, permanent=permanent)
    message = "User permanently deleted" if permanent else "User deactivated successfully"
    return success_response({"id": user_id, "permanent": permanent}, message)


@router.post("/{user_id}/reset-password")
def reset_user_password(
    user_id: int,
    req: schemas.AdminPasswordReset,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    account, new_password = user_service.reset_user_password(db, user_id, req.password)
    data = {"user": _out(account)}
    if not req.password:
        # generated secrets are shown once, to the admin who asked
        data["temporaryPassword"] = new_password
    return success_response(data, "Password reset successfully")
