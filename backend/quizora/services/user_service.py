# backend/quizora/services/user_service.py
"""
Account persistence shared by self-registration and admin user management.
"""
import logging
from typing import Optional, Tuple

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from quizora import schemas
from quizora.core import security
from quizora.core.errors import BadRequestError, ConflictError, NotFoundError, ValidationError
from quizora.models import Account, AccountStatusEnum, RoleEnum
from quizora.services import account_security
from quizora.utils.email_sender import schedule, send_welcome_email

logger = logging.getLogger(__name__)

_ALL_ROLE_FIELDS = tuple(f for fields in schemas.ROLE_FIELDS.values() for f in fields)


def get_by_email(db: Session, email: str) -> Optional[Account]:
    return db.query(Account).filter(Account.email == email.strip().lower()).first()


def email_exists(db: Session, email: str) -> bool:
    return get_by_email(db, email) is not None


def ensure_unique(db: Session, email: str = None, student_id: str = None, employee_id: str = None, exclude_id: int = None):
    """Raise ConflictError when email / student id / employee id is taken by another account."""
    checks = (
        ("email", Account.email, email.lower() if email else None, "Email already registered"),
        ("student_id", Account.student_id, student_id, "Student ID already exists"),
        ("employee_id", Account.employee_id, employee_id, "Employee ID already exists"),
    )
    for field, column, value, message in checks:
        if not value:
            continue
        q = db.query(Account.id).filter(column == value)
        if exclude_id is not None:
            q = q.filter(Account.id != exclude_id)
        if q.first():
            raise ConflictError(message, errors=[{"field": field, "message": message}])


def build_account(payload, password: str, created_by: Optional[int] = None) -> Account:
    """Turn a validated role variant into an Account row (not yet added)."""
    account = Account(
        name=payload.name,
        email=payload.email,
        role=payload.role,
        status=AccountStatusEnum.active.value,
        phone_number=payload.phone_number,
        created_by=created_by,
    )
    for field in schemas.ROLE_FIELDS[payload.role]:
        setattr(account, field, getattr(payload, field))
    account.password = password
    return account


def get_user(db: Session, user_id: int) -> Account:
    account = db.get(Account, user_id)
    if not account:
        raise NotFoundError("User not found")
    return account


def list_users(
    db: Session,
    page: int = 1,
    limit: int = 10,
    role: Optional[str] = None,
    status: Optional[str] = None,
    department: Optional[str] = None,
    course: Optional[str] = None,
    enrollment_year: Optional[int] = None,
    search: Optional[str] = None,
) -> Tuple[list, int]:
    q = db.query(Account)
    if role:
        q = q.filter(Account.role == role)
    if status:
        q = q.filter(Account.status == status)
    if department:
        q = q.filter(Account.department == department)
    if course:
        q = q.filter(Account.course == course)
    if enrollment_year:
        q = q.filter(Account.enrollment_year == enrollment_year)
    if search:
        term = search.strip().lower()
        q = q.filter(or_(
            func.lower(Account.name).contains(term, autoescape=True),
            func.lower(Account.email).contains(term, autoescape=True),
            func.lower(Account.student_id).contains(term, autoescape=True),
            func.lower(Account.employee_id).contains(term, autoescape=True),
        ))

    total = q.count()
    items = (
        q.order_by(Account.created_at.desc(), Account.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total


def create_user(db: Session, payload, admin: Account, background_tasks=None) -> Account:
    ensure_unique(
        db,
        email=payload.email,
        student_id=getattr(payload, "student_id", None),
        employee_id=getattr(payload, "employee_id", None),
    )

    generated = payload.password is None
    password = payload.password or security.generate_random_password()
    account = build_account(payload, password, created_by=admin.id)
    db.add(account)
    db.commit()
    db.refresh(account)
    logger.info("[users] admin %s created %s account %s", admin.id, account.role, account.email)

    schedule(
        background_tasks,
        send_welcome_email,
        account.email,
        account.name,
        password if generated else None,
        account.role,
    )
    return account


def update_user(db: Session, user_id: int, payload: schemas.AccountUpdate, admin: Account) -> Account:
    account = get_user(db, user_id)
    changes = payload.model_dump(exclude_unset=True)

    if account.id == admin.id:
        if changes.get("status") not in (None, AccountStatusEnum.active.value):
            raise BadRequestError("You cannot deactivate your own account")
        if changes.get("role") not in (None, RoleEnum.admin.value):
            raise BadRequestError("You cannot change your own role")

    role = changes.get("role") or account.role
    merged = {
        "role": role,
        "name": changes.get("name", account.name),
        "email": changes.get("email", account.email),
        "phone_number": changes.get("phone_number", account.phone_number),
    }
    for field in schemas.ROLE_FIELDS[role]:
        merged[field] = changes.get(field, getattr(account, field))
    if role == RoleEnum.teacher.value and merged.get("subjects") is None:
        merged["subjects"] = []

    # role-specific requirements are checked against the merged record
    try:
        validated = schemas.ROLE_VARIANTS[role].model_validate(merged)
    except PydanticValidationError as exc:
        errors = [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in exc.errors()
        ]
        raise ValidationError("Validation failed", errors=errors)

    ensure_unique(
        db,
        email=validated.email,
        student_id=getattr(validated, "student_id", None),
        employee_id=getattr(validated, "employee_id", None),
        exclude_id=account.id,
    )

    account.name = validated.name
    account.email = validated.email
    account.phone_number = validated.phone_number
    account.role = role
    for field in _ALL_ROLE_FIELDS:
        value = getattr(validated, field) if field in schemas.ROLE_FIELDS[role] else None
        setattr(account, field, value)
    if "status" in changes:
        account.status = changes["status"]

    db.commit()
    db.refresh(account)
    logger.info("[users] admin %s updated account %s", admin.id, account.id)
    return account


def delete_user(db: Session, user_id: int, admin: Account, permanent: bool = False) -> Account:
    account = get_user(db, user_id)
    if account.id == admin.id:
        raise BadRequestError("You cannot delete your own account")

    if permanent:
        db.delete(account)
        logger.warning("[users] admin %s permanently deleted account %s", admin.id, user_id)
    else:
        account.status = AccountStatusEnum.inactive.value
        logger.info("[users] admin %s deactivated account %s", admin.id, user_id)
    db.commit()
    return account


def reset_user_password(db: Session, user_id: int, password: Optional[str] = None) -> Tuple[Account, str]:
    account = get_user(db, user_id)
    new_password = password or security.generate_random_password()
    account.password = new_password
    account_security.reset_lockout(account)
    db.commit()
    db.refresh(account)
    logger.info("[users] password reset for account %s", account.id)
    return account, new_password


def user_stats(db: Session) -> dict:
    rows = (
        db.query(Account.role, Account.status, func.count(Account.id))
        .group_by(Account.role, Account.status)
        .all()
    )
    by_role = {role.value: {"total": 0, "active": 0} for role in RoleEnum}
    for role, status, count in rows:
        bucket = by_role.setdefault(role, {"total": 0, "active": 0})
        bucket["total"] += count
        if status == AccountStatusEnum.active.value:
            bucket["active"] += count

    return {
        "totalUsers": sum(b["total"] for b in by_role.values()),
        "activeUsers": sum(b["active"] for b in by_role.values()),
        "byRole": by_role,
    }
