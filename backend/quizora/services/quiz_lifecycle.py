# backend/quizora/services/quiz_lifecycle.py
"""
Quiz lifecycle: scheduling, edits, cancellation and student access.

Status moves scheduled -> active -> completed purely from the clock and the
quiz window; ``cancelled`` is terminal and only set by the owner. The stored
status column is a cache for listing and filtering. Access decisions always
re-derive from ``start_at``/``end_at``.
"""
import logging
import random
from collections import Counter
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from quizora import schemas
from quizora.core.clock import utcnow
from quizora.core.errors import (
    AuthenticationError,
    AuthorizationError,
    BadRequestError,
    ConflictError,
    NotFoundError,
)
from quizora.models import Account, Module, Question, Quiz, QuizStatusEnum, Result

logger = logging.getLogger(__name__)

OPEN_STATUSES = (QuizStatusEnum.scheduled.value, QuizStatusEnum.active.value)


# -------------------- helpers --------------------
def _bound_module(db: Session, owner_id: int, module_id: int) -> Tuple[Module, int]:
    module = (
        db.query(Module)
        .filter(Module.id == module_id, Module.created_by == owner_id, Module.is_active.is_(True))
        .first()
    )
    if not module:
        raise NotFoundError("Module not found")
    count = (
        db.query(func.count(Question.id))
        .filter(Question.module_id == module.id, Question.is_active.is_(True))
        .scalar()
    )
    if count == 0:
        raise BadRequestError("The selected module has no questions. Add questions before creating a quiz.")
    return module, count


def _bind(quiz: Quiz, module: Module, count: int):
    quiz.module_id = module.id
    quiz.module_code = module.code
    quiz.module_year = module.year
    quiz.module_semester = module.semester
    quiz.question_count = count


def sync_statuses(db: Session, quizzes: List[Quiz], now: Optional[datetime] = None) -> int:
    """Re-derive the cached status of each quiz; persists and returns the number changed."""
    now = now or utcnow()
    changed = sum(1 for quiz in quizzes if quiz.refresh_status(now))
    if changed:
        db.commit()
        logger.debug("[quizzes] refreshed %d stale status(es) on read", changed)
    for quiz in quizzes:
        # unchanged rows were not flushed, so their pinned clock is still set
        quiz._status_now = None
    return changed


def get_owned_quiz(db: Session, owner_id: int, quiz_id: int) -> Quiz:
    quiz = (
        db.query(Quiz)
        .filter(Quiz.id == quiz_id, Quiz.created_by == owner_id, Quiz.is_active.is_(True))
        .first()
    )
    if not quiz:
        raise NotFoundError("Quiz not found")
    return quiz


# -------------------- teacher operations --------------------
def create_quiz(db: Session, owner: Account, quiz_in: schemas.QuizCreate, now: Optional[datetime] = None) -> Quiz:
    now = now or utcnow()
    if quiz_in.start_at <= now:
        raise BadRequestError("Start time must be in the future")
    if quiz_in.end_at <= quiz_in.start_at:
        raise BadRequestError("End time must be after start time")

    module, count = _bound_module(db, owner.id, quiz_in.module_id)
    data = quiz_in.model_dump(exclude={"module_id", "eligibility"})
    quiz = Quiz(**data, created_by=owner.id)
    quiz.eligibility = [e.model_dump() for e in quiz_in.eligibility]
    _bind(quiz, module, count)
    quiz.refresh_status(now)

    db.add(quiz)
    db.commit()
    db.refresh(quiz)
    logger.info("[quizzes] teacher %s created quiz %s (%s)", owner.id, quiz.id, quiz.title)
    return quiz


def update_quiz(
    db: Session,
    owner: Account,
    quiz_id: int,
    quiz_in: schemas.QuizUpdate,
    now: Optional[datetime] = None,
) -> Quiz:
    now = now or utcnow()
    quiz = get_owned_quiz(db, owner.id, quiz_id)
    if quiz.is_cancelled:
        raise BadRequestError("Cannot edit a cancelled quiz")
    if quiz.has_started(now):
        raise BadRequestError("Cannot edit a quiz that has already started")

    changes = quiz_in.model_dump(exclude_unset=True, exclude_none=True)
    start_at = changes.get("start_at", quiz.start_at)
    end_at = changes.get("end_at", quiz.end_at)
    if "start_at" in changes and start_at <= now:
        raise BadRequestError("Start time must be in the future")
    if end_at <= start_at:
        raise BadRequestError("End time must be after start time")

    module_id = changes.pop("module_id", None)
    if module_id is not None and module_id != quiz.module_id:
        _bind(quiz, *_bound_module(db, owner.id, module_id))

    if "eligibility" in changes:
        changes["eligibility"] = [dict(e) for e in changes["eligibility"]]
    if "passcode" in changes:
        changes["passcode"] = changes["passcode"].strip()

    for field, value in changes.items():
        setattr(quiz, field, value)
    quiz.refresh_status(now)
    db.commit()
    db.refresh(quiz)
    logger.info("[quizzes] teacher %s updated quiz %s", owner.id, quiz.id)
    return quiz


def delete_quiz(db: Session, owner: Account, quiz_id: int, now: Optional[datetime] = None) -> Quiz:
    now = now or utcnow()
    quiz = get_owned_quiz(db, owner.id, quiz_id)
    if quiz.has_started(now):
        raise BadRequestError("Cannot delete a quiz that has already started")
    quiz.is_active = False
    quiz.status = QuizStatusEnum.cancelled.value
    db.commit()
    logger.info("[quizzes] teacher %s deleted quiz %s", owner.id, quiz.id)
    return quiz


def cancel_quiz(db: Session, owner: Account, quiz_id: int, now: Optional[datetime] = None) -> Quiz:
    now = now or utcnow()
    quiz = get_owned_quiz(db, owner.id, quiz_id)
    if quiz.derived_status(now) not in OPEN_STATUSES:
        raise BadRequestError(f"Only scheduled or active quizzes can be cancelled (current status: {quiz.derived_status(now)})")
    quiz.status = QuizStatusEnum.cancelled.value
    db.commit()
    db.refresh(quiz)
    logger.info("[quizzes] teacher %s cancelled quiz %s", owner.id, quiz.id)
    return quiz


def editability(quiz: Quiz, now: Optional[datetime] = None) -> dict:
    now = now or utcnow()
    started = quiz.has_started(now)
    reason = None
    if quiz.is_cancelled:
        reason = "Quiz has been cancelled"
    elif started:
        reason = "Quiz has already started"
    return {
        "quizId": quiz.id,
        "status": quiz.derived_status(now),
        "hasStarted": started,
        "canEdit": reason is None,
        "canDelete": not started,
        "reason": reason,
    }


def list_teacher_quizzes(
    db: Session,
    owner_id: int,
    status: Optional[str] = None,
    module_code: Optional[str] = None,
    now: Optional[datetime] = None,
) -> List[Quiz]:
    quizzes = (
        db.query(Quiz)
        .filter(Quiz.created_by == owner_id, Quiz.is_active.is_(True))
        .order_by(Quiz.created_at.desc(), Quiz.id.desc())
        .all()
    )
    sync_statuses(db, quizzes, now)
    if status:
        quizzes = [q for q in quizzes if q.status == status]
    if module_code:
        quizzes = [q for q in quizzes if q.module_code == module_code.strip().upper()]
    return quizzes


def quiz_stats(db: Session, owner_id: int, now: Optional[datetime] = None) -> dict:
    quizzes = list_teacher_quizzes(db, owner_id, now=now)
    by_status = {s.value: 0 for s in QuizStatusEnum}
    by_status.update(Counter(q.status for q in quizzes))
    return {
        "totalQuizzes": len(quizzes),
        "byStatus": by_status,
        "byModule": dict(Counter(q.module_code for q in quizzes)),
    }


# -------------------- student access --------------------
def get_visible_quiz(db: Session, quiz_id: int) -> Quiz:
    quiz = db.query(Quiz).filter(Quiz.id == quiz_id, Quiz.is_active.is_(True)).first()
    if not quiz:
        raise NotFoundError("Quiz not found")
    return quiz


def has_attempted(db: Session, student_id: int, quiz_id: int) -> bool:
    return (
        db.query(Result.id).filter(Result.student_id == student_id, Result.quiz_id == quiz_id).first()
        is not None
    )


def list_available_for_student(db: Session, student: Account, now: Optional[datetime] = None) -> List[Tuple[Quiz, bool]]:
    now = now or utcnow()
    quizzes = (
        db.query(Quiz)
        .filter(Quiz.is_active.is_(True), Quiz.status != QuizStatusEnum.cancelled.value)
        .order_by(Quiz.start_at.asc(), Quiz.id.asc())
        .all()
    )
    sync_statuses(db, quizzes, now)

    attempted = {
        quiz_id for (quiz_id,) in db.query(Result.quiz_id).filter(Result.student_id == student.id).all()
    }
    return [
        (quiz, quiz.id in attempted)
        for quiz in quizzes
        if quiz.status in OPEN_STATUSES and quiz.is_student_eligible(student)
    ]


def check_window(quiz: Quiz, now: datetime, allow_late: bool = False):
    if quiz.is_cancelled:
        raise BadRequestError("This quiz has been cancelled")
    if now < quiz.start_at:
        raise BadRequestError("Quiz has not started yet")
    if now > quiz.end_at and not (allow_late and quiz.allow_late_submission):
        raise BadRequestError("Quiz has ended")


def check_access(quiz: Quiz, student: Account, passcode: Optional[str], now: Optional[datetime] = None):
    """Run the three student gates in order: eligibility, time window, passcode."""
    now = now or utcnow()
    if not quiz.is_student_eligible(student):
        raise AuthorizationError("You are not eligible to take this quiz")
    check_window(quiz, now, allow_late=True)
    if (passcode or "").strip() != quiz.passcode:
        raise AuthenticationError("Invalid passcode")


def verify_passcode(db: Session, student: Account, quiz_id: int, passcode: str, now: Optional[datetime] = None) -> Quiz:
    quiz = get_visible_quiz(db, quiz_id)
    check_access(quiz, student, passcode, now)
    if has_attempted(db, student.id, quiz.id):
        raise ConflictError("You have already taken this quiz")
    logger.info("[quizzes] student %s unlocked quiz %s", student.id, quiz.id)
    return quiz


def release_questions(
    db: Session,
    student: Account,
    quiz_id: int,
    passcode: Optional[str],
    now: Optional[datetime] = None,
) -> Tuple[Quiz, List[Question]]:
    quiz = get_visible_quiz(db, quiz_id)
    check_access(quiz, student, passcode, now)
    if has_attempted(db, student.id, quiz.id):
        raise ConflictError("You have already taken this quiz")

    questions = (
        db.query(Question)
        .filter(Question.module_id == quiz.module_id, Question.is_active.is_(True))
        .order_by(Question.id.asc())
        .all()
    )
    if quiz.shuffle_questions:
        questions = random.sample(questions, len(questions))
    return quiz, questions
