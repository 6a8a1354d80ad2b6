# backend/quizora/crud.py
"""
Owner-scoped CRUD for modules and questions.

Every query is filtered by the owning teacher, so another teacher's rows
look exactly like missing rows (404).
"""
import logging
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from quizora import models, schemas
from quizora.core.errors import BadRequestError, ConflictError, NotFoundError

logger = logging.getLogger(__name__)

MODULE_CONFLICT = "A module with this code already exists for this year and semester"


# -------------------- modules --------------------
def get_module(db: Session, owner_id: int, module_id: int, active_only: bool = True) -> models.Module:
    q = db.query(models.Module).filter(models.Module.id == module_id, models.Module.created_by == owner_id)
    if active_only:
        q = q.filter(models.Module.is_active.is_(True))
    module = q.first()
    if not module:
        raise NotFoundError("Module not found")
    return module


def _module_clash(db: Session, owner_id: int, code: str, year: int, semester: int, exclude_id: Optional[int] = None) -> bool:
    q = db.query(models.Module.id).filter(
        models.Module.created_by == owner_id,
        models.Module.code == code,
        models.Module.year == year,
        models.Module.semester == semester,
    )
    if exclude_id is not None:
        q = q.filter(models.Module.id != exclude_id)
    return q.first() is not None


def _commit_module(db: Session, module: models.Module):
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(MODULE_CONFLICT)
    db.refresh(module)


def create_module(db: Session, owner_id: int, module_in: schemas.ModuleCreate) -> models.Module:
    code = module_in.code.strip().upper()
    if _module_clash(db, owner_id, code, module_in.year, module_in.semester):
        raise ConflictError(MODULE_CONFLICT)

    module = models.Module(
        code=code,
        name=module_in.name.strip(),
        year=module_in.year,
        semester=module_in.semester,
        credits=module_in.credits,
        description=module_in.description or "",
        created_by=owner_id,
    )
    db.add(module)
    _commit_module(db, module)
    logger.info("[modules] teacher %s created module %s", owner_id, module.code)
    return module


def active_question_count(db: Session, module_id: int) -> int:
    return (
        db.query(func.count(models.Question.id))
        .filter(models.Question.module_id == module_id, models.Question.is_active.is_(True))
        .scalar()
    )


def list_modules(
    db: Session,
    owner_id: int,
    search: Optional[str] = None,
    year: Optional[int] = None,
    semester: Optional[int] = None,
):
    """Return [(module, active question count)] newest first."""
    counts = (
        db.query(models.Question.module_id, func.count(models.Question.id).label("n"))
        .filter(models.Question.is_active.is_(True))
        .group_by(models.Question.module_id)
        .subquery()
    )
    q = (
        db.query(models.Module, func.coalesce(counts.c.n, 0))
        .outerjoin(counts, counts.c.module_id == models.Module.id)
        .filter(models.Module.created_by == owner_id, models.Module.is_active.is_(True))
    )
    if year:
        q = q.filter(models.Module.year == year)
    if semester:
        q = q.filter(models.Module.semester == semester)
    if search:
        term = search.strip().lower()
        q = q.filter(or_(
            func.lower(models.Module.code).contains(term, autoescape=True),
            func.lower(models.Module.name).contains(term, autoescape=True),
        ))
    return q.order_by(models.Module.created_at.desc(), models.Module.id.desc()).all()


def update_module(db: Session, owner_id: int, module_id: int, module_in: schemas.ModuleUpdate) -> models.Module:
    module = get_module(db, owner_id, module_id)
    changes = module_in.model_dump(exclude_unset=True, exclude_none=True)
    if "code" in changes:
        changes["code"] = changes["code"].strip().upper()

    code = changes.get("code", module.code)
    year = changes.get("year", module.year)
    semester = changes.get("semester", module.semester)
    if _module_clash(db, owner_id, code, year, semester, exclude_id=module.id):
        raise ConflictError(MODULE_CONFLICT)

    for field, value in changes.items():
        setattr(module, field, value)

    # keep the denormalised copies on questions in step
    if {"code", "year", "semester"} & changes.keys():
        db.query(models.Question).filter(models.Question.module_id == module.id).update(
            {
                models.Question.module_code: code,
                models.Question.module_year: year,
                models.Question.module_semester: semester,
            },
            synchronize_session=False,
        )
    _commit_module(db, module)
    return module


def delete_module(db: Session, owner_id: int, module_id: int) -> models.Module:
    module = get_module(db, owner_id, module_id)
    n = active_question_count(db, module.id)
    if n > 0:
        raise BadRequestError(f"Cannot delete module. It has {n} question(s) associated with it.")
    module.is_active = False
    db.commit()
    logger.info("[modules] teacher %s deleted module %s", owner_id, module.id)
    return module


def module_stats(db: Session, owner_id: int) -> dict:
    rows = (
        db.query(models.Module.year, models.Module.semester, func.count(models.Module.id))
        .filter(models.Module.created_by == owner_id, models.Module.is_active.is_(True))
        .group_by(models.Module.year, models.Module.semester)
        .order_by(models.Module.year, models.Module.semester)
        .all()
    )
    by_term = [{"year": year, "semester": semester, "count": count} for year, semester, count in rows]
    return {"totalModules": sum(r["count"] for r in by_term), "byYearSemester": by_term}


# -------------------- questions --------------------
def _validate_question_body(qtype: str, options, answer: Optional[str]):
    if qtype == models.QuestionTypeEnum.mcq.value:
        filled = [o for o in options or [] if (o.get("text") or "").strip()]
        if len(filled) < 2:
            raise BadRequestError("MCQ questions must have at least 2 options")
        if not any(o.get("is_correct") for o in filled):
            raise BadRequestError("MCQ questions must have at least one correct option")
    elif not (answer or "").strip():
        raise BadRequestError(f"{qtype} questions must have a reference answer")


def _bind_module(question: models.Question, module: models.Module):
    question.module_id = module.id
    question.module_code = module.code
    question.module_year = module.year
    question.module_semester = module.semester


def get_question(db: Session, owner_id: int, question_id: int) -> models.Question:
    question = (
        db.query(models.Question)
        .filter(
            models.Question.id == question_id,
            models.Question.created_by == owner_id,
            models.Question.is_active.is_(True),
        )
        .first()
    )
    if not question:
        raise NotFoundError("Question not found")
    return question


def create_question(db: Session, owner_id: int, question_in: schemas.QuestionCreate) -> models.Question:
    module = get_module(db, owner_id, question_in.module_id)
    options = [o.model_dump() for o in question_in.options]
    _validate_question_body(question_in.type, options, question_in.answer)

    question = models.Question(
        type=question_in.type,
        question_text=question_in.question_text.strip(),
        options=options if question_in.type == models.QuestionTypeEnum.mcq.value else [],
        answer=question_in.answer or "",
        marks=question_in.marks,
        difficulty=question_in.difficulty,
        tags=question_in.tags,
        equations=question_in.equations,
        created_by=owner_id,
    )
    _bind_module(question, module)
    db.add(question)
    db.commit()
    db.refresh(question)
    return question


def list_questions(
    db: Session,
    owner_id: int,
    module_id: Optional[int] = None,
    qtype: Optional[str] = None,
    difficulty: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
):
    q = db.query(models.Question).filter(
        models.Question.created_by == owner_id,
        models.Question.is_active.is_(True),
    )
    if module_id:
        q = q.filter(models.Question.module_id == module_id)
    if qtype:
        q = q.filter(models.Question.type == qtype)
    if difficulty:
        q = q.filter(models.Question.difficulty == difficulty)
    if search:
        q = q.filter(func.lower(models.Question.question_text).contains(search.strip().lower(), autoescape=True))

    total = q.count()
    items = (
        q.order_by(models.Question.created_at.desc(), models.Question.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total


def update_question(db: Session, owner_id: int, question_id: int, question_in: schemas.QuestionUpdate) -> models.Question:
    question = get_question(db, owner_id, question_id)
    changes = question_in.model_dump(exclude_unset=True, exclude_none=True)

    if "module_id" in changes and changes["module_id"] != question.module_id:
        _bind_module(question, get_module(db, owner_id, changes.pop("module_id")))
    changes.pop("module_id", None)

    qtype = changes.get("type", question.type)
    options = changes.get("options", question.options)
    answer = changes.get("answer", question.answer)
    _validate_question_body(qtype, options, answer)

    for field, value in changes.items():
        setattr(question, field, value)
    if qtype != models.QuestionTypeEnum.mcq.value:
        question.options = []
    db.commit()
    db.refresh(question)
    return question


def delete_question(db: Session, owner_id: int, question_id: int) -> models.Question:
    question = get_question(db, owner_id, question_id)
    question.is_active = False
    db.commit()
    return question


def question_stats(db: Session, owner_id: int) -> dict:
    rows = (
        db.query(models.Question.type, func.count(models.Question.id))
        .filter(models.Question.created_by == owner_id, models.Question.is_active.is_(True))
        .group_by(models.Question.type)
        .all()
    )
    by_type = {t.value: 0 for t in models.QuestionTypeEnum}
    for qtype, count in rows:
        by_type[qtype] = count
    return {"totalQuestions": sum(by_type.values()), "byType": by_type}
