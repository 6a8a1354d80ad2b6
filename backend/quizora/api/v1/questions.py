# backend/quizora/api/v1/questions.py
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from quizora import crud, schemas
from quizora.api.deps import require_teacher
from quizora.core.responses import paginate, success_response
from quizora.db.session import get_db
from quizora.models import Account

router = APIRouter(prefix="/questions", tags=["questions"])


def _out(question) -> schemas.QuestionOut:
    return schemas.QuestionOut.model_validate(question)


@router.get("/stats")
def question_stats(teacher: Account = Depends(require_teacher), db: Session = Depends(get_db)):
    return success_response(crud.question_stats(db, teacher.id), "Question statistics retrieved")


@router.get("/")
def list_questions(
    module_id: Optional[int] = Query(None, alias="moduleId"),
    qtype: Optional[Literal["MCQ", "Structured", "Essay"]] = Query(None, alias="type"),
    difficulty: Optional[Literal["Easy", "Medium", "Hard"]] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    teacher: Account = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    items, total = crud.list_questions(
        db, teacher.id,
        module_id=module_id, qtype=qtype, difficulty=difficulty, search=search,
        page=page, limit=limit,
    )
    return success_response(paginate([_out(q) for q in items], page, limit, total), "Questions retrieved successfully")


@router.post("/")
def create_question(
    question_in: schemas.QuestionCreate,
    teacher: Account = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    question = crud.create_question(db, teacher.id, question_in)
    return success_response(_out(question), "Question created successfully", status.HTTP_201_CREATED)


@router.get("/{question_id}")
def get_question(question_id: int, teacher: Account = Depends(require_teacher), db: Session = Depends(get_db)):
    return success_response(_out(crud.get_question(db, teacher.id, question_id)), "Question retrieved successfully")


@router.put("/{question_id}")
def update_question(
    question_id: int,
    question_in: schemas.QuestionUpdate,
    teacher: Account = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    question = crud.update_question(db, teacher.id, question_id, question_in)
    return success_response(_out(question), "Question updated successfully")


@router.delete("/{question_id}")
def delete_question(question_id: int, teacher: Account = Depends(require_teacher), db: Session = Depends(get_db)):
    crud.delete_question(db, teacher.id, question_id)
    return success_response({"id": question_id}, "Question deleted successfully")
