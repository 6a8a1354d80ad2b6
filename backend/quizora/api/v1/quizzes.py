# backend/quizora/api/v1/quizzes.py
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from quizora import schemas
from quizora.api.deps import require_student, require_teacher
from quizora.core.responses import success_response
from quizora.db.session import get_db
from quizora.models import Account
from quizora.services import grading, quiz_lifecycle

router = APIRouter(prefix="/quizzes", tags=["quizzes"])


def _out(quiz) -> schemas.QuizOut:
    return schemas.QuizOut.model_validate(quiz)


# -----------------------
# Teacher endpoints
# -----------------------
@router.get("/")
def list_my_quizzes(
    status_filter: Optional[Literal["scheduled", "active", "completed", "cancelled"]] = Query(None, alias="status"),
    module_code: Optional[str] = Query(None, alias="moduleCode"),
    teacher: Account = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    """Quizzes created by the current teacher, most recent first."""
    quizzes = quiz_lifecycle.list_teacher_quizzes(db, teacher.id, status=status_filter, module_code=module_code)
    return success_response([_out(q) for q in quizzes], "Quizzes retrieved successfully")


@router.get("/stats")
def quiz_stats(teacher: Account = Depends(require_teacher), db: Session = Depends(get_db)):
    return success_response(quiz_lifecycle.quiz_stats(db, teacher.id), "Quiz statistics retrieved")


@router.post("/")
def create_quiz(
    quiz_in: schemas.QuizCreate,
    teacher: Account = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    quiz = quiz_lifecycle.create_quiz(db, teacher, quiz_in)
    return success_response(_out(quiz), "Quiz created successfully", status.HTTP_201_CREATED)


# -----------------------
# Student endpoints
# -----------------------
@router.get("/student/available")
def available_quizzes(student: Account = Depends(require_student), db: Session = Depends(get_db)):
    rows = quiz_lifecycle.list_available_for_student(db, student)
    data = [
        {**schemas.StudentQuizOut.model_validate(quiz).model_dump(), "attempted": attempted}
        for quiz, attempted in rows
    ]
    return success_response(data, "Available quizzes retrieved successfully")


@router.post("/{quiz_id}/verify-passcode")
def verify_passcode(
    quiz_id: int,
    req: schemas.PasscodeRequest,
    student: Account = Depends(require_student),
    db: Session = Depends(get_db),
):
    quiz = quiz_lifecycle.verify_passcode(db, student, quiz_id, req.passcode)
    return success_response(schemas.StudentQuizOut.model_validate(quiz), "Passcode verified successfully")


@router.get("/{quiz_id}/questions")
def quiz_questions(
    quiz_id: int,
    passcode: Optional[str] = None,
    student: Account = Depends(require_student),
    db: Session = Depends(get_db),
):
    quiz, questions = quiz_lifecycle.release_questions(db, student, quiz_id, passcode)
    data = {
        "quiz": schemas.StudentQuizOut.model_validate(quiz),
        "questions": [schemas.StudentQuestionOut.model_validate(q) for q in questions],
    }
    return success_response(data, "Quiz questions retrieved successfully")


@router.post("/{quiz_id}/submit")
def submit_quiz(
    quiz_id: int,
    submission: schemas.SubmitAnswers,
    student: Account = Depends(require_student),
    db: Session = Depends(get_db),
):
    quiz, result = grading.submit(db, student, quiz_id, submission)
    return success_response(grading.submission_view(quiz, result), "Quiz submitted successfully", status.HTTP_201_CREATED)


# -----------------------
# Teacher endpoints on a single quiz
# -----------------------
@router.get("/{quiz_id}")
def get_quiz(quiz_id: int, teacher: Account = Depends(require_teacher), db: Session = Depends(get_db)):
    quiz = quiz_lifecycle.get_owned_quiz(db, teacher.id, quiz_id)
    quiz_lifecycle.sync_statuses(db, [quiz])
    return success_response(_out(quiz), "Quiz retrieved successfully")


@router.put("/{quiz_id}")
def update_quiz(
    quiz_id: int,
    quiz_in: schemas.QuizUpdate,
    teacher: Account = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    quiz = quiz_lifecycle.update_quiz(db, teacher, quiz_id, quiz_in)
    return success_response(_out(quiz), "Quiz updated successfully")


@router.delete("/{quiz_id}")
def delete_quiz(quiz_id: int, teacher: Account = Depends(require_teacher), db: Session = Depends(get_db)):
    quiz_lifecycle.delete_quiz(db, teacher, quiz_id)
    return success_response({"id": quiz_id}, "Quiz deleted successfully")


@router.post("/{quiz_id}/cancel")
def cancel_quiz(quiz_id: int, teacher: Account = Depends(require_teacher), db: Session = Depends(get_db)):
    quiz = quiz_lifecycle.cancel_quiz(db, teacher, quiz_id)
    return success_response(_out(quiz), "Quiz cancelled successfully")


@router.get("/{quiz_id}/editability")
def quiz_editability(quiz_id: int, teacher: Account = Depends(require_teacher), db: Session = Depends(get_db)):
    quiz = quiz_lifecycle.get_owned_quiz(db, teacher.id, quiz_id)
    return success_response(quiz_lifecycle.editability(quiz), "Quiz editability retrieved")
