# backend/quizora/api/v1/results.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from quizora import schemas
from quizora.api.deps import require_student, require_teacher
from quizora.core.responses import success_response
from quizora.db.session import get_db
from quizora.models import Account
from quizora.services import grading

router = APIRouter(prefix="/results", tags=["results"])


@router.get("/my")
def my_results(student: Account = Depends(require_student), db: Session = Depends(get_db)):
    results = grading.student_results(db, student)
    return success_response([schemas.ResultSummary.model_validate(r) for r in results], "Results retrieved successfully")


@router.get("/my/{result_id}")
def my_result(result_id: int, student: Account = Depends(require_student), db: Session = Depends(get_db)):
    result = grading.student_result(db, student, result_id)
    if not result.quiz or not result.quiz.show_results_immediately:
        # detailed answers stay hidden until the teacher releases them
        return success_response(schemas.ResultSummary.model_validate(result), "Result retrieved successfully")
    return success_response(schemas.ResultOut.model_validate(result), "Result retrieved successfully")


@router.get("/quiz/{quiz_id}")
def quiz_results(quiz_id: int, teacher: Account = Depends(require_teacher), db: Session = Depends(get_db)):
    quiz, results = grading.quiz_results(db, teacher, quiz_id)
    data = {
        "quizId": quiz.id,
        "quizTitle": quiz.title,
        "results": [schemas.ResultSummary.model_validate(r) for r in results],
    }
    return success_response(data, "Quiz results retrieved successfully")


@router.get("/quiz/{quiz_id}/analytics")
def quiz_analytics(quiz_id: int, teacher: Account = Depends(require_teacher), db: Session = Depends(get_db)):
    return success_response(grading.quiz_analytics(db, teacher, quiz_id), "Quiz analytics retrieved")


@router.get("/{result_id}")
def get_result(result_id: int, teacher: Account = Depends(require_teacher), db: Session = Depends(get_db)):
    return success_response(schemas.ResultOut.model_validate(grading.teacher_result(db, teacher, result_id)), "Result retrieved successfully")


@router.put("/{result_id}/answers/{question_id}")
def grade_answer(
    result_id: int,
    question_id: int,
    mark: schemas.ManualMark,
    teacher: Account = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    result = grading.grade_manually(db, teacher, result_id, question_id, mark.marks)
    return success_response(schemas.ResultOut.model_validate(result), "Answer graded successfully")
