# backend/quizora/services/grading.py
"""
Submission and grading.

A submission is graded against every active question of the quiz's module.
MCQ answers are marked automatically; Structured and Essay answers are stored
with zero marks until the owning teacher grades them. The letter grade is
never set here: the Result persist hook derives it from ``percentage``.
"""
import logging
import math
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from quizora import schemas
from quizora.core.clock import utcnow
from quizora.core.config import settings
from quizora.core.errors import AuthorizationError, BadRequestError, ConflictError, NotFoundError
from quizora.core.grades import GRADE_THRESHOLDS
from quizora.models import Account, Question, QuestionTypeEnum, Quiz, Result
from quizora.services import quiz_lifecycle

logger = logging.getLogger(__name__)

ALREADY_SUBMITTED = "You have already submitted this quiz"


def percentage_of(score: float, total: float) -> float:
    if not total:
        return 0.0
    return round(score / total * 100, 2)


def grade_answer(question: Question, answer: Any) -> Dict[str, Any]:
    entry = {
        "question_id": question.id,
        "question_text": question.question_text,
        "question_type": question.type,
        "student_answer": answer,
        "is_correct": False,
        "marks": 0,
        "max_marks": question.marks or 1,
    }
    if question.type == QuestionTypeEnum.mcq.value:
        correct = question.correct_option_text()
        entry["correct_answer"] = correct
        if answer is not None and correct is not None and str(answer) == correct:
            entry["is_correct"] = True
            entry["marks"] = entry["max_marks"]
    else:
        # pending manual review
        entry["correct_answer"] = question.answer
    return entry


def score_answers(questions: List[Question], answers: List[schemas.AnswerItem]) -> Tuple[List[dict], float, float]:
    by_question = {item.question_id: item.answer for item in answers}
    graded = [grade_answer(q, by_question.get(q.id)) for q in questions]
    score = sum(e["marks"] for e in graded)
    total = sum(e["max_marks"] for e in graded)
    return graded, score, total


def _minutes_between(start: datetime, end: datetime) -> int:
    return max(0, math.ceil((end - start).total_seconds() / 60))


def submit(
    db: Session,
    student: Account,
    quiz_id: int,
    submission: schemas.SubmitAnswers,
    now: Optional[datetime] = None,
) -> Tuple[Quiz, Result]:
    now = now or utcnow()
    quiz = quiz_lifecycle.get_visible_quiz(db, quiz_id)

    if not quiz.is_student_eligible(student):
        raise AuthorizationError("You are not eligible to take this quiz")
    quiz_lifecycle.check_window(quiz, now, allow_late=True)
    late = now > quiz.end_at

    if submission.started_at is not None:
        deadline = min(submission.started_at + timedelta(minutes=quiz.duration), quiz.end_at)
        if now > deadline + timedelta(seconds=settings.SUBMISSION_GRACE_SECONDS):
            if not quiz.allow_late_submission:
                raise BadRequestError("Submission time limit exceeded")
            late = True

    if quiz_lifecycle.has_attempted(db, student.id, quiz.id):
        raise ConflictError(ALREADY_SUBMITTED)

    questions = (
        db.query(Question)
        .filter(Question.module_id == quiz.module_id, Question.is_active.is_(True))
        .order_by(Question.id.asc())
        .all()
    )
    graded, score, total = score_answers(questions, submission.answers)

    if submission.started_at is not None:
        time_taken = _minutes_between(submission.started_at, submission.ended_at or now)
    else:
        time_taken = submission.time_taken or 0

    result = Result(
        student_id=student.id,
        quiz_id=quiz.id,
        teacher_id=quiz.created_by,
        module_id=quiz.module_id,
        student_name=student.name,
        student_email=student.email,
        quiz_title=quiz.title,
        module_code=quiz.module_code,
        answers=graded,
        score=score,
        total_marks=total,
        percentage=percentage_of(score, total),
        time_taken=time_taken,
        started_at=submission.started_at,
        ended_at=submission.ended_at or now,
        submitted_at=now,
        submission_type="late" if late else "normal",
    )
    db.add(result)
    try:
        db.commit()
    except IntegrityError:
        # a concurrent submission won the unique (student, quiz) slot
        db.rollback()
        raise ConflictError(ALREADY_SUBMITTED)
    db.refresh(result)
    logger.info(
        "[results] student %s submitted quiz %s: %s/%s (%s%%, %s)",
        student.id, quiz.id, result.score, result.total_marks, result.percentage, result.grade,
    )
    return quiz, result


def submission_view(quiz: Quiz, result: Result) -> dict:
    """What the student sees right after submitting."""
    view = {
        "resultId": result.id,
        "quizId": quiz.id,
        "submittedAt": result.submitted_at,
        "submissionType": result.submission_type,
        "timeTaken": result.time_taken,
    }
    if quiz.show_results_immediately:
        view.update({
            "score": result.score,
            "totalMarks": result.total_marks,
            "percentage": result.percentage,
            "grade": result.grade,
        })
    return view


# -------------------- teacher grading --------------------
def _teacher_result(db: Session, teacher: Account, result_id: int) -> Result:
    result = db.query(Result).filter(Result.id == result_id, Result.teacher_id == teacher.id).first()
    if not result:
        raise NotFoundError("Result not found")
    return result


def grade_manually(db: Session, teacher: Account, result_id: int, question_id: int, marks: float) -> Result:
    result = _teacher_result(db, teacher, result_id)

    # JSON columns only notice reassignment
    answers = [dict(a) for a in result.answers or []]
    entry = next((a for a in answers if a.get("question_id") == question_id), None)
    if entry is None:
        raise NotFoundError("Answer not found in this result")
    if entry.get("question_type") == QuestionTypeEnum.mcq.value:
        raise BadRequestError("MCQ answers are graded automatically")
    max_marks = entry.get("max_marks") or 1
    if marks > max_marks:
        raise BadRequestError(f"Marks cannot exceed {max_marks}")

    entry["marks"] = marks
    entry["is_correct"] = marks >= max_marks
    result.answers = answers
    result.score = sum(a.get("marks") or 0 for a in answers)
    result.percentage = percentage_of(result.score, result.total_marks)
    db.commit()
    db.refresh(result)
    logger.info("[results] teacher %s graded question %s on result %s", teacher.id, question_id, result.id)
    return result


# -------------------- queries --------------------
def student_results(db: Session, student: Account) -> List[Result]:
    return (
        db.query(Result)
        .filter(Result.student_id == student.id)
        .order_by(Result.submitted_at.desc(), Result.id.desc())
        .all()
    )


def student_result(db: Session, student: Account, result_id: int) -> Result:
    result = db.query(Result).filter(Result.id == result_id, Result.student_id == student.id).first()
    if not result:
        raise NotFoundError("Result not found")
    return result


def _teacher_quiz(db: Session, teacher: Account, quiz_id: int) -> Quiz:
    quiz = db.query(Quiz).filter(Quiz.id == quiz_id, Quiz.created_by == teacher.id).first()
    if not quiz:
        raise NotFoundError("Quiz not found")
    return quiz


def quiz_results(db: Session, teacher: Account, quiz_id: int) -> Tuple[Quiz, List[Result]]:
    quiz = _teacher_quiz(db, teacher, quiz_id)
    results = (
        db.query(Result)
        .filter(Result.quiz_id == quiz.id)
        .order_by(Result.percentage.desc(), Result.submitted_at.asc())
        .all()
    )
    return quiz, results


def teacher_result(db: Session, teacher: Account, result_id: int) -> Result:
    return _teacher_result(db, teacher, result_id)


def quiz_analytics(db: Session, teacher: Account, quiz_id: int) -> dict:
    quiz, results = quiz_results(db, teacher, quiz_id)
    distribution = {grade: 0 for _, grade in GRADE_THRESHOLDS}
    distribution["F"] = 0
    distribution.update(Counter(r.grade for r in results))

    percentages = [r.percentage for r in results]
    return {
        "quizId": quiz.id,
        "quizTitle": quiz.title,
        "totalAttempts": len(results),
        "averagePercentage": round(sum(percentages) / len(percentages), 2) if percentages else 0,
        "highestPercentage": max(percentages, default=0),
        "lowestPercentage": min(percentages, default=0),
        "lateSubmissions": sum(1 for r in results if r.submission_type == "late"),
        "gradeDistribution": distribution,
    }
