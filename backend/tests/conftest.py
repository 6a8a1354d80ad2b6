import itertools
import os
from datetime import timedelta

# settings are read at import time, so the environment must be ready first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SCHEDULER_ENABLED"] = "0"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["SMTP_USER"] = ""
os.environ["SMTP_PASS"] = ""
os.environ["OTP_LOG_FILE"] = ""

import pytest
from fastapi.testclient import TestClient

from quizora import models
from quizora.core import tokens
from quizora.core.clock import utcnow
from quizora.db.session import Base, SessionLocal, engine
from quizora.main import app

PASSWORD = "Passw0rd!"
PROGRAM = "BSc Computer Science"


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def make_account(db):
    counter = itertools.count(1)

    def _make(role="student", password=PASSWORD, **overrides):
        n = next(counter)
        fields = {
            "name": f"{role.title()} {n}",
            "email": f"{role}{n}@example.com",
            "role": role,
            "status": "active",
        }
        if role == "student":
            fields.update(student_id=f"S{n:04d}", enrollment_year=2023, course=PROGRAM, academic_year=2, semester=1)
        elif role == "teacher":
            fields.update(employee_id=f"E{n:04d}", department="Computing", subjects=["Algorithms"])
        fields.update(overrides)

        account = models.Account(**fields)
        account.password = password
        db.add(account)
        db.commit()
        db.refresh(account)
        return account

    return _make


@pytest.fixture
def student(make_account):
    return make_account("student")


@pytest.fixture
def teacher(make_account):
    return make_account("teacher")


@pytest.fixture
def admin(make_account):
    return make_account("admin")


@pytest.fixture
def make_module(db):
    """Module with two one-mark MCQs and one two-mark essay unless told otherwise."""
    counter = itertools.count(1)

    def _make(owner, mcq=2, essay=1, year=2, semester=1):
        n = next(counter)
        module = models.Module(code=f"CS{100 + n}", name=f"Module {n}", year=year, semester=semester, credits=3, created_by=owner.id)
        db.add(module)
        db.flush()
        for i in range(mcq):
            db.add(models.Question(
                module_id=module.id, module_code=module.code, module_year=year, module_semester=semester,
                type="MCQ", question_text=f"MCQ {i + 1}?", marks=1, created_by=owner.id,
                options=[{"text": "right", "is_correct": True}, {"text": "wrong", "is_correct": False}],
            ))
        for i in range(essay):
            db.add(models.Question(
                module_id=module.id, module_code=module.code, module_year=year, module_semester=semester,
                type="Essay", question_text=f"Essay {i + 1}?", answer="reference answer", marks=2,
                created_by=owner.id,
            ))
        db.commit()
        db.refresh(module)
        return module

    return _make


@pytest.fixture
def make_quiz(db):
    """Quiz stored directly, so windows in the past are allowed. Offsets are minutes from now."""

    def _make(owner, module, start_in=10, end_in=70, **overrides):
        now = utcnow()
        question_count = sum(1 for q in module.questions if q.is_active)
        fields = {
            "title": "Midterm",
            "module_id": module.id,
            "module_code": module.code,
            "module_year": module.year,
            "module_semester": module.semester,
            "duration": 60,
            "start_at": now + timedelta(minutes=start_in),
            "end_at": now + timedelta(minutes=end_in),
            "instructions": "Answer everything.",
            "passcode": "open-sesame",
            "eligibility": [{"degree_title": PROGRAM, "year": 2, "semester": 1}],
            "question_count": question_count,
            "created_by": owner.id,
        }
        fields.update(overrides)
        quiz = models.Quiz(**fields)
        db.add(quiz)
        db.commit()
        db.refresh(quiz)
        return quiz

    return _make


@pytest.fixture
def auth_headers():
    def _headers(account):
        return {"Authorization": f"Bearer {tokens.issue_pair(account)['accessToken']}"}

    return _headers
