# backend/quizora/models.py
from datetime import datetime
from typing import Optional
import enum

from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, Float, JSON, ForeignKey,
    UniqueConstraint, Index, event,
)
from sqlalchemy.orm import relationship

from quizora.core import security
from quizora.core.clock import utcnow
from quizora.core.grades import calculate_grade
from quizora.db.session import Base


class RoleEnum(str, enum.Enum):
    student = "student"
    teacher = "teacher"
    admin = "admin"


class AccountStatusEnum(str, enum.Enum):
    active = "active"
    inactive = "inactive"
    suspended = "suspended"


class QuestionTypeEnum(str, enum.Enum):
    mcq = "MCQ"
    structured = "Structured"
    essay = "Essay"


class QuizStatusEnum(str, enum.Enum):
    scheduled = "scheduled"
    active = "active"
    completed = "completed"
    cancelled = "cancelled"


class Account(Base):
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), default=RoleEnum.student.value, nullable=False)
    status = Column(String(20), default=AccountStatusEnum.active.value, nullable=False)
    phone_number = Column(String(30), nullable=True)

    # lockout
    login_attempts = Column(Integer, default=0, nullable=False)
    lock_until = Column(DateTime, nullable=True)
    last_login = Column(DateTime, nullable=True)

    # one-time codes, stored as "hash|salt"
    password_change_otp = Column(String(255), nullable=True)
    password_change_otp_expires = Column(DateTime, nullable=True)
    password_change_otp_attempts = Column(Integer, default=0, nullable=False)
    forgot_password_otp = Column(String(255), nullable=True)
    forgot_password_otp_expires = Column(DateTime, nullable=True)
    forgot_password_otp_attempts = Column(Integer, default=0, nullable=False)

    password_reset_token = Column(String(128), nullable=True, index=True)
    password_reset_expires = Column(DateTime, nullable=True)

    # student
    student_id = Column(String(50), unique=True, nullable=True)
    enrollment_year = Column(Integer, nullable=True)
    course = Column(String(255), nullable=True)
    academic_year = Column(Integer, nullable=True)
    semester = Column(Integer, nullable=True)

    # teacher
    employee_id = Column(String(50), unique=True, nullable=True)
    department = Column(String(255), nullable=True)
    subjects = Column(JSON, nullable=True)

    created_by = Column(Integer, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    @property
    def password(self):
        raise AttributeError("password is write-only")

    @password.setter
    def password(self, plaintext: str):
        # the only path that writes password_hash
        self.password_hash = security.hash_password(plaintext)

    @property
    def is_active_account(self) -> bool:
        return self.status == AccountStatusEnum.active.value

    def __repr__(self):
        return f"<Account id={self.id} email={self.email} role={self.role}>"


class Module(Base):
    __tablename__ = "modules"
    __table_args__ = (
        UniqueConstraint("created_by", "code", "year", "semester", name="uq_module_owner_code_term"),
    )

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(30), nullable=False)
    name = Column(String(255), nullable=False)
    year = Column(Integer, nullable=False)
    semester = Column(Integer, nullable=False)
    credits = Column(Integer, nullable=False)
    description = Column(Text, default="")
    created_by = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    questions = relationship("Question", back_populates="module")

    def __repr__(self):
        return f"<Module id={self.id} code={self.code} y{self.year}s{self.semester}>"


class Question(Base):
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    module_id = Column(Integer, ForeignKey("modules.id", ondelete="CASCADE"), nullable=False, index=True)
    module_code = Column(String(30), nullable=False)
    module_year = Column(Integer, nullable=False)
    module_semester = Column(Integer, nullable=False)
    type = Column(String(20), nullable=False)
    question_text = Column(Text, nullable=False)
    options = Column(JSON, default=list)  # MCQ: [{"text": ..., "is_correct": ...}]
    answer = Column(Text, default="")  # Structured/Essay reference answer
    marks = Column(Integer, default=1, nullable=False)
    difficulty = Column(String(20), default="Medium")
    tags = Column(JSON, default=list)
    equations = Column(JSON, default=list)
    created_by = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    module = relationship("Module", back_populates="questions")

    def correct_option_text(self) -> Optional[str]:
        for option in self.options or []:
            if option.get("is_correct"):
                return option.get("text")
        return None

    def __repr__(self):
        return f"<Question id={self.id} type={self.type} module_id={self.module_id}>"


def compute_status(start: datetime, end: datetime, now: datetime) -> str:
    if now < start:
        return QuizStatusEnum.scheduled.value
    if now <= end:
        return QuizStatusEnum.active.value
    return QuizStatusEnum.completed.value


class Quiz(Base):
    __tablename__ = "quizzes"
    __table_args__ = (
        Index("ix_quizzes_owner_created", "created_by", "created_at"),
        Index("ix_quizzes_status_start", "status", "start_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, default="")
    module_id = Column(Integer, ForeignKey("modules.id", ondelete="CASCADE"), nullable=False)
    module_code = Column(String(30), nullable=False)
    module_year = Column(Integer, nullable=False)
    module_semester = Column(Integer, nullable=False)
    duration = Column(Integer, nullable=False)  # minutes
    start_at = Column(DateTime, nullable=False)
    end_at = Column(DateTime, nullable=False)
    instructions = Column(Text, nullable=False)
    # shared classroom secret, compared by exact match
    passcode = Column(String(100), nullable=False)
    eligibility = Column(JSON, default=list)  # [{"degree_title", "year", "semester"}]
    shuffle_questions = Column(Boolean, default=False, nullable=False)
    show_results_immediately = Column(Boolean, default=False, nullable=False)
    allow_late_submission = Column(Boolean, default=False, nullable=False)
    max_attempts = Column(Integer, default=1, nullable=False)
    question_count = Column(Integer, default=0, nullable=False)
    status = Column(String(20), default=QuizStatusEnum.scheduled.value, nullable=False)
    created_by = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    module = relationship("Module")

    @property
    def is_cancelled(self) -> bool:
        return self.status == QuizStatusEnum.cancelled.value

    def derived_status(self, now: datetime) -> str:
        if self.is_cancelled:
            return self.status
        return compute_status(self.start_at, self.end_at, now)

    # clock of the last explicit refresh, reused by the persist hook
    _status_now = None

    def refresh_status(self, now: Optional[datetime] = None) -> bool:
        """Re-derive status from the window; returns True when it changed."""
        if now is not None:
            self._status_now = now
        if self.is_cancelled:
            return False
        new_status = compute_status(self.start_at, self.end_at, now or utcnow())
        if new_status != self.status:
            self.status = new_status
            return True
        return False

    def is_currently_active(self, now: datetime) -> bool:
        # from raw timestamps, never from the cached status column
        return self.start_at <= now <= self.end_at

    def has_started(self, now: datetime) -> bool:
        return now >= self.start_at

    def is_student_eligible(self, student: Account) -> bool:
        for entry in self.eligibility or []:
            if (
                entry.get("degree_title") == student.course
                and entry.get("year") == student.academic_year
                and entry.get("semester") == student.semester
            ):
                return True
        return False

    def __repr__(self):
        return f"<Quiz id={self.id} title={self.title} status={self.status}>"


@event.listens_for(Quiz, "before_insert")
@event.listens_for(Quiz, "before_update")
def _refresh_quiz_status_on_persist(mapper, connection, target):
    now, target._status_now = target._status_now, None
    target.refresh_status(now)
    target._status_now = None


class Result(Base):
    __tablename__ = "results"
    __table_args__ = (
        UniqueConstraint("student_id", "quiz_id", name="uq_result_student_quiz"),
    )

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True)
    teacher_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    module_id = Column(Integer, ForeignKey("modules.id", ondelete="CASCADE"), nullable=False)
    student_name = Column(String(100))
    student_email = Column(String(255))
    quiz_title = Column(String(255))
    module_code = Column(String(30))
    # [{"question_id", "question_text", "question_type", "student_answer",
    #   "correct_answer", "is_correct", "marks", "max_marks"}]
    answers = Column(JSON, default=list)
    score = Column(Float, default=0, nullable=False)
    total_marks = Column(Float, default=0, nullable=False)
    percentage = Column(Float, default=0, nullable=False)
    grade = Column(String(3), nullable=False, default="F")
    time_taken = Column(Integer, default=0)  # minutes
    started_at = Column(DateTime, nullable=True)
    ended_at = Column(DateTime, nullable=True)
    submitted_at = Column(DateTime, default=utcnow)
    submission_type = Column(String(20), default="normal")
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    quiz = relationship("Quiz")

    def __repr__(self):
        return f"<Result id={self.id} student_id={self.student_id} quiz_id={self.quiz_id} grade={self.grade}>"


@event.listens_for(Result, "before_insert")
@event.listens_for(Result, "before_update")
def _derive_grade_on_persist(mapper, connection, target):
    target.grade = calculate_grade(target.percentage or 0)
