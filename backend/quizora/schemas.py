# backend/quizora/schemas.py
from datetime import datetime
from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from quizora.core.clock import to_naive_utc


# --- Accounts ---
class _AccountBase(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    password: Optional[str] = Field(None, min_length=6, max_length=4096)
    phone_number: Optional[str] = None

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()


class StudentAccountCreate(_AccountBase):
    role: Literal["student"]
    student_id: str = Field(..., min_length=1, max_length=50)
    enrollment_year: int = Field(..., ge=1900, le=2100)
    course: str = Field(..., min_length=1, max_length=255)
    academic_year: int = Field(..., ge=1, le=4)
    semester: Literal[1, 2]


class TeacherAccountCreate(_AccountBase):
    role: Literal["teacher"]
    employee_id: str = Field(..., min_length=1, max_length=50)
    department: str = Field(..., min_length=1, max_length=255)
    subjects: List[str] = Field(default_factory=list)


class AdminAccountCreate(_AccountBase):
    role: Literal["admin"]


# request bodies pick the variant by "role" (Body(discriminator="role"))
AccountCreate = Union[StudentAccountCreate, TeacherAccountCreate, AdminAccountCreate]

# self-registration cannot create admins
RegisterRequest = Union[StudentAccountCreate, TeacherAccountCreate]

ROLE_VARIANTS = {
    "student": StudentAccountCreate,
    "teacher": TeacherAccountCreate,
    "admin": AdminAccountCreate,
}

ROLE_FIELDS = {
    "student": ("student_id", "enrollment_year", "course", "academic_year", "semester"),
    "teacher": ("employee_id", "department", "subjects"),
    "admin": (),
}


class AccountUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: Optional[str] = Field(None, min_length=2, max_length=100)
    email: Optional[EmailStr] = None
    role: Optional[Literal["student", "teacher", "admin"]] = None
    status: Optional[Literal["active", "inactive", "suspended"]] = None
    phone_number: Optional[str] = None
    student_id: Optional[str] = None
    enrollment_year: Optional[int] = None
    course: Optional[str] = None
    academic_year: Optional[int] = None
    semester: Optional[int] = None
    employee_id: Optional[str] = None
    department: Optional[str] = None
    subjects: Optional[List[str]] = None


class AccountOut(BaseModel):
    id: int
    name: str
    email: EmailStr
    role: str
    status: str
    phone_number: Optional[str] = None
    student_id: Optional[str] = None
    enrollment_year: Optional[int] = None
    course: Optional[str] = None
    academic_year: Optional[int] = None
    semester: Optional[int] = None
    employee_id: Optional[str] = None
    department: Optional[str] = None
    subjects: Optional[List[str]] = None
    last_login: Optional[datetime] = None
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# --- Auth ---
class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    refreshToken: str


class ChangePasswordRequest(BaseModel):
    currentPassword: str
    password: str = Field(..., min_length=6, max_length=4096)


class PasswordChangeOtpRequest(BaseModel):
    currentPassword: str


class VerifyOtpChangePasswordRequest(BaseModel):
    otp: str
    newPassword: str = Field(..., min_length=6, max_length=4096)


class EmailRequest(BaseModel):
    email: EmailStr


class VerifyForgotPasswordOtpRequest(BaseModel):
    email: EmailStr
    otp: str
    password: str = Field(..., min_length=6, max_length=4096)


class ResetPasswordRequest(BaseModel):
    token: str
    password: str = Field(..., min_length=6, max_length=4096)


class PasswordRequest(BaseModel):
    password: str


class AdminPasswordReset(BaseModel):
    password: Optional[str] = Field(None, min_length=6, max_length=4096)


# --- Modules ---
class ModuleCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=30)
    name: str = Field(..., min_length=1, max_length=255)
    year: int = Field(..., ge=1, le=4)
    semester: Literal[1, 2]
    credits: int = Field(..., ge=1, le=10)
    description: Optional[str] = ""


class ModuleUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=1, max_length=30)
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    year: Optional[int] = Field(None, ge=1, le=4)
    semester: Optional[Literal[1, 2]] = None
    credits: Optional[int] = Field(None, ge=1, le=10)
    description: Optional[str] = None


class ModuleOut(BaseModel):
    id: int
    code: str
    name: str
    year: int
    semester: int
    credits: int
    description: Optional[str] = None
    created_by: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# --- Questions ---
class OptionIn(BaseModel):
    text: str
    is_correct: bool = False


class QuestionCreate(BaseModel):
    module_id: int
    type: Literal["MCQ", "Structured", "Essay"]
    question_text: str = Field(..., min_length=1)
    options: List[OptionIn] = Field(default_factory=list)
    answer: Optional[str] = ""
    marks: int = Field(1, ge=1, le=100)
    difficulty: Literal["Easy", "Medium", "Hard"] = "Medium"
    tags: List[str] = Field(default_factory=list)
    equations: List[str] = Field(default_factory=list)


class QuestionUpdate(BaseModel):
    module_id: Optional[int] = None
    type: Optional[Literal["MCQ", "Structured", "Essay"]] = None
    question_text: Optional[str] = Field(None, min_length=1)
    options: Optional[List[OptionIn]] = None
    answer: Optional[str] = None
    marks: Optional[int] = Field(None, ge=1, le=100)
    difficulty: Optional[Literal["Easy", "Medium", "Hard"]] = None
    tags: Optional[List[str]] = None
    equations: Optional[List[str]] = None


class QuestionOut(BaseModel):
    id: int
    module_id: int
    module_code: str
    module_year: int
    module_semester: int
    type: str
    question_text: str
    options: List[OptionIn] = Field(default_factory=list)
    answer: Optional[str] = None
    marks: int
    difficulty: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    equations: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class StudentOption(BaseModel):
    text: str


class StudentQuestionOut(BaseModel):
    """Question as released to a student: no answer, no correctness flags."""
    id: int
    type: str
    question_text: str
    options: List[StudentOption] = Field(default_factory=list)
    marks: int
    difficulty: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    equations: List[str] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


# --- Quizzes ---
class EligibilityEntry(BaseModel):
    degree_title: str = Field(..., min_length=1)
    year: int = Field(..., ge=1, le=4)
    semester: Literal[1, 2]


class QuizCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = ""
    module_id: int
    start_at: datetime
    end_at: datetime
    duration: int = Field(..., ge=1)
    instructions: str = Field(..., min_length=1)
    passcode: str = Field(..., min_length=1, max_length=100)
    eligibility: List[EligibilityEntry] = Field(..., min_length=1)
    shuffle_questions: bool = False
    show_results_immediately: bool = False
    allow_late_submission: bool = False
    max_attempts: int = Field(1, ge=1)

    @field_validator("start_at", "end_at")
    @classmethod
    def as_naive_utc(cls, v):
        return to_naive_utc(v)

    @field_validator("passcode")
    @classmethod
    def strip_passcode(cls, v: str) -> str:
        return v.strip()


class QuizUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    module_id: Optional[int] = None
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    duration: Optional[int] = Field(None, ge=1)
    instructions: Optional[str] = Field(None, min_length=1)
    passcode: Optional[str] = Field(None, min_length=1, max_length=100)
    eligibility: Optional[List[EligibilityEntry]] = Field(None, min_length=1)
    shuffle_questions: Optional[bool] = None
    show_results_immediately: Optional[bool] = None
    allow_late_submission: Optional[bool] = None
    max_attempts: Optional[int] = Field(None, ge=1)

    @field_validator("start_at", "end_at")
    @classmethod
    def as_naive_utc(cls, v):
        return to_naive_utc(v)


class QuizOut(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    module_id: int
    module_code: str
    module_year: int
    module_semester: int
    duration: int
    start_at: datetime
    end_at: datetime
    instructions: str
    passcode: str
    eligibility: List[EligibilityEntry] = Field(default_factory=list)
    shuffle_questions: bool
    show_results_immediately: bool
    allow_late_submission: bool
    max_attempts: int
    question_count: int
    status: str
    created_by: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class StudentQuizOut(BaseModel):
    """Quiz summary shown to students (no passcode)."""
    id: int
    title: str
    description: Optional[str] = None
    module_code: str
    duration: int
    start_at: datetime
    end_at: datetime
    instructions: str
    question_count: int
    shuffle_questions: bool
    allow_late_submission: bool
    status: str

    model_config = ConfigDict(from_attributes=True)


class PasscodeRequest(BaseModel):
    passcode: str


# --- Submission / results ---
class AnswerItem(BaseModel):
    question_id: int
    answer: Optional[Any] = None


class SubmitAnswers(BaseModel):
    answers: List[AnswerItem] = Field(default_factory=list)
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    time_taken: Optional[int] = Field(None, ge=0)  # minutes, used when started_at is absent

    @field_validator("started_at", "ended_at")
    @classmethod
    def as_naive_utc(cls, v):
        return to_naive_utc(v)


class ManualMark(BaseModel):
    marks: float = Field(..., ge=0)


class GradedAnswer(BaseModel):
    question_id: int
    question_text: Optional[str] = None
    question_type: Optional[str] = None
    student_answer: Optional[Any] = None
    correct_answer: Optional[Any] = None
    is_correct: bool = False
    marks: float = 0
    max_marks: float = 1


class ResultOut(BaseModel):
    id: int
    student_id: int
    student_name: Optional[str] = None
    student_email: Optional[str] = None
    quiz_id: int
    quiz_title: Optional[str] = None
    module_code: Optional[str] = None
    answers: List[GradedAnswer] = Field(default_factory=list)
    score: float
    total_marks: float
    percentage: float
    grade: str
    time_taken: Optional[int] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    submission_type: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ResultSummary(BaseModel):
    id: int
    quiz_id: int
    quiz_title: Optional[str] = None
    module_code: Optional[str] = None
    student_name: Optional[str] = None
    student_email: Optional[str] = None
    score: float
    total_marks: float
    percentage: float
    grade: str
    time_taken: Optional[int] = None
    submitted_at: Optional[datetime] = None
    submission_type: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
