from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from edumessage.models.homework import SubmissionFormat
from edumessage.schemas.user import UserSummary

VALID_SUBMISSION_FORMATS = {f.value for f in SubmissionFormat}


def _check_format(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    normalized = v.strip().lower()
    if normalized not in VALID_SUBMISSION_FORMATS:
        raise ValueError(f"Invalid submission format. Must be one of: {', '.join(sorted(VALID_SUBMISSION_FORMATS))}")
    return normalized


# ── Assignments ───────────────────────────────────────────────────


class AssignmentCreate(BaseModel):
    class_id: int
    title: str
    description: str
    subject: Optional[str] = None
    due_date: datetime
    points_possible: int = Field(100, gt=0)
    allow_late_submission: bool = False
    late_penalty_percent: int = Field(0, ge=0, le=100)
    submission_format: str = SubmissionFormat.TEXT.value
    instructions: Optional[str] = None
    attachment_url: Optional[str] = None
    attachment_name: Optional[str] = None
    is_published: bool = True

    @field_validator("title", "description")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("submission_format")
    @classmethod
    def validate_format(cls, v):
        return _check_format(v)


class AssignmentUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    subject: Optional[str] = None
    due_date: Optional[datetime] = None
    points_possible: Optional[int] = Field(None, gt=0)
    allow_late_submission: Optional[bool] = None
    late_penalty_percent: Optional[int] = Field(None, ge=0, le=100)
    submission_format: Optional[str] = None
    instructions: Optional[str] = None
    attachment_url: Optional[str] = None
    attachment_name: Optional[str] = None
    is_published: Optional[bool] = None

    @field_validator("submission_format")
    @classmethod
    def validate_format(cls, v):
        return _check_format(v)


class GradeResponse(BaseModel):
    id: int
    submission_id: int
    teacher_id: Optional[int]
    points_earned: float
    feedback: Optional[str]
    graded_at: Optional[datetime]

    class Config:
        from_attributes = True


class SubmissionResponse(BaseModel):
    id: int
    assignment_id: int
    student_id: int
    content: Optional[str]
    attachment_url: Optional[str]
    attachment_name: Optional[str]
    submitted_at: Optional[datetime]
    is_late: bool
    status: str
    student: Optional[UserSummary] = None
    grade: Optional[GradeResponse] = None

    class Config:
        from_attributes = True


class AssignmentResponse(BaseModel):
    id: int
    class_id: int
    teacher_id: int
    title: str
    description: str
    subject: Optional[str]
    due_date: datetime
    points_possible: int
    allow_late_submission: bool
    late_penalty_percent: int
    submission_format: str
    instructions: Optional[str]
    attachment_url: Optional[str]
    attachment_name: Optional[str]
    is_published: bool
    teacher: Optional[UserSummary] = None
    # Filled for student_view listings
    my_submission: Optional[SubmissionResponse] = None
    created_at: Optional[datetime]
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AssignmentDetail(BaseModel):
    """Teacher sees every submission and the roster; students see only their own."""
    assignment: AssignmentResponse
    submission: Optional[SubmissionResponse] = None
    submissions: Optional[list[SubmissionResponse]] = None
    class_members: Optional[list[UserSummary]] = None


# ── Submissions & grades ──────────────────────────────────────────


class SubmissionCreate(BaseModel):
    assignment_id: int
    content: Optional[str] = None
    attachment_url: Optional[str] = None
    attachment_name: Optional[str] = None


class SubmissionResult(BaseModel):
    submission: SubmissionResponse
    created: bool
    message: str


class GradeCreate(BaseModel):
    submission_id: int
    points_earned: float
    feedback: Optional[str] = None


class GradeResult(BaseModel):
    grade: GradeResponse
    created: bool
    message: str
