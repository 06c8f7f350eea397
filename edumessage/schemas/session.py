from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, StrictBool, field_validator

from edumessage.models.session import ContentType, QAPriority, QAStatus, SessionStatus, SessionType
from edumessage.schemas.user import UserSummary

VALID_SESSION_TYPES = {t.value for t in SessionType}
VALID_SESSION_STATUSES = {s.value for s in SessionStatus}
VALID_CONTENT_TYPES = {t.value for t in ContentType}
VALID_QA_STATUSES = {s.value for s in QAStatus}
VALID_QA_PRIORITIES = {p.value for p in QAPriority}


def _one_of(v: Optional[str], allowed: set[str], label: str) -> Optional[str]:
    if v is None:
        return v
    normalized = v.strip().lower()
    if normalized not in allowed:
        raise ValueError(f"Invalid {label}. Must be one of: {', '.join(sorted(allowed))}")
    return normalized


# ── Sessions ──────────────────────────────────────────────────────


class SessionCreate(BaseModel):
    class_id: int
    title: str
    description: Optional[str] = None
    subject: Optional[str] = None
    session_type: str = SessionType.LECTURE.value
    scheduled_start: datetime
    scheduled_end: datetime
    max_participants: Optional[int] = Field(None, gt=0)
    allow_late_join: bool = True
    recording_enabled: bool = False
    chat_enabled: bool = True
    qa_enabled: bool = True
    screen_sharing_enabled: bool = True
    attendance_tracking: bool = True
    session_url: Optional[str] = None
    meeting_id: Optional[str] = None
    passcode: Optional[str] = None

    @field_validator("title")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("session_type")
    @classmethod
    def validate_session_type(cls, v):
        return _one_of(v, VALID_SESSION_TYPES, "session type")


class SessionUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    subject: Optional[str] = None
    session_type: Optional[str] = None
    status: Optional[str] = None
    scheduled_start: Optional[datetime] = None
    scheduled_end: Optional[datetime] = None
    max_participants: Optional[int] = Field(None, gt=0)
    allow_late_join: Optional[bool] = None
    recording_enabled: Optional[bool] = None
    chat_enabled: Optional[bool] = None
    qa_enabled: Optional[bool] = None
    screen_sharing_enabled: Optional[bool] = None
    attendance_tracking: Optional[bool] = None
    session_url: Optional[str] = None
    meeting_id: Optional[str] = None
    passcode: Optional[str] = None

    @field_validator("session_type")
    @classmethod
    def validate_session_type(cls, v):
        return _one_of(v, VALID_SESSION_TYPES, "session type")

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return _one_of(v, VALID_SESSION_STATUSES, "status")


class ParticipationResponse(BaseModel):
    id: int
    session_id: int
    user_id: int
    joined_at: Optional[datetime]
    left_at: Optional[datetime]
    duration_minutes: Optional[int]
    participation_score: Optional[float]
    notes: Optional[str] = None
    status: str
    user: Optional[UserSummary] = None

    class Config:
        from_attributes = True


class SessionResponse(BaseModel):
    id: int
    class_id: int
    teacher_id: int
    title: str
    description: Optional[str]
    subject: Optional[str]
    session_type: str
    status: str
    scheduled_start: datetime
    scheduled_end: datetime
    actual_start: Optional[datetime]
    actual_end: Optional[datetime]
    max_participants: Optional[int]
    allow_late_join: bool
    recording_enabled: bool
    chat_enabled: bool
    qa_enabled: bool
    screen_sharing_enabled: bool
    attendance_tracking: bool
    session_url: Optional[str]
    meeting_id: Optional[str]
    teacher: Optional[UserSummary] = None
    # Teacher listing
    participant_count: Optional[int] = None
    pending_questions: Optional[int] = None
    # Member listing
    my_participation: Optional[ParticipationResponse] = None
    created_at: Optional[datetime]
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SessionOwnerResponse(SessionResponse):
    """Only the session teacher gets the passcode back."""
    passcode: Optional[str] = None


class ContentCreate(BaseModel):
    content_type: str
    title: str
    url: str
    thumbnail_url: Optional[str] = None
    file_size: Optional[int] = None
    duration: Optional[int] = None
    order_index: int = 0
    is_downloadable: bool = False
    is_required: bool = False
    description: Optional[str] = None

    @field_validator("content_type")
    @classmethod
    def validate_content_type(cls, v):
        return _one_of(v, VALID_CONTENT_TYPES, "content type")

    @field_validator("title", "url")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class ContentResponse(BaseModel):
    id: int
    session_id: int
    content_type: str
    title: str
    url: str
    thumbnail_url: Optional[str]
    file_size: Optional[int]
    duration: Optional[int]
    order_index: int
    is_downloadable: bool
    is_required: bool
    description: Optional[str]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class ContentOrderItem(BaseModel):
    id: int
    order_index: int


class ContentReorderRequest(BaseModel):
    content_updates: list[ContentOrderItem]


# ── Q&A ───────────────────────────────────────────────────────────


class QAResponse(BaseModel):
    id: int
    session_id: int
    question: str
    answer: Optional[str]
    status: str
    priority: str
    is_anonymous: bool
    votes: int
    student: Optional[UserSummary] = None
    teacher: Optional[UserSummary] = None
    created_at: Optional[datetime]
    answered_at: Optional[datetime]


class QACreateRequest(BaseModel):
    """Either {question, ...} from a student or {question_id, answer} from the teacher."""
    question: Optional[str] = None
    answer: Optional[str] = None
    question_id: Optional[int] = None
    priority: str = QAPriority.NORMAL.value
    is_anonymous: bool = False

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, v):
        return _one_of(v, VALID_QA_PRIORITIES, "priority")


class QAUpdateRequest(BaseModel):
    question_id: int
    vote: Optional[StrictBool] = None
    status: Optional[str] = None
    priority: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return _one_of(v, VALID_QA_STATUSES, "status")

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, v):
        return _one_of(v, VALID_QA_PRIORITIES, "priority")


class SessionDetail(BaseModel):
    session: SessionOwnerResponse | SessionResponse
    content: list[ContentResponse] = []
    participants: list[ParticipationResponse] = []
    my_participation: Optional[ParticipationResponse] = None
    qa: list[QAResponse] = []


class JoinResult(BaseModel):
    participation: ParticipationResponse
    rejoined: bool
    message: str
