import enum

from sqlalchemy import (
    Boolean, Column, DateTime, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from edumessage.db.database import Base


class SessionStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    LIVE = "live"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SessionType(str, enum.Enum):
    LECTURE = "lecture"
    DISCUSSION = "discussion"
    LAB = "lab"
    REVIEW = "review"
    EXAM = "exam"


class ContentType(str, enum.Enum):
    VIDEO = "video"
    DOCUMENT = "document"
    LINK = "link"
    IMAGE = "image"
    PRESENTATION = "presentation"


class ParticipantStatus(str, enum.Enum):
    JOINED = "joined"
    LEFT = "left"
    RECONNECTED = "reconnected"


class QAStatus(str, enum.Enum):
    PENDING = "pending"
    ANSWERED = "answered"
    DISMISSED = "dismissed"


class QAPriority(str, enum.Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


# Sort rank for Q&A listing, highest first
QA_PRIORITY_RANK = {
    QAPriority.URGENT.value: 3,
    QAPriority.HIGH.value: 2,
    QAPriority.NORMAL.value: 1,
    QAPriority.LOW.value: 0,
}


class ClassSession(Base):
    __tablename__ = "class_sessions"

    id = Column(Integer, primary_key=True, index=True)
    class_id = Column(Integer, ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    teacher_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    subject = Column(String(100), nullable=True)
    session_type = Column(String(20), default=SessionType.LECTURE.value)
    status = Column(String(20), default=SessionStatus.SCHEDULED.value, nullable=False)
    scheduled_start = Column(DateTime(timezone=True), nullable=False)
    scheduled_end = Column(DateTime(timezone=True), nullable=False)
    actual_start = Column(DateTime(timezone=True), nullable=True)
    actual_end = Column(DateTime(timezone=True), nullable=True)
    max_participants = Column(Integer, nullable=True)
    allow_late_join = Column(Boolean, default=True)
    recording_enabled = Column(Boolean, default=False)
    chat_enabled = Column(Boolean, default=True)
    qa_enabled = Column(Boolean, default=True)
    screen_sharing_enabled = Column(Boolean, default=True)
    attendance_tracking = Column(Boolean, default=True)
    session_url = Column(String(1024), nullable=True)
    meeting_id = Column(String(100), nullable=True)
    passcode = Column(String(100), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    class_ = relationship("Class", back_populates="sessions")
    teacher = relationship("User")
    contents = relationship(
        "SessionContent", back_populates="session", cascade="all, delete-orphan",
        order_by="SessionContent.order_index",
    )
    participants = relationship("SessionParticipant", back_populates="session", cascade="all, delete-orphan")
    questions = relationship("SessionQA", back_populates="session", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_class_sessions_class_start", "class_id", "scheduled_start"),
    )


class SessionContent(Base):
    __tablename__ = "session_content"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(Integer, ForeignKey("class_sessions.id", ondelete="CASCADE"), nullable=False)
    content_type = Column(String(20), nullable=False)
    title = Column(String(255), nullable=False)
    url = Column(String(1024), nullable=False)
    thumbnail_url = Column(String(1024), nullable=True)
    file_size = Column(Integer, nullable=True)
    duration = Column(Integer, nullable=True)
    order_index = Column(Integer, default=0)
    is_downloadable = Column(Boolean, default=False)
    is_required = Column(Boolean, default=False)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    session = relationship("ClassSession", back_populates="contents")


class SessionParticipant(Base):
    __tablename__ = "session_participants"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(Integer, ForeignKey("class_sessions.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    joined_at = Column(DateTime(timezone=True), server_default=func.now())
    left_at = Column(DateTime(timezone=True), nullable=True)
    duration_minutes = Column(Integer, default=0)
    participation_score = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String(20), default=ParticipantStatus.JOINED.value)

    session = relationship("ClassSession", back_populates="participants")
    user = relationship("User")

    __table_args__ = (
        UniqueConstraint("session_id", "user_id", name="uq_session_participants_user"),
    )


class SessionQA(Base):
    __tablename__ = "session_qa"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(Integer, ForeignKey("class_sessions.id", ondelete="CASCADE"), nullable=False)
    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    teacher_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    question = Column(Text, nullable=False)
    answer = Column(Text, nullable=True)
    status = Column(String(20), default=QAStatus.PENDING.value)
    priority = Column(String(20), default=QAPriority.NORMAL.value)
    is_anonymous = Column(Boolean, default=False)
    votes = Column(Integer, default=0, nullable=False)
    answered_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    session = relationship("ClassSession", back_populates="questions")
    student = relationship("User", foreign_keys=[student_id])
    teacher = relationship("User", foreign_keys=[teacher_id])

    __table_args__ = (
        Index("ix_session_qa_session_status", "session_id", "status"),
    )
