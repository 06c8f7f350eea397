import enum

from sqlalchemy import (
    Boolean, Column, DateTime, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from edumessage.db.database import Base


class SubmissionFormat(str, enum.Enum):
    TEXT = "text"
    FILE = "file"
    BOTH = "both"


class SubmissionStatus(str, enum.Enum):
    SUBMITTED = "submitted"
    GRADED = "graded"
    RETURNED = "returned"


class HomeworkAssignment(Base):
    __tablename__ = "homework_assignments"

    id = Column(Integer, primary_key=True, index=True)
    class_id = Column(Integer, ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    teacher_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    subject = Column(String(100), nullable=True)
    due_date = Column(DateTime(timezone=True), nullable=False)
    points_possible = Column(Integer, default=100)
    allow_late_submission = Column(Boolean, default=False)
    late_penalty_percent = Column(Integer, default=0)
    submission_format = Column(String(10), default=SubmissionFormat.TEXT.value)
    instructions = Column(Text, nullable=True)
    attachment_url = Column(String(1024), nullable=True)
    attachment_name = Column(String(255), nullable=True)
    is_published = Column(Boolean, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    class_ = relationship("Class", back_populates="assignments")
    teacher = relationship("User")
    submissions = relationship("HomeworkSubmission", back_populates="assignment", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_homework_assignments_class_due", "class_id", "due_date"),
    )


class HomeworkSubmission(Base):
    __tablename__ = "homework_submissions"

    id = Column(Integer, primary_key=True, index=True)
    assignment_id = Column(Integer, ForeignKey("homework_assignments.id", ondelete="CASCADE"), nullable=False)
    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    content = Column(Text, nullable=True)
    attachment_url = Column(String(1024), nullable=True)
    attachment_name = Column(String(255), nullable=True)
    submitted_at = Column(DateTime(timezone=True), server_default=func.now())
    is_late = Column(Boolean, default=False)
    status = Column(String(20), default=SubmissionStatus.SUBMITTED.value)

    assignment = relationship("HomeworkAssignment", back_populates="submissions")
    student = relationship("User")
    grade = relationship("HomeworkGrade", back_populates="submission", uselist=False, cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("assignment_id", "student_id", name="uq_homework_submissions_student"),
    )


class HomeworkGrade(Base):
    __tablename__ = "homework_grades"

    id = Column(Integer, primary_key=True, index=True)
    submission_id = Column(Integer, ForeignKey("homework_submissions.id", ondelete="CASCADE"), unique=True, nullable=False)
    teacher_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    points_earned = Column(Float, nullable=False)
    feedback = Column(Text, nullable=True)
    graded_at = Column(DateTime(timezone=True), server_default=func.now())

    submission = relationship("HomeworkSubmission", back_populates="grade")
