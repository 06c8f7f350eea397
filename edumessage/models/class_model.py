import enum

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from edumessage.db.database import Base


class MemberRole(str, enum.Enum):
    STUDENT = "student"
    PARENT = "parent"


class Class(Base):
    __tablename__ = "classes"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, default="")
    code = Column(String(12), unique=True, nullable=False, index=True)
    teacher_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    school_name = Column(String(255), nullable=True)
    grade = Column(Integer, nullable=False)
    subject = Column(String(100), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    teacher = relationship("User", foreign_keys=[teacher_id])
    members = relationship("ClassMember", back_populates="class_", cascade="all, delete-orphan")
    messages = relationship("Message", back_populates="class_", cascade="all, delete-orphan")
    notifications = relationship("Notification", back_populates="class_", cascade="all, delete-orphan")
    assignments = relationship("HomeworkAssignment", back_populates="class_", cascade="all, delete-orphan")
    sessions = relationship("ClassSession", back_populates="class_", cascade="all, delete-orphan")


class ClassMember(Base):
    __tablename__ = "class_members"

    id = Column(Integer, primary_key=True, index=True)
    class_id = Column(Integer, ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role = Column(String(20), nullable=False, default=MemberRole.STUDENT.value)
    joined_at = Column(DateTime(timezone=True), server_default=func.now())

    class_ = relationship("Class", back_populates="members")
    user = relationship("User")

    __table_args__ = (
        UniqueConstraint("class_id", "user_id", name="uq_class_members_class_user"),
        Index("ix_class_members_user", "user_id"),
    )
