import enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from edumessage.db.database import Base


class NotificationType(str, enum.Enum):
    GENERAL = "general"
    URGENT = "urgent"
    EVENT = "event"
    HOMEWORK = "homework"
    EXAM = "exam"
    REMINDER = "reminder"


class NotificationPriority(str, enum.Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    class_id = Column(Integer, ForeignKey("classes.id", ondelete="CASCADE"), nullable=False, index=True)
    teacher_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    type = Column(String(20), default=NotificationType.GENERAL.value)
    priority = Column(String(20), default=NotificationPriority.NORMAL.value)
    is_pinned = Column(Boolean, default=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    attachment_url = Column(String(1024), nullable=True)
    attachment_name = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    class_ = relationship("Class", back_populates="notifications")
    teacher = relationship("User")
    reads = relationship("NotificationRead", back_populates="notification", cascade="all, delete-orphan")


class NotificationRead(Base):
    __tablename__ = "notification_reads"

    id = Column(Integer, primary_key=True, index=True)
    notification_id = Column(Integer, ForeignKey("notifications.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    read_at = Column(DateTime(timezone=True), server_default=func.now())

    notification = relationship("Notification", back_populates="reads")

    __table_args__ = (
        UniqueConstraint("notification_id", "user_id", name="uq_notification_reads_user"),
    )
