import enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from edumessage.db.database import Base


class MessageType(str, enum.Enum):
    TEXT = "text"
    ANNOUNCEMENT = "announcement"
    HOMEWORK = "homework"
    QUESTION = "question"


class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True)
    class_id = Column(Integer, ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    sender_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    content = Column(Text, nullable=False)
    type = Column(String(20), default=MessageType.TEXT.value)
    is_approved = Column(Boolean, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    class_ = relationship("Class", back_populates="messages")
    sender = relationship("User")

    __table_args__ = (
        Index("ix_messages_class_created", "class_id", "created_at"),
        Index("ix_messages_class_approved", "class_id", "is_approved"),
    )
