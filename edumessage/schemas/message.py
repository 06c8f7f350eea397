from datetime import datetime
from typing import Optional

from pydantic import BaseModel, StrictBool, field_validator

from edumessage.models.message import MessageType
from edumessage.schemas.user import UserSummary

VALID_MESSAGE_TYPES = {t.value for t in MessageType}


class MessageCreate(BaseModel):
    class_id: int
    content: str
    type: str = MessageType.TEXT.value

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Message content cannot be empty")
        return stripped

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        normalized = v.strip().lower()
        if normalized not in VALID_MESSAGE_TYPES:
            raise ValueError(f"Invalid message type. Must be one of: {', '.join(sorted(VALID_MESSAGE_TYPES))}")
        return normalized


class MessageResponse(BaseModel):
    id: int
    class_id: int
    sender_id: int
    content: str
    type: str
    is_approved: bool
    sender: Optional[UserSummary] = None
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class MessageApproveRequest(BaseModel):
    message_id: int
    approved: StrictBool
