from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from edumessage.models.notification import NotificationPriority, NotificationType
from edumessage.schemas.user import UserSummary

VALID_NOTIFICATION_TYPES = {t.value for t in NotificationType}
VALID_PRIORITIES = {p.value for p in NotificationPriority}


def _check_type(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    normalized = v.strip().lower()
    if normalized not in VALID_NOTIFICATION_TYPES:
        raise ValueError(f"Invalid type. Must be one of: {', '.join(sorted(VALID_NOTIFICATION_TYPES))}")
    return normalized


def _check_priority(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    normalized = v.strip().lower()
    if normalized not in VALID_PRIORITIES:
        raise ValueError(f"Invalid priority. Must be one of: {', '.join(sorted(VALID_PRIORITIES))}")
    return normalized


class NotificationCreate(BaseModel):
    class_id: int
    title: str
    content: str
    type: str = NotificationType.GENERAL.value
    priority: str = NotificationPriority.NORMAL.value
    is_pinned: bool = False
    expires_at: Optional[datetime] = None
    attachment_url: Optional[str] = None
    attachment_name: Optional[str] = None

    @field_validator("title", "content")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        return _check_type(v)

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, v):
        return _check_priority(v)


class NotificationUpdate(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    type: Optional[str] = None
    priority: Optional[str] = None
    is_pinned: Optional[bool] = None
    expires_at: Optional[datetime] = None
    attachment_url: Optional[str] = None
    attachment_name: Optional[str] = None

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        return _check_type(v)

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, v):
        return _check_priority(v)


class NotificationResponse(BaseModel):
    id: int
    class_id: int
    teacher_id: int
    title: str
    content: str
    type: str
    priority: str
    is_pinned: bool
    expires_at: Optional[datetime]
    attachment_url: Optional[str]
    attachment_name: Optional[str]
    author: Optional[UserSummary] = None
    is_read: bool = False
    read_at: Optional[datetime] = None
    created_at: Optional[datetime]
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class NotificationReadRequest(BaseModel):
    notification_id: int
