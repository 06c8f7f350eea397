from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator


class ClassCreate(BaseModel):
    name: str
    description: Optional[str] = None
    grade: int
    subject: str
    school_name: Optional[str] = None

    @field_validator("name", "subject")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("grade")
    @classmethod
    def validate_grade(cls, v: int) -> int:
        if v < 1 or v > 12:
            raise ValueError("Grade must be between 1 and 12")
        return v


class ClassResponse(BaseModel):
    id: int
    name: str
    description: Optional[str]
    code: str
    teacher_id: int
    school_name: Optional[str]
    grade: int
    subject: str
    created_at: Optional[datetime]
    updated_at: Optional[datetime] = None
    # Teacher view
    student_count: Optional[int] = None
    # Member view
    member_role: Optional[str] = None
    joined_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ClassLookupResponse(BaseModel):
    id: int
    name: str
    description: Optional[str]
    grade: int
    subject: str
    teacher_name: str
    already_joined: bool = False


class JoinClassRequest(BaseModel):
    code: str

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("Class code is required")
        return v


class ClassStudentResponse(BaseModel):
    id: int
    name: str
    email: str
    joined_at: Optional[datetime]
    role: str
