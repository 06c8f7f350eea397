from typing import Any, Optional

from pydantic import BaseModel, field_validator

ANALYSIS_TYPES = ("categorize", "follow_up", "answer_suggestions")

# time_range value -> days of history
TIME_RANGES = {"1d": 1, "7d": 7, "30d": 30, "3m": 90}


class AnalyzeQuestionRequest(BaseModel):
    question_id: int
    analysis_type: str = "categorize"
    subject: Optional[str] = None
    level: Optional[str] = None
    context: Optional[str] = None


class AnalyzeQuestionResponse(BaseModel):
    analysis: dict[str, Any]
    question_id: int
    analysis_type: str


class AnalyzePatternsRequest(BaseModel):
    session_id: Optional[int] = None
    class_id: Optional[int] = None
    time_range: str = "7d"
    subject: Optional[str] = None

    @field_validator("time_range")
    @classmethod
    def validate_time_range(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in TIME_RANGES:
            raise ValueError(f"time_range must be one of: {', '.join(TIME_RANGES)}")
        return v


class AnalyzePatternsResponse(BaseModel):
    analysis: dict[str, Any]
    question_count: int
    time_range: str
    session_id: Optional[int] = None
    class_id: Optional[int] = None
