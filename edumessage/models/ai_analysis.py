from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.sql import func

from edumessage.db.database import Base


class QAAIAnalysis(Base):
    """Stored result of a single-question AI analysis."""
    __tablename__ = "qa_ai_analysis"

    id = Column(Integer, primary_key=True, index=True)
    question_id = Column(Integer, ForeignKey("session_qa.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    analysis_type = Column(String(30), nullable=False)
    analysis_result = Column(JSON, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())


class QAPatternAnalysis(Base):
    """Stored result of a question-pattern analysis over a session or class."""
    __tablename__ = "qa_pattern_analysis"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(Integer, ForeignKey("class_sessions.id", ondelete="CASCADE"), nullable=True)
    class_id = Column(Integer, ForeignKey("classes.id", ondelete="CASCADE"), nullable=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    time_range = Column(String(10), nullable=False)
    question_count = Column(Integer, default=0)
    analysis_result = Column(JSON, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
