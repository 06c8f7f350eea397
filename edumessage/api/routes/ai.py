import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from edumessage.api.deps import get_class_or_404, get_current_user, get_session_or_404
from edumessage.core.ai_errors import raise_for_ai_error
from edumessage.core.rate_limit import AI_RATE_LIMIT, limiter, user_or_address
from edumessage.core.utils import as_utc, utcnow
from edumessage.db.database import get_db
from edumessage.models.ai_analysis import QAAIAnalysis, QAPatternAnalysis
from edumessage.models.session import ClassSession, SessionQA
from edumessage.models.user import User
from edumessage.schemas.ai import (
    ANALYSIS_TYPES, TIME_RANGES, AnalyzePatternsRequest, AnalyzePatternsResponse,
    AnalyzeQuestionRequest, AnalyzeQuestionResponse,
)
from edumessage.services import ai_service
from edumessage.services.ai_service import AIServiceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["AI"])

MAX_PATTERN_QUESTIONS = 50


def _store(db: Session, record) -> None:
    """Persist an analysis result; a failed write is logged, never raised."""
    try:
        db.add(record)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to store {type(record).__name__}: {e}")


@router.post("/analyze-question", response_model=AnalyzeQuestionResponse)
@limiter.limit(AI_RATE_LIMIT, key_func=user_or_address)
async def analyze_question(
    request: Request,
    body: AnalyzeQuestionRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Categorize a Q&A question, suggest follow-ups, or draft an answer."""
    qa = db.query(SessionQA).filter(SessionQA.id == body.question_id).first()
    if not qa:
        raise HTTPException(status_code=404, detail="Question not found")
    session = qa.session
    if session.teacher_id != current_user.id:
        raise HTTPException(status_code=403, detail="Only the session teacher can use AI analysis")

    analysis_type = body.analysis_type.strip().lower()
    if analysis_type not in ANALYSIS_TYPES:
        raise HTTPException(status_code=400, detail=f"Unsupported analysis type: {body.analysis_type}")

    subject = body.subject or session.subject
    try:
        if analysis_type == "categorize":
            result = await ai_service.categorize_question(qa.question, subject)
        elif analysis_type == "follow_up":
            result = await ai_service.generate_follow_up_questions(qa.question, subject, body.level)
        else:
            result = await ai_service.generate_answer_suggestions(
                qa.question, subject, body.level, body.context,
            )
    except AIServiceError as e:
        logger.error(f"AI analysis of question {qa.id} failed: {e}")
        raise_for_ai_error(e)

    _store(db, QAAIAnalysis(
        question_id=qa.id,
        user_id=current_user.id,
        analysis_type=analysis_type,
        analysis_result=result,
    ))
    return AnalyzeQuestionResponse(analysis=result, question_id=qa.id, analysis_type=analysis_type)


@router.post("/analyze-patterns", response_model=AnalyzePatternsResponse)
@limiter.limit(AI_RATE_LIMIT, key_func=user_or_address)
async def analyze_patterns(
    request: Request,
    body: AnalyzePatternsRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Summarize question patterns for a session, or for every session of a class."""
    if body.session_id is None and body.class_id is None:
        raise HTTPException(status_code=400, detail="session_id or class_id is required")

    if body.session_id is not None:
        session = get_session_or_404(db, body.session_id)
        if session.teacher_id != current_user.id:
            raise HTTPException(status_code=403, detail="Only the session teacher can analyze its questions")
        session_ids = [session.id]
        class_id = session.class_id
        default_subject = session.subject
    else:
        cls = get_class_or_404(db, body.class_id)
        if cls.teacher_id != current_user.id:
            raise HTTPException(status_code=403, detail="Only the class teacher can analyze its questions")
        class_id = cls.id
        session_ids = [
            sid for (sid,) in db.query(ClassSession.id).filter(ClassSession.class_id == cls.id)
        ]
        default_subject = cls.subject

    questions = []
    if session_ids:
        since = utcnow() - timedelta(days=TIME_RANGES[body.time_range])
        questions = (
            db.query(SessionQA)
            .filter(SessionQA.session_id.in_(session_ids), SessionQA.created_at >= since)
            .order_by(SessionQA.created_at.desc(), SessionQA.id.desc())
            .limit(MAX_PATTERN_QUESTIONS)
            .all()
        )

    if not questions:
        return AnalyzePatternsResponse(
            analysis=ai_service.empty_pattern_analysis(),
            question_count=0,
            time_range=body.time_range,
            session_id=body.session_id,
            class_id=body.class_id,
        )

    question_data = [
        {"question": q.question, "created_at": as_utc(q.created_at).date().isoformat()}
        for q in questions
    ]
    try:
        result = await ai_service.analyze_question_patterns(
            question_data, body.subject or default_subject, body.time_range,
        )
    except AIServiceError as e:
        logger.error(f"AI pattern analysis failed: {e}")
        raise_for_ai_error(e)

    _store(db, QAPatternAnalysis(
        session_id=body.session_id,
        class_id=class_id,
        user_id=current_user.id,
        time_range=body.time_range,
        question_count=len(questions),
        analysis_result=result,
    ))
    return AnalyzePatternsResponse(
        analysis=result,
        question_count=len(questions),
        time_range=body.time_range,
        session_id=body.session_id,
        class_id=body.class_id,
    )
