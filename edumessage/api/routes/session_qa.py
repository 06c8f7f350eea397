import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import case
from sqlalchemy.orm import Session, selectinload

from edumessage.api.deps import get_current_user, is_class_member, require_session_access
from edumessage.core.utils import utcnow
from edumessage.db.database import get_db
from edumessage.models.session import QA_PRIORITY_RANK, ClassSession, QAPriority, QAStatus, SessionQA
from edumessage.models.user import User
from edumessage.schemas.session import VALID_QA_STATUSES, QACreateRequest, QAResponse, QAUpdateRequest
from edumessage.schemas.user import UserSummary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["Session Q&A"])


def qa_to_response(qa: SessionQA, reveal_identity: bool) -> QAResponse:
    """Serialize a question, hiding the asker of anonymous questions unless reveal_identity."""
    hide = qa.is_anonymous and not reveal_identity
    return QAResponse(
        id=qa.id,
        session_id=qa.session_id,
        question=qa.question,
        answer=qa.answer,
        status=qa.status,
        priority=qa.priority,
        is_anonymous=qa.is_anonymous,
        votes=qa.votes or 0,
        student=None if hide or not qa.student else UserSummary.model_validate(qa.student),
        teacher=UserSummary.model_validate(qa.teacher) if qa.teacher else None,
        created_at=qa.created_at,
        answered_at=qa.answered_at,
    )


def ordered_questions(db: Session, session_id: int):
    """Query for a session's questions: priority, then votes, then newest."""
    rank = case(QA_PRIORITY_RANK, value=SessionQA.priority, else_=QA_PRIORITY_RANK[QAPriority.NORMAL.value])
    return (
        db.query(SessionQA)
        .options(selectinload(SessionQA.student), selectinload(SessionQA.teacher))
        .filter(SessionQA.session_id == session_id)
        .order_by(rank.desc(), SessionQA.votes.desc(), SessionQA.created_at.desc(), SessionQA.id.desc())
    )


def _get_question(db: Session, session: ClassSession, question_id: int) -> SessionQA:
    qa = db.query(SessionQA).filter(
        SessionQA.id == question_id,
        SessionQA.session_id == session.id,
    ).first()
    if not qa:
        raise HTTPException(status_code=404, detail="Question not found")
    return qa


@router.get("/{session_id}/qa", response_model=list[QAResponse])
def list_questions(
    session_id: int,
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    session = require_session_access(db, current_user, session_id)
    is_teacher = session.teacher_id == current_user.id

    query = ordered_questions(db, session.id)
    if status_filter:
        normalized = status_filter.strip().lower()
        if normalized not in VALID_QA_STATUSES:
            raise HTTPException(status_code=400, detail="Invalid status filter")
        query = query.filter(SessionQA.status == normalized)

    return [qa_to_response(qa, is_teacher) for qa in query.offset(offset).limit(limit).all()]


@router.post("/{session_id}/qa", response_model=QAResponse, status_code=status.HTTP_201_CREATED)
def ask_or_answer(
    session_id: int,
    body: QACreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """{question, ...} asks a new question; {question_id, answer} answers one."""
    session = require_session_access(db, current_user, session_id)
    if not session.qa_enabled:
        raise HTTPException(status_code=400, detail="Q&A is disabled for this session")
    is_teacher = session.teacher_id == current_user.id

    if body.question_id is not None and body.answer is not None:
        if not is_teacher:
            raise HTTPException(status_code=403, detail="Only the session teacher can answer questions")
        answer = body.answer.strip()
        if not answer:
            raise HTTPException(status_code=400, detail="Answer cannot be empty")
        qa = _get_question(db, session, body.question_id)
        qa.answer = answer
        qa.teacher_id = current_user.id
        qa.status = QAStatus.ANSWERED.value
        qa.answered_at = utcnow()
        db.commit()
        db.refresh(qa)
        return qa_to_response(qa, True)

    if body.question is not None and body.question_id is None:
        if is_teacher:
            raise HTTPException(status_code=403, detail="The session teacher cannot ask questions")
        if not is_class_member(db, current_user, session.class_id):
            raise HTTPException(status_code=403, detail="You are not a member of this class")
        question = body.question.strip()
        if not question:
            raise HTTPException(status_code=400, detail="Question cannot be empty")
        qa = SessionQA(
            session_id=session.id,
            student_id=current_user.id,
            question=question,
            priority=body.priority,
            is_anonymous=body.is_anonymous,
            status=QAStatus.PENDING.value,
            votes=0,
        )
        db.add(qa)
        db.commit()
        db.refresh(qa)
        logger.info(f"Question {qa.id} asked in session {session.id}")
        return qa_to_response(qa, False)

    raise HTTPException(status_code=400, detail="Provide a question, or a question_id with an answer")


@router.put("/{session_id}/qa")
def update_question(
    session_id: int,
    body: QAUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Vote on a question ({vote}) or moderate it ({status, priority?})."""
    session = require_session_access(db, current_user, session_id)
    is_teacher = session.teacher_id == current_user.id
    qa = _get_question(db, session, body.question_id)

    if body.vote is not None:
        if is_teacher:
            raise HTTPException(status_code=403, detail="The session teacher cannot vote")
        if not is_class_member(db, current_user, session.class_id):
            raise HTTPException(status_code=403, detail="You are not a member of this class")
        qa.votes = max(0, (qa.votes or 0) + (1 if body.vote else -1))
        db.commit()
        return {"question_id": qa.id, "votes": qa.votes}

    if body.status is not None:
        if not is_teacher:
            raise HTTPException(status_code=403, detail="Only the session teacher can change question status")
        qa.status = body.status
        if body.priority is not None:
            qa.priority = body.priority
        db.commit()
        db.refresh(qa)
        return qa_to_response(qa, True)

    raise HTTPException(status_code=400, detail="Provide either vote or status")
