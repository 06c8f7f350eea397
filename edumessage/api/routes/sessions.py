import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func as sa_func
from sqlalchemy.orm import Session, selectinload

from edumessage.api.deps import (
    get_class_or_404, get_current_user, require_class_access, require_session_access,
    require_session_teacher,
)
from edumessage.api.routes.session_qa import ordered_questions, qa_to_response
from edumessage.core.utils import as_utc, utcnow
from edumessage.db.database import get_db
from edumessage.models.session import (
    ClassSession, ParticipantStatus, QAStatus, SessionContent, SessionParticipant, SessionQA, SessionStatus,
)
from edumessage.models.user import User
from edumessage.schemas.session import (
    VALID_SESSION_STATUSES, ContentCreate, ContentReorderRequest, ContentResponse, JoinResult,
    ParticipationResponse, SessionCreate, SessionDetail, SessionOwnerResponse, SessionResponse,
    SessionUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["Sessions"])

# Only these may change once a session is live; status covers ending it
LIVE_EDITABLE_FIELDS = {"description", "chat_enabled", "qa_enabled", "recording_enabled", "status"}

ALLOWED_TRANSITIONS = {
    SessionStatus.SCHEDULED.value: {SessionStatus.LIVE.value, SessionStatus.CANCELLED.value},
    SessionStatus.LIVE.value: {SessionStatus.COMPLETED.value},
}

# Columns that must keep a value
NON_NULLABLE_FIELDS = {
    "title", "session_type", "status", "scheduled_start", "scheduled_end", "allow_late_join",
    "recording_enabled", "chat_enabled", "qa_enabled", "screen_sharing_enabled", "attendance_tracking",
}


def _session_response(session: ClassSession, owner: bool, **extra):
    model = SessionOwnerResponse if owner else SessionResponse
    return model.model_validate(session).model_copy(update=extra)


def _minutes_between(start, end) -> int:
    if not start or not end:
        return 0
    return max(0, int((as_utc(end) - as_utc(start)).total_seconds() // 60))


def _close_participation(participation: SessionParticipant, now) -> None:
    participation.duration_minutes = (participation.duration_minutes or 0) + _minutes_between(
        participation.joined_at, now,
    )
    participation.left_at = now
    participation.status = ParticipantStatus.LEFT.value


# ── Sessions ──────────────────────────────────────────────────────


@router.get("/", response_model=list[SessionResponse])
def list_sessions(
    class_id: int = Query(...),
    status_filter: Optional[str] = Query(None, alias="status"),
    upcoming: bool = Query(False),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    cls = require_class_access(db, current_user, class_id)
    is_teacher = cls.teacher_id == current_user.id

    query = (
        db.query(ClassSession)
        .options(selectinload(ClassSession.teacher))
        .filter(ClassSession.class_id == class_id)
    )
    if status_filter:
        normalized = status_filter.strip().lower()
        if normalized not in VALID_SESSION_STATUSES:
            raise HTTPException(status_code=400, detail="Invalid status filter")
        query = query.filter(ClassSession.status == normalized)
    if upcoming:
        query = query.filter(ClassSession.scheduled_start >= utcnow())
    sessions = query.order_by(ClassSession.scheduled_start.asc(), ClassSession.id.asc()).all()
    if not sessions:
        return []
    session_ids = [s.id for s in sessions]

    if is_teacher:
        participant_counts = dict(
            db.query(SessionParticipant.session_id, sa_func.count(SessionParticipant.id))
            .filter(SessionParticipant.session_id.in_(session_ids))
            .group_by(SessionParticipant.session_id)
            .all()
        )
        pending_counts = dict(
            db.query(SessionQA.session_id, sa_func.count(SessionQA.id))
            .filter(
                SessionQA.session_id.in_(session_ids),
                SessionQA.status == QAStatus.PENDING.value,
            )
            .group_by(SessionQA.session_id)
            .all()
        )
        return [
            _session_response(
                s, True,
                participant_count=participant_counts.get(s.id, 0),
                pending_questions=pending_counts.get(s.id, 0),
            )
            for s in sessions
        ]

    mine = {
        p.session_id: p
        for p in db.query(SessionParticipant).filter(
            SessionParticipant.session_id.in_(session_ids),
            SessionParticipant.user_id == current_user.id,
        )
    }
    return [
        _session_response(
            s, False,
            my_participation=ParticipationResponse.model_validate(mine[s.id]) if s.id in mine else None,
        )
        for s in sessions
    ]


@router.post("/", response_model=SessionOwnerResponse, status_code=status.HTTP_201_CREATED)
def create_session(
    data: SessionCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    cls = get_class_or_404(db, data.class_id)
    if cls.teacher_id != current_user.id:
        raise HTTPException(status_code=403, detail="Only the class teacher can create sessions")

    start = as_utc(data.scheduled_start)
    end = as_utc(data.scheduled_end)
    if start <= utcnow():
        raise HTTPException(status_code=400, detail="Start time must be in the future")
    if end <= start:
        raise HTTPException(status_code=400, detail="End time must be after the start time")

    session = ClassSession(
        **data.model_dump(exclude={"scheduled_start", "scheduled_end"}),
        scheduled_start=start,
        scheduled_end=end,
        teacher_id=current_user.id,
        status=SessionStatus.SCHEDULED.value,
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    logger.info(f"Session {session.id} scheduled in class {cls.id} for {start.isoformat()}")
    return _session_response(session, True)


@router.get("/{session_id}", response_model=SessionDetail)
def get_session(
    session_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    session = require_session_access(db, current_user, session_id)
    is_teacher = session.teacher_id == current_user.id

    participants = []
    my_participation = None
    if is_teacher:
        participants = [
            ParticipationResponse.model_validate(p)
            for p in db.query(SessionParticipant)
            .options(selectinload(SessionParticipant.user))
            .filter(SessionParticipant.session_id == session.id)
            .order_by(SessionParticipant.joined_at.asc(), SessionParticipant.id.asc())
        ]
    else:
        mine = db.query(SessionParticipant).filter(
            SessionParticipant.session_id == session.id,
            SessionParticipant.user_id == current_user.id,
        ).first()
        if mine:
            my_participation = ParticipationResponse.model_validate(mine)

    return SessionDetail(
        session=_session_response(session, is_teacher),
        content=[ContentResponse.model_validate(c) for c in session.contents],
        participants=participants,
        my_participation=my_participation,
        qa=[qa_to_response(qa, is_teacher) for qa in ordered_questions(db, session.id).all()],
    )


@router.put("/{session_id}", response_model=SessionOwnerResponse)
def update_session(
    session_id: int,
    data: SessionUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    session = require_session_teacher(db, current_user, session_id)

    updates = data.model_dump(exclude_unset=True)
    if session.status == SessionStatus.LIVE.value:
        updates = {k: v for k, v in updates.items() if k in LIVE_EDITABLE_FIELDS}
        if not updates:
            raise HTTPException(
                status_code=400,
                detail="A live session only allows changes to description, chat, Q&A and recording settings",
            )
    for field, value in updates.items():
        if field in NON_NULLABLE_FIELDS and value is None:
            raise HTTPException(status_code=400, detail=f"{field} cannot be empty")

    new_status = updates.get("status")
    if new_status is not None and new_status != session.status:
        if new_status not in ALLOWED_TRANSITIONS.get(session.status, set()):
            raise HTTPException(
                status_code=400,
                detail=f"Cannot change session status from {session.status} to {new_status}",
            )

    for field in ("scheduled_start", "scheduled_end"):
        if field in updates:
            updates[field] = as_utc(updates[field])
    start = updates.get("scheduled_start", session.scheduled_start)
    end = updates.get("scheduled_end", session.scheduled_end)
    if as_utc(end) <= as_utc(start):
        raise HTTPException(status_code=400, detail="End time must be after the start time")

    now = utcnow()
    if new_status == SessionStatus.LIVE.value and session.status != new_status:
        session.actual_start = now
    if new_status == SessionStatus.COMPLETED.value and session.status != new_status:
        session.actual_end = now
        open_participations = db.query(SessionParticipant).filter(
            SessionParticipant.session_id == session.id,
            SessionParticipant.left_at.is_(None),
        ).all()
        for participation in open_participations:
            _close_participation(participation, now)

    for field, value in updates.items():
        setattr(session, field, value)
    db.commit()
    db.refresh(session)
    if new_status:
        logger.info(f"Session {session.id} is now {session.status}")
    return _session_response(session, True)


@router.delete("/{session_id}")
def delete_session(
    session_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    session = require_session_teacher(db, current_user, session_id)
    if session.status == SessionStatus.LIVE.value:
        raise HTTPException(status_code=400, detail="A live session cannot be deleted")

    db.delete(session)
    db.commit()
    logger.info(f"Session {session_id} deleted by teacher {current_user.id}")
    return {"message": "Session deleted"}


# ── Content ───────────────────────────────────────────────────────


@router.post("/{session_id}/content", response_model=ContentResponse, status_code=status.HTTP_201_CREATED)
def add_content(
    session_id: int,
    data: ContentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    session = require_session_teacher(db, current_user, session_id)
    content = SessionContent(session_id=session.id, **data.model_dump())
    db.add(content)
    db.commit()
    db.refresh(content)
    return content


@router.put("/{session_id}/content", response_model=list[ContentResponse])
def reorder_content(
    session_id: int,
    body: ContentReorderRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Apply new order_index values to this session's content items."""
    session = require_session_teacher(db, current_user, session_id)

    items = {
        c.id: c
        for c in db.query(SessionContent).filter(SessionContent.session_id == session.id)
    }
    unknown = [u.id for u in body.content_updates if u.id not in items]
    if unknown:
        raise HTTPException(status_code=404, detail=f"Content not found in this session: {unknown}")

    for update in body.content_updates:
        items[update.id].order_index = update.order_index
    db.commit()

    return (
        db.query(SessionContent)
        .filter(SessionContent.session_id == session.id)
        .order_by(SessionContent.order_index.asc(), SessionContent.id.asc())
        .all()
    )


# ── Participation ─────────────────────────────────────────────────


@router.post("/{session_id}/join", response_model=JoinResult)
def join_session(
    session_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    session = require_session_access(db, current_user, session_id)
    is_teacher = session.teacher_id == current_user.id

    if session.status == SessionStatus.CANCELLED.value:
        raise HTTPException(status_code=400, detail="This session has been cancelled")
    if session.status == SessionStatus.COMPLETED.value:
        raise HTTPException(status_code=400, detail="This session has already ended")

    now = utcnow()
    started = now > as_utc(session.scheduled_start)
    if started and not session.allow_late_join:
        raise HTTPException(status_code=400, detail="This session does not allow late joining")
    if now > as_utc(session.scheduled_end):
        raise HTTPException(status_code=400, detail="This session has already ended")

    if session.max_participants:
        active = db.query(sa_func.count(SessionParticipant.id)).filter(
            SessionParticipant.session_id == session.id,
            SessionParticipant.left_at.is_(None),
        ).scalar() or 0
        if active >= session.max_participants:
            raise HTTPException(status_code=400, detail="This session is full")

    participation = db.query(SessionParticipant).filter(
        SessionParticipant.session_id == session.id,
        SessionParticipant.user_id == current_user.id,
    ).first()
    rejoined = participation is not None
    if participation:
        if participation.left_at is None:
            raise HTTPException(status_code=400, detail="You have already joined this session")
        participation.joined_at = now
        participation.left_at = None
        participation.status = ParticipantStatus.RECONNECTED.value
    else:
        participation = SessionParticipant(
            session_id=session.id,
            user_id=current_user.id,
            joined_at=now,
            status=ParticipantStatus.JOINED.value,
        )
        db.add(participation)

    if is_teacher and session.status == SessionStatus.SCHEDULED.value and now >= as_utc(session.scheduled_start):
        session.status = SessionStatus.LIVE.value
        session.actual_start = now
        logger.info(f"Session {session.id} went live when teacher {current_user.id} joined")

    db.commit()
    db.refresh(participation)
    return JoinResult(
        participation=ParticipationResponse.model_validate(participation),
        rejoined=rejoined,
        message="Rejoined the session" if rejoined else "Joined the session",
    )


@router.delete("/{session_id}/join")
def leave_session(
    session_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    participation = db.query(SessionParticipant).filter(
        SessionParticipant.session_id == session_id,
        SessionParticipant.user_id == current_user.id,
    ).first()
    if not participation:
        raise HTTPException(status_code=404, detail="You have not joined this session")
    if participation.left_at is not None:
        raise HTTPException(status_code=400, detail="You have already left this session")

    _close_participation(participation, utcnow())
    db.commit()
    return {
        "message": "Left the session",
        "duration_minutes": participation.duration_minutes,
    }
