import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from edumessage.api.deps import get_class_or_404, get_current_user, require_class_access
from edumessage.db.database import get_db
from edumessage.models.class_model import Class
from edumessage.models.message import Message
from edumessage.models.user import User, UserRole
from edumessage.schemas.message import MessageApproveRequest, MessageCreate, MessageResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages", tags=["Messages"])


@router.get("/", response_model=list[MessageResponse])
def list_messages(
    class_id: int = Query(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Approved messages, plus the caller's own; the class teacher sees everything."""
    cls = require_class_access(db, current_user, class_id)

    query = (
        db.query(Message)
        .options(selectinload(Message.sender))
        .filter(Message.class_id == class_id)
    )
    if cls.teacher_id != current_user.id:
        query = query.filter(or_(Message.is_approved.is_(True), Message.sender_id == current_user.id))

    return query.order_by(Message.created_at.desc(), Message.id.desc()).all()


@router.post("/", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
def send_message(
    message_data: MessageCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    cls = require_class_access(db, current_user, message_data.class_id)

    # Teacher posts skip moderation
    is_approved = cls.teacher_id == current_user.id
    message = Message(
        class_id=cls.id,
        sender_id=current_user.id,
        content=message_data.content,
        type=message_data.type,
        is_approved=is_approved,
    )
    db.add(message)
    db.commit()
    db.refresh(message)
    if not is_approved:
        logger.info(f"Message {message.id} in class {cls.id} queued for moderation")
    return message


@router.get("/pending", response_model=list[MessageResponse])
def list_pending_messages(
    class_id: int = Query(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    cls = get_class_or_404(db, class_id)
    if cls.teacher_id != current_user.id:
        raise HTTPException(status_code=403, detail="Only the class teacher can moderate messages")

    return (
        db.query(Message)
        .options(selectinload(Message.sender))
        .filter(Message.class_id == class_id, Message.is_approved.is_(False))
        .order_by(Message.created_at.asc(), Message.id.asc())
        .all()
    )


@router.post("/approve")
def approve_message(
    body: MessageApproveRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Approve a pending message, or reject it (which deletes it)."""
    if not current_user.has_role(UserRole.TEACHER):
        raise HTTPException(status_code=403, detail="Only teachers can moderate messages")

    message = db.query(Message).filter(Message.id == body.message_id).first()
    if not message:
        raise HTTPException(status_code=404, detail="Message not found")

    cls = db.query(Class).filter(Class.id == message.class_id).first()
    if not cls or cls.teacher_id != current_user.id:
        raise HTTPException(status_code=403, detail="You can only moderate messages in your own classes")

    if body.approved:
        message.is_approved = True
        db.commit()
        logger.info(f"Message {message.id} approved by teacher {current_user.id}")
        return {"message": "Message approved", "message_id": message.id, "approved": True}

    db.delete(message)
    db.commit()
    logger.info(f"Message {body.message_id} rejected and deleted by teacher {current_user.id}")
    return {"message": "Message rejected and deleted", "message_id": body.message_id, "approved": False}
