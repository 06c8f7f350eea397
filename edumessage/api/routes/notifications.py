import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from edumessage.api.deps import get_class_or_404, get_current_user, require_class_access
from edumessage.core.utils import as_utc, utcnow
from edumessage.db.database import get_db
from edumessage.models.notification import Notification, NotificationRead
from edumessage.models.user import User, UserRole
from edumessage.schemas.notification import (
    NotificationCreate, NotificationReadRequest, NotificationResponse, NotificationUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["Notifications"])


def _is_expired(notification: Notification, now) -> bool:
    return notification.expires_at is not None and as_utc(notification.expires_at) <= now


def _notification_to_response(notification: Notification, read: NotificationRead | None = None) -> dict:
    return {
        "id": notification.id,
        "class_id": notification.class_id,
        "teacher_id": notification.teacher_id,
        "title": notification.title,
        "content": notification.content,
        "type": notification.type,
        "priority": notification.priority,
        "is_pinned": notification.is_pinned,
        "expires_at": notification.expires_at,
        "attachment_url": notification.attachment_url,
        "attachment_name": notification.attachment_name,
        "author": notification.teacher,
        "is_read": read is not None,
        "read_at": read.read_at if read else None,
        "created_at": notification.created_at,
        "updated_at": notification.updated_at,
    }


def _get_own_notification(db: Session, notification_id: int, user: User) -> Notification:
    notification = db.query(Notification).filter(Notification.id == notification_id).first()
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    if notification.teacher_id != user.id:
        raise HTTPException(status_code=403, detail="Only the author can change this notification")
    return notification


@router.get("/", response_model=list[NotificationResponse])
def list_notifications(
    class_id: int = Query(...),
    include_expired: bool = Query(False),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Pinned first, then newest. Expired items are only shown to the teacher on request."""
    cls = require_class_access(db, current_user, class_id)
    show_expired = include_expired and cls.teacher_id == current_user.id

    notifications = (
        db.query(Notification)
        .options(selectinload(Notification.teacher))
        .filter(Notification.class_id == class_id)
        .order_by(Notification.is_pinned.desc(), Notification.created_at.desc(), Notification.id.desc())
        .all()
    )
    if not show_expired:
        now = utcnow()
        notifications = [n for n in notifications if not _is_expired(n, now)]

    reads = {}
    if notifications:
        reads = {
            r.notification_id: r
            for r in db.query(NotificationRead).filter(
                NotificationRead.user_id == current_user.id,
                NotificationRead.notification_id.in_([n.id for n in notifications]),
            )
        }
    return [_notification_to_response(n, reads.get(n.id)) for n in notifications]


@router.post("/", response_model=NotificationResponse, status_code=status.HTTP_201_CREATED)
def create_notification(
    data: NotificationCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not current_user.has_role(UserRole.TEACHER):
        raise HTTPException(status_code=403, detail="Only teachers can create notifications")
    cls = get_class_or_404(db, data.class_id)
    if cls.teacher_id != current_user.id:
        raise HTTPException(status_code=403, detail="You can only post notifications to your own classes")

    notification = Notification(
        class_id=cls.id,
        teacher_id=current_user.id,
        title=data.title,
        content=data.content,
        type=data.type,
        priority=data.priority,
        is_pinned=data.is_pinned,
        expires_at=as_utc(data.expires_at),
        attachment_url=data.attachment_url,
        attachment_name=data.attachment_name,
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    logger.info(f"Notification {notification.id} posted to class {cls.id} ({notification.priority})")
    return _notification_to_response(notification)


@router.get("/unread-count")
def unread_count(
    class_id: int = Query(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_class_access(db, current_user, class_id)

    read_ids = db.query(NotificationRead.notification_id).filter(NotificationRead.user_id == current_user.id)
    unread = (
        db.query(Notification)
        .filter(Notification.class_id == class_id, Notification.id.notin_(read_ids))
        .all()
    )
    now = utcnow()
    return {"class_id": class_id, "unread_count": sum(1 for n in unread if not _is_expired(n, now))}


@router.post("/read")
def mark_notification_read(
    body: NotificationReadRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    notification = db.query(Notification).filter(Notification.id == body.notification_id).first()
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    require_class_access(db, current_user, notification.class_id)

    read = db.query(NotificationRead).filter(
        NotificationRead.notification_id == notification.id,
        NotificationRead.user_id == current_user.id,
    ).first()
    if read:
        read.read_at = utcnow()
        db.commit()
    else:
        read = NotificationRead(notification_id=notification.id, user_id=current_user.id, read_at=utcnow())
        db.add(read)
        try:
            db.commit()
        except IntegrityError:
            # A concurrent request already recorded the read
            db.rollback()
            read = db.query(NotificationRead).filter(
                NotificationRead.notification_id == notification.id,
                NotificationRead.user_id == current_user.id,
            ).first()
    return {"message": "Marked as read", "notification_id": notification.id, "read_at": read.read_at}


@router.put("/{notification_id}", response_model=NotificationResponse)
def update_notification(
    notification_id: int,
    data: NotificationUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    notification = _get_own_notification(db, notification_id, current_user)

    updates = data.model_dump(exclude_unset=True)
    # Non-nullable settings cannot be cleared
    for field in ("type", "priority", "is_pinned"):
        if updates.get(field, "") is None:
            updates.pop(field)
    for field in ("title", "content"):
        if field in updates:
            value = (updates[field] or "").strip()
            if not value:
                raise HTTPException(status_code=400, detail=f"{field.capitalize()} cannot be empty")
            updates[field] = value
    if "expires_at" in updates:
        updates["expires_at"] = as_utc(updates["expires_at"])

    for field, value in updates.items():
        setattr(notification, field, value)
    db.commit()
    db.refresh(notification)
    return _notification_to_response(notification)


@router.delete("/{notification_id}")
def delete_notification(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    notification = _get_own_notification(db, notification_id, current_user)
    db.delete(notification)
    db.commit()
    logger.info(f"Notification {notification_id} deleted by teacher {current_user.id}")
    return {"message": "Notification deleted"}
