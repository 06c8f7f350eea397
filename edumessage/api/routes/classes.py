import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func as sa_func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from edumessage.api.deps import get_current_user, require_class_access, require_role
from edumessage.core.utils import generate_class_code
from edumessage.db.database import get_db
from edumessage.models.class_model import Class, ClassMember, MemberRole
from edumessage.models.user import User, UserRole
from edumessage.schemas.classes import (
    ClassCreate, ClassLookupResponse, ClassResponse, ClassStudentResponse, JoinClassRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/classes", tags=["Classes"])

MAX_CODE_ATTEMPTS = 10


def _class_to_response(cls: Class, **extra) -> dict:
    return {
        "id": cls.id,
        "name": cls.name,
        "description": cls.description,
        "code": cls.code,
        "teacher_id": cls.teacher_id,
        "school_name": cls.school_name,
        "grade": cls.grade,
        "subject": cls.subject,
        "created_at": cls.created_at,
        "updated_at": cls.updated_at,
        **extra,
    }


def _unique_class_code(db: Session) -> str:
    for _ in range(MAX_CODE_ATTEMPTS):
        code = generate_class_code()
        if not db.query(Class.id).filter(Class.code == code).first():
            return code
    raise HTTPException(status_code=500, detail="Could not generate a unique class code")


@router.get("/", response_model=list[ClassResponse])
def list_classes(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Teachers get the classes they teach; students and parents get the ones they joined."""
    if current_user.has_role(UserRole.TEACHER):
        classes = (
            db.query(Class)
            .filter(Class.teacher_id == current_user.id)
            .order_by(Class.created_at.desc(), Class.id.desc())
            .all()
        )
        counts = dict(
            db.query(ClassMember.class_id, sa_func.count(ClassMember.id))
            .filter(
                ClassMember.class_id.in_([c.id for c in classes]),
                ClassMember.role == MemberRole.STUDENT.value,
            )
            .group_by(ClassMember.class_id)
            .all()
        ) if classes else {}
        return [_class_to_response(c, student_count=counts.get(c.id, 0)) for c in classes]

    rows = (
        db.query(ClassMember, Class)
        .join(Class, ClassMember.class_id == Class.id)
        .filter(ClassMember.user_id == current_user.id)
        .order_by(ClassMember.joined_at.desc(), ClassMember.id.desc())
        .all()
    )
    return [
        _class_to_response(cls, member_role=member.role, joined_at=member.joined_at)
        for member, cls in rows
    ]


@router.post("/", response_model=ClassResponse, status_code=status.HTTP_201_CREATED)
def create_class(
    class_data: ClassCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.TEACHER)),
):
    cls = Class(
        name=class_data.name,
        description=class_data.description or "",
        grade=class_data.grade,
        subject=class_data.subject,
        school_name=class_data.school_name,
        teacher_id=current_user.id,
        code=_unique_class_code(db),
    )
    db.add(cls)
    db.commit()
    db.refresh(cls)
    logger.info(f"Class {cls.id} created by teacher {current_user.id} with code {cls.code}")
    return _class_to_response(cls, student_count=0)


@router.get("/lookup", response_model=ClassLookupResponse)
def lookup_class(
    code: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Preview a class by its join code before joining."""
    cls = db.query(Class).filter(Class.code == code.strip().upper()).first()
    if not cls:
        raise HTTPException(status_code=404, detail="Invalid class code")

    already_joined = db.query(ClassMember.id).filter(
        ClassMember.class_id == cls.id,
        ClassMember.user_id == current_user.id,
    ).first() is not None

    return ClassLookupResponse(
        id=cls.id,
        name=cls.name,
        description=cls.description,
        grade=cls.grade,
        subject=cls.subject,
        teacher_name=cls.teacher.full_name if cls.teacher else "Unknown",
        already_joined=already_joined,
    )


@router.post("/join", response_model=ClassResponse, status_code=status.HTTP_201_CREATED)
def join_class(
    body: JoinClassRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.STUDENT, UserRole.PARENT)),
):
    cls = db.query(Class).filter(Class.code == body.code).first()
    if not cls:
        raise HTTPException(status_code=404, detail="Invalid class code")

    existing = db.query(ClassMember.id).filter(
        ClassMember.class_id == cls.id,
        ClassMember.user_id == current_user.id,
    ).first()
    if existing:
        raise HTTPException(status_code=400, detail="You are already a member of this class")

    member = ClassMember(class_id=cls.id, user_id=current_user.id, role=current_user.role)
    db.add(member)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="You are already a member of this class")
    db.refresh(member)
    logger.info(f"User {current_user.id} joined class {cls.id} as {member.role}")
    return _class_to_response(cls, member_role=member.role, joined_at=member.joined_at)


@router.delete("/{class_id}")
def delete_class(
    class_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.TEACHER)),
):
    cls = db.query(Class).filter(Class.id == class_id, Class.teacher_id == current_user.id).first()
    if not cls:
        raise HTTPException(status_code=404, detail="Class not found or access denied")

    db.delete(cls)
    db.commit()
    logger.info(f"Class {class_id} deleted by teacher {current_user.id}")
    return {"message": "Class deleted"}


@router.get("/{class_id}/students", response_model=list[ClassStudentResponse])
def list_class_students(
    class_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_class_access(db, current_user, class_id)

    rows = (
        db.query(ClassMember, User)
        .join(User, ClassMember.user_id == User.id)
        .filter(
            ClassMember.class_id == class_id,
            ClassMember.role == MemberRole.STUDENT.value,
        )
        .order_by(ClassMember.joined_at.desc(), ClassMember.id.desc())
        .all()
    )
    return [
        ClassStudentResponse(
            id=user.id,
            name=user.full_name,
            email=user.email,
            joined_at=member.joined_at,
            role=member.role,
        )
        for member, user in rows
    ]
