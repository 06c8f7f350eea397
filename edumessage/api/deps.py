from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from edumessage.core.config import settings
from edumessage.db.database import get_db
from edumessage.models.class_model import Class, ClassMember
from edumessage.models.session import ClassSession
from edumessage.models.token_blacklist import TokenBlacklist
from edumessage.models.user import User, UserRole

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


def decode_token(token: str) -> dict:
    return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])


def get_current_user(
    request: Request,
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_token(token)
        user_id: str = payload.get("sub")
        if user_id is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception

    # Revoked tokens (logout)
    jti = payload.get("jti")
    if jti:
        revoked = db.query(TokenBlacklist.id).filter(TokenBlacklist.jti == jti).first()
        if revoked:
            raise credentials_exception

    user = db.query(User).filter(User.id == int(user_id)).first()
    if user is None or not user.is_active:
        raise credentials_exception

    # Make user ID available for rate limiter and request logging
    request.state.user_id = user.id
    request.state.token_payload = payload

    return user


def require_role(*roles: UserRole):
    """Dependency factory that checks the current user has one of the required roles."""
    def checker(current_user: User = Depends(get_current_user)):
        if not any(current_user.has_role(r) for r in roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user
    return checker


# ── Class access helpers ─────────────────────────────────────────


def get_class_or_404(db: Session, class_id: int) -> Class:
    cls = db.query(Class).filter(Class.id == class_id).first()
    if not cls:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Class not found")
    return cls


def is_class_member(db: Session, user: User, class_id: int) -> bool:
    return db.query(ClassMember.id).filter(
        ClassMember.class_id == class_id,
        ClassMember.user_id == user.id,
    ).first() is not None


def can_access_class(db: Session, user: User, cls: Class) -> bool:
    """The class teacher and enrolled members (students/parents) have access."""
    return cls.teacher_id == user.id or is_class_member(db, user, cls.id)


def require_class_access(db: Session, user: User, class_id: int) -> Class:
    """Load the class and check access; 404 if missing, 403 if not allowed."""
    cls = get_class_or_404(db, class_id)
    if not can_access_class(db, user, cls):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have access to this class",
        )
    return cls


def get_session_or_404(db: Session, session_id: int) -> ClassSession:
    session = db.query(ClassSession).filter(ClassSession.id == session_id).first()
    if not session:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return session


def require_session_access(db: Session, user: User, session_id: int) -> ClassSession:
    """The session teacher and members of the session's class; 404 if missing, 403 otherwise."""
    session = get_session_or_404(db, session_id)
    if session.teacher_id != user.id and not is_class_member(db, user, session.class_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have access to this session",
        )
    return session


def require_session_teacher(db: Session, user: User, session_id: int) -> ClassSession:
    session = get_session_or_404(db, session_id)
    if session.teacher_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the session teacher can do this",
        )
    return session
