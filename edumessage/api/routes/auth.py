import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from edumessage.api.deps import get_current_user
from edumessage.core.config import settings
from edumessage.core.rate_limit import AUTH_RATE_LIMIT, limiter
from edumessage.core.security import create_access_token, get_password_hash, verify_password
from edumessage.db.database import get_db
from edumessage.models.token_blacklist import RevokeReason, TokenBlacklist
from edumessage.models.user import User
from edumessage.schemas.user import EmailConfirmRequest, Token, UserCreate, UserResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/signup", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(AUTH_RATE_LIMIT)
def signup(request: Request, user_data: UserCreate, db: Session = Depends(get_db)):
    existing = db.query(User).filter(User.email == user_data.email).first()
    if existing:
        raise HTTPException(status_code=400, detail="Email already registered")

    user = User(
        email=user_data.email,
        full_name=user_data.full_name,
        role=user_data.role,
        hashed_password=get_password_hash(user_data.password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"New {user.role} account registered: user_id={user.id}")
    return user


@router.post("/login", response_model=Token)
@limiter.limit(AUTH_RATE_LIMIT)
def login(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
):
    email = form_data.username.strip().lower()
    user = db.query(User).filter(User.email == email).first()
    if not user or not verify_password(form_data.password, user.hashed_password):
        logger.warning(f"Failed login attempt for {email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is disabled")

    token, _jti, _expires_at = create_access_token(user.id, user.role)
    return Token(access_token=token)


@router.post("/logout")
def logout(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Revoke the bearer token used for this request."""
    payload = request.state.token_payload
    jti = payload.get("jti")
    if jti:
        db.add(TokenBlacklist(
            jti=jti,
            user_id=current_user.id,
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            reason=RevokeReason.LOGOUT.value,
        ))
        db.commit()
    return {"message": "Logged out"}


@router.post("/confirm-email")
def confirm_email(body: EmailConfirmRequest, db: Session = Depends(get_db)):
    """Mark an account's email as confirmed. Development environments only."""
    if settings.environment != "development" or not settings.dev_api_enabled:
        raise HTTPException(status_code=403, detail="This endpoint is only available in development")

    email = body.email.strip().lower()
    if not email:
        raise HTTPException(status_code=400, detail="Email is required")

    user = db.query(User).filter(User.email == email).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    user.email_confirmed = True
    db.commit()
    logger.info(f"Email confirmed via dev endpoint: user_id={user.id}")
    return {"message": "Email confirmed", "user_id": user.id}
