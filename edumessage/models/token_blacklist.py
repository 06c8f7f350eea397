import enum

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.sql import func

from edumessage.db.database import Base


class RevokeReason(str, enum.Enum):
    LOGOUT = "logout"
    DEACTIVATED = "deactivated"


class TokenBlacklist(Base):
    """Revoked access tokens, keyed by JWT id."""
    __tablename__ = "token_blacklist"

    id = Column(Integer, primary_key=True, index=True)
    jti = Column(String(36), unique=True, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    revoked_at = Column(DateTime(timezone=True), server_default=func.now())
    reason = Column(String(50), nullable=True)

    __table_args__ = (
        Index("ix_token_blacklist_expires", "expires_at"),
    )
