"""Refresh session model definitions."""

from sqlalchemy import Column, ForeignKey, String

from driving_school.database import Base, UTCDateTime, utcnow
from driving_school.models.user import new_id


class RefreshSession(Base):
    """Revocation record for one issued refresh token.

    Only the SHA-256 fingerprint of the token is kept.
    """
    __tablename__ = "refresh_sessions"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), index=True, nullable=False)
    token_hash = Column(String(64), unique=True, index=True, nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    expires_at = Column(UTCDateTime, nullable=False)
    revoked_at = Column(UTCDateTime, nullable=True)
