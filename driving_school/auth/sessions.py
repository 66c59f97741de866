"""Session registry for refresh tokens.

The table is a revocation list: a refresh token is honored only while its
SHA-256 fingerprint is present, unrevoked and unexpired, on top of carrying a
valid signature. Refresh does not rotate the token.
"""

import hashlib
import logging
from datetime import datetime, timedelta

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from driving_school.auth.jwt_handler import TokenFailure, TokenIssuer, TokenKind
from driving_school.core.errors import (
    InternalError,
    InvalidRefreshToken,
    NotFoundError,
    RefreshTokenExpired,
)
from driving_school.database import begin_write, utcnow
from driving_school.models.refresh_session import RefreshSession

logger = logging.getLogger(__name__)


def fingerprint(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def record(
    db: Session,
    user_id: str,
    raw_token: str,
    ttl: timedelta,
    now: datetime | None = None,
) -> RefreshSession:
    issued_at = now or utcnow()
    session_record = RefreshSession(
        user_id=user_id,
        token_hash=fingerprint(raw_token),
        created_at=issued_at,
        expires_at=issued_at + ttl,
    )
    try:
        begin_write(db)
        db.add(session_record)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to record refresh session for user %s', user_id)
        raise InternalError() from exc
    return session_record


def lookup(db: Session, raw_token: str) -> RefreshSession:
    session_record = (
        db.query(RefreshSession)
        .filter(RefreshSession.token_hash == fingerprint(raw_token))
        .first()
    )
    if session_record is None:
        raise NotFoundError('Refresh session not found.')
    return session_record


def revoke(db: Session, raw_token: str, now: datetime | None = None) -> bool:
    """Mark the matching session revoked. Unknown or already revoked tokens are a no-op."""
    try:
        begin_write(db)
        result = db.execute(
            update(RefreshSession)
            .where(
                RefreshSession.token_hash == fingerprint(raw_token),
                RefreshSession.revoked_at.is_(None),
            )
            .values(revoked_at=now or utcnow())
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to revoke refresh session')
        raise InternalError() from exc

    revoked = result.rowcount > 0
    if revoked:
        logger.info('Refresh session revoked')
    return revoked


def refresh_access_token(db: Session, issuer: TokenIssuer, raw_token: str) -> str:
    """Exchange a refresh token for a new access token.

    Checks run in order (signature, fingerprint, revocation, expiry) and stop
    at the first failure. An expired JWT is only reported as expired once its
    session is known and unrevoked, so a revoked token is always reported as
    revoked.
    """
    check = issuer.verify(raw_token, TokenKind.REFRESH)
    if check.failure is TokenFailure.INVALID:
        logger.info('Refresh rejected: invalid token')
        raise InvalidRefreshToken()

    try:
        session_record = lookup(db, raw_token)
    except NotFoundError as exc:
        logger.info('Refresh rejected: unknown session')
        raise InvalidRefreshToken() from exc

    if session_record.revoked_at is not None:
        logger.info('Refresh rejected: session %s revoked', session_record.id)
        raise InvalidRefreshToken('Refresh token revoked.')

    if check.failure is TokenFailure.EXPIRED or session_record.expires_at <= issuer.clock():
        logger.info('Refresh rejected: session %s expired', session_record.id)
        raise RefreshTokenExpired()

    claims = check.claims
    return issuer.issue_access_token(claims.subject, claims.role)
