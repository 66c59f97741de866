import enum
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

import jwt

from driving_school.core.config import Settings
from driving_school.models.user import Role


class TokenKind(str, enum.Enum):
    ACCESS = "access"
    REFRESH = "refresh"


class TokenFailure(str, enum.Enum):
    INVALID = "invalid"
    EXPIRED = "expired"


@dataclass(frozen=True)
class TokenClaims:
    subject: str
    role: Role
    kind: TokenKind
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class TokenCheck:
    claims: TokenClaims | None = None
    failure: TokenFailure | None = None

    @property
    def ok(self) -> bool:
        return self.claims is not None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenIssuer:
    """Signs and checks access and refresh tokens.

    Each kind has its own secret, so a leaked access secret cannot mint refresh
    tokens. Expiry is checked against the injected clock rather than PyJWT's
    wall clock.
    """

    def __init__(self, settings: Settings, clock: Callable[[], datetime] = _utcnow) -> None:
        self.algorithm = settings.jwt_algorithm
        self.clock = clock
        self._secrets = {
            TokenKind.ACCESS: settings.jwt_access_secret,
            TokenKind.REFRESH: settings.jwt_refresh_secret,
        }
        self.ttls = {
            TokenKind.ACCESS: timedelta(seconds=settings.access_token_ttl_seconds),
            TokenKind.REFRESH: timedelta(seconds=settings.refresh_token_ttl_seconds),
        }

    def issue_access_token(self, user_id: str, role: Role | str) -> str:
        return self._issue(TokenKind.ACCESS, user_id, role)

    def issue_refresh_token(self, user_id: str, role: Role | str) -> str:
        return self._issue(TokenKind.REFRESH, user_id, role)

    def _issue(self, kind: TokenKind, user_id: str, role: Role | str) -> str:
        now = self.clock()
        payload = {
            "sub": str(user_id),
            "role": Role(role).value,
            "typ": kind.value,
            "iat": int(now.timestamp()),
            "exp": int((now + self.ttls[kind]).timestamp()),
            # two tokens minted in the same second must still differ
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, self._secrets[kind], algorithm=self.algorithm)

    def verify(self, token: str, expected_kind: TokenKind) -> TokenCheck:
        try:
            payload = jwt.decode(
                token,
                self._secrets[expected_kind],
                algorithms=[self.algorithm],
                options={"verify_exp": False, "verify_iat": False, "require": ["sub", "role", "typ", "iat", "exp"]},
            )
        except jwt.PyJWTError:
            return TokenCheck(failure=TokenFailure.INVALID)

        if payload.get("typ") != expected_kind.value:
            return TokenCheck(failure=TokenFailure.INVALID)

        try:
            role = Role(payload["role"])
            issued_at = datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc)
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
        except (TypeError, ValueError):
            return TokenCheck(failure=TokenFailure.INVALID)

        if expires_at <= self.clock():
            return TokenCheck(failure=TokenFailure.EXPIRED)

        return TokenCheck(
            claims=TokenClaims(
                subject=str(payload["sub"]),
                role=role,
                kind=expected_kind,
                issued_at=issued_at,
                expires_at=expires_at,
            )
        )
