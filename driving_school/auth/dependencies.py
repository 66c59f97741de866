from dataclasses import dataclass
from typing import Iterable

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from driving_school.auth.jwt_handler import TokenFailure, TokenIssuer, TokenKind
from driving_school.auth.passwords import PasswordHasher
from driving_school.auth.policy import Capability, capabilities_for, roles_with
from driving_school.core.config import Settings
from driving_school.core.errors import AuthenticationError, AuthorizationError
from driving_school.models.user import Role

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Identity:
    user_id: str
    role: Role

    @property
    def capabilities(self) -> frozenset[Capability]:
        return capabilities_for(self.role)

    def can(self, capability: Capability) -> bool:
        return capability in self.capabilities


@dataclass(frozen=True)
class AuthResult:
    identity: Identity | None = None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.identity is not None


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str | None = None


def authenticate(issuer: TokenIssuer, access_token: str | None) -> AuthResult:
    if not access_token:
        return AuthResult(reason="Missing access token")

    check = issuer.verify(access_token, TokenKind.ACCESS)
    if not check.ok:
        if check.failure is TokenFailure.EXPIRED:
            return AuthResult(reason="Access token expired")
        return AuthResult(reason="Invalid access token")

    return AuthResult(identity=Identity(user_id=check.claims.subject, role=check.claims.role))


def authorize(identity: Identity, required_roles: Iterable[Role | str]) -> Decision:
    if identity.role in {Role(role) for role in required_roles}:
        return Decision(allowed=True)
    return Decision(allowed=False, reason="Forbidden")


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_issuer(request: Request) -> TokenIssuer:
    return request.app.state.token_issuer


def get_password_hasher(request: Request) -> PasswordHasher:
    return request.app.state.password_hasher


def get_current_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> Identity:
    token = None
    if credentials is not None and credentials.scheme.lower() == "bearer":
        token = credentials.credentials

    result = authenticate(issuer, token)
    if not result.ok:
        raise AuthenticationError(result.reason)
    return result.identity


def require_capability(capability: Capability):
    """Dependency factory admitting only roles that hold ``capability``."""
    allowed_roles = roles_with(capability)

    def dependency(identity: Identity = Depends(get_current_identity)) -> Identity:
        decision = authorize(identity, allowed_roles)
        if not decision.allowed:
            raise AuthorizationError()
        return identity

    return dependency
