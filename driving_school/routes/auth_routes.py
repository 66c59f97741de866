from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from driving_school.auth import credentials, sessions
from driving_school.auth.dependencies import get_password_hasher, get_settings, get_token_issuer
from driving_school.auth.jwt_handler import TokenIssuer, TokenKind
from driving_school.auth.passwords import PasswordHasher
from driving_school.core.config import Settings
from driving_school.core.errors import InvalidRefreshToken
from driving_school.database import get_db
from driving_school.models.user import Role

router = APIRouter(tags=['auth'])


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    role: Role
    full_name: str = Field(alias='fullName', min_length=2, max_length=200)

    class Config:
        populate_by_name = True


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class UserResponse(BaseModel):
    id: str
    email: str
    role: Role


class RegisterResponse(BaseModel):
    ok: bool = True
    user: UserResponse


class LoginResponse(BaseModel):
    ok: bool = True
    access_token: str = Field(alias='accessToken')
    user: UserResponse

    class Config:
        populate_by_name = True


class RefreshResponse(BaseModel):
    ok: bool = True
    access_token: str = Field(alias='accessToken')

    class Config:
        populate_by_name = True


class OkResponse(BaseModel):
    ok: bool = True


def _user_response(identity: credentials.UserIdentity) -> UserResponse:
    return UserResponse(id=identity.id, email=identity.email, role=identity.role)


@router.post('/register', response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(
    data: RegisterRequest,
    db: Session = Depends(get_db),
    hasher: PasswordHasher = Depends(get_password_hasher),
):
    identity = credentials.register(db, hasher, data.email, data.password, data.role, data.full_name)
    return RegisterResponse(user=_user_response(identity))


@router.post('/login', response_model=LoginResponse)
def login(
    data: LoginRequest,
    response: Response,
    db: Session = Depends(get_db),
    hasher: PasswordHasher = Depends(get_password_hasher),
    issuer: TokenIssuer = Depends(get_token_issuer),
    settings: Settings = Depends(get_settings),
):
    identity = credentials.verify(db, hasher, data.email, data.password)

    access_token = issuer.issue_access_token(identity.id, identity.role)
    refresh_token = issuer.issue_refresh_token(identity.id, identity.role)
    refresh_ttl = issuer.ttls[TokenKind.REFRESH]
    sessions.record(db, identity.id, refresh_token, refresh_ttl, now=issuer.clock())

    response.set_cookie(
        key=settings.refresh_cookie_name,
        value=refresh_token,
        max_age=int(refresh_ttl.total_seconds()),
        path=settings.refresh_cookie_path,
        httponly=True,
        samesite='lax',
        secure=settings.cookie_secure,
    )
    return LoginResponse(access_token=access_token, user=_user_response(identity))


@router.post('/refresh', response_model=RefreshResponse)
def refresh(
    request: Request,
    db: Session = Depends(get_db),
    issuer: TokenIssuer = Depends(get_token_issuer),
    settings: Settings = Depends(get_settings),
):
    raw_token = request.cookies.get(settings.refresh_cookie_name)
    if not raw_token:
        raise InvalidRefreshToken('Missing refresh token.')

    access_token = sessions.refresh_access_token(db, issuer, raw_token)
    return RefreshResponse(access_token=access_token)


@router.post('/logout', response_model=OkResponse)
def logout(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    raw_token = request.cookies.get(settings.refresh_cookie_name)
    if raw_token:
        sessions.revoke(db, raw_token)

    response.delete_cookie(
        key=settings.refresh_cookie_name,
        path=settings.refresh_cookie_path,
        httponly=True,
        samesite='lax',
        secure=settings.cookie_secure,
    )
    return OkResponse()
