"""Credential store: registration and password verification."""

import logging
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from driving_school.auth.passwords import MAX_PASSWORD_BYTES, MIN_PASSWORD_LENGTH, PasswordHasher
from driving_school.core.errors import (
    DuplicateEmail,
    InternalError,
    InvalidCredentials,
    ValidationError,
    WeakPassword,
)
from driving_school.database import begin_write
from driving_school.models.user import Instructor, Role, Student, User, new_id

logger = logging.getLogger(__name__)

PROFILE_MODELS = {
    Role.STUDENT: Student,
    Role.INSTRUCTOR: Instructor,
}


@dataclass(frozen=True)
class UserIdentity:
    id: str
    email: str
    role: Role

    @classmethod
    def from_user(cls, user: User) -> "UserIdentity":
        return cls(id=user.id, email=user.email, role=Role(user.role))


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _too_long(password: str) -> bool:
    # bcrypt ignores everything past the first 72 bytes.
    return len(password.encode('utf-8')) > MAX_PASSWORD_BYTES


def register(
    db: Session,
    hasher: PasswordHasher,
    email: str,
    password: str,
    role: Role | str,
    full_name: str,
) -> UserIdentity:
    """Create a user and, for students and instructors, its profile in one transaction.

    Duplicate emails are detected from the unique constraint on insert, never
    from a prior lookup.
    """
    if len(password) < MIN_PASSWORD_LENGTH:
        raise WeakPassword()
    if _too_long(password):
        raise ValidationError(
            f'Password must be at most {MAX_PASSWORD_BYTES} bytes.', code='password_too_long'
        )

    try:
        role = Role(role)
    except ValueError as exc:
        raise ValidationError('Role must be one of admin, instructor, student.') from exc

    normalized_email = normalize_email(email)
    display_name = full_name.strip()
    if role in PROFILE_MODELS and not display_name:
        raise ValidationError('Full name is required.')

    user = User(
        id=new_id(),
        email=normalized_email,
        hashed_password=hasher.hash(password),
        role=role.value,
    )

    try:
        begin_write(db)
        db.add(user)
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        logger.info('Registration rejected: email already in use')
        raise DuplicateEmail() from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Registration failed while inserting user')
        raise InternalError() from exc

    try:
        profile_model = PROFILE_MODELS.get(role)
        if profile_model is not None:
            db.add(profile_model(user_id=user.id, full_name=display_name))
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Registration failed while inserting profile')
        raise InternalError() from exc

    logger.info('Registered user %s with role %s', user.id, role.value)
    return UserIdentity.from_user(user)


def verify(db: Session, hasher: PasswordHasher, email: str, password: str) -> UserIdentity:
    """Return the identity for matching credentials or raise ``InvalidCredentials``.

    Unknown emails and over-long passwords still pay for one bcrypt check so
    every failure takes about the same time. The read transaction is closed
    before hashing so no database lock is held while bcrypt runs.
    """
    user = db.query(User).filter(User.email == normalize_email(email)).first()
    identity = UserIdentity.from_user(user) if user is not None else None
    hashed_password = user.hashed_password if user is not None else None
    db.rollback()

    if identity is None or _too_long(password):
        hasher.burn_verify(password)
        logger.info('Login failed: unknown account or unusable password')
        raise InvalidCredentials()

    if not hasher.verify(password, hashed_password):
        logger.info('Login failed for user %s: password mismatch', identity.id)
        raise InvalidCredentials()

    return identity
