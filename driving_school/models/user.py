"""User and profile model definitions."""

import enum
import uuid

from sqlalchemy import Column, ForeignKey, String
from sqlalchemy.orm import relationship

from driving_school.database import Base, UTCDateTime, utcnow


def new_id() -> str:
    return str(uuid.uuid4())


class Role(str, enum.Enum):
    ADMIN = "admin"
    INSTRUCTOR = "instructor"
    STUDENT = "student"


class User(Base):
    """Represents an account that can sign in."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(320), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False)  # admin/instructor/student
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    student = relationship("Student", back_populates="user", uselist=False)
    instructor = relationship("Instructor", back_populates="user", uselist=False)


class Student(Base):
    """Student profile owned by a user with the student role."""
    __tablename__ = "students"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), unique=True, nullable=False)
    full_name = Column(String(200), nullable=False)

    user = relationship("User", back_populates="student")


class Instructor(Base):
    """Instructor profile owned by a user with the instructor role."""
    __tablename__ = "instructors"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), unique=True, nullable=False)
    full_name = Column(String(200), nullable=False)

    user = relationship("User", back_populates="instructor")
