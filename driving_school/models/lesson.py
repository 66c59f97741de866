"""Lesson model definitions."""

import enum

from sqlalchemy import CheckConstraint, Column, ForeignKey, String

from driving_school.database import Base, UTCDateTime, utcnow
from driving_school.models.user import new_id


class LessonStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Lesson(Base):
    """A booked lesson pairing a student, an instructor and optionally a vehicle."""
    __tablename__ = "lessons"
    __table_args__ = (
        CheckConstraint("ends_at > starts_at", name="lessons_valid_range"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    student_id = Column(String(36), ForeignKey("students.id"), index=True, nullable=False)
    instructor_id = Column(String(36), ForeignKey("instructors.id"), nullable=False)
    vehicle_id = Column(String(36), ForeignKey("vehicles.id"), nullable=True)
    starts_at = Column(UTCDateTime, nullable=False)
    ends_at = Column(UTCDateTime, nullable=False)
    status = Column(String(20), nullable=False, default=LessonStatus.SCHEDULED.value)
    notes = Column(String(500), nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
