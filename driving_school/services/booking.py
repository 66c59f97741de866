"""Lesson booking with per-instructor and per-vehicle double-booking prevention.

A lesson may only be inserted when no non-cancelled lesson for the same
instructor, or for the same vehicle, overlaps its half-open ``[start, end)``
interval. The check and the insert share one transaction and run after the
instructor row (then the vehicle row) has been locked with ``FOR UPDATE``, so
concurrent bookings for the same instructor or vehicle are serialized. SQLite
ignores ``FOR UPDATE``; there the booking transaction opens with
``BEGIN IMMEDIATE`` instead (see ``driving_school.database.begin_write``).
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from driving_school.auth.dependencies import Identity
from driving_school.auth.policy import Capability
from driving_school.core.errors import (
    AuthorizationError,
    InstructorConflict,
    InternalError,
    InvalidRange,
    NotFoundError,
    ValidationError,
    VehicleConflict,
)
from driving_school.database import begin_write
from driving_school.models.lesson import Lesson, LessonStatus
from driving_school.models.user import Instructor, Role, Student
from driving_school.models.vehicle import Vehicle

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 50
MAX_LIST_LIMIT = 100
MAX_NOTES_LENGTH = 500

CONSTRAINT_CONFLICTS = {
    'lessons_no_overlap_instructor': InstructorConflict,
    'lessons_no_overlap_vehicle': VehicleConflict,
}


@dataclass(frozen=True)
class LessonDraft:
    student_id: str
    instructor_id: str
    starts_at: datetime
    ends_at: datetime
    vehicle_id: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class LessonView:
    id: str
    student_id: str
    instructor_id: str
    vehicle_id: str | None
    starts_at: datetime
    ends_at: datetime
    status: str
    notes: str | None
    student_name: str
    instructor_name: str
    vehicle_label: str | None


def clamp_limit(limit: int | None) -> int:
    if limit is None:
        return DEFAULT_LIST_LIMIT
    return max(1, min(int(limit), MAX_LIST_LIMIT))


def normalize_notes(notes: str | None) -> str | None:
    if notes is None:
        return None

    normalized = notes.strip()
    if not normalized:
        return None

    if len(normalized) > MAX_NOTES_LENGTH:
        raise ValidationError(f'Notes must be {MAX_NOTES_LENGTH} characters or fewer.')

    return normalized


def validate_interval(starts_at: datetime, ends_at: datetime) -> None:
    if starts_at.tzinfo is None or ends_at.tzinfo is None:
        raise ValidationError('startsAt and endsAt must include a UTC offset.')
    if ends_at <= starts_at:
        raise InvalidRange()


def _view(lesson: Lesson, student_name: str, instructor_name: str, vehicle: Vehicle | None) -> LessonView:
    return LessonView(
        id=lesson.id,
        student_id=lesson.student_id,
        instructor_id=lesson.instructor_id,
        vehicle_id=lesson.vehicle_id,
        starts_at=lesson.starts_at,
        ends_at=lesson.ends_at,
        status=lesson.status,
        notes=lesson.notes,
        student_name=student_name,
        instructor_name=instructor_name,
        vehicle_label=vehicle.label if vehicle is not None else None,
    )


def list_visible(db: Session, identity: Identity, limit: int | None = None) -> list[LessonView]:
    """Lessons the caller may see, most recent start first."""
    query = (
        db.query(Lesson, Student.full_name, Instructor.full_name, Vehicle)
        .join(Student, Student.id == Lesson.student_id)
        .join(Instructor, Instructor.id == Lesson.instructor_id)
        .outerjoin(Vehicle, Vehicle.id == Lesson.vehicle_id)
    )

    if identity.can(Capability.READ_ALL):
        pass
    elif identity.can(Capability.READ_OWN) and identity.role is Role.INSTRUCTOR:
        query = query.filter(Instructor.user_id == identity.user_id)
    elif identity.can(Capability.READ_OWN) and identity.role is Role.STUDENT:
        query = query.filter(Student.user_id == identity.user_id)
    else:
        raise AuthorizationError()

    rows = query.order_by(Lesson.starts_at.desc()).limit(clamp_limit(limit)).all()
    return [_view(lesson, student_name, instructor_name, vehicle) for lesson, student_name, instructor_name, vehicle in rows]


def _first_overlap(db: Session, criterion, starts_at: datetime, ends_at: datetime) -> Lesson | None:
    return db.query(Lesson).filter(
        criterion,
        Lesson.status != LessonStatus.CANCELLED.value,
        Lesson.starts_at < ends_at,
        Lesson.ends_at > starts_at,
    ).first()


def _conflict_from_integrity_error(exc: IntegrityError):
    message = str(exc.orig)
    for constraint_name, conflict in CONSTRAINT_CONFLICTS.items():
        if constraint_name in message:
            return conflict()
    return None


def create_lesson(db: Session, identity: Identity, draft: LessonDraft) -> LessonView:
    if not identity.can(Capability.WRITE_BOOKING):
        raise AuthorizationError()

    validate_interval(draft.starts_at, draft.ends_at)
    starts_at = draft.starts_at.astimezone(timezone.utc)
    ends_at = draft.ends_at.astimezone(timezone.utc)
    notes = normalize_notes(draft.notes)

    try:
        begin_write(db)
        instructor = (
            db.query(Instructor)
            .filter(Instructor.id == draft.instructor_id)
            .with_for_update()
            .one_or_none()
        )
        if instructor is None:
            db.rollback()
            raise NotFoundError('Instructor not found.')

        vehicle = None
        if draft.vehicle_id is not None:
            vehicle = (
                db.query(Vehicle)
                .filter(Vehicle.id == draft.vehicle_id)
                .with_for_update()
                .one_or_none()
            )
            if vehicle is None:
                db.rollback()
                raise NotFoundError('Vehicle not found.')
            if not vehicle.is_active:
                db.rollback()
                raise ValidationError('Vehicle is not active.', code='inactive_vehicle')

        student = db.get(Student, draft.student_id)
        if student is None:
            db.rollback()
            raise NotFoundError('Student not found.')

        clash = _first_overlap(db, Lesson.instructor_id == instructor.id, starts_at, ends_at)
        if clash is not None:
            logger.info('Instructor %s conflict with lesson %s', instructor.id, clash.id)
            db.rollback()
            raise InstructorConflict()

        if vehicle is not None:
            clash = _first_overlap(db, Lesson.vehicle_id == vehicle.id, starts_at, ends_at)
            if clash is not None:
                logger.info('Vehicle %s conflict with lesson %s', vehicle.id, clash.id)
                db.rollback()
                raise VehicleConflict()

        lesson = Lesson(
            student_id=student.id,
            instructor_id=instructor.id,
            vehicle_id=vehicle.id if vehicle is not None else None,
            starts_at=starts_at,
            ends_at=ends_at,
            status=LessonStatus.SCHEDULED.value,
            notes=notes,
        )
        db.add(lesson)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        conflict = _conflict_from_integrity_error(exc)
        if conflict is not None:
            logger.info('Booking rejected by exclusion constraint: %s', conflict.code)
            raise conflict from exc
        logger.exception('Lesson insert violated an integrity constraint')
        raise InternalError() from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Lesson creation failed')
        raise InternalError() from exc

    logger.info('Lesson %s booked by user %s', lesson.id, identity.user_id)
    return _view(lesson, student.full_name, instructor.full_name, vehicle)
