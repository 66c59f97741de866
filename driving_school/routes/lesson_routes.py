import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from pydantic import AwareDatetime, BaseModel, Field
from sqlalchemy.orm import Session

from driving_school.auth.dependencies import Identity, get_current_identity, require_capability
from driving_school.auth.policy import Capability
from driving_school.database import get_db
from driving_school.services import booking

router = APIRouter(tags=['lessons'])


class CreateLessonRequest(BaseModel):
    student_id: uuid.UUID = Field(alias='studentId')
    instructor_id: uuid.UUID = Field(alias='instructorId')
    vehicle_id: uuid.UUID | None = Field(default=None, alias='vehicleId')
    starts_at: AwareDatetime = Field(alias='startsAt')
    ends_at: AwareDatetime = Field(alias='endsAt')
    notes: str | None = Field(default=None, max_length=booking.MAX_NOTES_LENGTH)

    class Config:
        populate_by_name = True


class LessonResponse(BaseModel):
    id: str
    student_id: str = Field(alias='studentId')
    instructor_id: str = Field(alias='instructorId')
    vehicle_id: str | None = Field(default=None, alias='vehicleId')
    starts_at: datetime = Field(alias='startsAt')
    ends_at: datetime = Field(alias='endsAt')
    status: str
    notes: str | None = None
    student_name: str = Field(alias='studentName')
    instructor_name: str = Field(alias='instructorName')
    vehicle_label: str | None = Field(default=None, alias='vehicleLabel')

    class Config:
        populate_by_name = True
        from_attributes = True


class LessonListResponse(BaseModel):
    ok: bool = True
    lessons: list[LessonResponse]


class LessonCreatedResponse(BaseModel):
    ok: bool = True
    lesson: LessonResponse


@router.get('', response_model=LessonListResponse)
def list_lessons(
    limit: int | None = Query(default=None),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    views = booking.list_visible(db, identity, limit)
    return LessonListResponse(lessons=[LessonResponse.model_validate(view) for view in views])


@router.post('', response_model=LessonCreatedResponse, status_code=status.HTTP_201_CREATED)
def create_lesson(
    data: CreateLessonRequest,
    identity: Identity = Depends(require_capability(Capability.WRITE_BOOKING)),
    db: Session = Depends(get_db),
):
    draft = booking.LessonDraft(
        student_id=str(data.student_id),
        instructor_id=str(data.instructor_id),
        vehicle_id=str(data.vehicle_id) if data.vehicle_id is not None else None,
        starts_at=data.starts_at,
        ends_at=data.ends_at,
        notes=data.notes,
    )
    view = booking.create_lesson(db, identity, draft)
    return LessonCreatedResponse(lesson=LessonResponse.model_validate(view))
