from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from driving_school.auth.dependencies import require_capability
from driving_school.auth.policy import Capability
from driving_school.database import get_db
from driving_school.models.user import Instructor, Student, User
from driving_school.models.vehicle import Vehicle

router = APIRouter(tags=['catalog'], dependencies=[Depends(require_capability(Capability.WRITE_BOOKING))])

CATALOG_LIMIT = 200


class PersonResponse(BaseModel):
    id: str
    full_name: str = Field(alias='fullName')
    email: str

    class Config:
        populate_by_name = True


class VehicleResponse(BaseModel):
    id: str
    make: str
    model: str
    registration_number: str = Field(alias='registrationNumber')
    is_active: bool = Field(alias='isActive')

    class Config:
        populate_by_name = True
        from_attributes = True


@router.get('/students')
def list_students(db: Session = Depends(get_db)):
    rows = (
        db.query(Student.id, Student.full_name, User.email)
        .join(User, User.id == Student.user_id)
        .order_by(Student.full_name.asc())
        .limit(CATALOG_LIMIT)
        .all()
    )
    students = [PersonResponse(id=row.id, full_name=row.full_name, email=row.email) for row in rows]
    return {'ok': True, 'students': [student.model_dump(by_alias=True) for student in students]}


@router.get('/instructors')
def list_instructors(db: Session = Depends(get_db)):
    rows = (
        db.query(Instructor.id, Instructor.full_name, User.email)
        .join(User, User.id == Instructor.user_id)
        .order_by(Instructor.full_name.asc())
        .limit(CATALOG_LIMIT)
        .all()
    )
    instructors = [PersonResponse(id=row.id, full_name=row.full_name, email=row.email) for row in rows]
    return {'ok': True, 'instructors': [instructor.model_dump(by_alias=True) for instructor in instructors]}


@router.get('/vehicles')
def list_vehicles(db: Session = Depends(get_db)):
    vehicles = (
        db.query(Vehicle)
        .filter(Vehicle.is_active.is_(True))
        .order_by(Vehicle.make.asc(), Vehicle.model.asc())
        .limit(CATALOG_LIMIT)
        .all()
    )
    return {
        'ok': True,
        'vehicles': [VehicleResponse.model_validate(vehicle).model_dump(by_alias=True) for vehicle in vehicles],
    }
