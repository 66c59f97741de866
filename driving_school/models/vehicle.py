"""Vehicle model definitions."""

from sqlalchemy import Boolean, Column, String

from driving_school.database import Base
from driving_school.models.user import new_id


class Vehicle(Base):
    """A car that can be attached to a lesson."""
    __tablename__ = "vehicles"

    id = Column(String(36), primary_key=True, default=new_id)
    make = Column(String(100), nullable=False)
    model = Column(String(100), nullable=False)
    registration_number = Column(String(32), unique=True, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    @property
    def label(self) -> str:
        return f"{self.make} {self.model} ({self.registration_number})"
