import pytest
from fastapi.testclient import TestClient

from driving_school.auth import credentials
from driving_school.auth.jwt_handler import TokenIssuer
from driving_school.auth.passwords import PasswordHasher
from driving_school.core.config import Settings
from driving_school.database import Database
from driving_school.main import create_app
from driving_school.models.user import Instructor, Role, Student
from driving_school.models.vehicle import Vehicle

# Lowest cost bcrypt accepts; keeps the suite fast.
TEST_BCRYPT_ROUNDS = 4


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'driving_school_test.db'}",
        jwt_access_secret='test-access-secret-0123456789abcdef',
        jwt_refresh_secret='test-refresh-secret-0123456789abcdef',
        bcrypt_rounds=TEST_BCRYPT_ROUNDS,
    )


@pytest.fixture
def database(settings: Settings):
    db = Database(settings.database_url)
    db.create_all()
    try:
        yield db
    finally:
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=TEST_BCRYPT_ROUNDS)


@pytest.fixture
def issuer(settings: Settings) -> TokenIssuer:
    return TokenIssuer(settings)


@pytest.fixture
def client(settings: Settings, database: Database):
    app = create_app(settings=settings, database=database)
    with TestClient(app) as test_client:
        yield test_client


def register_user(database: Database, hasher: PasswordHasher, email: str, role: Role, full_name: str):
    """Register through the credential store and return ``(identity, profile_id)``."""
    with database.session() as db:
        identity = credentials.register(db, hasher, email, 'password1', role, full_name)
        profile_id = None
        if role is Role.STUDENT:
            profile_id = db.query(Student.id).filter(Student.user_id == identity.id).scalar()
        elif role is Role.INSTRUCTOR:
            profile_id = db.query(Instructor.id).filter(Instructor.user_id == identity.id).scalar()
    return identity, profile_id


def add_vehicle(database: Database, registration_number: str = 'AB12 CDE', is_active: bool = True) -> str:
    with database.session() as db:
        vehicle = Vehicle(make='Toyota', model='Yaris', registration_number=registration_number, is_active=is_active)
        db.add(vehicle)
        db.commit()
        return vehicle.id
