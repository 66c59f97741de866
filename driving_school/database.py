import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from threading import Lock
from typing import Iterator

from fastapi import Request
from sqlalchemy import DateTime, TypeDecorator, create_engine, event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker


logger = logging.getLogger(__name__)

Base = declarative_base()

# Connection execution option marking a transaction that will write.
SQLITE_WRITE_OPTION = "driving_school_write"


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetime stored as UTC on every backend.

    SQLite keeps no offset, so values are normalized to UTC on the way in and
    re-tagged as UTC on the way out.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            raise ValueError("Naive datetimes cannot be stored; attach a timezone first.")
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


LESSON_EXCLUSION_STATEMENTS = [
    'CREATE EXTENSION IF NOT EXISTS btree_gist',
    (
        "ALTER TABLE lessons ADD CONSTRAINT lessons_no_overlap_instructor "
        "EXCLUDE USING gist (instructor_id WITH =, tstzrange(starts_at, ends_at, '[)') WITH &&) "
        "WHERE (status <> 'cancelled')"
    ),
    (
        "ALTER TABLE lessons ADD CONSTRAINT lessons_no_overlap_vehicle "
        "EXCLUDE USING gist (vehicle_id WITH =, tstzrange(starts_at, ends_at, '[)') WITH &&) "
        "WHERE (vehicle_id IS NOT NULL AND status <> 'cancelled')"
    ),
]


class Database:
    """Owns the engine and session factory for one application instance."""

    def __init__(self, url: str, echo: bool = False) -> None:
        self.url = url
        connect_args = {}
        if url.startswith("sqlite"):
            connect_args = {"check_same_thread": False, "timeout": 30}
        self.engine = create_engine(url, echo=echo, connect_args=connect_args, pool_pre_ping=True)
        if self.engine.dialect.name == "sqlite":
            _serialize_sqlite_writers(self.engine)
        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=self.engine,
        )
        self._schema_lock = Lock()
        self._lesson_schema_checked = False

    @contextmanager
    def session(self) -> Iterator[Session]:
        db = self.SessionLocal()
        try:
            yield db
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def create_all(self) -> None:
        from driving_school.models import lesson, refresh_session, user, vehicle  # noqa: F401

        Base.metadata.create_all(bind=self.engine)
        self.ensure_lesson_schema()

    def drop_all(self) -> None:
        Base.metadata.drop_all(bind=self.engine)
        self._lesson_schema_checked = False

    def ensure_lesson_schema(self) -> None:
        if self._lesson_schema_checked:
            return

        with self._schema_lock:
            if self._lesson_schema_checked:
                return

            with self.engine.begin() as connection:
                connection.execute(
                    text('CREATE INDEX IF NOT EXISTS idx_lessons_instructor_range '
                         'ON lessons(instructor_id, starts_at, ends_at)')
                )
                connection.execute(
                    text('CREATE INDEX IF NOT EXISTS idx_lessons_vehicle_range '
                         'ON lessons(vehicle_id, starts_at, ends_at)')
                )

            if self.engine.dialect.name == "postgresql":
                self._install_exclusion_constraints()

            self._lesson_schema_checked = True

    def _install_exclusion_constraints(self) -> None:
        try:
            with self.engine.begin() as connection:
                existing = {
                    row[0]
                    for row in connection.execute(
                        text("SELECT conname FROM pg_constraint WHERE conrelid = 'lessons'::regclass")
                    )
                }
                for statement in LESSON_EXCLUSION_STATEMENTS:
                    name = next(
                        (candidate for candidate in ('lessons_no_overlap_instructor', 'lessons_no_overlap_vehicle')
                         if candidate in statement),
                        None,
                    )
                    if name is None or name not in existing:
                        connection.execute(text(statement))
        except SQLAlchemyError:
            logger.warning(
                'Could not install lesson exclusion constraints; relying on row locks only.',
                exc_info=True,
            )


def begin_write(db: Session) -> None:
    """Open the session's transaction as a writer.

    Call before the first statement of a transaction that will write. On SQLite
    the transaction then starts with ``BEGIN IMMEDIATE``; elsewhere this only
    binds the connection.
    """
    db.connection(execution_options={SQLITE_WRITE_OPTION: True})


def _serialize_sqlite_writers(engine) -> None:
    # SQLite ignores FOR UPDATE; writers take the write lock when the transaction opens.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(connection):
        if connection.get_execution_options().get(SQLITE_WRITE_OPTION):
            connection.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            connection.exec_driver_sql("BEGIN")


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_db(request: Request):
    db = get_database(request).SessionLocal()
    try:
        yield db
    finally:
        db.close()
