import logging
from datetime import datetime
from typing import Callable

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from driving_school.auth.dependencies import Identity, get_current_identity
from driving_school.auth.jwt_handler import TokenIssuer
from driving_school.auth.passwords import PasswordHasher
from driving_school.core.config import Settings, validate_runtime_config
from driving_school.core.errors import AppError, InternalError
from driving_school.database import Database, get_db
from driving_school.routes import auth_routes, catalog_routes, lesson_routes

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level: str = 'INFO') -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def _error_response(error: AppError) -> JSONResponse:
    return JSONResponse(status_code=error.status_code, content={'ok': False, 'error': error.to_dict()})


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError):
        return _error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        fields = [
            {'loc': [str(part) for part in error.get('loc', ())], 'message': error.get('msg', '')}
            for error in exc.errors()
        ]
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                'ok': False,
                'error': {'code': 'validation_error', 'message': 'Invalid input.', 'fields': fields},
            },
        )

    @app.exception_handler(SQLAlchemyError)
    async def handle_database_error(request: Request, exc: SQLAlchemyError):
        logger.exception('Unhandled database error on %s %s', request.method, request.url.path)
        return _error_response(InternalError())


def create_app(
    settings: Settings | None = None,
    database: Database | None = None,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)
    validate_runtime_config(settings)

    app = FastAPI(title='Driving School API')
    app.state.settings = settings
    app.state.database = database or Database(settings.database_url)
    app.state.password_hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    if clock is None:
        app.state.token_issuer = TokenIssuer(settings)
    else:
        app.state.token_issuer = TokenIssuer(settings, clock=clock)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=['*'],
        allow_headers=['*'],
    )

    register_exception_handlers(app)

    @app.on_event('startup')
    def initialize_database() -> None:
        try:
            app.state.database.create_all()
        except SQLAlchemyError:
            logger.exception('Database initialization failed. Check DATABASE_URL and Postgres credentials.')

    @app.get('/health')
    def health():
        return {'ok': True, 'service': 'driving-school-backend'}

    @app.get('/health/db')
    def health_db(db: Session = Depends(get_db)):
        try:
            db.execute(text('SELECT 1'))
        except SQLAlchemyError:
            logger.exception('Database health check failed')
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={'ok': False, 'error': {'code': 'database_unavailable', 'message': 'Database unavailable.'}},
            )
        return {'ok': True}

    @app.get('/me')
    def me(identity: Identity = Depends(get_current_identity)):
        return {'ok': True, 'user': {'id': identity.user_id, 'role': identity.role.value}}

    app.include_router(auth_routes.router, prefix='/auth')
    app.include_router(lesson_routes.router, prefix='/lessons')
    app.include_router(catalog_routes.router, prefix='/catalog')

    return app
