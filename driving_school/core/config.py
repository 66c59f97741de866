import os
from dataclasses import dataclass, field

from dotenv import load_dotenv


load_dotenv()

DEFAULT_ACCESS_SECRET = "change-me-access"
DEFAULT_REFRESH_SECRET = "change-me-refresh"


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: tuple[str, ...]) -> tuple[str, ...]:
    if not value:
        return default
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    app_env: str = "development"
    database_url: str = "sqlite:///./driving_school.db"

    jwt_access_secret: str = DEFAULT_ACCESS_SECRET
    jwt_refresh_secret: str = DEFAULT_REFRESH_SECRET
    jwt_algorithm: str = "HS256"
    access_token_ttl_seconds: int = 900
    refresh_token_ttl_seconds: int = 7 * 24 * 60 * 60

    bcrypt_rounds: int = 12

    refresh_cookie_name: str = "refresh_token"
    refresh_cookie_path: str = "/auth"
    cookie_secure: bool = False

    cors_origins: tuple[str, ...] = field(default=("http://localhost:5173",))
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            app_env=os.getenv("APP_ENV", "development"),
            database_url=os.getenv("DATABASE_URL", "sqlite:///./driving_school.db"),
            jwt_access_secret=os.getenv("JWT_ACCESS_SECRET", DEFAULT_ACCESS_SECRET),
            jwt_refresh_secret=os.getenv("JWT_REFRESH_SECRET", DEFAULT_REFRESH_SECRET),
            jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
            access_token_ttl_seconds=int(os.getenv("ACCESS_TOKEN_TTL_SECONDS", "900")),
            refresh_token_ttl_seconds=int(os.getenv("REFRESH_TOKEN_TTL_SECONDS", "604800")),
            bcrypt_rounds=int(os.getenv("BCRYPT_ROUNDS", "12")),
            refresh_cookie_name=os.getenv("REFRESH_COOKIE_NAME", "refresh_token"),
            refresh_cookie_path=os.getenv("REFRESH_COOKIE_PATH", "/auth"),
            cookie_secure=_get_bool(os.getenv("COOKIE_SECURE"), default=False),
            cors_origins=_get_list(os.getenv("CORS_ORIGINS"), ("http://localhost:5173",)),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


def validate_runtime_config(settings: Settings) -> None:
    if settings.jwt_access_secret == settings.jwt_refresh_secret:
        raise RuntimeError("JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must differ.")
    if not settings.is_production:
        return
    if settings.jwt_access_secret == DEFAULT_ACCESS_SECRET:
        raise RuntimeError("JWT_ACCESS_SECRET must be set in production.")
    if settings.jwt_refresh_secret == DEFAULT_REFRESH_SECRET:
        raise RuntimeError("JWT_REFRESH_SECRET must be set in production.")
