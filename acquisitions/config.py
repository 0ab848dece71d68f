"""Service configuration, read from the environment and an optional ``.env.{APP_ENV}`` file."""

import os
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SUPPORTED_DB_SCHEMES = ("postgresql://", "postgresql+asyncpg://", "sqlite+aiosqlite://")


def resolve_env_file() -> str | None:
    """Pick the dotenv file for the current ``APP_ENV``.

    ``SKIP_ENV_FILE`` disables file loading entirely (containers, CI). Otherwise
    ``.env.{APP_ENV}`` must exist, defaulting to ``.env.dev``.
    """
    if os.getenv("SKIP_ENV_FILE"):
        return None
    env_file = f".env.{os.getenv('APP_ENV', 'dev')}"
    if not os.path.exists(env_file):
        raise FileNotFoundError(
            f"Environment file '{env_file}' not found. "
            f"Create it, or set SKIP_ENV_FILE=1 and pass settings as environment variables."
        )
    return env_file


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=resolve_env_file(),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "Acquisitions API"
    APP_ENV: Literal["dev", "test", "production"] = "dev"
    CORS_ORIGINS: str = "http://localhost:3000"  # comma-separated

    # Storage
    DB_URL: str
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800
    DB_CONNECT_TIMEOUT: int = 10
    DB_QUERY_TIMEOUT: int = 30
    DB_RETRY_MAX_ATTEMPTS: int = 3
    DB_RETRY_BASE_DELAY: float = 0.5

    # Input limits
    USER_NAME_MIN_LENGTH: int = 2
    USER_NAME_MAX_LENGTH: int = 255
    USER_EMAIL_MAX_LENGTH: int = 255
    PASSWORD_MIN_LENGTH: int = 6
    PASSWORD_MAX_LENGTH: int = 128

    # Session tokens
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRATION_MINUTES: int = 15  # also the cookie max-age
    AUTH_COOKIE_NAME: str = "token"

    # Per-client rate limits (slowapi syntax)
    RATE_LIMIT_AUTH: str = "10/minute"
    RATE_LIMIT_WRITE: str = "60/minute"
    RATE_LIMIT_READ: str = "100/minute"

    GRACEFUL_SHUTDOWN_TIMEOUT: int = 30  # seconds

    LOG_LEVEL: str = "INFO"
    LOG_FILE: str | None = "acquisitions.log"  # empty to log to stdout only
    LOG_FORMAT: Literal["console", "json"] = "console"

    @field_validator("DB_URL")
    @classmethod
    def check_db_url(cls, v: str) -> str:
        if not v.startswith(SUPPORTED_DB_SCHEMES):
            raise ValueError(f"DB_URL must start with one of: {', '.join(SUPPORTED_DB_SCHEMES)}")
        return v

    @field_validator("JWT_SECRET_KEY")
    @classmethod
    def check_jwt_secret(cls, v: str) -> str:
        if len(v) < 32:
            raise ValueError("JWT_SECRET_KEY must be at least 32 characters long")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def check_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown LOG_LEVEL: {v}")
        return level

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


settings = Settings()
