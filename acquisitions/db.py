"""Async engine, session factory and connection resilience helpers."""

import asyncio

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from .config import settings
from .logger import logger

TRANSIENT_ERROR_MARKERS = (
    "connection",
    "timeout",
    "database is locked",
    "server closed the connection",
)


def _engine_options(db_url: str) -> dict:
    """Pool sizing and asyncpg timeouts. SQLite gets SQLAlchemy's defaults."""
    if db_url.startswith("sqlite"):
        return {}
    return {
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_timeout": settings.DB_POOL_TIMEOUT,
        "pool_recycle": settings.DB_POOL_RECYCLE,
        "pool_pre_ping": True,
        "connect_args": {
            "timeout": settings.DB_CONNECT_TIMEOUT,
            "command_timeout": settings.DB_QUERY_TIMEOUT,
        },
    }


engine = create_async_engine(settings.DB_URL, echo=False, **_engine_options(settings.DB_URL))
logger.info(f"Database engine ready: dialect={engine.dialect.name}")

async_session = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

Base = declarative_base()


def _is_transient(error: Exception) -> bool:
    message = str(error).lower()
    return any(marker in message for marker in TRANSIENT_ERROR_MARKERS)


async def retry_on_db_error(func, max_retries: int = 3, base_delay: float = 0.5):
    """Await ``func()``, retrying connection-level failures with exponential backoff.

    Errors that do not look transient (constraint violations, bad SQL) are
    raised on the first attempt. The last error is re-raised once
    ``max_retries`` attempts have failed.
    """
    for attempt in range(1, max_retries + 1):
        try:
            return await func()
        except (OperationalError, DBAPIError) as e:
            if attempt == max_retries or not _is_transient(e):
                logger.error(f"Database operation failed (attempt {attempt}/{max_retries}): {e}")
                raise
            delay = base_delay * (2 ** (attempt - 1))
            logger.warning(f"Transient database error (attempt {attempt}/{max_retries}), retrying in {delay}s: {e}")
            await asyncio.sleep(delay)


async def check_db_connection() -> bool:
    """True if ``SELECT 1`` succeeds within the configured retries."""
    async def ping():
        async with async_session() as session:
            await session.execute(text("SELECT 1"))

    try:
        await retry_on_db_error(
            ping,
            max_retries=settings.DB_RETRY_MAX_ATTEMPTS,
            base_delay=settings.DB_RETRY_BASE_DELAY / 5,
        )
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False
    return True


async def dispose_engine():
    logger.info("Closing database connections")
    try:
        await engine.dispose()
    except Exception as e:
        logger.error(f"Error disposing database engine: {e}", exc_info=True)
