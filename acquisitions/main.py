"""FastAPI application entry point with lifecycle management."""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException
import asyncio

from .auth import TokenConfig, TokenService
from .config import settings
from .routes import router, limiter
from .db import dispose_engine
from .logger import logger
from .middleware import (
    graceful_shutdown_middleware,
    add_request_id_middleware,
    request_logging_middleware,
    security_headers_middleware,
    set_shutdown_manager,
)
from .monitoring import setup_monitoring
from .result import Err, ErrorKind

# ==================== Graceful Shutdown ====================


class GracefulShutdownManager:
    """Tracks in-flight requests so shutdown can wait for them to finish."""

    def __init__(self):
        self.is_shutting_down = False
        self.active_requests = 0
        self.shutdown_timeout = settings.GRACEFUL_SHUTDOWN_TIMEOUT

    def request_started(self):
        """Track a new incoming request."""
        if not self.is_shutting_down:
            self.active_requests += 1

    def request_finished(self):
        """Mark a request as completed."""
        self.active_requests -= 1

    async def initiate_shutdown(self):
        """Stop accepting requests and wait up to ``shutdown_timeout`` for active ones."""
        if self.is_shutting_down:
            return

        logger.info("Graceful shutdown initiated")
        self.is_shutting_down = True

        if self.active_requests <= 0:
            logger.info("No active requests - proceeding with immediate shutdown")
            return

        logger.info(f"Waiting for {self.active_requests} active request(s) to complete...")
        loop = asyncio.get_running_loop()
        start_time = loop.time()
        while self.active_requests > 0:
            if loop.time() - start_time >= self.shutdown_timeout:
                logger.warning(
                    f"Shutdown timeout ({self.shutdown_timeout}s) reached with "
                    f"{self.active_requests} request(s) still active - forcing shutdown"
                )
                return
            await asyncio.sleep(0.1)

        logger.info("All active requests completed successfully")


shutdown_manager = GracefulShutdownManager()
set_shutdown_manager(shutdown_manager)

# ==================== Application Lifecycle ====================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - handles startup and graceful shutdown."""
    logger.info(f"Starting {settings.APP_NAME} in {settings.APP_ENV} mode")
    logger.info("Database schema managed by Alembic migrations")
    logger.info(f"{settings.APP_NAME} started successfully - ready to accept requests")

    yield

    logger.info(f"Shutting down {settings.APP_NAME}...")
    await shutdown_manager.initiate_shutdown()
    await dispose_engine()
    logger.info(f"{settings.APP_NAME} shutdown complete")

# ==================== Error Handlers ====================


def _validation_errors(exc: RequestValidationError) -> list[dict]:
    """Flatten FastAPI validation errors into ``{field, message, type}`` entries."""
    errors = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "path", "query")]
        errors.append({
            "field": ".".join(loc) or None,
            "message": error.get("msg", "Invalid value"),
            "type": error.get("type", "value_error"),
        })
    return errors


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = _validation_errors(exc)
    logger.info(f"Validation failed on {request.method} {request.url.path}: {details}")
    body = Err(ErrorKind.VALIDATION_FAILED, "Validation failed").to_detail()
    body["details"] = details
    return JSONResponse(status_code=400, content={"detail": body})


# Error codes for framework-raised HTTP errors that carry a plain string detail
HTTP_ERROR_CODES = {
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    429: "RATE_LIMITED",
    503: "SERVICE_UNAVAILABLE",
}


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Wrap every HTTP error in the ``{"detail": {"error", "message", "details"}}`` envelope."""
    if isinstance(exc.detail, dict):
        body = exc.detail
    else:
        body = {
            "error": HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR"),
            "message": str(exc.detail),
            "details": None,
        }
    return JSONResponse(status_code=exc.status_code, content={"detail": body}, headers=exc.headers)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    response = JSONResponse(
        status_code=429,
        content={"detail": {
            "error": HTTP_ERROR_CODES[429],
            "message": f"Rate limit exceeded: {exc.detail}",
            "details": None,
        }},
    )
    # Same header injection slowapi performs in its default handler
    return request.app.state.limiter._inject_headers(
        response, getattr(request.state, "view_rate_limit", None)
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
    body = Err(ErrorKind.INTERNAL, "Internal server error").to_detail()
    return JSONResponse(status_code=500, content={"detail": body})

# ==================== Application Setup ====================


def create_app() -> FastAPI:
    """Build the application. Token configuration is validated here, so a
    missing or weak signing key stops the process before it serves traffic."""
    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
    app.state.token_service = TokenService(TokenConfig.from_settings(settings))

    # Middleware registration (last registered = outermost layer)
    app.middleware("http")(security_headers_middleware)
    app.middleware("http")(request_logging_middleware)
    app.middleware("http")(add_request_id_middleware)
    app.middleware("http")(graceful_shutdown_middleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(router)
    setup_monitoring(app)
    return app


app = create_app()
