"""HTTP middleware: shutdown gate, request IDs, access logging and security headers."""

import time
import uuid

from fastapi import Request
from fastapi.responses import JSONResponse

from .config import settings
from .logger import logger

# Installed by main.py; kept here to avoid importing main from middleware
shutdown_manager = None

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    # Responses can carry user records
    "Cache-Control": "no-store",
    # Swagger UI assets come from jsdelivr
    "Content-Security-Policy": (
        "default-src 'self'; "
        "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
        "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
        "img-src 'self' data: https://cdn.jsdelivr.net"
    ),
}
HSTS_HEADER = "max-age=31536000; includeSubDomains"


def set_shutdown_manager(manager):
    global shutdown_manager
    shutdown_manager = manager


def _service_unavailable() -> JSONResponse:
    return JSONResponse(
        status_code=503,
        content={"detail": {
            "error": "SERVICE_UNAVAILABLE",
            "message": "Service is shutting down - please retry with another instance",
            "details": None,
        }},
        headers={"Retry-After": "10"},
    )


async def graceful_shutdown_middleware(request: Request, call_next):
    """Refuse new work once shutdown has begun; count in-flight requests otherwise."""
    if shutdown_manager is None:
        return await call_next(request)

    if shutdown_manager.is_shutting_down:
        logger.warning(f"Refusing {request.method} {request.url.path} during shutdown")
        return _service_unavailable()

    shutdown_manager.request_started()
    try:
        return await call_next(request)
    finally:
        shutdown_manager.request_finished()


async def add_request_id_middleware(request: Request, call_next):
    """Propagate ``X-Request-ID`` from the client, or mint one."""
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    request.state.request_id = request_id

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


async def request_logging_middleware(request: Request, call_next):
    # Method, path and status only: cookies and bodies hold credentials
    request_id = getattr(request.state, "request_id", "-")
    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(
            f"[{request_id}] {request.method} {request.url.path} failed with "
            f"{type(e).__name__} after {time.perf_counter() - started:.3f}s",
            exc_info=True,
        )
        raise

    logger.info(
        f"[{request_id}] {request.method} {request.url.path} -> {response.status_code} "
        f"in {time.perf_counter() - started:.3f}s"
    )
    return response


async def security_headers_middleware(request: Request, call_next):
    response = await call_next(request)
    response.headers.update(SECURITY_HEADERS)
    # Session cookies are Secure in production, so the transport must be too
    if settings.is_production:
        response.headers["Strict-Transport-Security"] = HSTS_HEADER
    return response
