# API route definitions (HTTP layer)
# Each handler validates, authorizes, then calls the user store

import os
import time
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, Path, Request, Response
from slowapi import Limiter
from slowapi.util import get_remote_address

from . import services
from .auth import TokenService
from .config import settings
from .cookies import clear_token_cookie, get_token, set_token_cookie
from .dependencies import get_current_claims, get_token_service
from .logger import logger
from .policy import Action, authorize
from .result import Err, Result
from .schemas import (
    AuthResponse,
    ErrorEnvelope,
    MessageResponse,
    SessionClaims,
    SignInRequest,
    SignUpRequest,
    UserListResponse,
    UserOut,
    UserResponse,
    UserUpdate,
)
from .utils import utc_now

limiter = Limiter(key_func=get_remote_address)

_started_at = time.monotonic()

# Upper bound is the users.id column range (32-bit INTEGER)
MAX_USER_ID = 2**31 - 1

UserId = Annotated[int, Path(gt=0, le=MAX_USER_ID, description="Positive integer user id")]

ERROR_RESPONSES = {
    status: {"model": ErrorEnvelope}
    for status in (400, 401, 403, 404, 409)
}


# Helper to conditionally apply rate limiting (skip in tests)
def conditional_limit(limit_string):
    """Apply rate limit only if not in test mode."""
    if os.getenv('TEST_MODE'):
        def decorator(func):
            return func
        return decorator
    return limiter.limit(limit_string)


def unwrap(result: Result):
    """Return the success value or raise the matching HTTP error."""
    if isinstance(result, Err):
        logger.info(f"Request rejected: {result.kind.value} - {result.message}")
        headers = {"WWW-Authenticate": "Bearer"} if result.kind.status_code == 401 else None
        raise HTTPException(status_code=result.kind.status_code, detail=result.to_detail(), headers=headers)
    return result.value


def issue_session(response: Response, user: UserOut, token_service: TokenService) -> None:
    """Sign claims for ``user`` and set them as the auth cookie."""
    token = token_service.sign(SessionClaims.for_user(user))
    set_token_cookie(response, token, max_age=token_service.config.max_age_seconds)


router = APIRouter()


@router.get("/")
def root():
    return {"app": settings.APP_NAME, "env": settings.APP_ENV}


@router.get("/api")
def api_root():
    return {"message": "Acquisition API is running"}


@router.get("/health")
async def health_check():
    """Health check endpoint for load balancers and monitoring.

    Returns:
        - 200 OK if the service and database are healthy
        - 503 Service Unavailable if the database is unreachable
    """
    from . import db

    health_status = {
        "status": "OK",
        "service": settings.APP_NAME,
        "environment": settings.APP_ENV,
        "timestamp": utc_now().isoformat(),
        "uptime": round(time.monotonic() - _started_at, 3),
    }

    if await db.check_db_connection():
        health_status["database"] = "connected"
        return health_status

    health_status["status"] = "unhealthy"
    health_status["database"] = "disconnected"
    raise HTTPException(status_code=503, detail=health_status)


@router.get("/favicon.ico", include_in_schema=False)
async def favicon():
    return Response(status_code=204)


# ============================================================================
# Authentication Endpoints
# ============================================================================

@router.post("/auth/sign-up", response_model=AuthResponse, status_code=201, responses=ERROR_RESPONSES)
@conditional_limit(settings.RATE_LIMIT_AUTH)
async def sign_up(
    payload: SignUpRequest,
    request: Request,
    response: Response,
    token_service: TokenService = Depends(get_token_service),
):
    """Register a new user and start a session.

    Raises:
        400: Validation failed
        409: Email already in use
    """
    user = unwrap(await services.create_user(payload.name, payload.email, payload.password, payload.role))
    issue_session(response, user, token_service)

    logger.info(f"User registered successfully: {user.email}")
    return AuthResponse(message="User registered", user=user)


@router.post("/auth/sign-in", response_model=AuthResponse, responses=ERROR_RESPONSES)
@conditional_limit(settings.RATE_LIMIT_AUTH)
async def sign_in(
    payload: SignInRequest,
    request: Request,
    response: Response,
    token_service: TokenService = Depends(get_token_service),
):
    """Check credentials and start a session.

    Raises:
        400: Validation failed
        401: Invalid credentials
    """
    user = unwrap(await services.authenticate_user(payload.email, payload.password))
    issue_session(response, user, token_service)

    logger.info(f"User signed in successfully: {user.email}")
    return AuthResponse(message="User signed in", user=user)


@router.post("/auth/sign-out", response_model=MessageResponse)
async def sign_out(
    request: Request,
    response: Response,
    token_service: TokenService = Depends(get_token_service),
):
    """Clear the auth cookie. Always succeeds, even without a valid token.

    The token itself stays valid until it expires; there is no revocation.
    """
    user_email = "unknown"
    token = get_token(request)
    if token:
        result = token_service.verify(token)
        if isinstance(result, Err):
            logger.warning(f"Invalid token during sign-out: {result.message}")
        else:
            user_email = result.value.email

    clear_token_cookie(response)

    logger.info(f"User signed out successfully: {user_email}")
    return MessageResponse(message="User signed out successfully")


# ============================================================================
# User Management Endpoints
# ============================================================================

@router.get("/users", response_model=UserListResponse, responses=ERROR_RESPONSES)
@conditional_limit(settings.RATE_LIMIT_READ)
async def list_users(
    request: Request,
    caller: SessionClaims | None = Depends(get_current_claims),
):
    """List every user. Admin only."""
    caller = unwrap(authorize(caller, Action.ADMIN_ONLY))

    logger.info(f"Fetching all users by {caller.email}")
    users = unwrap(await services.list_users())
    return UserListResponse(message="Users fetched successfully", users=users, count=len(users))


@router.get("/users/{user_id}", response_model=UserResponse, responses=ERROR_RESPONSES)
@conditional_limit(settings.RATE_LIMIT_READ)
async def get_user(
    request: Request,
    user_id: UserId,
    caller: SessionClaims | None = Depends(get_current_claims),
):
    """Fetch one user. Callers may read themselves; admins may read anyone."""
    unwrap(authorize(caller, Action.READ_SELF_OR_ADMIN, target_id=user_id))

    user = unwrap(await services.get_user(user_id))
    return UserResponse(message="User fetched successfully", user=user)


@router.put("/users/{user_id}", response_model=UserResponse, responses=ERROR_RESPONSES)
@conditional_limit(settings.RATE_LIMIT_WRITE)
async def update_user(
    payload: UserUpdate,
    request: Request,
    user_id: UserId,
    caller: SessionClaims | None = Depends(get_current_claims),
):
    """Update a user. Self-or-admin; only admins may change ``role``."""
    changes = payload.changes()
    caller = unwrap(authorize(caller, Action.WRITE_SELF_OR_ADMIN, target_id=user_id, changes=changes))

    logger.info(f"Updating user {user_id} by {caller.email}")
    user = unwrap(await services.update_user(user_id, changes))
    return UserResponse(message="User updated successfully", user=user)


@router.delete("/users/{user_id}", response_model=UserResponse, responses=ERROR_RESPONSES)
@conditional_limit(settings.RATE_LIMIT_WRITE)
async def delete_user(
    request: Request,
    user_id: UserId,
    caller: SessionClaims | None = Depends(get_current_claims),
):
    """Delete a user and return it as it was. Admin only."""
    caller = unwrap(authorize(caller, Action.ADMIN_ONLY, target_id=user_id))

    logger.info(f"Deleting user {user_id} by {caller.email}")
    user = unwrap(await services.delete_user(user_id))
    return UserResponse(message="User deleted successfully", user=user)
