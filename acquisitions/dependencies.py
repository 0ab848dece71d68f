"""FastAPI dependencies for authentication."""

from fastapi import Depends, Request

from .auth import TokenService
from .cookies import get_token
from .logger import logger
from .result import Err
from .schemas import SessionClaims


def get_token_service(request: Request) -> TokenService:
    """Token service built once at startup and stored on the app."""
    return request.app.state.token_service


async def get_current_claims(
    request: Request,
    token_service: TokenService = Depends(get_token_service),
) -> SessionClaims | None:
    """Verified claims from the auth cookie, or None for anonymous callers.

    Missing and invalid tokens both yield None; the authorization policy turns
    that into a 401 for endpoints that need a caller.
    """
    token = get_token(request)
    if token is None:
        return None

    result = token_service.verify(token)
    if isinstance(result, Err):
        logger.warning(f"Rejected auth cookie on {request.method} {request.url.path}: {result.message}")
        return None
    return result.value
