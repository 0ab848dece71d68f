"""Auth cookie transport: the session token travels in a single http-only cookie."""

from fastapi import Request, Response

from .config import settings


def cookie_options() -> dict:
    """Attributes shared by set and clear so browsers match the same cookie."""
    return {
        "httponly": True,
        "secure": settings.is_production,
        "samesite": "strict",
        "path": "/",
    }


def set_token_cookie(response: Response, token: str, max_age: int) -> None:
    """Attach the session token. ``max_age`` must match the token lifetime."""
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        max_age=max_age,
        **cookie_options(),
    )


def clear_token_cookie(response: Response) -> None:
    response.delete_cookie(key=settings.AUTH_COOKIE_NAME, **cookie_options())


def get_token(request: Request) -> str | None:
    """Return the raw token from the request cookie, if any."""
    token = request.cookies.get(settings.AUTH_COOKIE_NAME)
    return token or None
