"""
Tests for the auth cookie transport.
"""

from fastapi import Response
from starlette.requests import Request

from acquisitions.config import settings
from acquisitions.cookies import clear_token_cookie, get_token, set_token_cookie


def _request_with_cookie(cookie: str | None) -> Request:
    headers = [(b"cookie", cookie.encode())] if cookie is not None else []
    return Request({"type": "http", "method": "GET", "path": "/", "headers": headers})


def test_set_cookie_attributes():
    response = Response()
    set_token_cookie(response, "abc.def.ghi", max_age=900)

    header = response.headers["set-cookie"]
    lowered = header.lower()
    assert header.startswith("token=abc.def.ghi")
    assert "httponly" in lowered
    assert "max-age=900" in lowered
    assert "samesite=strict" in lowered
    assert "path=/" in lowered
    assert "secure" not in lowered


def test_set_cookie_secure_in_production(monkeypatch):
    monkeypatch.setattr(settings, "APP_ENV", "production")
    response = Response()
    set_token_cookie(response, "abc", max_age=900)

    assert "secure" in response.headers["set-cookie"].lower()


def test_clear_cookie_expires_immediately():
    response = Response()
    clear_token_cookie(response)

    lowered = response.headers["set-cookie"].lower()
    assert lowered.startswith("token=")
    assert "max-age=0" in lowered
    assert "httponly" in lowered


def test_get_token_present():
    assert get_token(_request_with_cookie("token=xyz; other=1")) == "xyz"


def test_get_token_missing():
    assert get_token(_request_with_cookie(None)) is None
    assert get_token(_request_with_cookie("other=1")) is None


def test_get_token_empty_value():
    assert get_token(_request_with_cookie("token=")) is None
