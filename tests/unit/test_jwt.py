"""Unit tests for JWT verification."""

from datetime import UTC, datetime, timedelta

import pytest
from jose import jwt

from config.settings import settings
from src.mp_common.errors import AuthenticationRequiredError
from src.mp_gateway.auth.jwt_handler import decode_token


def _token(**claims: object) -> str:
    payload = {"exp": datetime.now(UTC) + timedelta(minutes=5), **claims}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def test_valid_access_token() -> None:
    payload = decode_token(_token(sub="user-1", type="access"))
    assert payload["sub"] == "user-1"


def test_token_without_type_is_accepted() -> None:
    assert decode_token(_token(sub="user-1"))["sub"] == "user-1"


def test_refresh_token_rejected() -> None:
    with pytest.raises(AuthenticationRequiredError):
        decode_token(_token(sub="user-1", type="refresh"))


def test_missing_subject_rejected() -> None:
    with pytest.raises(AuthenticationRequiredError):
        decode_token(_token(type="access"))


def test_expired_token_rejected() -> None:
    expired = _token(sub="user-1", exp=datetime.now(UTC) - timedelta(seconds=1))
    with pytest.raises(AuthenticationRequiredError):
        decode_token(expired)


def test_wrong_secret_rejected() -> None:
    forged = jwt.encode({"sub": "user-1"}, "not-the-secret", algorithm="HS256")
    with pytest.raises(AuthenticationRequiredError) as exc_info:
        decode_token(forged)
    assert exc_info.value.http_status == 401
