from datetime import UTC, datetime, timedelta

import pytest
from jose import jwt

from jugger_connect.core.errors import AuthenticationError
from jugger_connect.core.security import (
    create_access_token,
    decode_access_token,
    extract_bearer_token,
)
from jugger_connect.core.settings import settings


def test_token_round_trip_returns_user_id():
    token = create_access_token(42)
    assert decode_access_token(token) == 42


def test_wrong_key_is_rejected():
    forged = jwt.encode({"sub": "42"}, "other-key", algorithm=settings.jwt_algorithm)
    with pytest.raises(AuthenticationError):
        decode_access_token(forged)


def test_expired_token_is_rejected():
    expired = jwt.encode(
        {"sub": "42", "exp": datetime.now(UTC) - timedelta(minutes=1)},
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    with pytest.raises(AuthenticationError):
        decode_access_token(expired)


@pytest.mark.parametrize("claims", [{}, {"sub": "alice"}])
def test_subject_must_be_numeric(claims):
    token = jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)
    with pytest.raises(AuthenticationError):
        decode_access_token(token)


def test_missing_token():
    with pytest.raises(AuthenticationError) as exc_info:
        decode_access_token(None)
    assert exc_info.value.message == "Authentication token is required"


@pytest.mark.parametrize(
    ("header", "expected"),
    [
        ("Bearer abc.def", "abc.def"),
        ("bearer  abc.def ", "abc.def"),
        ("Basic abc", None),
        ("Bearer ", None),
        (None, None),
    ],
)
def test_extract_bearer_token(header, expected):
    assert extract_bearer_token(header) == expected
