"""Bearer token helpers built on python-jose."""
from __future__ import annotations

from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from jugger_connect.core.errors import AuthenticationError
from jugger_connect.core.settings import settings


def create_access_token(subject: int | str, extra_claims: dict[str, str] | None = None) -> str:
    """Create a JWT access token whose subject is the user id."""
    to_encode: dict[str, object] = {"sub": str(subject)}
    if extra_claims:
        to_encode.update(extra_claims)
    expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode["exp"] = expire
    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt


def decode_access_token(token: str | None) -> int:
    """Validate a bearer token and return the user id it was issued for.

    Args:
        token: Raw JWT string, without the ``Bearer`` prefix.

    Returns:
        Integer user id taken from the ``sub`` claim.

    Raises:
        AuthenticationError: If the token is missing, expired, signed with the
            wrong key or does not carry a numeric subject.
    """
    if not token:
        raise AuthenticationError("Authentication token is required")
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as err:
        raise AuthenticationError("Could not validate credentials") from err

    subject = payload.get("sub")
    if subject is None:
        raise AuthenticationError("Could not validate credentials")
    try:
        return int(subject)
    except (TypeError, ValueError) as err:
        raise AuthenticationError("Could not validate credentials") from err


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the credential part of an ``Authorization: Bearer ...`` header."""
    if not authorization:
        return None
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() != "bearer" or not credentials.strip():
        return None
    return credentials.strip()
