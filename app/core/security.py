"""Security utilities for JWT handling."""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from app.config import settings
from app.core.exceptions import AuthMissing
from app.schemas.auth import AuthContext


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a JWT access token.

    Args:
        data: Payload data to encode
        expires_delta: Optional expiration time delta

    Returns:
        Encoded JWT token
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(UTC) + expires_delta
    else:
        expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)

    to_encode.update(
        {
            "exp": expire,
            "iat": datetime.now(UTC),
            "type": "access",
        }
    )

    encoded_jwt = jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )

    return encoded_jwt


def decode_access_token(token: str) -> dict[str, Any] | None:
    """
    Decode and validate a JWT access token.

    Args:
        token: JWT token to decode

    Returns:
        Decoded payload or None if invalid
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )

        # Verify token type
        if payload.get("type") != "access":
            return None

        return payload
    except JWTError:
        return None


def auth_context_from_token(token: str | None) -> AuthContext:
    """
    Resolve the session carried by an access token.

    Args:
        token: Raw bearer token, if any

    Returns:
        Authentication context for the signed-in administrator

    Raises:
        AuthMissing: If there is no token or it is not a valid session
    """
    if not token:
        raise AuthMissing()

    payload = decode_access_token(token)
    if payload is None:
        raise AuthMissing("Could not validate credentials")

    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        raise AuthMissing("Could not validate credentials")

    return AuthContext(
        user_id=user_id,
        email=payload.get("email"),
        full_name=payload.get("name"),
        phone=payload.get("phone"),
        avatar_url=payload.get("picture"),
    )
