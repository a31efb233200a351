"""JWT utilities for identity provider access tokens."""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from physiobook.config import settings

DEFAULT_TOKEN_LIFETIME = timedelta(hours=1)


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a JWT access token shaped like the identity provider's.

    Used by scripts and tests; production tokens are issued by the provider.

    Args:
        data: Payload data to encode
        expires_delta: Optional expiration time delta

    Returns:
        Encoded JWT token
    """
    to_encode = data.copy()
    expire = datetime.now(UTC) + (expires_delta or DEFAULT_TOKEN_LIFETIME)

    to_encode.update(
        {
            "exp": expire,
            "iat": datetime.now(UTC),
        }
    )
    if settings.jwt_audience:
        to_encode.setdefault("aud", settings.jwt_audience)

    return jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


def decode_access_token(token: str) -> dict[str, Any] | None:
    """
    Decode and validate a JWT access token.

    Args:
        token: JWT token to decode

    Returns:
        Decoded payload or None if invalid
    """
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options={"verify_aud": settings.jwt_audience is not None},
        )
    except JWTError:
        return None
