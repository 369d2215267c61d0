"""
Bearer credential helpers.

Tokens are HS256 JWTs carrying the user id in ``sub`` and the user's role.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from core.config import settings


class InvalidTokenError(Exception):
    """Raised when a bearer token cannot be verified."""


@dataclass(frozen=True)
class TokenPayload:
    user_id: int
    role: str


def create_access_token(user_id: int, role: str, expires_minutes: Optional[int] = None) -> str:
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES
    )
    claims = {"sub": str(user_id), "role": role, "exp": expire}
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> TokenPayload:
    try:
        claims = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        raise InvalidTokenError(str(e)) from e

    sub = claims.get("sub")
    role = claims.get("role")
    if not sub or not role:
        raise InvalidTokenError("Token is missing subject or role")
    try:
        return TokenPayload(user_id=int(sub), role=role)
    except ValueError as e:
        raise InvalidTokenError("Token subject is not a user id") from e


def extract_bearer(authorization: Optional[str]) -> Optional[str]:
    """Return the token from an ``Authorization: Bearer ...`` header value."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()
