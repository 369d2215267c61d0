"""
Dependency injection utilities for API endpoints.
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.database import get_db  # noqa: F401
from core.errors import ForbiddenError
from core.security import InvalidTokenError, TokenPayload, decode_access_token
from models.user import Role
from services.payment_service import PaymentProvider
from services.realtime import ConnectionHub

bearer_scheme = HTTPBearer(auto_error=False)

CurrentUser = TokenPayload


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> CurrentUser:
    """Resolve the caller from an ``Authorization: Bearer <jwt>`` header."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return decode_access_token(credentials.credentials)
    except InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )


def require_role(*roles: Role):
    """Dependency factory that admits only callers with one of ``roles``."""
    allowed = {role.value for role in roles}

    async def dependency(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in allowed:
            raise ForbiddenError(f"Requires role: {', '.join(sorted(allowed))}")
        return current_user

    return dependency


def get_hub(request: Request) -> ConnectionHub:
    return request.app.state.hub


def get_payment_provider(request: Request) -> PaymentProvider:
    return request.app.state.payment_provider
