"""
app/core/dependencies.py

Authentication and Authorization Dependencies

Provides authentication and role-based access control (RBAC) for FastAPI routes:
- Validates JWT tokens from Bearer header OR HttpOnly cookie
- Retrieves authenticated user from the database
- Restricts access based on user roles

Pagination Dependency:
- Provides reusable dependency for pagination (skip, limit).
"""

import logging
from collections.abc import Callable, Coroutine
from typing import Annotated, Any

from fastapi import Cookie, Depends, Query, WebSocket
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import UnauthenticatedError, UnauthorizedError
from app.core.tokens import decode_access_token
from app.database.enums import UserRole
from app.database.models import User
from app.database.session import get_db

# ---------------------------------------------------
# Logger Configuration
# ---------------------------------------------------
logger = logging.getLogger(__name__)

# ---------------------------------------------------
# OAuth2 Configuration
# ---------------------------------------------------
# auto_error=False so a missing header still lets the cookie be checked
oauth2_scheme: OAuth2PasswordBearer = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)


# ---------------------------------------------------
# Pagination Dependency
# ---------------------------------------------------
class PaginationParams:
    """
    Dependency that provides pagination parameters from query parameters.
    """

    def __init__(
        self,
        skip: int = Query(0, ge=0, description="Number of records to skip for pagination"),
        limit: int = Query(50, ge=1, le=200, description="Maximum number of records to return"),
    ):
        self.skip = skip
        self.limit = limit


# ---------------------------------------------------
# Authentication Functions
# ---------------------------------------------------


async def authenticate_token(token: str | None, db: AsyncSession) -> User:
    """
    Resolve an access token to an active user.

    Raises:
        UnauthenticatedError: if the token is missing, invalid, or names no active user.
    """
    if token is None:
        logger.debug("[AUTH] No token found in Authorization header or access_token cookie.")
        raise UnauthenticatedError()

    token_data = decode_access_token(token)

    result = await db.execute(select(User).filter(User.id == token_data.sub))
    user = result.unique().scalar_one_or_none()

    if not user:
        logger.warning(f"[AUTH] JWT valid but no matching user found: user_id={token_data.sub}")
        raise UnauthenticatedError()

    if not user.is_active:
        logger.warning(f"[AUTH] Authentication attempt by inactive user: {user.id}")
        raise UnauthenticatedError()

    return user


async def get_current_user(
    token_header: Annotated[str | None, Depends(oauth2_scheme)] = None,
    token_cookie: Annotated[str | None, Cookie(alias="access_token")] = None,
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Authenticate the current user based on the provided JWT access token,
    checking Bearer header first, then HttpOnly cookie.

    Raises:
        UnauthenticatedError: 401 if authentication fails.
    """
    user = await authenticate_token(token_header or token_cookie, db)
    logger.debug(
        f"[AUTH] User {user.id} authenticated successfully via {'Header' if token_header else 'Cookie'}."
    )
    return user


async def get_current_user_from_ws(websocket: WebSocket, db: AsyncSession) -> User:
    """
    Authenticate the current user from a WebSocket connection.
    Tries Authorization header first, then cookie, then the `token` query parameter.

    Raises:
        UnauthenticatedError: If token is missing or invalid.
    """
    token_header = websocket.headers.get("Authorization")
    token: str | None = None
    if token_header and token_header.startswith("Bearer "):
        token = token_header.removeprefix("Bearer ")
    else:
        token = websocket.cookies.get("access_token") or websocket.query_params.get("token")

    return await authenticate_token(token, db)


# ---------------------------------------------------
# Authorization Functions (Role-Based)
# ---------------------------------------------------


def require_roles(*roles: UserRole) -> Callable[..., Coroutine[Any, Any, User]]:
    """
    Dependency to restrict access to users having any of the specified roles.
    """

    async def checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            logger.warning(
                f"[RBAC] Access denied: User {user.id} with role {user.role} attempted access (allowed roles: {roles})"
            )
            raise UnauthorizedError(f"Zugriff für Rolle '{user.role.value}' verweigert")
        return user

    return checker
