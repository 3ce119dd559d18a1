"""
core/tokens.py

JWT access token utilities.

Sessions are issued by the identity provider with the shared SECRET_KEY;
this module decodes them, and can issue compatible tokens for tooling and tests.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError

from app.core.config import settings
from app.core.exceptions import UnauthenticatedError

logger = logging.getLogger(__name__)


class TokenPayload(BaseModel):
    """Claims carried by an access token."""

    sub: UUID
    role: str | None = None
    jti: str | None = None


# ------------------------------------------------------
# --- Access Token ---
# ------------------------------------------------------
def create_access_token(data: dict[str, Any], expires_delta: timedelta | None = None) -> str:
    """
    Create a JWT access token with expiration and unique JTI.

    Args:
        data (dict[str, Any]): Payload data to include in the token (must contain 'sub' and 'role').
        expires_delta (timedelta | None): Optional custom expiration time. Defaults to settings.

    Returns:
        str: Encoded JWT access token.
    """
    if "sub" not in data or "role" not in data:
        logger.error("Access token creation attempt missing 'sub' or 'role' in data.")
        raise ValueError("Access token payload must include 'sub' and 'role'.")

    expire: datetime = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    jti: str = str(uuid.uuid4())
    payload: dict[str, Any] = {**data, "sub": str(data["sub"]), "exp": expire, "jti": jti}

    logger.info(f"Issuing access token for sub={data.get('sub')} exp={expire} jti={jti}")
    token = jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return str(token)


def decode_access_token(token: str) -> TokenPayload:
    """
    Decode and validate an access token.

    Raises:
        UnauthenticatedError: If the token is malformed, expired, or lacks a subject.
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        return TokenPayload(**payload)
    except (JWTError, ValidationError) as e:
        logger.warning(f"[AUTH] JWT decoding/validation failed: {e}")
        raise UnauthenticatedError("Ungültiges oder abgelaufenes Token")
