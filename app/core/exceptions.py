"""
core/exceptions.py

Defines a standard error response format for the API and the error
taxonomy shared by all services:
- UnauthenticatedError: no valid session (401)
- UnauthorizedError: authenticated but not a party to the resource (403)
- ValidationError: missing or empty required field (400)
- NotFoundError: referenced job/application/message absent (404)
- ConflictError: resource already exists (409)
- TransientBackendError: database unavailable or too slow, retryable (503)
- BackendError: a write could not be persisted (500)
"""

from typing import Any

from fastapi import HTTPException, status


class APIError(HTTPException):
    """Custom exception with standardized error response."""

    def __init__(
        self,
        status_code: int,
        message: str,
        headers: dict[str, Any] | None = None,
        **extra: Any,
    ):
        self.message = message
        super().__init__(status_code=status_code, detail={"error": message, **extra}, headers=headers)


class UnauthenticatedError(APIError):
    def __init__(self, message: str = "Nicht angemeldet"):
        super().__init__(
            status.HTTP_401_UNAUTHORIZED, message, headers={"WWW-Authenticate": "Bearer"}
        )


class UnauthorizedError(APIError):
    def __init__(self, message: str = "Zugriff verweigert"):
        super().__init__(status.HTTP_403_FORBIDDEN, message)


class ValidationError(APIError):
    def __init__(self, message: str):
        super().__init__(status.HTTP_400_BAD_REQUEST, message)


class NotFoundError(APIError):
    def __init__(self, message: str):
        super().__init__(status.HTTP_404_NOT_FOUND, message)


class ConflictError(APIError):
    def __init__(self, message: str):
        super().__init__(status.HTTP_409_CONFLICT, message)


class TransientBackendError(APIError):
    """Raised when a backend call failed transiently; clients may retry."""

    def __init__(self, message: str = "Der Dienst ist vorübergehend nicht erreichbar"):
        super().__init__(status.HTTP_503_SERVICE_UNAVAILABLE, message, retryable=True)


class BackendError(APIError):
    """Raised when a write failed and was rolled back; nothing was persisted."""

    def __init__(self, message: str = "Die Änderung konnte nicht gespeichert werden"):
        super().__init__(status.HTTP_500_INTERNAL_SERVER_ERROR, message)
