"""
app/core/backend.py

Backend Call Policy

Wraps individual database operations with:
- An explicit timeout (settings.BACKEND_TIMEOUT_SECONDS)
- Automatic retry of transient failures on read paths
- Translation of exhausted retries into TransientBackendError (503)
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import TransientBackendError

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    OperationalError,
    InterfaceError,
    TimeoutError,
    asyncio.TimeoutError,
    ConnectionError,
)


async def call_backend(
    db: AsyncSession | None,
    operation: Callable[[], Awaitable[T]],
    description: str,
    retries: int | None = None,
    timeout: float | None = None,
) -> T:
    """
    Run a single backend operation under the call policy.

    Args:
        db: Session the operation runs on; rolled back before each retry.
        operation: Zero-argument coroutine factory performing the query.
        description: Short label used in log lines.
        retries: Extra attempts after a transient failure (reads default to
            settings.BACKEND_READ_RETRIES, writes should pass 0).
        timeout: Seconds before the attempt is abandoned.

    Raises:
        TransientBackendError: when every attempt failed transiently.
    """
    max_retries = settings.BACKEND_READ_RETRIES if retries is None else retries
    time_limit = settings.BACKEND_TIMEOUT_SECONDS if timeout is None else timeout

    attempt = 0
    while True:
        try:
            return await asyncio.wait_for(operation(), timeout=time_limit)
        except TRANSIENT_ERRORS as e:
            if attempt >= max_retries:
                logger.error(
                    f"[BACKEND] {description} failed after {attempt + 1} attempt(s): {e!r}"
                )
                raise TransientBackendError() from e
            attempt += 1
            logger.warning(f"[BACKEND] {description} failed transiently ({e!r}), retrying")
            if db is not None:
                await db.rollback()
