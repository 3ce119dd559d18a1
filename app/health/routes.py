"""
app/health/routes.py

Health Check Route
Reports whether the API can reach its database.
"""

import logging
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.backend import call_backend
from app.core.clock import utcnow
from app.core.config import settings
from app.core.exceptions import TransientBackendError
from app.core.schemas import UTCDateTime
from app.database.models import User
from app.database.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

DBDep = Annotated[AsyncSession, Depends(get_db)]


class HealthRead(BaseModel):
    status: Literal["healthy", "error"]
    database: Literal["connected", "unreachable"]
    timestamp: UTCDateTime
    version: str
    environment: str


@router.get(
    "/health",
    response_model=HealthRead,
    status_code=status.HTTP_200_OK,
    summary="Health Check",
    responses={503: {"model": HealthRead, "description": "Database unreachable"}},
)
async def health_check(db: DBDep) -> HealthRead | JSONResponse:
    async def _ping() -> int:
        return (await db.execute(select(func.count(User.id)))).scalar_one()

    try:
        await call_backend(db, _ping, "health check", retries=0)
    except TransientBackendError:
        logger.error("[HEALTH] Database unreachable")
        body = HealthRead(
            status="error",
            database="unreachable",
            timestamp=utcnow(),
            version=settings.APP_VERSION,
            environment=settings.ENVIRONMENT,
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body.model_dump(mode="json")
        )

    return HealthRead(
        status="healthy",
        database="connected",
        timestamp=utcnow(),
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )
