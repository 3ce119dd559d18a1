"""
applications/routes.py

Application Routes
- Apply to a job (Authenticated Craftsman)
- List own applications and appointments (Authenticated Craftsman)
- List applications on a job (Job owner)
- Accept or reject an application (Job owner)
- Schedule an accepted application (Applying craftsman)
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.applications import schemas
from app.applications.services import ApplicationService
from app.core.dependencies import require_roles
from app.core.limiter import limiter
from app.database.enums import UserRole
from app.database.models import User
from app.database.session import get_db

router = APIRouter(tags=["Applications"])

DBDep = Annotated[AsyncSession, Depends(get_db)]
AuthenticatedCustomerDep = Annotated[User, Depends(require_roles(UserRole.CUSTOMER))]
AuthenticatedCraftsmanDep = Annotated[User, Depends(require_roles(UserRole.CRAFTSMAN))]


# ---------------------------------------------------
# Craftsman Endpoints
# ---------------------------------------------------


@router.post(
    "/jobs/{job_id}/applications",
    response_model=schemas.ApplicationRead,
    status_code=status.HTTP_201_CREATED,
    summary="Apply to Job",
    description="Craftsman applies to an open job with a message and optional price and duration.",
)
@limiter.limit("10/minute")
async def apply_to_job(
    request: Request,
    job_id: UUID,
    payload: schemas.ApplicationCreate,
    db: DBDep,
    current_user: AuthenticatedCraftsmanDep,
) -> schemas.ApplicationRead:
    application = await ApplicationService(db).apply(current_user, job_id, payload)
    return schemas.ApplicationRead.model_validate(application)


@router.get(
    "/applications/mine",
    response_model=list[schemas.ApplicationWithJob],
    status_code=status.HTTP_200_OK,
    summary="List My Applications",
)
@limiter.limit("30/minute")
async def list_my_applications(
    request: Request,
    db: DBDep,
    current_user: AuthenticatedCraftsmanDep,
) -> list[schemas.ApplicationWithJob]:
    applications = await ApplicationService(db).list_for_craftsman(current_user.id)
    return [schemas.ApplicationWithJob.model_validate(a) for a in applications]


@router.get(
    "/applications/schedule",
    response_model=list[schemas.ApplicationWithJob],
    status_code=status.HTTP_200_OK,
    summary="My Appointments",
    description="Accepted applications with a scheduled date, ordered by date and time.",
)
@limiter.limit("30/minute")
async def list_my_schedule(
    request: Request,
    db: DBDep,
    current_user: AuthenticatedCraftsmanDep,
) -> list[schemas.ApplicationWithJob]:
    applications = await ApplicationService(db).list_schedule(current_user.id)
    return [schemas.ApplicationWithJob.model_validate(a) for a in applications]


@router.put(
    "/applications/{application_id}/schedule",
    response_model=schemas.ApplicationRead,
    status_code=status.HTTP_200_OK,
    summary="Schedule Appointment",
)
@limiter.limit("10/minute")
async def schedule_application(
    request: Request,
    application_id: UUID,
    payload: schemas.ApplicationSchedule,
    db: DBDep,
    current_user: AuthenticatedCraftsmanDep,
) -> schemas.ApplicationRead:
    application = await ApplicationService(db).schedule(current_user.id, application_id, payload)
    return schemas.ApplicationRead.model_validate(application)


# ---------------------------------------------------
# Job Owner Endpoints
# ---------------------------------------------------


@router.get(
    "/jobs/{job_id}/applications",
    response_model=list[schemas.ApplicationWithCraftsman],
    status_code=status.HTTP_200_OK,
    summary="List Job Applications",
    description="Applications on a job with craftsman details. Job owner only.",
)
@limiter.limit("30/minute")
async def list_job_applications(
    request: Request,
    job_id: UUID,
    db: DBDep,
    current_user: AuthenticatedCustomerDep,
) -> list[schemas.ApplicationWithCraftsman]:
    applications = await ApplicationService(db).list_for_job(current_user.id, job_id)
    return [schemas.ApplicationWithCraftsman.model_validate(a) for a in applications]


@router.patch(
    "/applications/{application_id}/status",
    response_model=schemas.ApplicationRead,
    status_code=status.HTTP_200_OK,
    summary="Accept or Reject Application",
)
@limiter.limit("10/minute")
async def decide_application(
    request: Request,
    application_id: UUID,
    payload: schemas.ApplicationDecision,
    db: DBDep,
    current_user: AuthenticatedCustomerDep,
) -> schemas.ApplicationRead:
    application = await ApplicationService(db).decide(
        current_user.id, application_id, payload.status
    )
    return schemas.ApplicationRead.model_validate(application)
