"""
app/jobs/routes.py

Job Routes
Defines job-related API endpoints:
- Post a job (Authenticated Customer)
- Browse open jobs with search and filters (Authenticated)
- List jobs the current user is involved in (Authenticated)
- Retrieve job details (Authenticated)
- Move a job along its lifecycle (Job owner or accepted craftsman)
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import PaginationParams, get_current_user, require_roles
from app.core.limiter import limiter
from app.core.schemas import PaginatedResponse
from app.database.enums import JobUrgency, UserRole
from app.database.models import User
from app.database.session import get_db
from app.jobs import schemas
from app.jobs.services import JobService

router = APIRouter(prefix="/jobs", tags=["Jobs"])

DBDep = Annotated[AsyncSession, Depends(get_db)]
AuthenticatedUserDep = Annotated[User, Depends(get_current_user)]
AuthenticatedCustomerDep = Annotated[User, Depends(require_roles(UserRole.CUSTOMER))]


def get_job_filter(
    search: str | None = Query(None, description="Search in title and description"),
    category: str | None = Query(None, description="Filter by category"),
    urgency: JobUrgency | None = Query(None, description="Filter by urgency"),
) -> schemas.JobFilter:
    return schemas.JobFilter(search=search, category=category, urgency=urgency)


# ---------------------------------------------------
# Customer Endpoints
# ---------------------------------------------------


@router.post(
    "",
    response_model=schemas.JobRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create Job",
    description="Customer posts a new job. The job starts out open.",
)
@limiter.limit("10/minute")
async def create_job(
    request: Request,
    payload: schemas.JobCreate,
    db: DBDep,
    current_user: AuthenticatedCustomerDep,
) -> schemas.JobRead:
    """Authenticated customer creates a new job."""
    return await JobService(db).create_job(customer=current_user, payload=payload)


# ---------------------------------------------------
# Shared Endpoints
# ---------------------------------------------------


@router.get(
    "",
    response_model=PaginatedResponse[schemas.JobRead],
    status_code=status.HTTP_200_OK,
    summary="Browse Open Jobs",
    description="Lists open jobs, newest first, with optional search, category and urgency filters.",
)
@limiter.limit("30/minute")
async def list_open_jobs(
    request: Request,
    db: DBDep,
    current_user: AuthenticatedUserDep,
    filters: schemas.JobFilter = Depends(get_job_filter),
    pagination: PaginationParams = Depends(),
) -> PaginatedResponse[schemas.JobRead]:
    jobs, total_count = await JobService(db).list_open_jobs(
        filters, skip=pagination.skip, limit=pagination.limit
    )
    return PaginatedResponse(
        total_count=total_count,
        has_next_page=(pagination.skip + len(jobs)) < total_count,
        items=jobs,
    )


@router.get(
    "/mine",
    response_model=list[schemas.JobRead],
    status_code=status.HTTP_200_OK,
    summary="List My Jobs",
    description="Jobs the current user posted or applied to.",
)
@limiter.limit("30/minute")
async def list_my_jobs(
    request: Request,
    db: DBDep,
    current_user: AuthenticatedUserDep,
) -> list[schemas.JobRead]:
    return await JobService(db).list_jobs_for_user(current_user.id)


@router.get(
    "/{job_id}",
    response_model=schemas.JobRead,
    status_code=status.HTTP_200_OK,
    summary="Get Job Details",
    description="Retrieve a job with its customer and application count.",
)
@limiter.limit("30/minute")
async def get_job(
    request: Request,
    job_id: UUID,
    db: DBDep,
    current_user: AuthenticatedUserDep,
) -> schemas.JobRead:
    return await JobService(db).get_job_detail(job_id)


@router.patch(
    "/{job_id}/status",
    response_model=schemas.JobRead,
    status_code=status.HTTP_200_OK,
    summary="Update Job Status",
    description="Job owner or accepted craftsman moves the job from open to in_progress to completed.",
)
@limiter.limit("10/minute")
async def update_job_status(
    request: Request,
    job_id: UUID,
    payload: schemas.JobStatusUpdate,
    db: DBDep,
    current_user: AuthenticatedUserDep,
) -> schemas.JobRead:
    return await JobService(db).update_status(current_user.id, job_id, payload.status)
