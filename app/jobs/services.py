"""
app/jobs/services.py

Job Service Layer
Handles job-related operations such as creation, listing with filters,
retrieval, and lifecycle transitions.
"""

import logging
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.applications.models import JobApplication
from app.core.backend import call_backend
from app.core.exceptions import NotFoundError, UnauthorizedError, ValidationError
from app.database.enums import ApplicationStatus, JobStatus, UserRole
from app.database.models import User
from app.jobs import schemas
from app.jobs.access import is_party_to_job, load_job_with_parties
from app.jobs.models import Job

logger = logging.getLogger(__name__)

# Allowed lifecycle moves
STATUS_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.OPEN: {JobStatus.IN_PROGRESS},
    JobStatus.IN_PROGRESS: {JobStatus.COMPLETED},
    JobStatus.COMPLETED: set(),
}


def escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class JobService:
    """Service class for job-related business logic."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def _get_job_or_404(self, job_id: UUID) -> Job:
        """Helper to retrieve a job with its parties or raise 404."""
        job = await call_backend(
            self.db, lambda: load_job_with_parties(self.db, job_id), "load job"
        )
        if not job:
            logger.warning(f"Job not found: job_id={job_id}")
            raise NotFoundError("Auftrag nicht gefunden")
        return job

    def _construct_job_read(self, job: Job) -> schemas.JobRead:
        """Helper to construct JobRead schema from Job model instance."""
        return schemas.JobRead(
            id=job.id,
            customer=schemas.JobCustomerInfo.model_validate(job.customer),
            title=job.title,
            description=job.description,
            category=job.category,
            subcategory=job.subcategory,
            location=schemas.JobLocation.model_validate(job.location),
            budget_min=job.budget_min,
            budget_max=job.budget_max,
            urgency=job.urgency,
            status=job.status,
            application_count=len(job.applications),
            created_at=job.created_at,
            updated_at=job.updated_at,
        )

    def _list_stmt(self):  # type: ignore[no-untyped-def]
        return select(Job).options(selectinload(Job.customer), selectinload(Job.applications))

    # ---------------------------------------------------
    # Job Creation
    # ---------------------------------------------------
    async def create_job(self, customer: User, payload: schemas.JobCreate) -> schemas.JobRead:
        """Customer posts a new open job."""
        logger.info(f"Customer {customer.id} creating job '{payload.title}'")
        if customer.role != UserRole.CUSTOMER:
            raise UnauthorizedError("Nur Kunden können Aufträge erstellen")

        job = Job(
            customer_id=customer.id,
            title=payload.title.strip(),
            description=payload.description.strip(),
            category=payload.category,
            subcategory=payload.subcategory,
            location=payload.location.model_dump(),
            budget_min=payload.budget_min,
            budget_max=payload.budget_max,
            urgency=payload.urgency,
            status=JobStatus.OPEN,
        )
        self.db.add(job)

        try:
            await call_backend(self.db, self.db.commit, "create job", retries=0)
        except Exception as e:
            logger.error(f"Error committing job creation: {e}", exc_info=True)
            await self.db.rollback()
            raise

        job = await self._get_job_or_404(job.id)
        logger.info(f"Job created successfully: job_id={job.id}")
        return self._construct_job_read(job)

    # ---------------------------------------------------
    # Job Retrieval
    # ---------------------------------------------------
    async def list_open_jobs(
        self, filters: schemas.JobFilter, skip: int = 0, limit: int = 50
    ) -> tuple[list[schemas.JobRead], int]:
        """Open jobs, newest first, narrowed by the given filter."""
        conditions = [Job.status == JobStatus.OPEN]
        if filters.search and filters.search.strip():
            pattern = f"%{escape_like(filters.search.strip())}%"
            conditions.append(
                or_(
                    Job.title.ilike(pattern, escape="\\"),
                    Job.description.ilike(pattern, escape="\\"),
                )
            )
        if filters.category:
            conditions.append(Job.category == filters.category)
        if filters.urgency:
            conditions.append(Job.urgency == filters.urgency)

        count_stmt = select(func.count(Job.id)).filter(*conditions)
        data_stmt = (
            self._list_stmt()
            .filter(*conditions)
            .order_by(Job.created_at.desc())
            .offset(skip)
            .limit(limit)
        )

        async def _run() -> tuple[list[Job], int]:
            total = (await self.db.execute(count_stmt)).scalar_one()
            rows = (await self.db.execute(data_stmt)).unique().scalars().all()
            return list(rows), total

        jobs, total_count = await call_backend(self.db, _run, "list open jobs")
        logger.info(f"[JOB] Listed {len(jobs)} open jobs (total={total_count}, filters={filters})")
        return [self._construct_job_read(j) for j in jobs], total_count

    async def list_jobs_for_user(self, user_id: UUID) -> list[schemas.JobRead]:
        """Jobs the user posted or applied to, newest first."""
        applied = select(JobApplication.job_id).filter(JobApplication.craftsman_id == user_id)
        stmt = (
            self._list_stmt()
            .filter(or_(Job.customer_id == user_id, Job.id.in_(applied)))
            .order_by(Job.created_at.desc())
        )

        async def _run() -> list[Job]:
            return list((await self.db.execute(stmt)).unique().scalars().all())

        jobs = await call_backend(self.db, _run, "list jobs for user")
        return [self._construct_job_read(j) for j in jobs]

    async def get_job_detail(self, job_id: UUID) -> schemas.JobRead:
        """Return a single job with customer info and application count."""
        job = await self._get_job_or_404(job_id)
        return self._construct_job_read(job)

    # ---------------------------------------------------
    # Job Lifecycle Actions
    # ---------------------------------------------------
    async def update_status(
        self, user_id: UUID, job_id: UUID, new_status: JobStatus
    ) -> schemas.JobRead:
        """Owner or accepted craftsman moves a job along its lifecycle."""
        logger.info(f"User {user_id} moving job {job_id} to {new_status.value}")
        job = await self._get_job_or_404(job_id)

        accepted = [
            a
            for a in job.applications
            if a.status in (ApplicationStatus.ACCEPTED, ApplicationStatus.COMPLETED)
        ]
        is_owner = job.customer_id == user_id
        is_accepted_craftsman = any(a.craftsman_id == user_id for a in accepted)
        if not (is_owner or is_accepted_craftsman):
            if is_party_to_job(user_id, job):
                raise UnauthorizedError("Nur der Auftraggeber oder der beauftragte Handwerker")
            raise UnauthorizedError()

        if new_status not in STATUS_TRANSITIONS[job.status]:
            raise ValidationError(
                f"Statuswechsel von '{job.status.value}' nach '{new_status.value}' nicht erlaubt"
            )

        job.status = new_status
        if new_status == JobStatus.COMPLETED:
            for application in accepted:
                application.status = ApplicationStatus.COMPLETED

        try:
            await call_backend(self.db, self.db.commit, "update job status", retries=0)
        except Exception as e:
            logger.error(f"Error committing status change for job {job_id}: {e}", exc_info=True)
            await self.db.rollback()
            raise

        logger.info(f"Job {job_id} is now {new_status.value}")
        return self._construct_job_read(job)
