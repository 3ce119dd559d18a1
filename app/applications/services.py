"""
applications/services.py

Application Service Layer
Handles a craftsman's applications on jobs:
- Submitting an application on an open job
- Listing applications by craftsman or by job
- Accepting or rejecting (job owner)
- Scheduling the appointment for an accepted application
"""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.applications import schemas
from app.applications.models import JobApplication
from app.core.backend import call_backend
from app.core.exceptions import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from app.database.enums import ApplicationStatus, JobStatus
from app.database.models import User
from app.jobs.access import load_job_with_parties
from app.jobs.models import Job

logger = logging.getLogger(__name__)


class ApplicationService:
    """Service class for job application business logic."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def _get_job_or_404(self, job_id: UUID) -> Job:
        job = await call_backend(
            self.db, lambda: load_job_with_parties(self.db, job_id), "load job"
        )
        if not job:
            raise NotFoundError("Auftrag nicht gefunden")
        return job

    async def _get_application_or_404(self, application_id: UUID) -> JobApplication:
        """Helper to retrieve an application with its job or raise 404."""
        stmt = (
            select(JobApplication)
            .options(selectinload(JobApplication.job))
            .filter(JobApplication.id == application_id)
        )

        async def _run() -> JobApplication | None:
            return (await self.db.execute(stmt)).scalar_one_or_none()

        application = await call_backend(self.db, _run, "load application")
        if not application:
            logger.warning(f"Application not found: application_id={application_id}")
            raise NotFoundError("Bewerbung nicht gefunden")
        return application

    async def _commit(self, description: str) -> None:
        try:
            await call_backend(self.db, self.db.commit, description, retries=0)
        except Exception as e:
            logger.error(f"Error committing {description}: {e}", exc_info=True)
            await self.db.rollback()
            raise

    # ---------------------------------------------------
    # Craftsman Actions
    # ---------------------------------------------------
    async def apply(
        self, craftsman: User, job_id: UUID, payload: schemas.ApplicationCreate
    ) -> JobApplication:
        """
        Submit an application on an open job.

        Raises:
            NotFoundError: job does not exist.
            UnauthorizedError: the craftsman owns the job.
            ValidationError: job is no longer open.
            ConflictError: the craftsman already applied.
        """
        logger.info(f"Craftsman {craftsman.id} applying to job {job_id}")
        job = await self._get_job_or_404(job_id)

        if job.customer_id == craftsman.id:
            raise UnauthorizedError("Sie können sich nicht auf Ihren eigenen Auftrag bewerben")
        if job.status != JobStatus.OPEN:
            raise ValidationError("Dieser Auftrag nimmt keine Bewerbungen mehr an")
        if any(a.craftsman_id == craftsman.id for a in job.applications):
            raise ConflictError("Sie haben sich bereits auf diesen Auftrag beworben")

        application = JobApplication(
            job_id=job.id,
            craftsman_id=craftsman.id,
            message=payload.message,
            price=payload.price,
            estimated_duration=payload.estimated_duration,
            status=ApplicationStatus.PENDING,
        )
        self.db.add(application)
        try:
            await self._commit("create application")
        except IntegrityError as e:
            # Lost a race against a concurrent submission from the same craftsman
            raise ConflictError("Sie haben sich bereits auf diesen Auftrag beworben") from e

        logger.info(f"Application {application.id} created on job {job_id}")
        return application

    async def list_for_craftsman(self, craftsman_id: UUID) -> list[JobApplication]:
        """Own applications, newest first, with their jobs."""
        stmt = (
            select(JobApplication)
            .options(selectinload(JobApplication.job))
            .filter(JobApplication.craftsman_id == craftsman_id)
            .order_by(JobApplication.created_at.desc())
        )

        async def _run() -> list[JobApplication]:
            return list((await self.db.execute(stmt)).scalars().all())

        return await call_backend(self.db, _run, "list craftsman applications")

    async def schedule(
        self, craftsman_id: UUID, application_id: UUID, payload: schemas.ApplicationSchedule
    ) -> JobApplication:
        """Set the appointment for an accepted application."""
        application = await self._get_application_or_404(application_id)
        if application.craftsman_id != craftsman_id:
            raise UnauthorizedError()
        if application.status != ApplicationStatus.ACCEPTED:
            raise ValidationError("Nur angenommene Bewerbungen können terminiert werden")

        application.scheduled_date = payload.scheduled_date
        application.scheduled_time = payload.scheduled_time
        await self._commit("schedule application")

        logger.info(
            f"Application {application_id} scheduled for {payload.scheduled_date} {payload.scheduled_time or ''}"
        )
        return application

    async def list_schedule(self, craftsman_id: UUID) -> list[JobApplication]:
        """Accepted applications with an appointment, soonest first."""
        stmt = (
            select(JobApplication)
            .options(selectinload(JobApplication.job))
            .filter(
                JobApplication.craftsman_id == craftsman_id,
                JobApplication.status == ApplicationStatus.ACCEPTED,
                JobApplication.scheduled_date.is_not(None),
            )
            .order_by(JobApplication.scheduled_date.asc(), JobApplication.scheduled_time.asc())
        )

        async def _run() -> list[JobApplication]:
            return list((await self.db.execute(stmt)).scalars().all())

        return await call_backend(self.db, _run, "list schedule")

    # ---------------------------------------------------
    # Job Owner Actions
    # ---------------------------------------------------
    async def list_for_job(self, owner_id: UUID, job_id: UUID) -> list[JobApplication]:
        """Applications on a job, visible to the job owner only."""
        job = await self._get_job_or_404(job_id)
        if job.customer_id != owner_id:
            raise UnauthorizedError()
        return list(job.applications)

    async def decide(
        self, owner_id: UUID, application_id: UUID, new_status: ApplicationStatus
    ) -> JobApplication:
        """
        Accept or reject a pending application.
        Accepting moves the job to in_progress.
        """
        logger.info(f"Owner {owner_id} setting application {application_id} to {new_status.value}")
        application = await self._get_application_or_404(application_id)
        job = application.job

        if job.customer_id != owner_id:
            raise UnauthorizedError()
        if application.status != ApplicationStatus.PENDING:
            raise ValidationError("Über diese Bewerbung wurde bereits entschieden")
        if new_status == ApplicationStatus.ACCEPTED and job.status != JobStatus.OPEN:
            raise ValidationError("Der Auftrag ist nicht mehr offen")

        application.status = new_status
        if new_status == ApplicationStatus.ACCEPTED:
            job.status = JobStatus.IN_PROGRESS
        await self._commit("decide application")

        logger.info(f"Application {application_id} is now {new_status.value}")
        return application
