"""
jobs/access.py

Job party checks shared by every path that reads or writes job-scoped data.
A user is a party to a job when they posted it or have applied to it.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.applications.models import JobApplication
from app.jobs.models import Job


def is_party_to_job(user_id: UUID, job: Job) -> bool:
    """True if the user is the job's customer or has an application on it.

    `job.applications` must already be loaded.
    """
    if job.customer_id == user_id:
        return True
    return any(application.craftsman_id == user_id for application in job.applications)


async def load_job_with_parties(db: AsyncSession, job_id: UUID) -> Job | None:
    """Load a job together with its customer and every applicant."""
    stmt = (
        select(Job)
        .options(
            selectinload(Job.customer),
            selectinload(Job.applications).selectinload(JobApplication.craftsman),
        )
        .filter(Job.id == job_id)
        .execution_options(populate_existing=True)
    )
    result = await db.execute(stmt)
    return result.unique().scalar_one_or_none()
