"""
applications/schemas.py

Pydantic schemas for job applications:
- Submitting an application (Authenticated Craftsman)
- Deciding on an application (Job owner)
- Scheduling an accepted application (Craftsman)
- Reading applications with job or craftsman info embedded
"""

from datetime import date, time
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.schemas import UTCDateTime
from app.database.enums import ApplicationStatus
from app.jobs.schemas import JobSummary


class ApplicationCraftsmanInfo(BaseModel):
    """Partial craftsman information for embedding in ApplicationRead."""

    id: UUID
    first_name: str
    last_name: str
    company_name: str | None = None
    categories: list[str] = Field(default_factory=list)
    experience_years: int | None = None

    model_config = ConfigDict(from_attributes=True)


class ApplicationCreate(BaseModel):
    """Schema used when a craftsman applies to a job."""

    message: str = Field(..., description="Cover message to the customer")
    price: Decimal | None = Field(None, ge=0, description="Offered price")
    estimated_duration: int | None = Field(None, gt=0, description="Estimated duration in hours")

    @field_validator("message")
    @classmethod
    def message_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Bitte geben Sie eine Nachricht ein")
        return v


class ApplicationDecision(BaseModel):
    """Job owner accepts or rejects a pending application."""

    status: ApplicationStatus

    @field_validator("status")
    @classmethod
    def accept_or_reject(cls, v: ApplicationStatus) -> ApplicationStatus:
        if v not in (ApplicationStatus.ACCEPTED, ApplicationStatus.REJECTED):
            raise ValueError("Nur 'accepted' oder 'rejected' erlaubt")
        return v


class ApplicationSchedule(BaseModel):
    scheduled_date: date
    scheduled_time: time | None = None


class ApplicationRead(BaseModel):
    """Schema returned when reading an application."""

    id: UUID
    job_id: UUID
    craftsman_id: UUID
    message: str
    price: Decimal | None = None
    estimated_duration: int | None = None
    status: ApplicationStatus
    scheduled_date: date | None = None
    scheduled_time: time | None = None
    created_at: UTCDateTime
    updated_at: UTCDateTime

    model_config = ConfigDict(from_attributes=True)


class ApplicationWithJob(ApplicationRead):
    """Application as seen by the craftsman who submitted it."""

    job: JobSummary


class ApplicationWithCraftsman(ApplicationRead):
    """Application as seen by the job owner."""

    craftsman: ApplicationCraftsmanInfo
