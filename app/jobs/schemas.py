"""
app/jobs/schemas.py

Job Schemas
Pydantic schemas for job-related operations:
- Job creation (Authenticated Customer)
- Typed list filter for open jobs
- Status transitions
- Reading job details
"""

from decimal import Decimal
from typing import Final
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.core.schemas import UTCDateTime
from app.database.enums import JobStatus, JobUrgency

JOB_CATEGORIES: Final[tuple[str, ...]] = (
    "Elektro",
    "Sanitär",
    "Heizung",
    "Bau",
    "Garten",
    "Reinigung",
    "Umzug",
    "Sonstiges",
)


# ---------------------------------------------------
# Partial Schemas for Embedding
# ---------------------------------------------------
class JobLocation(BaseModel):
    """Street address of the job site."""

    street: str = Field(..., min_length=5, description="Street and house number")
    postal_code: str = Field(..., min_length=5, description="Postal code")
    city: str = Field(..., min_length=2, description="City")


class JobCustomerInfo(BaseModel):
    """Partial customer information for embedding in JobRead."""

    id: UUID = Field(..., description="Customer's unique identifier")
    first_name: str = Field(..., description="Customer's first name")
    last_name: str = Field(..., description="Customer's last name")
    company_name: str | None = Field(None, description="Customer's company name")

    model_config = ConfigDict(from_attributes=True)


class JobSummary(BaseModel):
    """Compact job information for embedding in other resources."""

    id: UUID
    title: str
    category: str
    status: JobStatus

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------
# Job Creation Schema (Authenticated Customer)
# ---------------------------------------------------
class JobCreate(BaseModel):
    """Schema used when a customer posts a new job."""

    title: str = Field(..., min_length=10, max_length=200, description="Job title")
    description: str = Field(..., min_length=50, description="Detailed description of the work")
    category: str = Field(..., description=f"One of: {', '.join(JOB_CATEGORIES)}")
    subcategory: str | None = Field(None, max_length=100, description="Optional subcategory")
    location: JobLocation
    budget_min: Decimal | None = Field(None, ge=0, description="Lower budget bound")
    budget_max: Decimal | None = Field(None, ge=0, description="Upper budget bound")
    urgency: JobUrgency = Field(JobUrgency.MEDIUM, description="How urgently the work is needed")

    @model_validator(mode="after")
    def check_category_and_budget(self) -> "JobCreate":
        if self.category not in JOB_CATEGORIES:
            raise ValueError("Bitte wählen Sie eine gültige Kategorie")
        if (
            self.budget_min is not None
            and self.budget_max is not None
            and self.budget_max < self.budget_min
        ):
            raise ValueError("Maximales Budget muss größer oder gleich dem minimalen Budget sein")
        return self


# ---------------------------------------------------
# Open Job Filter
# ---------------------------------------------------
class JobFilter(BaseModel):
    """Typed filter for listing open jobs."""

    search: str | None = Field(None, description="Case-insensitive match on title or description")
    category: str | None = Field(None, description="Exact category")
    urgency: JobUrgency | None = Field(None, description="Exact urgency")


# ---------------------------------------------------
# Status Update Schema
# ---------------------------------------------------
class JobStatusUpdate(BaseModel):
    """Schema used to move a job along its lifecycle."""

    status: JobStatus = Field(..., description="Target status")


# ---------------------------------------------------
# Read Job Schema
# ---------------------------------------------------
class JobRead(BaseModel):
    """Schema returned when reading job details."""

    id: UUID = Field(..., description="Job unique identifier")
    customer: JobCustomerInfo = Field(..., description="Customer who posted the job")
    title: str
    description: str
    category: str
    subcategory: str | None = None
    location: JobLocation
    budget_min: Decimal | None = None
    budget_max: Decimal | None = None
    urgency: JobUrgency
    status: JobStatus
    application_count: int = Field(0, description="Number of applications on the job")
    created_at: UTCDateTime
    updated_at: UTCDateTime

    model_config = ConfigDict(from_attributes=True)
