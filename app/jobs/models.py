"""
jobs/models.py

Defines the Job model.
- Represents work requests posted by customers and applied to by craftsmen
- Tracks location, budget range, urgency, and lifecycle status
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.clock import utcnow
from app.database.base import Base
from app.database.enums import JobStatus, JobUrgency

# TYPE CHECKING IMPORTS
if TYPE_CHECKING:
    from app.applications.models import JobApplication
    from app.database.models import User
    from app.messaging.models import Message


# MODEL: Job
class Job(Base):
    __tablename__ = "jobs"

    # Basic Identifiers & Foreign Keys
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="Unique identifier for the job",
    )
    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Customer who posted the job",
    )

    # Description
    title: Mapped[str] = mapped_column(String(200), nullable=False, comment="Job title")
    description: Mapped[str] = mapped_column(Text, nullable=False, comment="Job description")
    category: Mapped[str] = mapped_column(
        String(50), nullable=False, index=True, comment="Trade category"
    )
    subcategory: Mapped[str | None] = mapped_column(
        String(100), nullable=True, comment="Optional subcategory"
    )
    location: Mapped[dict[str, Any]] = mapped_column(
        JSON, nullable=False, comment="Job location (street, postal_code, city)"
    )

    # Budget & Urgency
    budget_min: Mapped[Decimal | None] = mapped_column(
        Numeric(10, 2), nullable=True, comment="Lower bound of the budget"
    )
    budget_max: Mapped[Decimal | None] = mapped_column(
        Numeric(10, 2), nullable=True, comment="Upper bound of the budget"
    )
    urgency: Mapped[JobUrgency] = mapped_column(
        Enum(JobUrgency, name="job_urgency", values_callable=lambda e: [m.value for m in e]),
        default=JobUrgency.MEDIUM,
        nullable=False,
        comment="How urgently the work is needed",
    )

    # Job Status
    status: Mapped[JobStatus] = mapped_column(
        Enum(JobStatus, name="job_status", values_callable=lambda e: [m.value for m in e]),
        default=JobStatus.OPEN,
        nullable=False,
        index=True,
        comment="Current status of the job",
    )

    # Audit Fields
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        comment="Timestamp when the job was created",
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        comment="Timestamp when the job was last updated",
    )

    # Relationships
    customer: Mapped["User"] = relationship(
        "User", back_populates="jobs", foreign_keys=[customer_id]
    )
    applications: Mapped[list["JobApplication"]] = relationship(
        "JobApplication",
        back_populates="job",
        cascade="all, delete-orphan",
        order_by="JobApplication.created_at",
    )
    messages: Mapped[list["Message"]] = relationship(
        "Message",
        back_populates="job",
        cascade="all, delete-orphan",
    )
