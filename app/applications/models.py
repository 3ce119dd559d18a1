"""
applications/models.py

Defines the JobApplication model.
- A craftsman's bid on a job, with optional price and duration estimate
- Carries the scheduled appointment once the customer accepts it
"""

import uuid
from datetime import date, datetime, time
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    Text,
    Time,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.clock import utcnow
from app.database.base import Base
from app.database.enums import ApplicationStatus

if TYPE_CHECKING:
    from app.database.models import User
    from app.jobs.models import Job


# ---------------------------------------------------
# JobApplication Model
# ---------------------------------------------------
class JobApplication(Base):
    """
    Represents a craftsman's application on a job. One per (job, craftsman).
    """

    __tablename__ = "job_applications"
    __table_args__ = (UniqueConstraint("job_id", "craftsman_id", name="uq_job_applications_job_craftsman"),)

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="Unique identifier for the application",
    )
    job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("jobs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Job applied to",
    )
    craftsman_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Craftsman who applied",
    )
    message: Mapped[str] = mapped_column(
        Text, nullable=False, comment="Cover message to the customer"
    )
    price: Mapped[Decimal | None] = mapped_column(
        Numeric(10, 2), nullable=True, comment="Offered price"
    )
    estimated_duration: Mapped[int | None] = mapped_column(
        Integer, nullable=True, comment="Estimated duration in hours"
    )
    status: Mapped[ApplicationStatus] = mapped_column(
        Enum(
            ApplicationStatus,
            name="application_status",
            values_callable=lambda e: [m.value for m in e],
        ),
        default=ApplicationStatus.PENDING,
        nullable=False,
        comment="Application status",
    )
    scheduled_date: Mapped[date | None] = mapped_column(
        Date, nullable=True, comment="Agreed appointment date"
    )
    scheduled_time: Mapped[time | None] = mapped_column(
        Time, nullable=True, comment="Agreed appointment time"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        comment="Timestamp when the application was submitted",
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
        comment="Timestamp when the application was last updated",
    )

    # Relationships
    job: Mapped["Job"] = relationship("Job", back_populates="applications")
    craftsman: Mapped["User"] = relationship(
        "User", back_populates="applications", foreign_keys=[craftsman_id]
    )
