"""
app/database/models.py

Core SQLAlchemy ORM Models

Defines:
- User: Marketplace accounts (customers, craftsmen, admins)

Includes relationships with:
- Job (jobs posted by a customer)
- JobApplication (applications submitted by a craftsman)
- Message (sent and received messages)
"""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Enum, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.applications.models import JobApplication
from app.core.clock import utcnow
from app.database.base import Base
from app.database.enums import UserRole
from app.jobs.models import Job
from app.messaging.models import Message

# ---------------------------------------------------
# User Model: Marketplace Account
# ---------------------------------------------------


class User(Base):
    __tablename__ = "users"

    # -------------------------------------
    # Fields
    # -------------------------------------
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="Unique identifier for the user (issued by the identity provider)",
    )
    email: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, comment="User's email address"
    )
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, name="user_role", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        comment="User role (customer, craftsman, admin)",
    )
    first_name: Mapped[str] = mapped_column(
        String(100), nullable=False, comment="User's first name"
    )
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, comment="User's last name")
    company_name: Mapped[str | None] = mapped_column(
        String(255), nullable=True, comment="Company name, shown instead of the personal name"
    )
    phone: Mapped[str | None] = mapped_column(
        String(30), nullable=True, comment="Contact phone number"
    )
    address: Mapped[dict[str, Any] | None] = mapped_column(
        JSON, nullable=True, comment="Address (street, postal_code, city)"
    )

    # Craftsman professional info
    bio: Mapped[str | None] = mapped_column(Text, nullable=True, comment="Craftsman bio")
    categories: Mapped[list[str]] = mapped_column(
        JSON, default=list, nullable=False, comment="Trade categories offered by a craftsman"
    )
    experience_years: Mapped[int | None] = mapped_column(
        Integer, nullable=True, comment="Years of professional experience"
    )

    profile_completed: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False, comment="Whether name and address are complete"
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False, comment="Whether the user account is active"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        comment="Timestamp when the user was created",
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
        comment="Timestamp when the user was last updated",
    )

    # -------------------------------------
    # Relationships
    # -------------------------------------

    # One-to-Many: A customer can post multiple jobs
    jobs: Mapped[list["Job"]] = relationship(
        "Job",
        back_populates="customer",
        foreign_keys=[Job.customer_id],
    )

    # One-to-Many: A craftsman can apply to multiple jobs
    applications: Mapped[list["JobApplication"]] = relationship(
        "JobApplication",
        back_populates="craftsman",
        foreign_keys=[JobApplication.craftsman_id],
    )

    # One-to-Many: Messages sent and received
    sent_messages: Mapped[list["Message"]] = relationship(
        "Message",
        back_populates="sender",
        foreign_keys=[Message.sender_id],
    )
    received_messages: Mapped[list["Message"]] = relationship(
        "Message",
        back_populates="receiver",
        foreign_keys=[Message.receiver_id],
    )

    @property
    def display_name(self) -> str:
        """Company name when present, otherwise the personal name."""
        if self.company_name:
            return self.company_name
        return f"{self.first_name} {self.last_name}".strip()
