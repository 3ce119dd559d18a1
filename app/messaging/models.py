"""
app/messaging/models.py

Messaging Models

Defines the SQLAlchemy model for the messaging system:
- Message: a directed note between two parties of one job, with a
  read receipt that only ever moves from null to a timestamp.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import ColumnElement, DateTime, ForeignKey, Index, Text, Uuid, and_, or_
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.clock import utcnow
from app.database.base import Base

if TYPE_CHECKING:
    from app.database.models import User
    from app.jobs.models import Job


# ---------------------------------------------------
# Message Model
# ---------------------------------------------------
class Message(Base):
    """
    Represents an individual message exchanged on a job.
    """

    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_job_created", "job_id", "created_at"),
        Index("ix_messages_receiver_unread", "receiver_id", "read_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="Unique identifier for the message",
    )
    job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("jobs.id", ondelete="CASCADE"),
        nullable=False,
        comment="Job this message is scoped to",
    )
    sender_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        comment="User who sent this message",
    )
    receiver_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        comment="User this message is addressed to",
    )
    content: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Content of the message",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        comment="Timestamp when the message was sent",
    )
    read_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Timestamp when the receiver read the message",
    )

    # Relationships
    job: Mapped["Job"] = relationship("Job", back_populates="messages")
    sender: Mapped["User"] = relationship(
        "User",
        back_populates="sent_messages",
        foreign_keys=[sender_id],
        lazy="joined",
    )
    receiver: Mapped["User"] = relationship(
        "User",
        back_populates="received_messages",
        foreign_keys=[receiver_id],
        lazy="joined",
    )


def between_pair(user_id: uuid.UUID, other_id: uuid.UUID) -> ColumnElement[bool]:
    """Messages exchanged in either direction between two users."""
    return or_(
        and_(Message.sender_id == user_id, Message.receiver_id == other_id),
        and_(Message.sender_id == other_id, Message.receiver_id == user_id),
    )
