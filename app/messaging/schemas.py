"""
app/messaging/schemas.py

Messaging Schemas

Defines Pydantic schemas for the messaging system, including:
- Message creation and response models
- Participant information models
- Conversation summaries
- Realtime event payloads
"""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.core.schemas import UTCDateTime
from app.jobs.schemas import JobSummary


# ---------------------------------------------------
# Participant Information Schema
# ---------------------------------------------------
class ParticipantInfo(BaseModel):
    """
    Display fields of a user taking part in a conversation.
    """

    id: UUID = Field(..., description="User ID")
    first_name: str = Field(..., description="User's first name")
    last_name: str = Field(..., description="User's last name")
    company_name: str | None = Field(None, description="Company name, if any")
    display_name: str = Field(..., description="Company name if set, else the full name")

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------
# Message Creation Schema
# ---------------------------------------------------
class MessageCreate(BaseModel):
    """
    Schema for sending a message on a job.
    Accepts both `jobId`/`receiverId` and `job_id`/`receiver_id`.
    """

    job_id: UUID = Field(..., alias="jobId", description="Job the message belongs to")
    receiver_id: UUID = Field(..., alias="receiverId", description="Recipient user ID")
    content: str = Field(..., description="Message text")

    model_config = ConfigDict(populate_by_name=True)


# ---------------------------------------------------
# Message Response Schemas
# ---------------------------------------------------
class MessagePayload(BaseModel):
    """
    Row-level message fields, as carried by realtime events.
    """

    id: UUID = Field(..., description="Unique identifier for the message")
    job_id: UUID
    sender_id: UUID
    receiver_id: UUID
    content: str
    created_at: UTCDateTime = Field(..., description="Timestamp when the message was sent")
    read_at: UTCDateTime | None = Field(None, description="When the receiver read the message")

    model_config = ConfigDict(from_attributes=True)


class MessageRead(MessagePayload):
    """
    Message with sender and receiver display fields embedded.
    """

    sender: ParticipantInfo
    receiver: ParticipantInfo


class MessageListResponse(BaseModel):
    messages: list[MessageRead]


class MessageEnvelope(BaseModel):
    message: MessageRead


class UnreadCountResponse(BaseModel):
    unread_count: int = Field(..., ge=0)


class MarkReadResponse(BaseModel):
    marked: int = Field(..., ge=0, description="Number of messages newly marked as read")


# ---------------------------------------------------
# Conversation Schema
# ---------------------------------------------------
class ConversationRead(BaseModel):
    """
    One (job, counterpart) conversation as shown in the inbox.
    """

    job: JobSummary
    counterpart: ParticipantInfo
    last_message: MessagePayload | None = None
    unread_count: int = 0
    degraded: bool = Field(
        False, description="True when the summary for this conversation could not be loaded"
    )
