"""
app/messaging/routes.py

Messaging API Routes

Defines all routes for the messaging system, including:
- Loading the history of a job conversation (marks it read)
- Marking a whole conversation read
- Sending a message to another party of a job
- Listing the conversations of the authenticated user
- Unread counts and single read receipts

All operations require user authentication and party membership on the job.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.dependencies import get_current_user
from app.core.limiter import limiter
from app.database.models import User
from app.database.session import get_db, get_session_factory
from app.messaging import schemas
from app.messaging.conversations import ConversationService
from app.messaging.services import MessageService

# ---------------------------------------------------
# Router Configuration
# ---------------------------------------------------
router = APIRouter(prefix="/messages", tags=["Messaging"])

# ---------------------------------------------------
# Dependencies
# ---------------------------------------------------
DBDep = Annotated[AsyncSession, Depends(get_db)]
SessionFactoryDep = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]
AuthenticatedUserDep = Annotated[User, Depends(get_current_user)]

# ---------------------------------------------------
# Messaging Endpoints (Authenticated Users Only)
# ---------------------------------------------------


@router.get(
    "",
    response_model=schemas.MessageListResponse,
    status_code=status.HTTP_200_OK,
    summary="Load Conversation History",
    description=(
        "Messages between the caller and counterpartId on a job, oldest first. "
        "Craftsmen always see their conversation with the customer; the customer "
        "sees the whole job when counterpartId is omitted. Marks the returned "
        "unread messages as read."
    ),
)
@limiter.limit("60/minute")
async def get_messages(
    request: Request,
    db: DBDep,
    current_user: AuthenticatedUserDep,
    job_id: UUID = Query(..., alias="jobId", description="Job whose messages to load"),
    counterpart_id: UUID | None = Query(None, alias="counterpartId", description="Other party of the conversation"),
) -> schemas.MessageListResponse:
    messages = await MessageService(db).load_history(current_user.id, job_id, counterpart_id)
    return schemas.MessageListResponse(messages=messages)


@router.post(
    "",
    response_model=schemas.MessageEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Send Message",
    description="Send a message to another party of the job. Requires jobId, receiverId and content.",
)
@limiter.limit("30/minute")
async def send_message(
    request: Request,
    payload: schemas.MessageCreate,
    db: DBDep,
    current_user: AuthenticatedUserDep,
) -> schemas.MessageEnvelope:
    message = await MessageService(db).send(
        sender_id=current_user.id,
        job_id=payload.job_id,
        receiver_id=payload.receiver_id,
        content=payload.content,
    )
    return schemas.MessageEnvelope(message=message)


@router.get(
    "/conversations",
    response_model=list[schemas.ConversationRead],
    status_code=status.HTTP_200_OK,
    summary="List Conversations",
    description="One entry per (job, counterpart), most recently active first.",
)
@limiter.limit("30/minute")
async def list_conversations(
    request: Request,
    db: DBDep,
    session_factory: SessionFactoryDep,
    current_user: AuthenticatedUserDep,
) -> list[schemas.ConversationRead]:
    return await ConversationService(db, session_factory).list_conversations(current_user.id)


@router.get(
    "/unread-count",
    response_model=schemas.UnreadCountResponse,
    status_code=status.HTTP_200_OK,
    summary="Unread Message Count",
)
@limiter.limit("60/minute")
async def get_unread_count(
    request: Request,
    db: DBDep,
    current_user: AuthenticatedUserDep,
    job_id: UUID | None = Query(None, alias="jobId", description="Limit the count to one job"),
) -> schemas.UnreadCountResponse:
    count = await MessageService(db).unread_count(current_user.id, job_id)
    return schemas.UnreadCountResponse(unread_count=count)


@router.patch(
    "/read",
    response_model=schemas.MarkReadResponse,
    status_code=status.HTTP_200_OK,
    summary="Mark Conversation Read",
    description="Marks the caller's unread messages of a conversation (or, for the customer, the whole job) as read.",
)
@limiter.limit("60/minute")
async def mark_conversation_read(
    request: Request,
    db: DBDep,
    current_user: AuthenticatedUserDep,
    job_id: UUID = Query(..., alias="jobId", description="Job of the conversation"),
    counterpart_id: UUID | None = Query(None, alias="counterpartId", description="Other party of the conversation"),
) -> schemas.MarkReadResponse:
    marked = await MessageService(db).mark_conversation_read(current_user.id, job_id, counterpart_id)
    return schemas.MarkReadResponse(marked=marked)


@router.patch(
    "/{message_id}/read",
    response_model=schemas.MessagePayload,
    status_code=status.HTTP_200_OK,
    summary="Mark Message Read",
)
@limiter.limit("60/minute")
async def mark_message_read(
    request: Request,
    message_id: UUID,
    db: DBDep,
    current_user: AuthenticatedUserDep,
) -> schemas.MessagePayload:
    return await MessageService(db).mark_message_read(current_user.id, message_id)
