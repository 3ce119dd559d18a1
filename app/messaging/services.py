"""
app/messaging/services.py

Messaging Service Logic

Handles the message history of one job-scoped conversation:
- Load the history of a conversation (marking the viewer's unread messages read)
- Send a message between the job's customer and one of its applicants
- Read receipts and unread counts

A conversation is keyed by (job, counterpart). A craftsman only ever talks
to the job's customer; the customer talks to each applicant separately and
may also read the whole job at once.

Every path checks party membership through `is_party_to_job`.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from app.core.backend import call_backend
from app.core.clock import utcnow
from app.core.exceptions import (
    BackendError,
    NotFoundError,
    TransientBackendError,
    UnauthorizedError,
    ValidationError,
)
from app.database.models import User
from app.jobs.access import is_party_to_job, load_job_with_parties
from app.jobs.models import Job
from app.messaging import schemas
from app.messaging.models import Message, between_pair
from app.messaging.realtime import EventType, MessageEvent, RealtimeBridge
from app.messaging.realtime import bridge as default_bridge

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _party_user(job: Job, user_id: UUID) -> User | None:
    """Return the loaded User for a party of the job."""
    if job.customer_id == user_id:
        return job.customer
    for application in job.applications:
        if application.craftsman_id == user_id:
            return application.craftsman
    return None


class MessageService:
    """Service class for job-scoped messaging."""

    def __init__(self, db: AsyncSession, bridge: RealtimeBridge = default_bridge) -> None:
        self.db = db
        self.bridge = bridge

    async def _get_job_or_404(self, job_id: UUID) -> Job:
        job = await call_backend(
            self.db, lambda: load_job_with_parties(self.db, job_id), "load job"
        )
        if not job:
            logger.warning(f"[MESSAGE] Job not found: job_id={job_id}")
            raise NotFoundError("Auftrag nicht gefunden")
        return job

    async def _write(
        self,
        operation: Callable[[], Awaitable[T]],
        description: str,
        message: str = "Die Änderung konnte nicht gespeichert werden",
    ) -> T:
        """Run a write without retry; any failure is rolled back and raised as BackendError."""
        try:
            return await call_backend(self.db, operation, description, retries=0)
        except (SQLAlchemyError, TransientBackendError) as e:
            logger.error(f"[MESSAGE] Error during {description}: {e}", exc_info=True)
            await self.db.rollback()
            raise BackendError(message) from e

    async def _publish(self, event_type: EventType, messages: list[Message]) -> None:
        for message in messages:
            await self.bridge.publish(
                MessageEvent(type=event_type, message=schemas.MessagePayload.model_validate(message))
            )

    # ---------------------------------------------------
    # Conversation Scope
    # ---------------------------------------------------
    @staticmethod
    def _counterpart_for(viewer_id: UUID, job: Job, counterpart_id: UUID | None) -> UUID | None:
        if viewer_id != job.customer_id:
            # A craftsman's only conversation on a job is the one with its customer
            if counterpart_id is not None and counterpart_id != job.customer_id:
                raise ValidationError("Der Gesprächspartner ist kein Beteiligter dieses Auftrags")
            return job.customer_id
        if counterpart_id is None:
            return None
        if counterpart_id == viewer_id or not is_party_to_job(counterpart_id, job):
            raise ValidationError("Der Gesprächspartner ist kein Beteiligter dieses Auftrags")
        return counterpart_id

    async def _load_party_job(self, viewer_id: UUID, job_id: UUID) -> Job:
        job = await self._get_job_or_404(job_id)
        if not is_party_to_job(viewer_id, job):
            logger.warning(f"[MESSAGE] User {viewer_id} is not a party to job {job_id}")
            raise UnauthorizedError("Sie sind an diesem Auftrag nicht beteiligt")
        return job

    async def resolve_counterpart(
        self, viewer_id: UUID, job_id: UUID, counterpart_id: UUID | None = None
    ) -> UUID | None:
        """
        Return the counterpart of the viewer's conversation on the job, or
        None when the job's customer reads the job as a whole.

        Raises:
            NotFoundError: job does not exist.
            UnauthorizedError: viewer is not a party to the job.
            ValidationError: counterpart is not the viewer's conversation partner on the job.
        """
        job = await self._load_party_job(viewer_id, job_id)
        return self._counterpart_for(viewer_id, job, counterpart_id)

    # ---------------------------------------------------
    # History
    # ---------------------------------------------------
    async def load_history(
        self, viewer_id: UUID, job_id: UUID, counterpart_id: UUID | None = None
    ) -> list[schemas.MessageRead]:
        """
        Return the viewer's conversation on the job, oldest first, as it was
        before this call, then mark the viewer's unread messages in it as read.

        Raises:
            NotFoundError: job does not exist.
            UnauthorizedError: viewer is not a party to the job.
            ValidationError: counterpart is not the viewer's conversation partner.
            TransientBackendError: the history could not be read after a retry.
        """
        job = await self._load_party_job(viewer_id, job_id)
        counterpart = self._counterpart_for(viewer_id, job, counterpart_id)

        stmt = select(Message).filter(Message.job_id == job_id)
        if counterpart is not None:
            stmt = stmt.filter(between_pair(viewer_id, counterpart))
        stmt = stmt.order_by(Message.created_at.asc(), Message.id.asc())

        async def _run() -> list[Message]:
            return list((await self.db.execute(stmt)).scalars().all())

        messages = await call_backend(self.db, _run, "load history")
        history = [schemas.MessageRead.model_validate(m) for m in messages]

        # Read receipts are best effort and never block the history
        try:
            await self.mark_read(viewer_id, job_id, counterpart)
        except (SQLAlchemyError, TransientBackendError, BackendError) as e:
            logger.warning(f"[MESSAGE] Could not mark job {job_id} read for {viewer_id}: {e}")
            await self.db.rollback()

        logger.info(f"[MESSAGE] Loaded {len(history)} messages of job {job_id} for {viewer_id}")
        return history

    # ---------------------------------------------------
    # Sending
    # ---------------------------------------------------
    async def send(
        self, sender_id: UUID, job_id: UUID, receiver_id: UUID, content: str
    ) -> schemas.MessageRead:
        """
        Insert a message between the job's customer and one of its applicants.

        Raises:
            ValidationError: content is blank, or the receiver is not the
                sender's conversation partner on the job.
            NotFoundError: job does not exist.
            UnauthorizedError: sender is not a party to the job.
            BackendError: the message could not be stored.
        """
        text = (content or "").strip()
        if not text:
            raise ValidationError("Die Nachricht darf nicht leer sein")

        job = await self._get_job_or_404(job_id)
        if not is_party_to_job(sender_id, job):
            logger.warning(f"[MESSAGE] Send denied: {sender_id} is not a party to job {job_id}")
            raise UnauthorizedError("Sie sind an diesem Auftrag nicht beteiligt")
        # Exactly one side of every conversation is the customer
        if not is_party_to_job(receiver_id, job) or (
            (sender_id == job.customer_id) == (receiver_id == job.customer_id)
        ):
            logger.warning(
                f"[MESSAGE] Send denied: {receiver_id} is no conversation partner of {sender_id} on job {job_id}"
            )
            raise ValidationError("Der Empfänger ist kein Beteiligter dieses Auftrags")

        message = Message(
            job_id=job.id,
            sender=_party_user(job, sender_id),
            receiver=_party_user(job, receiver_id),
            content=text,
            read_at=None,
        )
        self.db.add(message)
        await self._write(
            self.db.commit, "send message", "Die Nachricht konnte nicht gespeichert werden"
        )

        logger.info(f"[MESSAGE] {sender_id} -> {receiver_id} on job {job_id}: message {message.id}")
        await self._publish(EventType.INSERT, [message])
        return schemas.MessageRead.model_validate(message)

    # ---------------------------------------------------
    # Read Receipts
    # ---------------------------------------------------
    async def mark_read(
        self, viewer_id: UUID, job_id: UUID, counterpart_id: UUID | None = None
    ) -> int:
        """Mark unread messages to the viewer in the job, optionally from one sender, as read. Idempotent."""
        select_stmt = select(Message).filter(
            Message.job_id == job_id,
            Message.receiver_id == viewer_id,
            Message.read_at.is_(None),
        )
        if counterpart_id is not None:
            select_stmt = select_stmt.filter(Message.sender_id == counterpart_id)

        async def _run() -> list[Message]:
            return list((await self.db.execute(select_stmt)).scalars().all())

        unread = await call_backend(self.db, _run, "load unread messages")
        if not unread:
            return 0

        now = utcnow()
        update_stmt = (
            update(Message)
            .where(Message.id.in_([m.id for m in unread]), Message.read_at.is_(None))
            .values(read_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await self._write(lambda: self.db.execute(update_stmt), "mark read")
        await self._write(self.db.commit, "commit mark read")

        for m in unread:
            set_committed_value(m, "read_at", now)
        logger.info(
            f"[MESSAGE] Marked {result.rowcount} message(s) read on job {job_id} for {viewer_id}"
        )
        await self._publish(EventType.UPDATE, unread)
        return result.rowcount

    async def mark_conversation_read(
        self, viewer_id: UUID, job_id: UUID, counterpart_id: UUID | None = None
    ) -> int:
        """
        Mark the viewer's conversation on the job as read.

        Raises:
            NotFoundError: job does not exist.
            UnauthorizedError: viewer is not a party to the job.
            ValidationError: counterpart is not the viewer's conversation partner.
        """
        counterpart = await self.resolve_counterpart(viewer_id, job_id, counterpart_id)
        return await self.mark_read(viewer_id, job_id, counterpart)

    async def mark_message_read(
        self, viewer_id: UUID, message_id: UUID
    ) -> schemas.MessagePayload:
        """Mark a single message read if the viewer is its receiver. Idempotent."""

        async def _run() -> Message | None:
            return await self.db.get(Message, message_id)

        message = await call_backend(self.db, _run, "load message")
        if not message:
            raise NotFoundError("Nachricht nicht gefunden")
        if message.receiver_id != viewer_id:
            raise UnauthorizedError("Nur der Empfänger kann eine Nachricht als gelesen markieren")
        if message.read_at is not None:
            return schemas.MessagePayload.model_validate(message)

        now = utcnow()
        update_stmt = (
            update(Message)
            .where(Message.id == message_id, Message.read_at.is_(None))
            .values(read_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await self._write(lambda: self.db.execute(update_stmt), "mark message read")
        await self._write(self.db.commit, "commit mark message read")
        await self.db.refresh(message, attribute_names=["read_at"])

        if result.rowcount:
            await self._publish(EventType.UPDATE, [message])
        return schemas.MessagePayload.model_validate(message)

    async def unread_count(self, viewer_id: UUID, job_id: UUID | None = None) -> int:
        """Messages addressed to the viewer with no read receipt, optionally per job."""
        stmt = select(func.count(Message.id)).filter(
            Message.receiver_id == viewer_id, Message.read_at.is_(None)
        )
        if job_id is not None:
            stmt = stmt.filter(Message.job_id == job_id)

        async def _run() -> int:
            return (await self.db.execute(stmt)).scalar_one()

        return await call_backend(self.db, _run, "unread count")
