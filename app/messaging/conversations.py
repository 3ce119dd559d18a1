"""
app/messaging/conversations.py

Conversation Aggregator

Builds the inbox of a user: one conversation per (job, counterpart) pair,
most recently active first. A job owner has a conversation with each
applicant; a craftsman has one with the job's customer.

Per-conversation summaries run concurrently, each in its own session, so
one failing summary only degrades that conversation.
"""

import asyncio
import logging
from collections.abc import Iterator
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from app.applications.models import JobApplication
from app.core.backend import call_backend
from app.database.models import User
from app.jobs.models import Job
from app.jobs.schemas import JobSummary
from app.messaging import schemas
from app.messaging.models import Message, between_pair

logger = logging.getLogger(__name__)


class ConversationService:
    """Aggregates job-scoped messages into per-counterpart conversations."""

    def __init__(
        self, db: AsyncSession, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        self.db = db
        self.session_factory = session_factory

    async def _fetch_jobs(self, user_id: UUID) -> list[Job]:
        applied = select(JobApplication.job_id).filter(JobApplication.craftsman_id == user_id)
        stmt = (
            select(Job)
            .options(
                selectinload(Job.customer),
                selectinload(Job.applications).selectinload(JobApplication.craftsman),
            )
            .filter(or_(Job.customer_id == user_id, Job.id.in_(applied)))
            .order_by(Job.created_at.desc())
        )

        async def _run() -> list[Job]:
            return list((await self.db.execute(stmt)).unique().scalars().all())

        return await call_backend(self.db, _run, "load conversation jobs")

    @staticmethod
    def _pairs(user_id: UUID, jobs: list[Job]) -> Iterator[tuple[Job, User]]:
        for job in jobs:
            if job.customer_id == user_id:
                for application in job.applications:
                    yield job, application.craftsman
            else:
                yield job, job.customer

    async def _summarize(
        self, user_id: UUID, job: Job, counterpart: User
    ) -> schemas.ConversationRead:
        conversation = schemas.ConversationRead(
            job=JobSummary.model_validate(job),
            counterpart=schemas.ParticipantInfo.model_validate(counterpart),
        )
        latest_stmt = (
            select(Message)
            .filter(Message.job_id == job.id, between_pair(user_id, counterpart.id))
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(1)
        )
        unread_stmt = select(func.count(Message.id)).filter(
            Message.job_id == job.id,
            Message.sender_id == counterpart.id,
            Message.receiver_id == user_id,
            Message.read_at.is_(None),
        )

        try:
            async with self.session_factory() as session:

                async def _latest() -> Message | None:
                    return (await session.execute(latest_stmt)).scalars().first()

                async def _unread() -> int:
                    return (await session.execute(unread_stmt)).scalar_one()

                last_message = await call_backend(session, _latest, "latest message")
                unread_count = await call_backend(session, _unread, "conversation unread count")
        except Exception as e:
            logger.error(
                f"[CONVERSATION] Summary failed for job {job.id} / counterpart {counterpart.id}: {e}"
            )
            conversation.degraded = True
            return conversation

        if last_message is not None:
            conversation.last_message = schemas.MessagePayload.model_validate(last_message)
        conversation.unread_count = unread_count
        return conversation

    async def list_conversations(self, user_id: UUID) -> list[schemas.ConversationRead]:
        """
        Conversations of the user, most recent message first; conversations
        without messages follow in job order.

        Raises:
            TransientBackendError: the jobs could not be loaded.
        """
        jobs = await self._fetch_jobs(user_id)
        pairs = list(self._pairs(user_id, jobs))
        conversations = await asyncio.gather(
            *(self._summarize(user_id, job, counterpart) for job, counterpart in pairs)
        )

        active = [c for c in conversations if c.last_message is not None]
        silent = [c for c in conversations if c.last_message is None]
        active.sort(key=lambda c: c.last_message.created_at, reverse=True)  # type: ignore[union-attr]

        degraded = sum(1 for c in conversations if c.degraded)
        logger.info(
            f"[CONVERSATION] {len(conversations)} conversation(s) for user {user_id} ({degraded} degraded)"
        )
        return active + silent
