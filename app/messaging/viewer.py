"""
app/messaging/viewer.py

Conversation View

Server-side state of one connected client's messaging view:
- the global unread badge, kept current from receiver events (a burst of
  events triggers a single recount)
- the open conversation: an ordered, deduplicated message list fed by the
  history load and by INSERT events between the two participants
- read receipts for incoming messages, written in the background

Subscriptions are released when a different conversation is opened and when
the view is closed.
"""

import asyncio
import bisect
import logging
from collections.abc import Awaitable, Callable
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.messaging import schemas
from app.messaging.realtime import (
    EventType,
    MessageEvent,
    RealtimeBridge,
    Subscription,
    SubscriptionFilter,
)
from app.messaging.realtime import bridge as default_bridge
from app.messaging.services import MessageService

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[str, Any], Awaitable[None]]


def _order_key(message: schemas.MessagePayload) -> tuple[Any, UUID]:
    return (message.created_at, message.id)


class ConversationView:
    """Holds the messages and unread badge a viewer currently sees."""

    def __init__(
        self,
        viewer_id: UUID,
        session_factory: async_sessionmaker[AsyncSession],
        bridge: RealtimeBridge = default_bridge,
        on_change: ChangeCallback | None = None,
    ) -> None:
        self.viewer_id = viewer_id
        self.session_factory = session_factory
        self.bridge = bridge
        self.on_change = on_change

        self.job_id: UUID | None = None
        self.counterpart_id: UUID | None = None
        self.messages: list[schemas.MessagePayload] = []
        self.unread_count = 0

        self._message_ids: set[UUID] = set()
        self._receiver_subscription: Subscription | None = None
        self._job_subscription: Subscription | None = None
        self._pending: set[asyncio.Task[None]] = set()
        self._recount_task: asyncio.Task[None] | None = None
        self._recount_dirty = False

    async def _notify(self, kind: str, data: Any) -> None:
        if self.on_change is not None:
            await self.on_change(kind, data)

    # ---------------------------------------------------
    # Lifecycle
    # ---------------------------------------------------
    async def start(self) -> None:
        """Subscribe to the viewer's incoming events and load the unread badge."""
        if self._receiver_subscription is None:
            self._receiver_subscription = self.bridge.subscribe(
                SubscriptionFilter(receiver_id=self.viewer_id), self._on_receiver_event
            )
        await self.refresh_unread_count()

    async def close(self) -> None:
        """Release every subscription and wait out pending read receipts."""
        self._release_job_subscription()
        if self._receiver_subscription is not None:
            self._receiver_subscription.unsubscribe()
            self._receiver_subscription = None

        pending = list(self._pending)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._pending.clear()
        logger.debug(f"[VIEW] Closed view of user {self.viewer_id}")

    async def __aenter__(self) -> "ConversationView":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _release_job_subscription(self) -> None:
        if self._job_subscription is not None:
            self._job_subscription.unsubscribe()
            self._job_subscription = None

    # ---------------------------------------------------
    # Conversation
    # ---------------------------------------------------
    async def open(
        self, job_id: UUID, counterpart_id: UUID | None = None
    ) -> list[schemas.MessagePayload]:
        """
        Switch to a conversation: drop the previous subscription, subscribe
        to the conversation's inserts and load its history (marking it read).

        A craftsman's conversation is always the one with the job's customer;
        the customer names the applicant or leaves `counterpart_id` unset to
        see the whole job.

        Raises whatever the history load raises (NotFoundError, UnauthorizedError, ...).
        """
        self._release_job_subscription()
        self.job_id = job_id
        self.counterpart_id = None
        self.messages = []
        self._message_ids = set()

        try:
            async with self.session_factory() as session:
                service = MessageService(session, self.bridge)
                counterpart = await service.resolve_counterpart(self.viewer_id, job_id, counterpart_id)
                participants = None if counterpart is None else frozenset({self.viewer_id, counterpart})

                # Subscribe first so nothing inserted during the load is missed
                self._job_subscription = self.bridge.subscribe(
                    SubscriptionFilter(
                        job_id=job_id,
                        participants=participants,
                        events=frozenset({EventType.INSERT}),
                    ),
                    self._on_job_event,
                )
                history = await service.load_history(self.viewer_id, job_id, counterpart)
        except Exception:
            self._release_job_subscription()
            self.job_id = None
            raise

        self.counterpart_id = counterpart
        for message in history:
            self.add_message(message)
        logger.info(
            f"[VIEW] User {self.viewer_id} opened job {job_id} with {counterpart} ({len(self.messages)} messages)"
        )
        await self._notify("history", list(self.messages))
        return list(self.messages)

    def add_message(self, message: schemas.MessagePayload) -> bool:
        """Insert in creation order. Returns False for an already-known message."""
        if message.id in self._message_ids:
            return False
        self._message_ids.add(message.id)
        bisect.insort(self.messages, message, key=_order_key)
        return True

    async def send(self, job_id: UUID, receiver_id: UUID, content: str) -> schemas.MessageRead:
        async with self.session_factory() as session:
            message = await MessageService(session, self.bridge).send(
                self.viewer_id, job_id, receiver_id, content
            )
        if job_id == self.job_id and self.counterpart_id in (None, receiver_id):
            self.add_message(message)
        return message

    async def refresh_unread_count(self) -> int:
        async with self.session_factory() as session:
            count = await MessageService(session, self.bridge).unread_count(self.viewer_id)
        self.unread_count = count
        await self._notify("unread_count", count)
        return count

    # ---------------------------------------------------
    # Event Handlers
    # ---------------------------------------------------
    async def _on_job_event(self, event: MessageEvent) -> None:
        message = event.message
        if message.job_id != self.job_id:
            return
        if not self.add_message(message):
            return
        await self._notify("message", message)
        if message.receiver_id == self.viewer_id and message.read_at is None:
            self._mark_read_in_background(message.id)

    async def _on_receiver_event(self, event: MessageEvent) -> None:
        # A burst of events (one per message marked read) collapses into one recount
        self._recount_dirty = True
        if self._recount_task is None or self._recount_task.done():
            self._recount_task = asyncio.create_task(self._recount())
            self._pending.add(self._recount_task)
            self._recount_task.add_done_callback(self._pending.discard)

    async def _recount(self) -> None:
        while self._recount_dirty:
            self._recount_dirty = False
            try:
                await self.refresh_unread_count()
            except Exception as e:
                logger.warning(f"[VIEW] Could not refresh unread count of user {self.viewer_id}: {e}")

    def _mark_read_in_background(self, message_id: UUID) -> None:
        task = asyncio.create_task(self._mark_read(message_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _mark_read(self, message_id: UUID) -> None:
        try:
            async with self.session_factory() as session:
                await MessageService(session, self.bridge).mark_message_read(
                    self.viewer_id, message_id
                )
        except Exception as e:
            logger.warning(f"[VIEW] Could not mark message {message_id} read: {e}")
