"""
app/messaging/realtime.py

Realtime Bridge

Delivers message INSERT/UPDATE events to subscribed views:
- subscribe(filter, callback) returns a Subscription handle that must be
  released on scope exit (it is a sync and async context manager)
- publish(event) fans the event out through Redis pub/sub when a relay is
  configured, so every API process sees it, and dispatches locally otherwise
- a failing callback is logged and never affects the other subscribers

Delivery is at-least-once; receivers deduplicate by message id.
"""

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

import redis.asyncio as redis
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from app.core.config import settings
from app.messaging.schemas import MessagePayload

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"


class MessageEvent(BaseModel):
    """A change on the messages table."""

    type: EventType
    message: MessagePayload


EventCallback = Callable[[MessageEvent], Awaitable[None]]


@dataclass(frozen=True)
class SubscriptionFilter:
    """
    Selects events by type and, when set, by job, receiver and the pair of
    participants (sender and receiver in either direction).
    Every field that is set must match.
    """

    job_id: UUID | None = None
    receiver_id: UUID | None = None
    participants: frozenset[UUID] | None = None
    events: frozenset[EventType] = field(default_factory=lambda: frozenset(EventType))

    def matches(self, event: MessageEvent) -> bool:
        if event.type not in self.events:
            return False
        if self.job_id is not None and event.message.job_id != self.job_id:
            return False
        if self.receiver_id is not None and event.message.receiver_id != self.receiver_id:
            return False
        if self.participants is not None and self.participants != {
            event.message.sender_id,
            event.message.receiver_id,
        }:
            return False
        return True


class Subscription:
    """Handle for a registered callback. `unsubscribe()` is idempotent."""

    def __init__(
        self, bridge: "RealtimeBridge", event_filter: SubscriptionFilter, callback: EventCallback
    ) -> None:
        self.id = uuid4()
        self.filter = event_filter
        self.callback = callback
        self._bridge = bridge
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._bridge._remove(self.id)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.unsubscribe()

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.unsubscribe()


class RealtimeBridge:
    """
    In-process event hub with an optional Redis pub/sub relay.
    """

    def __init__(self, redis_url: str = "", channel: str = "messages") -> None:
        self.redis_url = redis_url
        self.channel = channel
        self._subscriptions: dict[UUID, Subscription] = {}
        self._redis: redis.Redis | None = None  # type: ignore[type-arg]
        self._pubsub: Any = None
        self._listener: asyncio.Task[None] | None = None

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    @property
    def relay_active(self) -> bool:
        return self._listener is not None and not self._listener.done()

    # ---------------------------------------------------
    # Subscriptions
    # ---------------------------------------------------
    def subscribe(self, event_filter: SubscriptionFilter, callback: EventCallback) -> Subscription:
        subscription = Subscription(self, event_filter, callback)
        self._subscriptions[subscription.id] = subscription
        logger.debug(f"[REALTIME] Subscription {subscription.id} added ({event_filter})")
        return subscription

    def _remove(self, subscription_id: UUID) -> None:
        if self._subscriptions.pop(subscription_id, None) is not None:
            logger.debug(f"[REALTIME] Subscription {subscription_id} removed")

    # ---------------------------------------------------
    # Publishing
    # ---------------------------------------------------
    async def publish(self, event: MessageEvent) -> None:
        """Send an event to every matching subscriber, across processes when relayed."""
        if self._redis is not None and self.relay_active:
            try:
                await self._redis.publish(self.channel, event.model_dump_json())
                return
            except redis.RedisError as e:
                logger.warning(f"[REALTIME] Relay publish failed, dispatching locally: {e}")
        await self.dispatch(event)

    async def dispatch(self, event: MessageEvent) -> None:
        """Deliver an event to local subscribers."""
        # Copy: callbacks may subscribe or unsubscribe while we iterate
        for subscription in list(self._subscriptions.values()):
            if not subscription.active or not subscription.filter.matches(event):
                continue
            try:
                await subscription.callback(event)
            except Exception as e:
                logger.error(
                    f"[REALTIME] Callback for subscription {subscription.id} failed: {e}",
                    exc_info=True,
                )

    # ---------------------------------------------------
    # Relay Lifecycle
    # ---------------------------------------------------
    async def start(self) -> None:
        """Connect the Redis relay, if configured."""
        if not self.redis_url:
            logger.info("[REALTIME] No REDIS_URL configured, using in-process delivery only")
            return
        if self.relay_active:
            return
        try:
            self._redis = redis.from_url(self.redis_url, decode_responses=True)
            self._pubsub = self._redis.pubsub()
            await self._pubsub.subscribe(self.channel)
        except redis.RedisError as e:
            logger.error(f"[REALTIME] Could not connect relay, using in-process delivery: {e}")
            await self._close_connections()
            return
        self._listener = asyncio.create_task(self._listen())
        logger.info(f"[REALTIME] Relay listening on channel '{self.channel}'")

    async def _listen(self) -> None:
        try:
            async for raw in self._pubsub.listen():
                if raw.get("type") != "message":
                    continue
                try:
                    event = MessageEvent.model_validate_json(raw["data"])
                except PydanticValidationError as e:
                    logger.warning(f"[REALTIME] Dropping malformed relay event: {e}")
                    continue
                await self.dispatch(event)
        except redis.RedisError as e:
            logger.error(f"[REALTIME] Relay listener stopped: {e}")

    async def stop(self) -> None:
        """Stop the relay listener and close Redis connections."""
        if self._listener is not None:
            self._listener.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._listener
            self._listener = None
        await self._close_connections()

    async def _close_connections(self) -> None:
        if self._pubsub is not None:
            try:
                await self._pubsub.unsubscribe(self.channel)
                await self._pubsub.aclose()
            except redis.RedisError as e:
                logger.warning(f"[REALTIME] Error closing pubsub: {e}")
            self._pubsub = None
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


# Global instance shared by the HTTP routes and websocket views
bridge = RealtimeBridge(redis_url=settings.REDIS_URL, channel=settings.REALTIME_CHANNEL)
