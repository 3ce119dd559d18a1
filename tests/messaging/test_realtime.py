# tests/messaging/test_realtime.py
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch
from uuid import UUID, uuid4

import pytest
import redis.asyncio as redis

from app.messaging.realtime import (
    EventType,
    MessageEvent,
    RealtimeBridge,
    SubscriptionFilter,
)
from app.messaging.schemas import MessagePayload


def make_event(
    event_type: EventType = EventType.INSERT,
    job_id: UUID | None = None,
    receiver_id: UUID | None = None,
) -> MessageEvent:
    return MessageEvent(
        type=event_type,
        message=MessagePayload(
            id=uuid4(),
            job_id=job_id or uuid4(),
            sender_id=uuid4(),
            receiver_id=receiver_id or uuid4(),
            content="Hallo",
            created_at=datetime.now(timezone.utc),
        ),
    )


def test_filter_matches_on_every_set_field() -> None:
    job_id, receiver_id = uuid4(), uuid4()
    event = make_event(job_id=job_id, receiver_id=receiver_id)

    assert SubscriptionFilter().matches(event)
    assert SubscriptionFilter(job_id=job_id).matches(event)
    assert SubscriptionFilter(job_id=job_id, receiver_id=receiver_id).matches(event)
    assert not SubscriptionFilter(job_id=uuid4()).matches(event)
    assert not SubscriptionFilter(job_id=job_id, receiver_id=uuid4()).matches(event)
    assert not SubscriptionFilter(events=frozenset({EventType.UPDATE})).matches(event)


def test_participant_filter_matches_pair_in_either_direction() -> None:
    event = make_event()
    sender_id, receiver_id = event.message.sender_id, event.message.receiver_id

    assert SubscriptionFilter(participants=frozenset({sender_id, receiver_id})).matches(event)
    assert SubscriptionFilter(participants=frozenset({receiver_id, sender_id})).matches(event)
    assert not SubscriptionFilter(participants=frozenset({receiver_id, uuid4()})).matches(event)


@pytest.mark.asyncio
async def test_publish_dispatches_to_matching_subscribers_only(bridge: RealtimeBridge) -> None:
    job_id = uuid4()
    matching, other = AsyncMock(), AsyncMock()
    bridge.subscribe(SubscriptionFilter(job_id=job_id), matching)
    bridge.subscribe(SubscriptionFilter(job_id=uuid4()), other)

    event = make_event(job_id=job_id)
    await bridge.publish(event)

    matching.assert_awaited_once_with(event)
    other.assert_not_awaited()


@pytest.mark.asyncio
async def test_unsubscribe_is_idempotent_and_stops_delivery(bridge: RealtimeBridge) -> None:
    callback = AsyncMock()
    subscription = bridge.subscribe(SubscriptionFilter(), callback)

    subscription.unsubscribe()
    subscription.unsubscribe()
    await bridge.publish(make_event())

    assert bridge.subscriber_count == 0
    assert subscription.active is False
    callback.assert_not_awaited()


@pytest.mark.asyncio
async def test_subscription_released_on_scope_exit(bridge: RealtimeBridge) -> None:
    with bridge.subscribe(SubscriptionFilter(), AsyncMock()):
        assert bridge.subscriber_count == 1
    assert bridge.subscriber_count == 0

    async with bridge.subscribe(SubscriptionFilter(), AsyncMock()) as subscription:
        assert subscription.active
    assert bridge.subscriber_count == 0


@pytest.mark.asyncio
async def test_failing_callback_does_not_affect_others(bridge: RealtimeBridge) -> None:
    failing = AsyncMock(side_effect=RuntimeError("view torn down"))
    healthy = AsyncMock()
    bridge.subscribe(SubscriptionFilter(), failing)
    bridge.subscribe(SubscriptionFilter(), healthy)

    await bridge.publish(make_event())

    failing.assert_awaited_once()
    healthy.assert_awaited_once()


@pytest.mark.asyncio
async def test_callback_may_unsubscribe_during_dispatch(bridge: RealtimeBridge) -> None:
    calls: list[str] = []

    async def once(event: MessageEvent) -> None:
        calls.append("once")
        subscription.unsubscribe()

    subscription = bridge.subscribe(SubscriptionFilter(), once)
    await bridge.publish(make_event())
    await bridge.publish(make_event())

    assert calls == ["once"]


@pytest.mark.asyncio
async def test_start_without_redis_url_stays_local() -> None:
    bridge = RealtimeBridge(redis_url="")
    await bridge.start()

    assert bridge.relay_active is False
    callback = AsyncMock()
    bridge.subscribe(SubscriptionFilter(), callback)
    await bridge.publish(make_event())
    callback.assert_awaited_once()

    await bridge.stop()


@pytest.mark.asyncio
async def test_relay_publish_failure_falls_back_to_local_dispatch() -> None:
    bridge = RealtimeBridge(redis_url="redis://localhost:6379/0")
    fake_redis = AsyncMock()
    fake_redis.publish.side_effect = redis.ConnectionError("gone")
    bridge._redis = fake_redis
    callback = AsyncMock()
    bridge.subscribe(SubscriptionFilter(), callback)

    with patch.object(RealtimeBridge, "relay_active", new=True):
        await bridge.publish(make_event())

    fake_redis.publish.assert_awaited_once()
    callback.assert_awaited_once()


@pytest.mark.asyncio
async def test_relay_publish_sends_serialized_event() -> None:
    bridge = RealtimeBridge(redis_url="redis://localhost:6379/0", channel="test-channel")
    fake_redis = AsyncMock()
    bridge._redis = fake_redis
    callback = AsyncMock()
    bridge.subscribe(SubscriptionFilter(), callback)
    event = make_event()

    with patch.object(RealtimeBridge, "relay_active", new=True):
        await bridge.publish(event)

    channel, data = fake_redis.publish.await_args.args
    assert channel == "test-channel"
    assert MessageEvent.model_validate_json(data) == event
    # Local subscribers are reached through the relay listener, not directly
    callback.assert_not_awaited()
