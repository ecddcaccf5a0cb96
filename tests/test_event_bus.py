import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from space_together.schemas.events import Event, EventKind
from space_together.services.event_bus import HEARTBEAT_FRAME, EventBus

from conftest import parse_frame


async def next_frame(stream, timeout: float = 1.0) -> str:
    return await asyncio.wait_for(stream.__anext__(), timeout)


async def drain(stream) -> list:
    return [frame async for frame in stream]


async def settle():
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_stream_starts_with_connected_event():
    bus = EventBus(heartbeat_interval=None)
    subscriber_id, stream = await bus.register()

    kind, message = parse_frame(await next_frame(stream))

    assert kind == "connected"
    assert message["entity_type"] == "system"
    assert message["data"]["client_id"] == subscriber_id
    assert "entity_id" not in message
    assert bus.subscriber_count() == 1


@pytest.mark.asyncio
async def test_events_arrive_in_publish_order():
    bus = EventBus(heartbeat_interval=None)
    _, stream = await bus.register()
    await next_frame(stream)

    for index in range(10):
        await bus.broadcast_created("class", str(index), {"index": index})

    received = [parse_frame(await next_frame(stream))[1] for _ in range(10)]
    assert [message["entity_id"] for message in received] == [str(index) for index in range(10)]
    assert [message["data"]["index"] for message in received] == list(range(10))


@pytest.mark.asyncio
async def test_every_subscriber_gets_each_event():
    bus = EventBus(heartbeat_interval=None)
    streams = [(await bus.register())[1] for _ in range(3)]

    delivered = await bus.broadcast_updated("school", "s1", {"name": "Hill"})

    assert delivered == 3
    for stream in streams:
        await next_frame(stream)
        kind, message = parse_frame(await next_frame(stream))
        assert kind == "updated"
        assert message["entity_type"] == "school"
        assert message["data"] == {"name": "Hill"}


@pytest.mark.asyncio
async def test_slow_subscriber_is_dropped_after_queue_fills():
    bus = EventBus(queue_size=64, heartbeat_interval=None)
    _, slow = await bus.register()
    _, fast = await bus.register()
    await next_frame(fast)

    fast_received = []
    for index in range(100):
        await bus.broadcast_created("class", str(index), {"index": index})
        fast_received.append(parse_frame(await next_frame(fast))[1]["entity_id"])

    assert bus.subscriber_count() == 1
    assert fast_received == [str(index) for index in range(100)]

    frames = await drain(slow)
    ids = [parse_frame(frame)[1].get("entity_id") for frame in frames[1:]]
    assert ids == [str(index) for index in range(64)]


@pytest.mark.asyncio
async def test_dropped_subscriber_does_not_come_back():
    bus = EventBus(queue_size=1, heartbeat_interval=None)
    await bus.register()

    assert await bus.broadcast_created("class", "1", None) == 1
    assert await bus.broadcast_created("class", "2", None) == 0
    assert await bus.broadcast_created("class", "3", None) == 0
    assert bus.subscriber_count() == 0


@pytest.mark.asyncio
async def test_unregister_is_idempotent_and_ends_stream():
    bus = EventBus(heartbeat_interval=None)
    subscriber_id, stream = await bus.register()

    await bus.unregister(subscriber_id)
    await bus.unregister(subscriber_id)
    await bus.unregister("never-registered")

    assert bus.subscriber_count() == 0
    frames = await drain(stream)
    assert len(frames) == 1
    assert parse_frame(frames[0])[0] == "connected"


@pytest.mark.asyncio
async def test_subscriber_count_follows_register_and_unregister():
    bus = EventBus(heartbeat_interval=None)
    ids = [(await bus.register())[0] for _ in range(3)]
    assert bus.subscriber_count() == 3

    await bus.unregister(ids[0])
    assert bus.subscriber_count() == 2

    bus.schedule_unregister(ids[1])
    await settle()
    assert bus.subscriber_count() == 1


@pytest.mark.asyncio
async def test_publish_without_subscribers():
    bus = EventBus(heartbeat_interval=None)

    assert await bus.broadcast_deleted("class", "c1", {"id": "c1"}) == 0
    assert bus.sequence == 1


@pytest.mark.asyncio
async def test_unserializable_payload_is_sent_as_null():
    bus = EventBus(heartbeat_interval=None)
    _, stream = await bus.register()
    await next_frame(stream)

    await bus.broadcast_created("class", "c1", {"ratio": float("nan")})

    kind, message = parse_frame(await next_frame(stream))
    assert kind == "created"
    assert message["entity_id"] == "c1"
    assert message["data"] is None


@pytest.mark.asyncio
async def test_custom_event_kinds():
    bus = EventBus(heartbeat_interval=None)
    _, stream = await bus.register()
    await next_frame(stream)

    await bus.broadcast_custom("archived", "class", {"id": "c1"})

    kind, message = parse_frame(await next_frame(stream))
    assert kind == "archived"
    assert "entity_id" not in message


@pytest.mark.asyncio
async def test_timestamps_never_go_backwards():
    bus = EventBus(heartbeat_interval=None)
    _, stream = await bus.register()
    await next_frame(stream)

    now = datetime.now(timezone.utc)
    await bus.publish(Event(event=EventKind.UPDATED.value, entity_type="class", timestamp=now))
    await bus.publish(Event(event=EventKind.UPDATED.value, entity_type="class", timestamp=now - timedelta(hours=1)))

    first = parse_frame(await next_frame(stream))[1]["timestamp"]
    second = parse_frame(await next_frame(stream))[1]["timestamp"]
    assert datetime.fromisoformat(second) >= datetime.fromisoformat(first)


@pytest.mark.asyncio
async def test_connected_event_is_not_newer_than_what_follows():
    bus = EventBus(heartbeat_interval=None)
    earlier = Event(event=EventKind.UPDATED.value, entity_type="class", timestamp=datetime.now(timezone.utc) - timedelta(minutes=5))
    _, stream = await bus.register()

    await bus.publish(earlier)

    connected = parse_frame(await next_frame(stream))[1]["timestamp"]
    update = parse_frame(await next_frame(stream))[1]["timestamp"]
    assert datetime.fromisoformat(update) >= datetime.fromisoformat(connected)


@pytest.mark.asyncio
async def test_naive_timestamp_is_published_as_utc():
    bus = EventBus(heartbeat_interval=None)
    _, stream = await bus.register()
    await next_frame(stream)

    delivered = await bus.publish(Event(event=EventKind.UPDATED.value, entity_type="class", timestamp=datetime(2099, 1, 1, 12, 0)))

    assert delivered == 1
    assert parse_frame(await next_frame(stream))[1]["timestamp"] == "2099-01-01T12:00:00+00:00"


@pytest.mark.asyncio
async def test_heartbeat_while_idle():
    bus = EventBus(heartbeat_interval=0.01)
    _, stream = await bus.register()
    await next_frame(stream)

    assert await next_frame(stream) == HEARTBEAT_FRAME


@pytest.mark.asyncio
async def test_close_disconnects_everyone():
    bus = EventBus(heartbeat_interval=None)
    streams = [(await bus.register())[1] for _ in range(2)]

    await bus.close()

    assert bus.subscriber_count() == 0
    for stream in streams:
        assert len(await drain(stream)) == 1


@pytest.mark.asyncio
async def test_event_after_heartbeat_is_delivered():
    bus = EventBus(heartbeat_interval=0.01)
    _, stream = await bus.register()
    await next_frame(stream)
    assert await next_frame(stream) == HEARTBEAT_FRAME

    await bus.broadcast_created("class", "c1", {"name": "P1"})

    for _ in range(50):
        frame = await next_frame(stream)
        if frame != HEARTBEAT_FRAME:
            break
    kind, message = parse_frame(frame)
    assert kind == "created"
    assert message["entity_id"] == "c1"

    await stream.aclose()
