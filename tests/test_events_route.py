# coding: utf-8

import asyncio

import pytest
from fastapi.testclient import TestClient

from space_together.routes.events import event_stream
from space_together.services.event_bus import EventBus

from conftest import parse_frame


async def next_chunk(iterator, timeout: float = 1.0) -> str:
    chunk = await asyncio.wait_for(iterator.__anext__(), timeout)
    return chunk.decode() if isinstance(chunk, bytes) else chunk


@pytest.mark.asyncio
async def test_stream_response_headers():
    bus = EventBus(heartbeat_interval=None)
    response = await event_stream(event_bus=bus)

    assert response.media_type == "text/event-stream"
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache"
    assert response.headers["connection"] == "keep-alive"
    assert response.headers["access-control-allow-origin"] == "*"
    assert response.headers["access-control-allow-credentials"] == "true"
    assert response.headers["x-accel-buffering"] == "no"

    await response.body_iterator.aclose()


@pytest.mark.asyncio
async def test_stream_delivers_published_events():
    """Frames are ``event: <kind>`` plus one JSON ``data:`` line"""
    bus = EventBus(heartbeat_interval=None)
    response = await event_stream(event_bus=bus)
    frames = response.body_iterator

    kind, message = parse_frame(await next_chunk(frames))
    assert kind == "connected"
    assert message["data"]["message"] == "Connected to real-time event stream"

    await bus.broadcast_created("class", "c1", {"name": "P1"})

    kind, message = parse_frame(await next_chunk(frames))
    assert kind == "created"
    assert set(message) == {"event", "entity_type", "entity_id", "data", "timestamp"}
    assert message["entity_type"] == "class"
    assert message["entity_id"] == "c1"
    assert message["data"] == {"name": "P1"}

    await frames.aclose()


@pytest.mark.asyncio
async def test_disconnect_unregisters_subscriber():
    bus = EventBus(heartbeat_interval=None)
    response = await event_stream(event_bus=bus)
    await next_chunk(response.body_iterator)
    assert bus.subscriber_count() == 1

    await response.body_iterator.aclose()
    for _ in range(5):
        await asyncio.sleep(0)

    assert bus.subscriber_count() == 0


@pytest.mark.asyncio
async def test_client_count_endpoint(client: TestClient, event_bus: EventBus):
    assert client.get("/events/stream/clients/count").json() == {"connected_clients": 0}

    await event_bus.register()
    await event_bus.register()

    response = client.get("/events/stream/clients/count")
    assert response.status_code == 200
    assert response.json() == {"connected_clients": 2}


@pytest.mark.asyncio
async def test_unstarted_stream_holds_no_subscriber():
    bus = EventBus(heartbeat_interval=None)
    response = await event_stream(event_bus=bus)

    assert bus.subscriber_count() == 0
    await response.body_iterator.aclose()
    assert bus.subscriber_count() == 0
