import asyncio
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Set, Tuple
from uuid import uuid4

from space_together.core.logging import logger
from space_together.schemas.events import Event, EventKind, format_frame


HEARTBEAT_FRAME = ": heartbeat\n\n"
DEFAULT_QUEUE_SIZE = 64


class Subscriber:
    """One SSE client: a bounded queue of rendered frames and a liveness flag."""

    _CLOSED = object()

    def __init__(self, subscriber_id: str, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self.id = subscriber_id
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.alive = True

    def offer(self, frame: str) -> bool:
        if not self.alive:
            return False
        try:
            self.queue.put_nowait(frame)
        except asyncio.QueueFull:
            return False
        return True

    def close(self) -> None:
        if not self.alive:
            return
        self.alive = False
        try:
            self.queue.put_nowait(self._CLOSED)
        except asyncio.QueueFull:
            # the reader drains what is buffered, then sees alive=False
            pass


class EventBus:
    """In-process publish/subscribe hub for entity change events.

    Subscribers are kept in a registry guarded by a single lock. ``publish``
    snapshots the registry under the lock, releases it and then enqueues the
    rendered frame onto every subscriber without waiting. A subscriber whose
    queue is full misses that event and is removed for good.
    """

    def __init__(
        self,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        heartbeat_interval: Optional[float] = 30.0,
    ) -> None:
        self.queue_size = queue_size
        self.heartbeat_interval = heartbeat_interval
        self._subscribers: Dict[str, Subscriber] = {}
        self._lock = asyncio.Lock()
        self._sequence = 0
        self._last_timestamp = None
        self._pending: Set[asyncio.Task] = set()

    @property
    def sequence(self) -> int:
        return self._sequence

    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def register(self) -> Tuple[str, AsyncIterator[str]]:
        subscriber = Subscriber(uuid4().hex, self.queue_size)
        async with self._lock:
            self._subscribers[subscriber.id] = subscriber
            connected = self._stamp(Event.build(
                EventKind.CONNECTED,
                "system",
                {
                    "message": "Connected to real-time event stream",
                    "client_id": subscriber.id,
                },
            ))
        logger.info(f"Event client connected: {subscriber.id}", extra={"subscriber_id": subscriber.id})
        return subscriber.id, self._stream(subscriber, format_frame(connected))

    async def _stream(self, subscriber: Subscriber, connected_frame: str) -> AsyncIterator[str]:
        yield connected_frame

        # a get that outlives a heartbeat timeout is kept and awaited again
        getter: Optional[asyncio.Future] = None
        try:
            while subscriber.alive or not subscriber.queue.empty():
                if getter is None:
                    getter = asyncio.ensure_future(subscriber.queue.get())
                if self.heartbeat_interval:
                    done, _ = await asyncio.wait({getter}, timeout=self.heartbeat_interval)
                    if not done:
                        yield HEARTBEAT_FRAME
                        continue
                item = await getter
                getter = None
                if item is Subscriber._CLOSED:
                    break
                yield item
        finally:
            if getter is not None:
                getter.cancel()

    async def unregister(self, subscriber_id: str) -> None:
        async with self._lock:
            subscriber = self._subscribers.pop(subscriber_id, None)
        if subscriber is None:
            return
        subscriber.close()
        logger.info(f"Event client disconnected: {subscriber_id}", extra={"subscriber_id": subscriber_id})

    def schedule_unregister(self, subscriber_id: str) -> None:
        """Queue ``unregister`` on the running loop without waiting for it."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            subscriber = self._subscribers.pop(subscriber_id, None)
            if subscriber is not None:
                subscriber.close()
            return
        task = loop.create_task(self.unregister(subscriber_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _drop(self, stale: Iterable[Subscriber]) -> None:
        async with self._lock:
            for subscriber in stale:
                if self._subscribers.get(subscriber.id) is subscriber:
                    del self._subscribers[subscriber.id]
        for subscriber in stale:
            if subscriber.alive:
                logger.warning(
                    f"Event client {subscriber.id} fell behind ({self.queue_size} queued), disconnecting",
                    extra={"subscriber_id": subscriber.id}
                )
            subscriber.close()

    def _stamp(self, event: Event) -> Event:
        if self._last_timestamp is not None and event.timestamp < self._last_timestamp:
            event = event.model_copy(update={"timestamp": self._last_timestamp})
        self._last_timestamp = event.timestamp
        return event

    async def publish(self, event: Event) -> int:
        """Deliver ``event`` to every current subscriber; returns how many accepted it."""
        try:
            async with self._lock:
                subscribers: List[Subscriber] = list(self._subscribers.values())
                self._sequence += 1
                sequence = self._sequence
                event = self._stamp(event)

            frame = format_frame(event)
            stale = [subscriber for subscriber in subscribers if not subscriber.offer(frame)]
            if stale:
                await self._drop(stale)
        except Exception as e:
            logger.error(f"Failed to publish {event.entity_type}::{event.event}: {str(e)}", exc_info=True)
            return 0

        delivered = len(subscribers) - len(stale)
        logger.debug(
            f"Broadcasted event #{sequence} {event.entity_type}::{event.event} to {delivered} clients"
        )
        return delivered

    async def broadcast_created(self, entity_type: str, entity_id: str, payload: Any) -> int:
        return await self.publish(Event.build(EventKind.CREATED, entity_type, payload, entity_id))

    async def broadcast_updated(self, entity_type: str, entity_id: str, payload: Any) -> int:
        return await self.publish(Event.build(EventKind.UPDATED, entity_type, payload, entity_id))

    async def broadcast_deleted(self, entity_type: str, entity_id: str, payload: Any) -> int:
        return await self.publish(Event.build(EventKind.DELETED, entity_type, payload, entity_id))

    async def broadcast_custom(
        self,
        kind: str,
        entity_type: str,
        payload: Any,
        entity_id: Optional[str] = None,
    ) -> int:
        return await self.publish(Event.build(kind, entity_type, payload, entity_id))

    async def close(self) -> None:
        """Disconnect every subscriber (server shutdown)."""
        async with self._lock:
            subscribers = list(self._subscribers.values())
            self._subscribers.clear()
        for subscriber in subscribers:
            subscriber.close()
        if subscribers:
            logger.info(f"Closed {len(subscribers)} event clients")
