from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from space_together.core.dependencies import get_event_bus
from space_together.services import EventBus

router = APIRouter(prefix="/events", tags=["Events"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Credentials": "true",
    "X-Accel-Buffering": "no",
}


@router.get("/stream")
async def event_stream(event_bus: EventBus = Depends(get_event_bus)) -> StreamingResponse:
    """Server-Sent Events feed of entity changes across the platform"""

    async def frames():
        # a body that never starts never registers
        subscriber_id, stream = await event_bus.register()
        try:
            async for frame in stream:
                yield frame
        finally:
            # runs on client disconnect, cancellation and server shutdown
            event_bus.schedule_unregister(subscriber_id)

    return StreamingResponse(frames(), media_type="text/event-stream", headers=SSE_HEADERS)


@router.get("/stream/clients/count")
async def connected_clients(event_bus: EventBus = Depends(get_event_bus)):
    return {"connected_clients": event_bus.subscriber_count()}
