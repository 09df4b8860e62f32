"""Record event stream (Server-Sent Events)."""

from collections.abc import AsyncGenerator

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from hybridstore.application.services import RecordEventBus, format_sse
from hybridstore.infrastructure.dependencies import get_event_bus

router = APIRouter(tags=["Events"])


async def _stream(bus: RecordEventBus) -> AsyncGenerator[str, None]:
    async for event in bus.subscribe():
        yield format_sse(event)


@router.get("/events")
async def record_event_stream(
    bus: RecordEventBus = Depends(get_event_bus),
) -> StreamingResponse:
    """SSE endpoint emitting 'record_saved' / 'record_deleted' events.

    Delivery is best-effort; clients should refetch rather than rely on it.
    """
    return StreamingResponse(
        _stream(bus),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
