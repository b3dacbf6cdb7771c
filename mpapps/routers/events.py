from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from mpapps.webhooks.broadcaster import SSEBroadcaster, get_broadcaster

router = APIRouter(prefix="/events", tags=["events"])

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@router.get("/stream")
async def stream_events(
    channels: str | None = Query(default=None),
    broadcaster: SSEBroadcaster = Depends(get_broadcaster),
) -> StreamingResponse:
    requested = [channel.strip() for channel in (channels or "").split(",") if channel.strip()]
    client = broadcaster.add_client(requested)
    return StreamingResponse(broadcaster.stream(client), media_type="text/event-stream", headers=SSE_HEADERS)


@router.get("/stats")
def stream_stats(broadcaster: SSEBroadcaster = Depends(get_broadcaster)) -> dict:
    return broadcaster.stats()
