"""
Live Events Stream.

GET /api/v1/events/stream?token=xxx

Client usage:
    const es = new EventSource('/api/v1/events/stream?token=xxx');
    es.onmessage = (e) => { const data = JSON.parse(e.data); ... };

Auth via query param token. EventSource API does not support custom headers.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse

from roundwatch.api.deps import get_channel_registry
from roundwatch.errors import ConnectionRejected
from roundwatch.services.channels import ChannelRegistry

router = APIRouter(prefix="/api/v1/events", tags=["events"])


@router.get("/stream")
async def event_stream(
    token: Optional[str] = Query(default=None),
    registry: ChannelRegistry = Depends(get_channel_registry),
):
    """
    SSE notification stream for the caller's user and organization channels.

    Events include:
    - team_message: new team chat message (reminders included)
    - notification: personal notification
    """
    try:
        connection = await registry.connect(token)
    except ConnectionRejected as e:
        raise HTTPException(status_code=401, detail=e.reason) from e

    return StreamingResponse(
        registry.stream(connection),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
            "Connection": "keep-alive",
        },
    )
