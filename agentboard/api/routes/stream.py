"""Server-sent change signals -- subscribers re-pull /state on every signal."""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from agentboard.api.broadcaster import Broadcaster
from agentboard.api.deps import get_broadcaster

logger = logging.getLogger("api.stream")

router = APIRouter(tags=["stream"])

KEEPALIVE_SECONDS = 15.0


async def event_stream(
    request: Request,
    broadcaster: Broadcaster,
    keepalive: float = KEEPALIVE_SECONDS,
) -> AsyncIterator[str]:
    """Yield SSE frames until the client goes away.

    An idle connection gets a comment frame every ``keepalive`` seconds; a
    dead one is noticed on the next write and unsubscribed. A subscriber the
    broadcaster pruned for falling behind ends the stream.
    """
    subscriber = broadcaster.subscribe()
    try:
        yield "event: hello\ndata: {}\n\n"
        while True:
            if await request.is_disconnected():
                break
            if subscriber.closed:
                logger.info("Closing stream for pruned subscriber")
                break
            try:
                message = await asyncio.wait_for(subscriber.next(), timeout=keepalive)
            except asyncio.TimeoutError:
                yield ": keep-alive\n\n"
                continue
            yield f"event: changed\ndata: {message}\n\n"
    finally:
        broadcaster.unsubscribe(subscriber)


@router.get("/events")
async def events(
    request: Request,
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> StreamingResponse:
    """Push stream of content-free change signals plus periodic keep-alive."""
    return StreamingResponse(
        event_stream(request, broadcaster),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
