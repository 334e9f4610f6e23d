"""Health and system info routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from agentboard import __version__
from agentboard.api.broadcaster import Broadcaster
from agentboard.api.deps import get_broadcaster, get_tracker
from agentboard.api.models import SystemInfoResponse
from agentboard.engine.tracker import AgentTracker

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
async def health_check() -> dict:
    """Liveness check -- always returns ok if the server is running."""
    return {"status": "ok"}


@router.get("/info", response_model=SystemInfoResponse)
async def system_info(
    tracker: AgentTracker = Depends(get_tracker),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> SystemInfoResponse:
    """System information snapshot."""
    return SystemInfoResponse(
        version=__version__,
        records=len(tracker.store),
        running_agents=len(tracker.store.running()),
        subscribers=broadcaster.active_connections,
        parser_version=tracker.ingress.parser.version,
        state_file=str(tracker.snapshots.path),
    )
