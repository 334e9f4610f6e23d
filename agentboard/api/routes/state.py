"""Snapshot and ingress routes -- the core HTTP contract of the tracker."""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, Request

from agentboard.api.deps import get_tracker
from agentboard.api.models import AcceptedResponse, StateResponse
from agentboard.engine.tracker import AgentTracker

logger = logging.getLogger("api.state")

router = APIRouter(tags=["state"])


@router.get("/state", response_model=StateResponse)
async def get_state(tracker: AgentTracker = Depends(get_tracker)) -> StateResponse:
    """Full snapshot: summary counts, status, agents, sessions, messages, usage."""
    return StateResponse.model_validate(tracker.snapshot())


@router.post("/event", response_model=AcceptedResponse)
async def post_event(
    request: Request,
    tracker: AgentTracker = Depends(get_tracker),
) -> AcceptedResponse:
    """Ingest one phase-tagged tool-use notification.

    Always acknowledged: the producer cannot usefully retry a malformed send,
    so unparseable bodies are dropped here rather than rejected.
    """
    body = await request.body()
    try:
        payload = json.loads(body) if body else None
    except ValueError:
        logger.warning("Dropping event with unparseable body (%d bytes)", len(body))
        return AcceptedResponse()
    tracker.handle_event(payload)
    return AcceptedResponse()


@router.post("/heartbeat", response_model=AcceptedResponse)
async def heartbeat(tracker: AgentTracker = Depends(get_tracker)) -> AcceptedResponse:
    """Refresh the orchestrator-activity timestamp."""
    tracker.heartbeat()
    return AcceptedResponse()


@router.post("/reset", response_model=AcceptedResponse)
async def reset(tracker: AgentTracker = Depends(get_tracker)) -> AcceptedResponse:
    """Unconditionally clear every record."""
    tracker.reset("requested via API")
    return AcceptedResponse(status="reset")
