"""FastAPI dependency injection functions for shared state."""

from __future__ import annotations

from fastapi import Request

from agentboard.api.broadcaster import Broadcaster
from agentboard.engine.log_buffer import LogBuffer
from agentboard.engine.tracker import AgentTracker


def get_tracker(request: Request) -> AgentTracker:
    """Get the shared AgentTracker from app state."""
    return request.app.state.tracker


def get_broadcaster(request: Request) -> Broadcaster:
    """Get the shared Broadcaster from app state."""
    return request.app.state.broadcaster


def get_log_buffer(request: Request) -> LogBuffer:
    """Get the shared LogBuffer from app state."""
    return request.app.state.log_buffer
