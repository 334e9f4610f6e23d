"""Pydantic response models for the agentboard API."""

from __future__ import annotations

from pydantic import BaseModel, Field


# ── State ─────────────────────────────────────────────────────────────────


class UsageResponse(BaseModel):
    """Usage figures parsed from one agent's completion payload."""

    tokens: int | None = None
    tool_uses: int | None = None
    duration_ms: int | None = None


class AgentResponse(BaseModel):
    """One tracked agent record."""

    id: str
    session_id: str
    description: str = ""
    agent_type: str = ""
    status: str
    background: bool = False
    parent_id: str
    started_at: str | None = None
    ended_at: str | None = None
    last_activity_at: str | None = None
    duration_ms: int | None = None
    usage: UsageResponse | None = None
    output_preview: str | None = None
    error_preview: str | None = None
    output_file: str | None = None


class SummaryResponse(BaseModel):
    """Record counts by status."""

    total: int = 0
    running: int = 0
    completed: int = 0
    errored: int = 0


class SessionResponse(BaseModel):
    """Per-session rollup, recomputed on every query."""

    session_id: str
    total: int = 0
    running: int = 0
    completed: int = 0
    errored: int = 0
    last_started_at: str | None = None


class MessageResponse(BaseModel):
    """A prompt or response edge between two agents."""

    sender: str = Field(..., alias="from")
    recipient: str = Field(..., alias="to")
    kind: str
    timestamp: str | None = None


class UsageTotalsResponse(BaseModel):
    """Cumulative usage with derived cost."""

    tokens: int = 0
    tool_uses: int = 0
    duration_ms: int = 0
    agents: int = 0
    cost_usd: float = 0.0


class OrchestratorResponse(BaseModel):
    """Liveness of the external orchestrator."""

    last_activity_at: str | None = None
    active: bool = False


class StateResponse(BaseModel):
    """Full snapshot served by ``GET /state``."""

    status: str
    model: str
    summary: SummaryResponse
    agents: list[AgentResponse] = []
    sessions: list[SessionResponse] = []
    messages: list[MessageResponse] = []
    usage: UsageTotalsResponse
    orchestrator: OrchestratorResponse
    generated_at: str | None = None


# ── Ingress ───────────────────────────────────────────────────────────────


class AcceptedResponse(BaseModel):
    """Acknowledgment for ingress calls; malformed events are accepted too."""

    status: str = "accepted"


# ── Logs ──────────────────────────────────────────────────────────────────


class LogEntryResponse(BaseModel):
    """A single captured service log record."""

    timestamp: str
    level: str
    logger_name: str
    message: str
    session_id: str | None = None
    agent_id: str | None = None


# ── System ────────────────────────────────────────────────────────────────


class SystemInfoResponse(BaseModel):
    """System information response."""

    version: str = "0.1.0"
    records: int = 0
    running_agents: int = 0
    subscribers: int = 0
    parser_version: int = 1
    state_file: str = ""
