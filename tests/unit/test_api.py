"""Tests for the agentboard HTTP API (FastAPI REST + server-sent events)."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from agentboard.api.app import create_app
from agentboard.api.broadcaster import Broadcaster
from agentboard.config import AgentboardConfig
from agentboard.engine.clock import VirtualClock
from agentboard.engine.log_buffer import LogBuffer, LogEntry
from agentboard.engine.tracker import AgentTracker


def _event(phase: str, description: str = "A", session: str = "S1", **extra) -> dict:
    payload = {
        "session_id": session,
        "phase": phase,
        "tool_name": "Task",
        "tool_input": {"description": description, "subagent_type": "general-purpose"},
    }
    payload.update(extra)
    return payload


# ── Fixtures ──────────────────────────────────────────────────────────────


@pytest.fixture
def clock() -> VirtualClock:
    return VirtualClock()


@pytest.fixture
def tracker(tmp_path: Path, clock: VirtualClock) -> AgentTracker:
    """Create a tracker on a virtual clock with a temp snapshot file."""
    return AgentTracker(AgentboardConfig(state_file=str(tmp_path / "state.json")), clock=clock)


@pytest.fixture
def broadcaster() -> Broadcaster:
    return Broadcaster()


@pytest.fixture
def log_buffer() -> LogBuffer:
    return LogBuffer()


@pytest.fixture
def app(tracker, broadcaster, log_buffer):
    """Create the FastAPI app with injected test dependencies."""
    return create_app(tracker=tracker, broadcaster=broadcaster, log_buffer=log_buffer)


@pytest_asyncio.fixture
async def client(app):
    """Create an async test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ── App factory ───────────────────────────────────────────────────────────


class TestAppFactory:
    def test_keeps_injected_dependencies_when_empty(self, app, tracker, broadcaster, log_buffer):
        assert len(log_buffer) == 0
        assert app.state.tracker is tracker
        assert app.state.broadcaster is broadcaster
        assert app.state.log_buffer is log_buffer


# ── Health & Info ─────────────────────────────────────────────────────────


class TestHealth:
    @pytest.mark.asyncio
    async def test_health_check(self, client: AsyncClient):
        resp = await client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    @pytest.mark.asyncio
    async def test_system_info(self, client: AsyncClient, tmp_path: Path):
        await client.post("/event", json=_event("pre"))
        resp = await client.get("/api/info")
        assert resp.status_code == 200
        data = resp.json()
        assert data["version"] == "0.1.0"
        assert data["records"] == 1
        assert data["running_agents"] == 1
        assert data["subscribers"] == 0
        assert data["parser_version"] == 1
        assert data["state_file"] == str(tmp_path / "state.json")


# ── State ─────────────────────────────────────────────────────────────────


class TestState:
    @pytest.mark.asyncio
    async def test_empty_state(self, client: AsyncClient):
        resp = await client.get("/state")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "idle"
        assert data["model"] == "claude"
        assert data["summary"] == {"total": 0, "running": 0, "completed": 0, "errored": 0}
        assert data["agents"] == []
        assert data["usage"]["cost_usd"] == 0.0
        assert data["orchestrator"] == {"last_activity_at": None, "active": False}

    @pytest.mark.asyncio
    async def test_pre_then_post(self, client: AsyncClient):
        await client.post("/event", json=_event("pre"))
        data = (await client.get("/state")).json()
        assert data["status"] == "running"
        [agent] = data["agents"]
        assert agent["status"] == "running"
        assert agent["parent_id"] == "root"

        await client.post(
            "/event",
            json=_event("post", tool_response="Done.\n<usage>total_tokens: 2000</usage>"),
        )
        data = (await client.get("/state")).json()
        assert data["agents"][0]["status"] == "completed"
        assert data["usage"]["tokens"] == 2000
        assert data["usage"]["cost_usd"] == pytest.approx(0.03)
        assert [(m["from"], m["kind"]) for m in data["messages"]] == [
            ("root", "prompt"),
            (data["agents"][0]["id"], "response"),
        ]
        assert data["sessions"][0]["session_id"] == "S1"
        assert data["sessions"][0]["completed"] == 1


# ── Ingress ───────────────────────────────────────────────────────────────


class TestIngress:
    @pytest.mark.asyncio
    async def test_unparseable_body_is_accepted(self, client: AsyncClient, tracker: AgentTracker):
        resp = await client.post(
            "/event", content=b"{not json", headers={"Content-Type": "application/json"}
        )
        assert resp.status_code == 200
        assert resp.json() == {"status": "accepted"}
        assert len(tracker.store) == 0

    @pytest.mark.asyncio
    async def test_invalid_event_is_accepted(self, client: AsyncClient, tracker: AgentTracker):
        resp = await client.post("/event", json={"phase": "pre"})
        assert resp.status_code == 200
        assert resp.json() == {"status": "accepted"}
        assert len(tracker.store) == 0

    @pytest.mark.asyncio
    async def test_empty_body_is_accepted(self, client: AsyncClient):
        resp = await client.post("/event")
        assert resp.status_code == 200

    @pytest.mark.asyncio
    async def test_heartbeat(self, client: AsyncClient):
        resp = await client.post("/heartbeat")
        assert resp.status_code == 200
        data = (await client.get("/state")).json()
        assert data["orchestrator"]["active"] is True
        assert data["status"] == "running"

    @pytest.mark.asyncio
    async def test_reset(self, client: AsyncClient, tracker: AgentTracker):
        await client.post("/event", json=_event("pre", "A"))
        await client.post("/event", json=_event("pre", "B"))
        resp = await client.post("/reset")
        assert resp.status_code == 200
        assert resp.json() == {"status": "reset"}
        assert len(tracker.store) == 0

    @pytest.mark.asyncio
    async def test_events_signal_subscribers(self, client: AsyncClient, broadcaster: Broadcaster):
        subscriber = broadcaster.subscribe()
        await client.post("/event", json=_event("pre"))
        message = await asyncio.wait_for(subscriber.next(), timeout=1.0)
        assert '"changed"' in message


# ── Logs ──────────────────────────────────────────────────────────────────


class TestLogs:
    @pytest.mark.asyncio
    async def test_filter_by_session(self, client: AsyncClient, log_buffer: LogBuffer):
        log_buffer.append(LogEntry("2026-01-01T00:00:00+00:00", "INFO", "engine.ingress", "a", "S1"))
        log_buffer.append(LogEntry("2026-01-01T00:00:01+00:00", "INFO", "engine.ingress", "b", "S2"))
        resp = await client.get("/api/logs/", params={"session_id": "S1"})
        assert resp.status_code == 200
        assert [e["message"] for e in resp.json()] == ["a"]

    @pytest.mark.asyncio
    async def test_filter_by_agent_and_level(self, client: AsyncClient, log_buffer: LogBuffer):
        log_buffer.append(
            LogEntry("2026-01-01T00:00:00+00:00", "WARNING", "engine.scheduler", "stale", "S1", "a1")
        )
        log_buffer.append(LogEntry("2026-01-01T00:00:01+00:00", "INFO", "engine.ingress", "start", "S1", "a1"))
        resp = await client.get("/api/logs/", params={"agent_id": "a1", "level": "WARNING"})
        assert [e["message"] for e in resp.json()] == ["stale"]
        assert resp.json()[0]["agent_id"] == "a1"

    @pytest.mark.asyncio
    async def test_invalid_since(self, client: AsyncClient):
        resp = await client.get("/api/logs/", params={"since": "yesterday"})
        assert resp.status_code == 422
