"""Tests for snapshot persistence: atomic writes, restart relabeling, rate limiting."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from agentboard.config import AgentboardConfig
from agentboard.engine.clock import VirtualClock
from agentboard.engine.persistence import PersistenceWriter, SnapshotStore
from agentboard.engine.records import (
    COMPLETED,
    ERRORED,
    RESTART_REASON,
    ROOT_PARENT,
    RUNNING,
    AgentRecord,
    Usage,
    derive_agent_id,
)
from agentboard.engine.tracker import AgentTracker


def _pre(description: str, session: str = "S1") -> dict:
    return {
        "session_id": session,
        "phase": "pre",
        "tool_name": "Task",
        "tool_input": {"description": description, "subagent_type": "general-purpose"},
    }


def _post(description: str, session: str = "S1", output: str = "done") -> dict:
    return {**_pre(description, session), "phase": "post", "tool_response": output}


def _id(description: str, session: str = "S1") -> str:
    return derive_agent_id(None, session, description)


def _tracker(path: Path, clock: VirtualClock) -> AgentTracker:
    return AgentTracker(AgentboardConfig(state_file=str(path)), clock=clock)


@pytest.fixture
def clock() -> VirtualClock:
    return VirtualClock()


@pytest.fixture
def state_path(tmp_path: Path) -> Path:
    return tmp_path / "nested" / "state.json"


# ---------------------------------------------------------------------------
# SnapshotStore
# ---------------------------------------------------------------------------


class TestSnapshotStore:
    def test_missing_file_is_empty_state(self, state_path: Path):
        state = SnapshotStore(state_path).load(now=100.0)
        assert state.records == []
        assert state.last_terminal_at is None

    def test_corrupt_file_is_empty_state(self, state_path: Path):
        state_path.parent.mkdir(parents=True)
        state_path.write_text("{not json", encoding="utf-8")
        assert SnapshotStore(state_path).load(now=100.0).records == []

    def test_unknown_status_is_rejected(self, state_path: Path):
        state_path.parent.mkdir(parents=True)
        state_path.write_text(
            json.dumps({"agents": [{"id": "a", "session_id": "S1", "status": "paused"}]}),
            encoding="utf-8",
        )
        assert SnapshotStore(state_path).load(now=100.0).records == []

    def test_save_is_atomic(self, state_path: Path):
        store = SnapshotStore(state_path)
        store.save({"agents": []})
        assert json.loads(state_path.read_text(encoding="utf-8")) == {"agents": []}
        assert not state_path.with_suffix(".tmp").exists()

    def test_running_records_relabeled_on_load(self, state_path: Path):
        store = SnapshotStore(state_path)
        store.save(
            {
                "agents": [
                    AgentRecord(id="a", session_id="S1", started_at=10.0).to_dict(),
                    AgentRecord(
                        id="b",
                        session_id="S1",
                        status=COMPLETED,
                        started_at=10.0,
                        ended_at=20.0,
                        usage=Usage(tokens=5),
                    ).to_dict(),
                ],
                "messages": [{"from": "root", "to": "a", "kind": "prompt", "timestamp": 10.0}],
                "usage": {"tokens": 5, "tool_uses": 0, "duration_ms": 0, "agents": 1},
                "last_terminal_at": 20.0,
            }
        )
        state = store.load(now=50.0)
        by_id = {r.id: r for r in state.records}
        assert by_id["a"].status == ERRORED
        assert by_id["a"].error_preview == RESTART_REASON
        assert by_id["a"].duration_ms == 40_000
        assert by_id["b"].status == COMPLETED
        assert by_id["b"].usage.tokens == 5
        assert state.relabeled == 1
        assert state.last_terminal_at == 50.0
        assert state.usage.tokens == 5
        assert len(state.messages) == 1


# ---------------------------------------------------------------------------
# PersistenceWriter
# ---------------------------------------------------------------------------


class TestPersistenceWriter:
    def test_requests_are_coalesced(self, state_path: Path, clock: VirtualClock):
        dumps: list[int] = []

        def dump() -> dict:
            dumps.append(1)
            return {"n": len(dumps)}

        writer = PersistenceWriter(SnapshotStore(state_path), dump, clock, min_interval=2.0)
        for _ in range(10):
            writer.request_save()
        assert writer.pending
        assert not state_path.exists()
        clock.advance(2.0)
        assert len(dumps) == 1
        assert json.loads(state_path.read_text(encoding="utf-8")) == {"n": 1}
        assert not writer.pending

    def test_write_failure_is_logged_not_raised(self, tmp_path: Path, clock: VirtualClock, caplog):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory", encoding="utf-8")
        writer = PersistenceWriter(SnapshotStore(blocker / "state.json"), dict, clock)
        writer.write_now()
        assert writer.failures == 1
        assert "Snapshot write" in caplog.text

    @pytest.mark.asyncio
    async def test_unexpected_failure_on_worker_is_logged(self, state_path: Path, clock: VirtualClock, caplog):
        class BrokenStore(SnapshotStore):
            def save(self, data: dict) -> None:
                raise RuntimeError("disk gremlin")

        writer = PersistenceWriter(BrokenStore(state_path), dict, clock)
        writer.write_now()
        writer.close()
        assert writer.failures == 2
        assert "failed unexpectedly" in caplog.text
        assert "disk gremlin" in caplog.text

    def test_close_writes_synchronously(self, state_path: Path, clock: VirtualClock):
        writer = PersistenceWriter(SnapshotStore(state_path), lambda: {"final": True}, clock)
        writer.request_save()
        writer.close()
        assert not writer.pending
        assert json.loads(state_path.read_text(encoding="utf-8")) == {"final": True}


# ---------------------------------------------------------------------------
# Restart through the tracker
# ---------------------------------------------------------------------------


class TestRestart:
    def test_roundtrip_relabels_only_running(self, state_path: Path, clock: VirtualClock):
        first = _tracker(state_path, clock)
        first.handle_event(_pre("A"))
        first.handle_event(_pre("B"))
        first.handle_event(_post("B", output="<usage>total_tokens: 42</usage>"))
        before = first.snapshot()
        first.shutdown()

        clock.advance(5)
        second = _tracker(state_path, clock)
        second.start()
        after = second.snapshot()

        assert after["summary"]["total"] == before["summary"]["total"] == 2
        assert second.store.get(_id("A")).status == ERRORED
        assert second.store.get(_id("A")).error_preview == RESTART_REASON
        assert second.store.get(_id("B")).status == COMPLETED
        assert second.store.get(_id("B")).parent_id == _id("A")
        assert after["usage"]["tokens"] == 42
        assert len(after["messages"]) == len(before["messages"])
        second.shutdown()

    def test_late_completion_recovers_restart_orphan(self, state_path: Path, clock: VirtualClock):
        first = _tracker(state_path, clock)
        first.handle_event(_pre("A"))
        first.shutdown()

        second = _tracker(state_path, clock)
        second.start()
        second.handle_event(_post("A", output="finished after all"))
        record = second.store.get(_id("A"))
        assert record.status == COMPLETED
        assert record.error_preview is None
        second.shutdown()

    def test_pending_reset_rederived_on_start(self, state_path: Path, clock: VirtualClock):
        first = _tracker(state_path, clock)
        first.handle_event(_pre("A"))
        first.handle_event(_post("A"))
        first.shutdown()

        clock.advance(100)
        second = _tracker(state_path, clock)
        second.start()
        assert len(second.store) == 1
        assert second.scheduler.reset_pending
        clock.advance(second.config.timing.auto_reset_delay)
        assert len(second.store) == 0
        second.shutdown()

    def test_dangling_parents_repaired_on_start(self, state_path: Path, clock: VirtualClock):
        SnapshotStore(state_path).save(
            {
                "agents": [
                    AgentRecord(id="child", session_id="S1", status=COMPLETED, parent_id="gone").to_dict(),
                    AgentRecord(id="x", session_id="S2", status=COMPLETED).to_dict(),
                    AgentRecord(id="y", session_id="S1", status=COMPLETED, parent_id="x").to_dict(),
                ]
            }
        )
        tracker = _tracker(state_path, clock)
        tracker.start()
        assert tracker.store.get("child").parent_id == ROOT_PARENT
        assert tracker.store.get("y").parent_id == ROOT_PARENT
        tracker.shutdown()

    def test_relabeled_state_is_saved_back(self, state_path: Path, clock: VirtualClock):
        SnapshotStore(state_path).save(
            {"agents": [AgentRecord(id="a", session_id="S1", status=RUNNING).to_dict()]}
        )
        tracker = _tracker(state_path, clock)
        tracker.start()
        clock.advance(tracker.config.timing.save_min_interval)
        saved = json.loads(state_path.read_text(encoding="utf-8"))
        assert saved["agents"][0]["status"] == ERRORED
        tracker.shutdown()
