"""Snapshot Query -- read-optimized view of the store, built on demand."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone

from agentboard.engine.record_store import RecordStore
from agentboard.engine.records import COMPLETED, ERRORED, RUNNING, STATUSES, AgentRecord
from agentboard.engine.usage_log import MessageLog, UsageTotals

AGENT_LIMIT = 50
MESSAGE_LIMIT = 100

STATUS_IDLE = "idle"
STATUS_RUNNING = "running"
STATUS_DONE = "done"


def iso(ts: float | None) -> str | None:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def status_counts(records: list[AgentRecord]) -> dict[str, int]:
    counts = {status: 0 for status in STATUSES}
    for record in records:
        counts[record.status] += 1
    counts["total"] = len(records)
    return counts


def orchestrator_status(store: RecordStore, now: float, window: float) -> str:
    """Collapse store state plus orchestrator liveness into idle/running/done."""
    if store.has_running() or store.orchestrator_active(now, window):
        return STATUS_RUNNING
    if len(store) == 0:
        return STATUS_IDLE
    return STATUS_DONE


def session_rollups(records: list[AgentRecord]) -> list[dict]:
    grouped: dict[str, list[AgentRecord]] = defaultdict(list)
    for record in records:
        grouped[record.session_id].append(record)
    rollups = []
    for session_id, members in grouped.items():
        counts = status_counts(members)
        rollups.append(
            {
                "session_id": session_id,
                "total": counts["total"],
                RUNNING: counts[RUNNING],
                COMPLETED: counts[COMPLETED],
                ERRORED: counts[ERRORED],
                "last_started_at": max(r.started_at for r in members),
            }
        )
    rollups.sort(key=lambda s: s["last_started_at"], reverse=True)
    for rollup in rollups:
        rollup["last_started_at"] = iso(rollup["last_started_at"])
    return rollups


def _agent_view(record: AgentRecord) -> dict:
    usage = None
    if record.usage is not None:
        usage = {
            "tokens": record.usage.tokens,
            "tool_uses": record.usage.tool_uses,
            "duration_ms": record.usage.duration_ms,
        }
    return {
        "id": record.id,
        "session_id": record.session_id,
        "description": record.description,
        "agent_type": record.agent_type,
        "status": record.status,
        "background": record.background,
        "parent_id": record.parent_id,
        "started_at": iso(record.started_at),
        "ended_at": iso(record.ended_at),
        "last_activity_at": iso(record.last_activity_at),
        "duration_ms": record.duration_ms,
        "usage": usage,
        "output_preview": record.output_preview,
        "error_preview": record.error_preview,
        "output_file": record.output_file,
    }


def build_snapshot(
    store: RecordStore,
    messages: MessageLog,
    usage: UsageTotals,
    *,
    now: float,
    orchestrator_window: float,
    cost_per_million_tokens: float,
    model_name: str,
    agent_limit: int = AGENT_LIMIT,
) -> dict:
    records = store.all()
    newest = sorted(records, key=lambda r: r.started_at, reverse=True)[:agent_limit]
    return {
        "status": orchestrator_status(store, now, orchestrator_window),
        "model": model_name,
        "summary": status_counts(records),
        "agents": [_agent_view(r) for r in newest],
        "sessions": session_rollups(records),
        "messages": [
            {**m.to_dict(), "timestamp": iso(m.timestamp)} for m in messages.recent(MESSAGE_LIMIT)
        ],
        "usage": {**usage.to_dict(), "cost_usd": usage.cost(cost_per_million_tokens)},
        "orchestrator": {
            "last_activity_at": iso(store.orchestrator_active_at),
            "active": store.orchestrator_active(now, orchestrator_window),
        },
        "generated_at": iso(now),
    }
