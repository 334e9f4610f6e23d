"""Record Store -- in-memory keyed collection of agent lifecycle records."""

from __future__ import annotations

import logging

from agentboard.engine.records import AgentRecord

logger = logging.getLogger("engine.record_store")


class RecordStore:
    """Single source of truth for agent records.

    Also carries the two store-wide timestamps the scheduler reasons about:
    the most recent terminal transition and the most recent orchestrator
    activity (any event or heartbeat).
    """

    def __init__(self) -> None:
        self._records: dict[str, AgentRecord] = {}
        self.last_terminal_at: float | None = None
        self.orchestrator_active_at: float | None = None

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, record_id: str) -> bool:
        return record_id in self._records

    def get(self, record_id: str) -> AgentRecord | None:
        return self._records.get(record_id)

    def add(self, record: AgentRecord) -> AgentRecord:
        self._records[record.id] = record
        return record

    def remove(self, record_id: str) -> None:
        self._records.pop(record_id, None)

    def all(self) -> list[AgentRecord]:
        return list(self._records.values())

    def running(self, session_id: str | None = None) -> list[AgentRecord]:
        return [
            r
            for r in self._records.values()
            if r.is_running and (session_id is None or r.session_id == session_id)
        ]

    def in_session(self, session_id: str) -> list[AgentRecord]:
        return [r for r in self._records.values() if r.session_id == session_id]

    def has_running(self) -> bool:
        return any(r.is_running for r in self._records.values())

    def touch_orchestrator(self, now: float) -> None:
        self.orchestrator_active_at = now

    def orchestrator_active(self, now: float, window: float) -> bool:
        """True when the orchestrator caused an event within ``window`` seconds."""
        return (
            self.orchestrator_active_at is not None
            and now - self.orchestrator_active_at < window
        )

    def mark_terminal(self, now: float) -> None:
        self.last_terminal_at = now

    def clear(self) -> int:
        """Drop every record. Returns how many were removed."""
        count = len(self._records)
        self._records.clear()
        self.last_terminal_at = None
        return count
