"""Relationship Resolver -- parent inference and completion matching."""

from __future__ import annotations

import logging

from agentboard.engine.record_store import RecordStore
from agentboard.engine.records import ROOT_PARENT, AgentRecord

logger = logging.getLogger("engine.resolver")


def _open(record: AgentRecord) -> bool:
    """Still awaiting its real outcome: running, or orphaned by a restart."""
    return record.is_running or record.is_restart_orphan


class RelationshipResolver:
    """Infers parent/child links and pairs completion events with records."""

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    def infer_parent(self, session_id: str, exclude: str | None = None) -> str:
        """Deepest currently running record in the session, else the root sentinel.

        "Deepest" is approximated as the most recently started running record.
        """
        candidates = [r for r in self._store.running(session_id) if r.id != exclude]
        if not candidates:
            return ROOT_PARENT
        return max(candidates, key=lambda r: r.started_at).id

    def match_completion(
        self, session_id: str, record_id: str, description: str
    ) -> AgentRecord | None:
        """Find the record a spawn-tool ``post`` belongs to.

        Exact id first, then the oldest open record with the same session and
        description. Returns None when nothing matches; the caller synthesizes.
        """
        record = self._store.get(record_id)
        if record is not None:
            return record
        fallback = [
            r
            for r in self._store.in_session(session_id)
            if r.description == description and _open(r)
        ]
        if fallback:
            return min(fallback, key=lambda r: r.started_at)
        return None

    def match_report(self, session_id: str, target_id: str | None) -> AgentRecord | None:
        """Find the background record an external completion report belongs to.

        An explicit id matches the record id or the background agent id captured
        from the launch acknowledgment. Without one, or when the id matches
        nothing, the oldest open background record in the same session is
        chosen; never one from another session.
        """
        if target_id:
            record = self._store.get(target_id)
            if record is not None:
                return record
            for r in self._store.all():
                if r.background_agent_id == target_id:
                    return r
            logger.debug("No record for report target %s, trying session=%s", target_id, session_id)
        candidates = [
            r for r in self._store.in_session(session_id) if r.background and _open(r)
        ]
        if not candidates:
            return None
        return min(candidates, key=lambda r: r.started_at)

    def repair_parents(self) -> int:
        """Point dangling or cross-session parent ids at the root sentinel."""
        repaired = 0
        for record in self._store.all():
            if record.parent_id == ROOT_PARENT:
                continue
            parent = self._store.get(record.parent_id)
            if parent is None or parent.session_id != record.session_id or parent.id == record.id:
                record.parent_id = ROOT_PARENT
                repaired += 1
        if repaired:
            logger.info("Repaired %d dangling parent references", repaired)
        return repaired
