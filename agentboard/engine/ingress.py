"""Event Ingress -- validates tool-use notifications and applies them to the store.

This is the only writer of record state outside the scheduler. Nothing here
raises to the caller: malformed events are dropped, unmatched completions
are synthesized.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from pydantic import ValidationError

from agentboard.engine.clock import Clock
from agentboard.engine.events import ToolEvent
from agentboard.engine.payload_parser import PayloadParser
from agentboard.engine.record_store import RecordStore
from agentboard.engine.records import (
    COMPLETED,
    ERRORED,
    AgentRecord,
    derive_agent_id,
    preview,
)
from agentboard.engine.resolver import RelationshipResolver
from agentboard.engine.scheduler import LifecycleScheduler
from agentboard.engine.usage_log import KIND_PROMPT, KIND_RESPONSE, MessageLog, UsageTotals

logger = logging.getLogger("engine.ingress")


class EventIngress:
    """Routes validated events through the resolver into the record store."""

    def __init__(
        self,
        store: RecordStore,
        messages: MessageLog,
        usage: UsageTotals,
        resolver: RelationshipResolver,
        scheduler: LifecycleScheduler,
        clock: Clock,
        *,
        reset: Callable[[str], None],
        parser: PayloadParser | None = None,
    ) -> None:
        self._store = store
        self._messages = messages
        self._usage = usage
        self._resolver = resolver
        self._scheduler = scheduler
        self._clock = clock
        self._reset = reset
        self.parser = parser or PayloadParser()

    def handle(self, payload: Any) -> bool:
        """Apply one notification. Returns False when it was dropped as malformed."""
        try:
            event = ToolEvent.model_validate(payload)
        except ValidationError as e:
            logger.warning("Dropping malformed event: %d validation errors", e.error_count())
            return False

        now = self._clock.now()
        self._store.touch_orchestrator(now)

        if event.is_spawn:
            if event.phase == "pre":
                self._on_spawn(event, now)
            else:
                self._on_spawn_result(event, now)
        elif event.is_result_report and event.phase == "post":
            self._on_report(event, now)
        return True

    # ── Spawn ─────────────────────────────────────────────────────────

    def _on_spawn(self, event: ToolEvent, now: float) -> None:
        self._scheduler.cancel_pending_reset()
        if self._scheduler.new_batch_due():
            self._reset("new batch after grace period")

        record_id = derive_agent_id(event.tool_use_id, event.session_id, event.description)
        existing = self._store.get(record_id)
        if existing is not None:
            if existing.is_running:
                existing.last_activity_at = now
            return

        record = AgentRecord(
            id=record_id,
            session_id=event.session_id,
            description=event.description,
            agent_type=event.agent_type,
            background=event.background,
            parent_id=self._resolver.infer_parent(event.session_id, exclude=record_id),
            started_at=now,
            last_activity_at=now,
        )
        self._store.add(record)
        self._messages.append(record.parent_id, record.id, KIND_PROMPT, now)
        logger.info(
            "Agent %s started (type=%s, parent=%s, background=%s, session=%s)",
            record.id,
            record.agent_type,
            record.parent_id,
            record.background,
            record.session_id,
        )

    def _on_spawn_result(self, event: ToolEvent, now: float) -> None:
        record_id = derive_agent_id(event.tool_use_id, event.session_id, event.description)
        record = self._resolver.match_completion(event.session_id, record_id, event.description)
        text = self.parser.output_text(event.tool_output)

        if record is None:
            record = self._synthesize(event, record_id, now)
        elif not (record.is_running or record.is_restart_orphan):
            logger.debug("Ignoring duplicate completion for %s (session=%s)", record.id, record.session_id)
            return
        elif record.background and record.is_running:
            ack = self.parser.parse_launch_ack(text)
            if ack is not None:
                self._acknowledge(record, ack, now)
                return

        self._complete(record, event, now)

    def _synthesize(self, event: ToolEvent, record_id: str, now: float) -> AgentRecord:
        record = AgentRecord(
            id=record_id,
            session_id=event.session_id,
            description=event.description,
            agent_type=event.agent_type,
            background=event.background,
            parent_id=self._resolver.infer_parent(event.session_id, exclude=record_id),
            started_at=now,
            last_activity_at=now,
        )
        logger.info("Synthesized record %s for unmatched completion (session=%s)", record_id, event.session_id)
        return self._store.add(record)

    def _acknowledge(self, record: AgentRecord, ack, now: float) -> None:
        record.last_activity_at = now
        if ack.output_file:
            record.output_file = ack.output_file
        if ack.agent_id:
            record.background_agent_id = ack.agent_id
        logger.info(
            "Background agent %s launched (agent_id=%s, session=%s)",
            record.id,
            record.background_agent_id,
            record.session_id,
        )

    # ── External completion reports ───────────────────────────────────

    def _on_report(self, event: ToolEvent, now: float) -> None:
        record = self._resolver.match_report(event.session_id, event.report_target_id)
        if record is None or not (record.is_running or record.is_restart_orphan):
            logger.debug("Unmatched completion report (session=%s)", event.session_id)
            return
        text = self.parser.output_text(event.tool_output)
        if record.is_running and self.parser.parse_launch_ack(text) is not None:
            record.last_activity_at = now
            return
        self._complete(record, event, now)

    # ── Terminal transition ───────────────────────────────────────────

    def _complete(self, record: AgentRecord, event: ToolEvent, now: float) -> None:
        text = self.parser.output_text(event.tool_output)
        failed = self.parser.is_error(event.is_error, text)
        record.finish(ERRORED if failed else COMPLETED, now)
        if failed:
            record.error_preview = preview(text) or "error"
        else:
            record.error_preview = None
            record.output_preview = preview(text)

        usage = self.parser.parse_usage(self.parser.output_blob(event.tool_output))
        if usage is not None:
            record.usage = usage
            self._usage.add(usage)

        self._messages.append(record.id, record.parent_id, KIND_RESPONSE, now)
        self._store.mark_terminal(now)
        logger.info(
            "Agent %s %s after %dms (session=%s)",
            record.id,
            record.status,
            record.duration_ms or 0,
            record.session_id,
        )
        self._scheduler.evaluate_reset()
