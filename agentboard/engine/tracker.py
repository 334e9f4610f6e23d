"""Agent Tracker -- composes store, ingress, scheduler and persistence into one service."""

from __future__ import annotations

import logging
from typing import Any, Callable

from agentboard.config import AgentboardConfig, get_config
from agentboard.engine.clock import Clock, SystemClock
from agentboard.engine.ingress import EventIngress
from agentboard.engine.payload_parser import PayloadParser
from agentboard.engine.persistence import SNAPSHOT_VERSION, PersistenceWriter, SnapshotStore
from agentboard.engine.query import build_snapshot
from agentboard.engine.record_store import RecordStore
from agentboard.engine.resolver import RelationshipResolver
from agentboard.engine.scheduler import LifecycleScheduler
from agentboard.engine.usage_log import MessageLog, UsageTotals

logger = logging.getLogger("engine.tracker")

ChangeListener = Callable[[], None]


class AgentTracker:
    """The reconciliation engine behind the HTTP surface.

    All mutation happens on one thread (the event loop) in run-to-completion
    handlers, so none of the state below is locked.
    """

    def __init__(
        self,
        config: AgentboardConfig | None = None,
        *,
        clock: Clock | None = None,
        snapshot_store: SnapshotStore | None = None,
        parser: PayloadParser | None = None,
    ) -> None:
        self.config = config or get_config()
        self.clock = clock or SystemClock()
        timing = self.config.timing

        self.store = RecordStore()
        self.messages = MessageLog()
        self.usage = UsageTotals()
        self.resolver = RelationshipResolver(self.store)
        self.snapshots = snapshot_store or SnapshotStore(self.config.state_file)
        self.writer = PersistenceWriter(
            self.snapshots, self.dump, self.clock, min_interval=timing.save_min_interval
        )
        self.scheduler = LifecycleScheduler(
            self.store,
            self.messages,
            self.clock,
            timing,
            reset=self.reset,
            changed=self._changed,
            autosave=self.writer.write_now,
        )
        self.ingress = EventIngress(
            self.store,
            self.messages,
            self.usage,
            self.resolver,
            self.scheduler,
            self.clock,
            reset=self.reset,
            parser=parser,
        )
        self._listeners: list[ChangeListener] = []
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    # ── Lifecycle ─────────────────────────────────────────────────────

    def start(self) -> None:
        """Restore the snapshot and start the periodic timers."""
        if self._started:
            return
        state = self.snapshots.load(self.clock.now())
        for record in state.records:
            self.store.add(record)
        self.messages.restore(state.messages)
        self.usage.update_from(state.usage)
        self.store.last_terminal_at = state.last_terminal_at
        self.resolver.repair_parents()

        # Pending reset is derived from the loaded state, never from the old timer.
        self.scheduler.evaluate_reset()
        self.scheduler.start()
        if state.relabeled:
            self.writer.request_save()
        self._started = True

    def shutdown(self) -> None:
        """Stop timers and write a final snapshot."""
        self.scheduler.stop()
        self.writer.close()
        self._started = False
        logger.info("Tracker stopped with %d records", len(self.store))

    # ── Operations ────────────────────────────────────────────────────

    def handle_event(self, payload: Any) -> bool:
        """Ingest one notification. Never raises; returns False if it was dropped."""
        try:
            accepted = self.ingress.handle(payload)
        except Exception:
            logger.exception("Event handler failed, event dropped")
            return False
        if accepted:
            self._changed()
        return accepted

    def heartbeat(self) -> None:
        self.store.touch_orchestrator(self.clock.now())
        self._notify()

    def reset(self, reason: str = "manual") -> None:
        """Clear every record and the message log. Usage totals are kept."""
        self.scheduler.cancel_pending_reset()
        removed = self.store.clear()
        self.messages.clear()
        logger.info("Store reset (%s): %d records cleared", reason, removed)
        self._changed()

    def snapshot(self) -> dict:
        return build_snapshot(
            self.store,
            self.messages,
            self.usage,
            now=self.clock.now(),
            orchestrator_window=self.config.timing.orchestrator_window,
            cost_per_million_tokens=self.config.cost_per_million_tokens,
            model_name=self.config.model_name,
        )

    def dump(self) -> dict:
        """Serializable snapshot for persistence."""
        return {
            "version": SNAPSHOT_VERSION,
            "saved_at": self.clock.now(),
            "agents": [r.to_dict() for r in self.store.all()],
            "messages": self.messages.to_list(),
            "usage": self.usage.to_dict(),
            "last_terminal_at": self.store.last_terminal_at,
        }

    # ── Change propagation ────────────────────────────────────────────

    def _changed(self) -> None:
        self._notify()
        self.writer.request_save()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("Change listener failed")
