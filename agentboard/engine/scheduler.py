"""Lifecycle Scheduler -- staleness sweep, debounced auto-reset, retention, autosave.

Two timing tiers drive the store-wide state machine. The orchestrator has no
explicit "done" event, so its liveness is inferred from its most recent
event inside a short window; resets and retention use longer windows.
"""

from __future__ import annotations

import logging
from typing import Callable

from agentboard.config import TimingConfig
from agentboard.engine.clock import Clock, TimerHandle
from agentboard.engine.record_store import RecordStore
from agentboard.engine.records import ERRORED, stale_reason
from agentboard.engine.usage_log import MessageLog

logger = logging.getLogger("engine.scheduler")


class LifecycleScheduler:
    """Owns every timer; each one is individually cancellable."""

    def __init__(
        self,
        store: RecordStore,
        messages: MessageLog,
        clock: Clock,
        timing: TimingConfig,
        *,
        reset: Callable[[str], None],
        changed: Callable[[], None],
        autosave: Callable[[], None],
    ) -> None:
        self._store = store
        self._messages = messages
        self._clock = clock
        self._timing = timing
        self._reset = reset
        self._changed = changed
        self._autosave = autosave
        self._periodic: dict[str, TimerHandle] = {}
        self._pending_reset: TimerHandle | None = None

    # ── Periodic jobs ─────────────────────────────────────────────────

    def start(self) -> None:
        self._every("stale_sweep", self._timing.stale_sweep_interval, self.sweep_stale)
        self._every("cleanup", self._timing.cleanup_interval, self.cleanup)
        self._every("autosave", self._timing.autosave_interval, self._autosave)
        logger.info(
            "Scheduler started (stale=%ss, retention=%.0fs, auto_reset=%ss)",
            self._timing.stale_threshold,
            self._timing.retention_seconds,
            self._timing.auto_reset_delay,
        )

    def stop(self) -> None:
        for handle in self._periodic.values():
            handle.cancel()
        self._periodic.clear()
        self.cancel_pending_reset()

    @property
    def running_jobs(self) -> list[str]:
        return sorted(self._periodic)

    def _every(self, name: str, interval: float, job: Callable[[], object]) -> None:
        def tick() -> None:
            try:
                job()
            except Exception:
                logger.exception("Scheduled job %s failed", name)
            if name in self._periodic:
                self._periodic[name] = self._clock.call_later(interval, tick)

        self._periodic[name] = self._clock.call_later(interval, tick)

    def sweep_stale(self) -> int:
        """Force running records with no recent activity to errored."""
        now = self._clock.now()
        threshold = self._timing.stale_threshold
        stale = [
            r
            for r in self._store.running()
            if now - r.last_activity_at > threshold
        ]
        for record in stale:
            idle = now - record.last_activity_at
            record.finish(ERRORED, now)
            record.error_preview = stale_reason(idle)
            logger.warning(
                "Agent %s went stale after %.0fs without activity (session=%s)",
                record.id,
                idle,
                record.session_id,
            )
        if stale:
            self._store.mark_terminal(now)
            self._changed()
            self.evaluate_reset()
        return len(stale)

    def cleanup(self) -> int:
        """Evict terminal records and message entries older than the retention window."""
        cutoff = self._clock.now() - self._timing.retention_seconds
        expired = [
            r.id
            for r in self._store.all()
            if r.is_terminal and (r.ended_at or r.started_at) < cutoff
        ]
        for record_id in expired:
            self._store.remove(record_id)
        trimmed = self._messages.trim_older_than(cutoff)
        if expired or trimmed:
            logger.info("Retention cleanup evicted %d records, %d messages", len(expired), trimmed)
            self._changed()
        return len(expired)

    # ── Debounced auto-reset ──────────────────────────────────────────

    @property
    def reset_pending(self) -> bool:
        return self._pending_reset is not None

    def evaluate_reset(self) -> None:
        """Arm the auto-reset when nothing runs; disarm it when something does."""
        if self._store.has_running():
            self.cancel_pending_reset()
            return
        if len(self._store) == 0 or self._pending_reset is not None:
            return
        self._arm_reset(self._timing.auto_reset_delay)

    def cancel_pending_reset(self) -> None:
        if self._pending_reset is not None:
            self._pending_reset.cancel()
            self._pending_reset = None

    def _arm_reset(self, delay: float) -> None:
        self._pending_reset = self._clock.call_later(delay, self._fire_reset)
        logger.debug("Auto-reset armed for %.0fs", delay)

    def _fire_reset(self) -> None:
        self._pending_reset = None
        if self._store.has_running():
            logger.debug("Auto-reset cancelled: agents are running")
            return
        now = self._clock.now()
        if self._store.orchestrator_active(now, self._timing.orchestrator_window):
            logger.debug("Auto-reset deferred: orchestrator still active")
            self._arm_reset(self._timing.orchestrator_window)
            return
        self._reset("auto-reset after inactivity")

    def new_batch_due(self) -> bool:
        """True when a fresh spawn should start over rather than extend the old batch."""
        last = self._store.last_terminal_at
        if last is None or self._store.has_running():
            return False
        return self._clock.now() - last > self._timing.new_batch_grace
