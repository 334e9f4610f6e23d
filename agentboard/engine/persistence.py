"""Snapshot Persistence -- atomic JSON snapshot with crash-recovery relabeling."""

from __future__ import annotations

import asyncio
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from agentboard.engine.clock import Clock, TimerHandle
from agentboard.engine.records import ERRORED, RESTART_REASON, AgentRecord
from agentboard.engine.usage_log import UsageTotals

logger = logging.getLogger("engine.persistence")

SNAPSHOT_VERSION = 1


@dataclass
class LoadedState:
    """State restored from disk, after crash-recovery relabeling."""

    records: list[AgentRecord] = field(default_factory=list)
    messages: list[dict] = field(default_factory=list)
    usage: UsageTotals = field(default_factory=UsageTotals)
    last_terminal_at: float | None = None
    relabeled: int = 0


class SnapshotStore:
    """Reads and writes the single snapshot file.

    Writes go to a sibling ``.tmp`` file first and are renamed into place, so
    a reader never sees a half-written snapshot.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).expanduser()

    def save(self, data: dict) -> None:
        """Write the snapshot atomically. Raises OSError/TypeError on failure."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
        tmp.replace(self.path)

    def load(self, now: float) -> LoadedState:
        """Load the snapshot; a missing or corrupt file yields empty state.

        Records still marked running were in flight when the previous process
        died. They become errored with the restart reason, which keeps them
        eligible for a late completion event.
        """
        if not self.path.exists():
            logger.info("No snapshot at %s, starting empty", self.path)
            return LoadedState()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            records = [AgentRecord.from_dict(item) for item in data.get("agents", [])]
            state = LoadedState(
                records=records,
                messages=list(data.get("messages", [])),
                usage=UsageTotals.from_dict(data.get("usage", {})),
                last_terminal_at=data.get("last_terminal_at"),
            )
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning("Failed to load snapshot %s, starting empty: %s", self.path, e)
            return LoadedState()

        for record in state.records:
            if record.is_running:
                record.status = ERRORED
                record.error_preview = RESTART_REASON
                record.ended_at = now
                record.duration_ms = max(0, int((now - record.started_at) * 1000))
                state.relabeled += 1
        if state.relabeled:
            state.last_terminal_at = now
        logger.info(
            "Loaded %d records from snapshot (%d relabeled after restart)",
            len(state.records),
            state.relabeled,
        )
        return state


class PersistenceWriter:
    """Rate-limited, fire-and-forget snapshot writes.

    ``request_save`` coalesces bursts into at most one write per
    ``min_interval`` seconds. The snapshot dict is captured on the caller's
    thread; the file I/O runs on a single worker thread so the request path
    never blocks and writes land in order. Failures are logged and the next
    write retries.
    """

    def __init__(
        self,
        store: SnapshotStore,
        dump: Callable[[], dict],
        clock: Clock,
        min_interval: float = 2.0,
    ) -> None:
        self._store = store
        self._dump = dump
        self._clock = clock
        self._min_interval = min_interval
        self._pending: TimerHandle | None = None
        self._executor: ThreadPoolExecutor | None = None
        self.failures = 0

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def request_save(self) -> None:
        if self._pending is not None:
            return
        self._pending = self._clock.call_later(self._min_interval, self._fire)

    def _fire(self) -> None:
        self._pending = None
        self.write_now()

    def write_now(self) -> None:
        data = self._dump()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._write(data)
            return
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="agentboard-save")
        loop.run_in_executor(self._executor, self._write, data)

    def _write(self, data: dict) -> None:
        try:
            self._store.save(data)
            logger.debug("Snapshot written to %s", self._store.path)
        except (OSError, TypeError, ValueError) as e:
            self.failures += 1
            logger.error("Snapshot write to %s failed: %s", self._store.path, e)
        except Exception:
            self.failures += 1
            logger.exception("Snapshot write to %s failed unexpectedly", self._store.path)

    def cancel(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def close(self) -> None:
        """Cancel any pending write, write synchronously, stop the worker."""
        self.cancel()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        self._write(self._dump())
