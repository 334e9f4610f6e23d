"""Recent service log lines, kept in memory and tagged with session/agent ids."""

from __future__ import annotations

import logging
import re
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone

LOG_BUFFER_SIZE = 2000

# Engine log lines name their subject as "Agent <id> ..." and "(... session=<id>)".
_SESSION_RE = re.compile(r"\bsession=([A-Za-z0-9_.:-]+?)[),]?(?:\s|$)")
_AGENT_RE = re.compile(r"\bAgent ([A-Za-z0-9_-]+)")


def _level_number(name: str | None) -> int:
    if not name:
        return logging.NOTSET
    number = logging.getLevelName(name.upper())
    return number if isinstance(number, int) else logging.NOTSET


@dataclass(slots=True)
class LogEntry:
    """A single captured log record."""

    timestamp: str
    level: str
    logger_name: str
    message: str
    session_id: str | None = None
    agent_id: str | None = None

    @classmethod
    def from_record(cls, record: logging.LogRecord, message: str) -> LogEntry:
        session = _SESSION_RE.search(message)
        agent = _AGENT_RE.search(message)
        return cls(
            timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            level=record.levelname,
            logger_name=record.name,
            message=message,
            session_id=session.group(1) if session else None,
            agent_id=agent.group(1) if agent else None,
        )


class LogBuffer:
    """Bounded ring of log entries, oldest dropped first.

    Locked because snapshot writes log from the persistence worker thread.
    """

    def __init__(self, maxlen: int = LOG_BUFFER_SIZE) -> None:
        self._entries: deque[LogEntry] = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def append(self, entry: LogEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def query(
        self,
        *,
        session_id: str | None = None,
        agent_id: str | None = None,
        level: str | None = None,
        since: datetime | None = None,
        limit: int = 100,
    ) -> list[LogEntry]:
        """Return matching entries, newest first.

        Args:
            session_id: Only lines about this orchestration session.
            agent_id: Only lines about this agent record.
            level: Minimum level name; "warning" keeps WARNING and above.
            since: Only entries at or after this timestamp.
            limit: Maximum number of entries to return.
        """
        floor = _level_number(level)
        cutoff = since.isoformat() if since else None

        with self._lock:
            snapshot = list(self._entries)

        results: list[LogEntry] = []
        for entry in reversed(snapshot):
            if len(results) >= limit:
                break
            if session_id and entry.session_id != session_id:
                continue
            if agent_id and entry.agent_id != agent_id:
                continue
            if floor and _level_number(entry.level) < floor:
                continue
            if cutoff and entry.timestamp < cutoff:
                continue
            results.append(entry)
        return results


class BufferHandler(logging.Handler):
    """Feeds every formatted record into a LogBuffer."""

    def __init__(self, buffer: LogBuffer, level: int = logging.DEBUG) -> None:
        super().__init__(level)
        self.buffer = buffer

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.buffer.append(LogEntry.from_record(record, self.format(record)))
        except Exception:
            self.handleError(record)
