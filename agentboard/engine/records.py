"""Agent lifecycle records -- one per logical agent invocation."""

from __future__ import annotations

import hashlib
from dataclasses import asdict, dataclass, field

ROOT_PARENT = "root"

RUNNING = "running"
COMPLETED = "completed"
ERRORED = "errored"
STATUSES = (RUNNING, COMPLETED, ERRORED)

RESTART_REASON = "process restarted"
STALE_REASON_PREFIX = "stale: no activity for"

PREVIEW_CHARS = 300


def stale_reason(seconds: float) -> str:
    return f"{STALE_REASON_PREFIX} {int(seconds)}s"


def derive_agent_id(tool_use_id: str | None, session_id: str, description: str) -> str:
    """Stable record id: the caller's correlation id, else a digest of session + description.

    Two concurrent agents with the same description in one session map to the
    same id and are tracked as one record.
    """
    if tool_use_id:
        return tool_use_id
    digest = hashlib.sha1(f"{session_id}\0{description}".encode("utf-8")).hexdigest()
    return digest[:16]


def preview(text: str | None, limit: int = PREVIEW_CHARS) -> str | None:
    if not text:
        return None
    text = text.strip()
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"


@dataclass
class Usage:
    """Token/tool/duration figures parsed from a completion payload.

    Each field is independently optional; a Usage with all three unset is
    never constructed (the parser returns None instead).
    """

    tokens: int | None = None
    tool_uses: int | None = None
    duration_ms: int | None = None


@dataclass
class AgentRecord:
    """Tracked lifecycle state of one agent invocation."""

    id: str
    session_id: str
    description: str = ""
    agent_type: str = ""
    status: str = RUNNING
    background: bool = False
    parent_id: str = ROOT_PARENT
    started_at: float = 0.0
    ended_at: float | None = None
    last_activity_at: float = 0.0
    duration_ms: int | None = None
    usage: Usage | None = None
    output_preview: str | None = None
    error_preview: str | None = None
    output_file: str | None = None
    background_agent_id: str | None = None

    @property
    def is_running(self) -> bool:
        return self.status == RUNNING

    @property
    def is_terminal(self) -> bool:
        return self.status in (COMPLETED, ERRORED)

    @property
    def is_restart_orphan(self) -> bool:
        """Errored only because the previous process died while it ran."""
        return self.status == ERRORED and self.error_preview == RESTART_REASON

    def finish(self, status: str, now: float) -> None:
        self.status = status
        self.ended_at = now
        self.last_activity_at = now
        self.duration_ms = max(0, int((now - self.started_at) * 1000))

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> AgentRecord:
        data = dict(data)
        usage = data.pop("usage", None)
        record = cls(**data)
        if usage:
            record.usage = Usage(**usage)
        if record.status not in STATUSES:
            raise ValueError(f"Unknown record status: {record.status!r}")
        return record
