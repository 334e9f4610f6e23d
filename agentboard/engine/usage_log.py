"""Message trace ring buffer and cumulative usage counters."""

from __future__ import annotations

from collections import deque
from dataclasses import asdict, dataclass

from agentboard.engine.records import Usage

MESSAGE_LOG_CAP = 500

KIND_PROMPT = "prompt"
KIND_RESPONSE = "response"


@dataclass(slots=True)
class MessageEntry:
    """One cross-agent communication edge (prompt dispatch or response)."""

    sender: str
    recipient: str
    kind: str
    timestamp: float

    def to_dict(self) -> dict:
        return {
            "from": self.sender,
            "to": self.recipient,
            "kind": self.kind,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict) -> MessageEntry:
        return cls(
            sender=data["from"],
            recipient=data["to"],
            kind=data["kind"],
            timestamp=float(data["timestamp"]),
        )


class MessageLog:
    """Append-only ring of message edges, oldest dropped first."""

    def __init__(self, maxlen: int = MESSAGE_LOG_CAP) -> None:
        self._entries: deque[MessageEntry] = deque(maxlen=maxlen)

    def __len__(self) -> int:
        return len(self._entries)

    def append(self, sender: str, recipient: str, kind: str, timestamp: float) -> None:
        self._entries.append(MessageEntry(sender, recipient, kind, timestamp))

    def trim_older_than(self, cutoff: float) -> int:
        """Drop entries from the front whose timestamp is before ``cutoff``."""
        dropped = 0
        while self._entries and self._entries[0].timestamp < cutoff:
            self._entries.popleft()
            dropped += 1
        return dropped

    def recent(self, limit: int = 100) -> list[MessageEntry]:
        """Newest ``limit`` entries in chronological order."""
        if limit <= 0:
            return []
        return list(self._entries)[-limit:]

    def clear(self) -> None:
        self._entries.clear()

    def to_list(self) -> list[dict]:
        return [e.to_dict() for e in self._entries]

    def restore(self, items: list[dict]) -> None:
        self._entries.clear()
        for item in items:
            self._entries.append(MessageEntry.from_dict(item))


@dataclass
class UsageTotals:
    """Process-wide running counters, updated on terminal transitions with usage."""

    tokens: int = 0
    tool_uses: int = 0
    duration_ms: int = 0
    agents: int = 0

    def add(self, usage: Usage) -> None:
        self.tokens += usage.tokens or 0
        self.tool_uses += usage.tool_uses or 0
        self.duration_ms += usage.duration_ms or 0
        self.agents += 1

    def update_from(self, other: UsageTotals) -> None:
        self.tokens = other.tokens
        self.tool_uses = other.tool_uses
        self.duration_ms = other.duration_ms
        self.agents = other.agents

    def cost(self, per_million_tokens: float) -> float:
        return round(self.tokens * per_million_tokens / 1_000_000, 6)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> UsageTotals:
        return cls(
            tokens=int(data.get("tokens", 0)),
            tool_uses=int(data.get("tool_uses", 0)),
            duration_ms=int(data.get("duration_ms", 0)),
            agents=int(data.get("agents", 0)),
        )
