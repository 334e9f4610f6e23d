"""agentboard engine -- records, reconciliation, timers, persistence."""

from agentboard.engine.clock import SystemClock, VirtualClock
from agentboard.engine.events import ToolEvent
from agentboard.engine.payload_parser import LaunchAck, PayloadParser
from agentboard.engine.persistence import PersistenceWriter, SnapshotStore
from agentboard.engine.record_store import RecordStore
from agentboard.engine.records import AgentRecord, Usage
from agentboard.engine.tracker import AgentTracker

__all__ = [
    "AgentRecord",
    "AgentTracker",
    "LaunchAck",
    "PayloadParser",
    "PersistenceWriter",
    "RecordStore",
    "SnapshotStore",
    "SystemClock",
    "ToolEvent",
    "Usage",
    "VirtualClock",
]
