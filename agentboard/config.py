"""agentboard configuration -- listen address, pricing, timing windows, state file."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


def _default_state_file() -> str:
    return str(Path.home() / ".agentboard" / "state.json")


@dataclass
class TimingConfig:
    """Timer windows for the lifecycle scheduler (all values in seconds)."""

    auto_reset_delay: float = field(
        default_factory=lambda: float(os.environ.get("AGENTBOARD_AUTO_RESET_DELAY", "120"))
    )
    retention_minutes: float = field(
        default_factory=lambda: float(os.environ.get("AGENTBOARD_RETENTION_MINUTES", "60"))
    )
    orchestrator_window: float = 15.0
    new_batch_grace: float = 60.0
    stale_threshold: float = 1800.0
    stale_sweep_interval: float = 30.0
    cleanup_interval: float = 60.0
    autosave_interval: float = 30.0
    save_min_interval: float = 2.0

    @property
    def retention_seconds(self) -> float:
        return self.retention_minutes * 60.0


@dataclass
class AgentboardConfig:
    """Top-level configuration for the agentboard service."""

    timing: TimingConfig = field(default_factory=TimingConfig)
    host: str = field(
        default_factory=lambda: os.environ.get("AGENTBOARD_HOST", "127.0.0.1")
    )
    port: int = field(
        default_factory=lambda: int(os.environ.get("AGENTBOARD_PORT", "8787"))
    )
    cost_per_million_tokens: float = field(
        default_factory=lambda: float(os.environ.get("AGENTBOARD_COST_PER_MTOK", "15.0"))
    )
    model_name: str = field(
        default_factory=lambda: os.environ.get("AGENTBOARD_MODEL_NAME", "claude")
    )
    state_file: str = field(
        default_factory=lambda: os.environ.get("AGENTBOARD_STATE_FILE", _default_state_file())
    )
    log_level: str = field(
        default_factory=lambda: os.environ.get("AGENTBOARD_LOG_LEVEL", "INFO")
    )


# Singleton for convenience
_config: AgentboardConfig | None = None


def get_config() -> AgentboardConfig:
    """Get or create the global agentboard configuration."""
    global _config
    if _config is None:
        _config = AgentboardConfig()
    return _config


def reset_config() -> None:
    """Reset the global configuration (for testing)."""
    global _config
    _config = None
