"""Inbound tool-use notification model."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

SPAWN_TOOLS = frozenset({"Task", "Agent"})
RESULT_TOOLS = frozenset({"TaskOutput", "AgentOutputTool"})

_PHASE_ALIASES = {
    "pre": "pre",
    "pretooluse": "pre",
    "post": "post",
    "posttooluse": "post",
}

_REPORT_ID_KEYS = ("task_id", "agent_id", "agentId", "bash_id")


class ToolEvent(BaseModel):
    """A phase-tagged tool-use notification from the orchestrator hooks."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    session_id: str = Field(..., min_length=1)
    phase: Literal["pre", "post"]
    tool_name: str = Field(..., min_length=1)
    tool_input: dict[str, Any] = Field(default_factory=dict)
    tool_output: Any = Field(
        default=None, validation_alias=AliasChoices("tool_output", "tool_response")
    )
    is_error: bool | None = None
    tool_use_id: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _phase_from_hook_name(cls, data: Any) -> Any:
        if isinstance(data, dict) and "phase" not in data and "hook_event_name" in data:
            data = {**data, "phase": data["hook_event_name"]}
        return data

    @field_validator("phase", mode="before")
    @classmethod
    def _normalize_phase(cls, value: Any) -> Any:
        if isinstance(value, str):
            return _PHASE_ALIASES.get(value.strip().lower(), value)
        return value

    @field_validator("tool_input", mode="before")
    @classmethod
    def _input_or_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    @property
    def is_spawn(self) -> bool:
        return self.tool_name in SPAWN_TOOLS

    @property
    def is_result_report(self) -> bool:
        return self.tool_name in RESULT_TOOLS

    @property
    def description(self) -> str:
        return str(self.tool_input.get("description") or "")

    @property
    def agent_type(self) -> str:
        return str(self.tool_input.get("subagent_type") or "general-purpose")

    @property
    def background(self) -> bool:
        return bool(self.tool_input.get("run_in_background"))

    @property
    def report_target_id(self) -> str | None:
        """Explicit agent id a result report refers to, if the caller gave one."""
        for key in _REPORT_ID_KEYS:
            value = self.tool_input.get(key)
            if value:
                return str(value)
        return None
