"""Heuristic parsing of free-text tool output: usage, error sniffing, launch acks.

All text scraping lives behind ``PayloadParser`` so the ingress never touches
a regex directly. Swap the parser to change heuristics.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any

from agentboard.engine.records import Usage

ERROR_SNIFF_CHARS = 200

_USAGE_BLOCK_RE = re.compile(r"<usage>(.*?)</usage>", re.IGNORECASE | re.DOTALL)

_NUM = r"[\"']?\s*[:=]\s*[\"']?(\d[\d,]*)"
_TOKENS_RE = re.compile(r"\b(?:total_tokens|totalTokens|tokens)" + _NUM, re.IGNORECASE)
_TOOL_USES_RE = re.compile(
    r"\b(?:tool_uses|totalToolUseCount|tool_use_count|toolUses)" + _NUM, re.IGNORECASE
)
_DURATION_RE = re.compile(
    r"\b(?:duration_ms|totalDurationMs|durationMs)" + _NUM, re.IGNORECASE
)

_ERROR_WORDS_RE = re.compile(r"\b(?:error|exception|traceback|failed)\b", re.IGNORECASE)

_LAUNCH_ACK_RE = re.compile(
    r"async agent launched"
    r"|launched in (?:the )?background"
    r"|running in (?:the )?background"
    r"|\bstatus[\"']?\s*[:=]\s*[\"']?running\b",
    re.IGNORECASE,
)
_AGENT_ID_RE = re.compile(r"\bagent_?id[\"']?\s*[:=]\s*[\"']?([A-Za-z0-9_-]+)", re.IGNORECASE)
_OUTPUT_FILE_RE = re.compile(r"\boutput_?file[\"']?\s*[:=]\s*[\"']?([^\s\"',}]+)", re.IGNORECASE)


@dataclass(frozen=True)
class LaunchAck:
    """A background launch acknowledgment: the agent is still running."""

    agent_id: str | None = None
    output_file: str | None = None


def _int(match: re.Match | None) -> int | None:
    if match is None:
        return None
    return int(match.group(1).replace(",", ""))


class PayloadParser:
    """Version 1 heuristics for Claude-style tool output."""

    version = 1

    def output_text(self, value: Any) -> str:
        """Human-readable text of a tool output (strings, content blocks, dicts)."""
        if value is None:
            return ""
        if isinstance(value, str):
            return value
        if isinstance(value, list):
            parts = []
            for block in value:
                if isinstance(block, dict):
                    if block.get("type", "text") == "text" and "text" in block:
                        parts.append(str(block["text"]))
                elif isinstance(block, str):
                    parts.append(block)
            return "\n".join(parts)
        if isinstance(value, dict):
            if "content" in value:
                return self.output_text(value["content"])
            for key in ("output", "result", "text"):
                if isinstance(value.get(key), str):
                    return value[key]
            return json.dumps(value, default=str)
        return str(value)

    def output_blob(self, value: Any) -> str:
        """Everything scannable in a tool output, as one string."""
        if value is None:
            return ""
        if isinstance(value, str):
            return value
        return json.dumps(value, default=str)

    def parse_usage(self, text: str) -> Usage | None:
        """Extract token/tool-use/duration counts.

        Returns None when none of the three fields is present, so "no data"
        stays distinguishable from "zero".
        """
        if not text:
            return None
        block = _USAGE_BLOCK_RE.search(text)
        scope = block.group(1) if block else text
        usage = Usage(
            tokens=_int(_TOKENS_RE.search(scope)),
            tool_uses=_int(_TOOL_USES_RE.search(scope)),
            duration_ms=_int(_DURATION_RE.search(scope)),
        )
        if usage.tokens is None and usage.tool_uses is None and usage.duration_ms is None:
            return None
        return usage

    def is_error(self, flag: bool | None, text: str) -> bool:
        """Explicit flag wins; otherwise sniff the head of the text for failure words."""
        if flag is not None:
            return flag
        if not text:
            return False
        return _ERROR_WORDS_RE.search(text[:ERROR_SNIFF_CHARS]) is not None

    def parse_launch_ack(self, text: str) -> LaunchAck | None:
        """Recognize an empty or launch-sentinel payload for a background agent."""
        if not text or not text.strip():
            return LaunchAck()
        if not _LAUNCH_ACK_RE.search(text):
            return None
        agent = _AGENT_ID_RE.search(text)
        output = _OUTPUT_FILE_RE.search(text)
        return LaunchAck(
            agent_id=agent.group(1) if agent else None,
            output_file=output.group(1) if output else None,
        )
