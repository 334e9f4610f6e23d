"""Log access routes -- recent service log lines from the in-memory buffer."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query

from agentboard.api.deps import get_log_buffer
from agentboard.api.models import LogEntryResponse
from agentboard.engine.log_buffer import LogBuffer

router = APIRouter(prefix="/api/logs", tags=["logs"])


def _parse_since(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Invalid 'since' timestamp: {value}")
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


@router.get("/", response_model=list[LogEntryResponse])
async def list_logs(
    session_id: str | None = None,
    agent_id: str | None = None,
    level: str | None = None,
    limit: int = Query(default=100, ge=1, le=2000),
    since: str | None = None,
    log_buffer: LogBuffer = Depends(get_log_buffer),
) -> list[LogEntryResponse]:
    """Recent log lines, newest first.

    Args:
        session_id: Only lines about this orchestration session.
        agent_id: Only lines about this agent record.
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        limit: Maximum entries to return (default 100, max 2000).
        since: ISO-8601 timestamp; naive values are taken as UTC.
    """
    entries = log_buffer.query(
        session_id=session_id,
        agent_id=agent_id,
        level=level,
        since=_parse_since(since),
        limit=limit,
    )
    return [LogEntryResponse.model_validate(e, from_attributes=True) for e in entries]
