"""
Training stream event parsing.

The provider stream is line oriented. A line is either a structured
record (a JSON object, optionally behind an SSE ``data:`` prefix) or a
plain log line.
"""

import json
from dataclasses import dataclass
from typing import Any, Optional

TRACKED_STATUSES = frozenset({"pending", "running", "completed", "failed"})

# SSE fields that never carry log text
_SSE_FIELDS = ("event:", "id:", "retry:")


@dataclass(frozen=True)
class StreamEvent:
    """One parsed stream line."""

    log: Optional[str] = None
    status: Optional[str] = None


def _status_token(value: Any) -> Optional[str]:
    if isinstance(value, str) and value in TRACKED_STATUSES:
        return value
    return None


def _from_record(record: dict) -> Optional[StreamEvent]:
    kind = record.get("type")

    if kind == "log":
        content = record.get("content")
        return StreamEvent(log=str(content)) if content is not None else None

    if kind == "status":
        status = _status_token(record.get("status"))
        if status is None:
            return None
        log = "Job is pending..." if status == "pending" else None
        return StreamEvent(log=log, status=status)

    if kind == "error":
        return StreamEvent(log=f"Error: {record.get('message', 'unknown error')}", status="failed")

    log = record.get("log")
    log = str(log) if log is not None else None
    status = _status_token(record.get("status"))
    if log is None and status is None:
        return None
    return StreamEvent(log=log, status=status)


def parse_event_line(line: str) -> Optional[StreamEvent]:
    """
    Parse one line of the training stream.

    Returns None for lines with nothing to show or track: blank lines,
    SSE comments and SSE control fields, and records with neither log
    nor status. Unknown status tokens are dropped but their log is kept.
    """
    text = line.strip()
    if not text or text.startswith(":") or text.startswith(_SSE_FIELDS):
        return None

    if text.startswith("data:"):
        text = text[len("data:"):].strip()
        if not text:
            return None

    try:
        record = json.loads(text)
    except ValueError:
        return StreamEvent(log=text)

    if isinstance(record, dict):
        return _from_record(record)
    return StreamEvent(log=text)
