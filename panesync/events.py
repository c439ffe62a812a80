"""
Append-only event log shared by every process in a session.

Each session keeps one events.jsonl: newline-delimited JSON, one event per
line. Producers append, consumers re-read or tail it. Delivery is
best-effort: a failed append is logged and swallowed, and readers skip any
line that does not parse as a known event.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any

if os.name == "posix":
    import fcntl
else:  # pragma: no cover
    fcntl = None

from .atomic import dumps_compact
from .constants import EVENT_TAIL_BUFFER
from .models import (
    ErrorEvent,
    Event,
    LogEvent,
    ReadyEvent,
    ReloadEvent,
    ResultEvent,
    StatusEvent,
    event_from_dict,
    now_ms,
)
from .runtime import ensure_events_file, events_file_path

logger = logging.getLogger(__name__)


def _parse_line(line: str) -> Event | None:
    line = line.strip()
    if not line:
        return None
    try:
        return event_from_dict(json.loads(line))
    except (json.JSONDecodeError, ValueError) as e:
        logger.debug("Skipping malformed event line: %s", e)
        return None


def _parse_lines(lines) -> list[Event]:
    events = []
    for line in lines:
        event = _parse_line(line)
        if event is not None:
            events.append(event)
    return events


class EventLog:
    """One events.jsonl file.

    Appends go through a single ``write`` on an O_APPEND descriptor. On POSIX
    an advisory flock is held for the write so concurrent producers never
    interleave within a line.
    """

    def __init__(self, path: str):
        self.path = path

    def append(self, event: Event | dict[str, Any]) -> bool:
        """Append one event. Returns False (after logging) if the write failed."""
        if isinstance(event, dict):
            event = event_from_dict(event)
        data = (dumps_compact(event.to_dict()) + "\n").encode("utf-8")
        try:
            os.makedirs(os.path.dirname(os.path.abspath(self.path)), exist_ok=True)
            fd = os.open(self.path, os.O_WRONLY | os.O_APPEND | os.O_CREAT, 0o644)
            try:
                if fcntl is not None:
                    fcntl.flock(fd, fcntl.LOCK_EX)
                os.write(fd, data)
            finally:
                os.close(fd)
        except OSError as e:
            logger.warning("Failed to append %s event to %s: %s", event.type, self.path, e)
            return False
        return True

    def read_all(self) -> list[Event]:
        """All parseable events in append order."""
        if not os.path.exists(self.path):
            return []
        try:
            with open(self.path, encoding="utf-8", errors="replace") as f:
                return _parse_lines(f)
        except OSError as e:
            logger.debug("Error reading events from %s: %s", self.path, e)
            return []

    def read_recent(self, count: int = 10) -> list[Event]:
        """Read the last N events without loading the whole file."""
        if count <= 0 or not os.path.exists(self.path):
            return []
        try:
            with open(self.path, "rb") as f:
                f.seek(0, 2)
                size = f.tell()
                read_from = max(0, size - EVENT_TAIL_BUFFER)
                f.seek(read_from)
                chunk = f.read().decode("utf-8", errors="replace")
        except OSError as e:
            logger.debug("Error reading recent events from %s: %s", self.path, e)
            return []
        raw_lines = [ln for ln in chunk.split("\n") if ln.strip()]
        # When seeking mid-file, the first line is likely truncated, discard it
        if read_from > 0 and raw_lines:
            raw_lines = raw_lines[1:]
        return _parse_lines(raw_lines)[-count:]

    def find_result(self, interaction_id: str) -> ResultEvent | None:
        """Most recently appended result event for ``interaction_id``."""
        for event in reversed(self.read_all()):
            if isinstance(event, ResultEvent) and event.id == interaction_id:
                return event
        return None

    def clear(self) -> None:
        """Truncate the log, discarding stale history."""
        try:
            os.makedirs(os.path.dirname(os.path.abspath(self.path)), exist_ok=True)
            with open(self.path, "w", encoding="utf-8"):
                pass
        except OSError as e:
            logger.warning("Failed to clear events file %s: %s", self.path, e)

    def cursor(self) -> EventCursor:
        return EventCursor(self.path)


class EventCursor:
    """Incremental reader: each poll returns only events appended since the last.

    A trailing line without its newline is left for the next poll. If the
    file shrinks (it was cleared) the cursor starts over from the top.
    """

    def __init__(self, path: str, offset: int = 0):
        self.path = path
        self.offset = offset

    def poll(self) -> list[Event]:
        try:
            size = os.path.getsize(self.path)
        except OSError:
            self.offset = 0
            return []
        if size < self.offset:
            logger.debug("Events file %s shrank, rewinding cursor", self.path)
            self.offset = 0
        if size == self.offset:
            return []
        try:
            with open(self.path, "rb") as f:
                f.seek(self.offset)
                chunk = f.read(size - self.offset)
        except OSError as e:
            logger.debug("Error tailing %s: %s", self.path, e)
            return []
        end = chunk.rfind(b"\n")
        if end < 0:
            return []
        self.offset += end + 1
        text = chunk[: end + 1].decode("utf-8", errors="replace")
        return _parse_lines(text.split("\n"))


# ── Session-keyed helpers ────────────────────────────────────────────────────


def get_event_log(session_name: str) -> EventLog:
    return EventLog(events_file_path(session_name))


def init_events(session_name: str) -> str:
    """Create the session's event log if needed and return its path."""
    return ensure_events_file(session_name)


def append_event(session_name: str, event: Event | dict[str, Any]) -> bool:
    return get_event_log(session_name).append(event)


def read_events(session_name: str) -> list[Event]:
    return get_event_log(session_name).read_all()


def read_recent_events(session_name: str, count: int = 10) -> list[Event]:
    return get_event_log(session_name).read_recent(count)


def clear_events(session_name: str) -> None:
    """Used once at session start to discard stale history."""
    get_event_log(session_name).clear()


def emit_ready(session_name: str, svc: str, port: int | None = None, url: str | None = None) -> bool:
    return append_event(session_name, ReadyEvent(ts=now_ms(), svc=svc, port=port, url=url))


def emit_error(session_name: str, svc: str, msg: str, exit_code: int | None = None) -> bool:
    return append_event(session_name, ErrorEvent(ts=now_ms(), svc=svc, msg=msg, exit=exit_code))


def emit_log(session_name: str, svc: str, level: str, msg: str) -> bool:
    return append_event(session_name, LogEvent(ts=now_ms(), svc=svc, level=level, msg=msg))


def emit_result(
    session_name: str,
    interaction_id: str,
    action: str,
    answers: dict | None = None,
    result: Any = None,
) -> bool:
    event = ResultEvent(ts=now_ms(), id=interaction_id, action=action, answers=answers, result=result)
    return append_event(session_name, event)


def emit_reload(
    session_name: str,
    added: list[str],
    removed: list[str],
    changed: list[str],
    dashboard_reloaded: bool,
) -> bool:
    event = ReloadEvent(
        ts=now_ms(),
        added=tuple(added),
        removed=tuple(removed),
        changed=tuple(changed),
        dashboard_reloaded=dashboard_reloaded,
    )
    return append_event(session_name, event)


def emit_status(session_name: str, message: str, prompts: list[str] | None = None) -> bool:
    event = StatusEvent(
        ts=now_ms(), message=message, prompts=tuple(prompts) if prompts is not None else None
    )
    return append_event(session_name, event)
