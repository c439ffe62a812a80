"""Typed data models for panesync."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar

from .constants import LOG_LEVELS, RESULT_ACTIONS


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


# ── Field validation ─────────────────────────────────────────────────────────


def _require(payload: dict, key: str, kind: type | tuple[type, ...]) -> Any:
    value = payload.get(key)
    if isinstance(value, bool) and bool not in (kind if isinstance(kind, tuple) else (kind,)):
        raise ValueError(f"field {key!r} has the wrong type")
    if not isinstance(value, kind):
        raise ValueError(f"field {key!r} is missing or has the wrong type")
    return value


def _optional(payload: dict, key: str, kind: type | tuple[type, ...]) -> Any:
    if payload.get(key) is None:
        return None
    return _require(payload, key, kind)


def _answers(payload: dict) -> dict[str, str | list[str]] | None:
    value = _optional(payload, "answers", dict)
    if value is None:
        return None
    for key, answer in value.items():
        if isinstance(answer, str):
            continue
        if not isinstance(answer, list) or not all(isinstance(a, str) for a in answer):
            raise ValueError(f"answer {key!r} must be a string or a list of strings")
    return value


def _string_tuple(payload: dict, key: str, *, required: bool = True) -> tuple[str, ...] | None:
    value = payload.get(key)
    if value is None and not required:
        return None
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"field {key!r} must be a list of strings")
    return tuple(value)


# ── Events ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Event:
    """Base for every record in a session's events.jsonl."""

    type: ClassVar[str] = ""

    ts: int

    def _fields(self) -> dict[str, Any]:
        return {}

    def to_dict(self) -> dict[str, Any]:
        """Wire form: ``ts`` and ``type`` first, unset optional fields omitted."""
        data: dict[str, Any] = {"ts": self.ts, "type": self.type}
        for key, value in self._fields().items():
            if value is not None:
                data[key] = value
        return data


@dataclass(frozen=True)
class ReadyEvent(Event):
    """A service or component became available."""

    type: ClassVar[str] = "ready"

    svc: str
    port: int | None = None
    url: str | None = None

    def _fields(self):
        return {"svc": self.svc, "port": self.port, "url": self.url}

    @classmethod
    def from_payload(cls, payload: dict) -> ReadyEvent:
        return cls(
            ts=payload["ts"],
            svc=_require(payload, "svc", str),
            port=_optional(payload, "port", int),
            url=_optional(payload, "url", str),
        )


@dataclass(frozen=True)
class ErrorEvent(Event):
    """A service or component failed."""

    type: ClassVar[str] = "error"

    svc: str
    msg: str
    exit: int | None = None

    def _fields(self):
        return {"svc": self.svc, "msg": self.msg, "exit": self.exit}

    @classmethod
    def from_payload(cls, payload: dict) -> ErrorEvent:
        return cls(
            ts=payload["ts"],
            svc=_require(payload, "svc", str),
            msg=_require(payload, "msg", str),
            exit=_optional(payload, "exit", int),
        )


@dataclass(frozen=True)
class LogEvent(Event):
    type: ClassVar[str] = "log"

    svc: str
    level: str
    msg: str

    def _fields(self):
        return {"svc": self.svc, "level": self.level, "msg": self.msg}

    @classmethod
    def from_payload(cls, payload: dict) -> LogEvent:
        level = _require(payload, "level", str)
        if level not in LOG_LEVELS:
            raise ValueError(f"unknown log level {level!r}")
        return cls(
            ts=payload["ts"],
            svc=_require(payload, "svc", str),
            level=level,
            msg=_require(payload, "msg", str),
        )


@dataclass(frozen=True)
class ResultEvent(Event):
    """A terminal interaction concluded."""

    type: ClassVar[str] = "result"

    id: str
    action: str
    answers: dict[str, str | list[str]] | None = None
    result: Any = None

    def _fields(self):
        return {"id": self.id, "action": self.action, "answers": self.answers, "result": self.result}

    @classmethod
    def from_payload(cls, payload: dict) -> ResultEvent:
        action = _require(payload, "action", str)
        if action not in RESULT_ACTIONS:
            raise ValueError(f"unknown result action {action!r}")
        return cls(
            ts=payload["ts"],
            id=_require(payload, "id", str),
            action=action,
            answers=_answers(payload),
            result=payload.get("result"),
        )


@dataclass(frozen=True)
class ReloadEvent(Event):
    """Configuration changed."""

    type: ClassVar[str] = "reload"

    added: tuple[str, ...] = ()
    removed: tuple[str, ...] = ()
    changed: tuple[str, ...] = ()
    dashboard_reloaded: bool = False

    def _fields(self):
        return {
            "added": list(self.added),
            "removed": list(self.removed),
            "changed": list(self.changed),
            "dashboardReloaded": self.dashboard_reloaded,
        }

    @classmethod
    def from_payload(cls, payload: dict) -> ReloadEvent:
        return cls(
            ts=payload["ts"],
            added=_string_tuple(payload, "added"),
            removed=_string_tuple(payload, "removed"),
            changed=_string_tuple(payload, "changed"),
            dashboard_reloaded=_require(payload, "dashboardReloaded", bool),
        )


@dataclass(frozen=True)
class StatusEvent(Event):
    """Advisory text for display."""

    type: ClassVar[str] = "status"

    message: str
    prompts: tuple[str, ...] | None = None

    def _fields(self):
        return {
            "message": self.message,
            "prompts": list(self.prompts) if self.prompts is not None else None,
        }

    @classmethod
    def from_payload(cls, payload: dict) -> StatusEvent:
        return cls(
            ts=payload["ts"],
            message=_require(payload, "message", str),
            prompts=_string_tuple(payload, "prompts", required=False),
        )


EVENT_CLASSES: dict[str, type[Event]] = {
    cls.type: cls
    for cls in (ReadyEvent, ErrorEvent, LogEvent, ResultEvent, ReloadEvent, StatusEvent)
}


def event_from_dict(payload: Any) -> Event:
    """Rebuild a typed event from its wire form.

    Raises ValueError when the payload is not a known event shape.
    """
    if not isinstance(payload, dict):
        raise ValueError("event is not a JSON object")
    cls = EVENT_CLASSES.get(payload.get("type"))
    if cls is None:
        raise ValueError(f"unknown event type {payload.get('type')!r}")
    _require(payload, "ts", (int, float))
    return cls.from_payload(payload)


# ── Interactions ─────────────────────────────────────────────────────────────


class InteractionStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"

    @classmethod
    def for_action(cls, action: str) -> InteractionStatus:
        return {
            "accept": cls.ACCEPTED,
            "decline": cls.DECLINED,
            "cancel": cls.CANCELLED,
            "timeout": cls.TIMED_OUT,
        }[action]

    @property
    def is_terminal(self) -> bool:
        return self is not InteractionStatus.PENDING


@dataclass(frozen=True)
class InteractionResult:
    """Outcome of an interaction, as stored in a direct result file."""

    action: str
    answers: dict[str, str | list[str]] | None = None
    result: Any = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"action": self.action}
        if self.answers is not None:
            data["answers"] = self.answers
        if self.result is not None:
            data["result"] = self.result
        return data

    @classmethod
    def from_dict(cls, payload: Any) -> InteractionResult:
        if not isinstance(payload, dict):
            raise ValueError("result is not a JSON object")
        action = _require(payload, "action", str)
        if action not in RESULT_ACTIONS:
            raise ValueError(f"unknown result action {action!r}")
        return cls(
            action=action,
            answers=_answers(payload),
            result=payload.get("result"),
        )

    @classmethod
    def from_event(cls, event: ResultEvent) -> InteractionResult:
        return cls(action=event.action, answers=event.answers, result=event.result)


@dataclass
class InteractionState:
    """Controller-side view of one interaction."""

    id: str
    status: InteractionStatus = InteractionStatus.PENDING
    result: InteractionResult | None = None
    created_at: float = field(default_factory=time.monotonic)
    timeout_ms: int | None = None
    pid_file: str | None = None
    pending_file: str | None = None


# ── Command watcher ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class AdapterHints:
    """Describes the consumer a snapshot is shaped for (e.g. a gauge)."""

    component: str | None = None
    args: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class WatcherConfig:
    command: str
    output_path: str
    interval_ms: int
    parse_mode: str = "auto"
    hints: AdapterHints | None = None
