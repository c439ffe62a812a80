"""
Result channel: correlates an interaction ID with its outcome.

A spawned interactive process reports through an ``InteractionContext`` it
rebuilds from its environment. It writes a direct result file (fast lookup,
written synchronously before the process exits) and, when it knows the
session's events file, also appends a ``result`` event. The controller looks
at the direct file first and falls back to scanning the event log.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .atomic import publish_json
from .constants import (
    ENV_EVENTS_FILE,
    ENV_HEARTBEAT_FILE,
    ENV_INTERACTION_ID,
    ENV_PID_FILE,
    ENV_PROGRESS_FILE,
    ENV_RESULT_FILE,
    PENDING_FILE_SUFFIX,
)
from .events import EventLog, get_event_log
from .models import InteractionResult, ResultEvent, now_ms
from .runtime import pending_file_path, progress_file_path, result_file_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InteractionContext:
    """Everything a producer needs to report an outcome.

    Only the first three fields are guaranteed; the rest are set when the
    controller runs a managed session.
    """

    interaction_id: str
    result_file: str
    progress_file: str
    events_file: str | None = None
    pid_file: str | None = None
    heartbeat_file: str | None = None

    @classmethod
    def for_interaction(cls, interaction_id: str, **extra: str | None) -> InteractionContext:
        return cls(
            interaction_id=interaction_id,
            result_file=result_file_path(interaction_id),
            progress_file=progress_file_path(interaction_id),
            **extra,
        )

    @property
    def pending_file(self) -> str:
        """Marker left next to the result file while the producer awaits confirmation."""
        return self.result_file + PENDING_FILE_SUFFIX

    def to_env(self) -> dict[str, str]:
        env = {
            ENV_INTERACTION_ID: self.interaction_id,
            ENV_RESULT_FILE: self.result_file,
            ENV_PROGRESS_FILE: self.progress_file,
        }
        optional = {
            ENV_EVENTS_FILE: self.events_file,
            ENV_PID_FILE: self.pid_file,
            ENV_HEARTBEAT_FILE: self.heartbeat_file,
        }
        env.update({k: v for k, v in optional.items() if v})
        return env

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> InteractionContext | None:
        """Rebuild the context inside a spawned process; None if not spawned by us."""
        environ = os.environ if environ is None else environ
        interaction_id = environ.get(ENV_INTERACTION_ID)
        if not interaction_id:
            return None
        return cls(
            interaction_id=interaction_id,
            result_file=environ.get(ENV_RESULT_FILE) or result_file_path(interaction_id),
            progress_file=environ.get(ENV_PROGRESS_FILE) or progress_file_path(interaction_id),
            events_file=environ.get(ENV_EVENTS_FILE) or None,
            pid_file=environ.get(ENV_PID_FILE) or None,
            heartbeat_file=environ.get(ENV_HEARTBEAT_FILE) or None,
        )


def build_interaction_env(context: InteractionContext) -> dict[str, str]:
    """Environment variables to hand to a spawned interaction process."""
    return context.to_env()


# ── Direct result files ──────────────────────────────────────────────────────


def write_direct_result(
    interaction_id: str, result: InteractionResult, path: str | None = None
) -> str:
    """Write the result document and return only once it is on disk.

    Errors propagate: a producer must know its result was not recorded.
    """
    path = path or result_file_path(interaction_id)
    publish_json(path, result.to_dict())
    return path


def read_direct_result(interaction_id: str, path: str | None = None) -> InteractionResult | None:
    path = path or result_file_path(interaction_id)
    if not os.path.exists(path):
        return None
    try:
        with open(path, encoding="utf-8") as f:
            return InteractionResult.from_dict(json.load(f))
    except (OSError, json.JSONDecodeError, ValueError) as e:
        logger.debug("Ignoring unreadable result file %s: %s", path, e)
        return None


def remove_direct_result(interaction_id: str) -> None:
    for path in (result_file_path(interaction_id), pending_file_path(interaction_id)):
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.debug("Could not remove %s: %s", path, e)


# ── Lookup ───────────────────────────────────────────────────────────────────


def find_result(session_name: str, interaction_id: str) -> ResultEvent | None:
    """Latest ``result`` event for the ID in the session log, or None."""
    return get_event_log(session_name).find_result(interaction_id)


def lookup_result(session_name: str, interaction_id: str) -> InteractionResult | None:
    """Direct result file first, then the event log."""
    direct = read_direct_result(interaction_id)
    if direct is not None:
        return direct
    event = find_result(session_name, interaction_id)
    return InteractionResult.from_event(event) if event is not None else None


# ── Producer side ────────────────────────────────────────────────────────────


def report_result(
    context: InteractionContext,
    action: str,
    answers: dict | None = None,
    result: Any = None,
) -> InteractionResult:
    """Record an outcome using nothing but the spawned process's context."""
    outcome = InteractionResult.from_dict(
        {"action": action, "answers": answers, "result": result}
    )
    write_direct_result(context.interaction_id, outcome, path=context.result_file)
    if context.events_file:
        EventLog(context.events_file).append(
            ResultEvent(
                ts=now_ms(),
                id=context.interaction_id,
                action=outcome.action,
                answers=outcome.answers,
                result=outcome.result,
            )
        )
    return outcome


def mark_pending(context: InteractionContext) -> None:
    """Leave a marker the controller removes once it has seen the result."""
    with open(context.pending_file, "w", encoding="utf-8"):
        pass


def is_acknowledged(context: InteractionContext) -> bool:
    return not os.path.exists(context.pending_file)


def write_progress(context: InteractionContext, data: dict[str, Any]) -> None:
    """Publish an intermediate progress document; failures are logged only."""
    try:
        publish_json(context.progress_file, data)
    except OSError as e:
        logger.warning("Failed to write progress for %s: %s", context.interaction_id, e)


def read_progress(path: str) -> dict[str, Any] | None:
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        return None
    except (OSError, json.JSONDecodeError) as e:
        logger.debug("Ignoring unreadable progress file %s: %s", path, e)
        return None
    return data if isinstance(data, dict) else None
