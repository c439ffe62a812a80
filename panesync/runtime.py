"""Session runtime layout: where each session keeps its shared files.

A session key maps to one directory under the runtime root holding the event
log, the heartbeat, per-interaction pid files and watcher snapshots. Direct
result and progress files are keyed by interaction ID only, so a spawned
process can find them without knowing the session.
"""

from __future__ import annotations

import logging
import os
import tempfile

from .config import configured_result_dir, configured_runtime_dir
from .constants import (
    DEFAULT_RUNTIME_ROOT,
    DEFAULT_SESSION_NAME,
    ENV_RESULT_DIR,
    ENV_RUNTIME_DIR,
    EVENTS_FILE_NAME,
    HEARTBEAT_FILE_NAME,
    PENDING_FILE_SUFFIX,
    PROGRESS_FILE_SUFFIX,
    RESULT_FILE_PREFIX,
    RESULT_FILE_SUFFIX,
    SNAPSHOT_DIR_NAME,
)

logger = logging.getLogger(__name__)


def get_runtime_root() -> str:
    """Return the directory holding all session directories."""
    override = os.environ.get(ENV_RUNTIME_DIR, "")
    if override.strip():
        return override
    return configured_runtime_dir() or DEFAULT_RUNTIME_ROOT


def normalize_session_name(session_name: str) -> str:
    cleaned = session_name.replace("/", "_").replace("\\", "_").replace("\0", "").strip()
    return cleaned or DEFAULT_SESSION_NAME


def session_dir(session_name: str) -> str:
    return os.path.join(get_runtime_root(), normalize_session_name(session_name))


def events_file_path(session_name: str) -> str:
    return os.path.join(session_dir(session_name), EVENTS_FILE_NAME)


def heartbeat_path(session_name: str) -> str:
    return os.path.join(session_dir(session_name), HEARTBEAT_FILE_NAME)


def pid_file_path(session_name: str, interaction_id: str) -> str:
    return os.path.join(session_dir(session_name), f"pid-{interaction_id}.txt")


def snapshot_path(session_name: str, snapshot: str) -> str:
    """Default output path for a named watcher snapshot."""
    name = normalize_session_name(snapshot)
    return os.path.join(session_dir(session_name), SNAPSHOT_DIR_NAME, f"{name}.json")


def ensure_events_file(session_name: str) -> str:
    """Create the session directory and an empty event log if absent."""
    path = events_file_path(session_name)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    if not os.path.exists(path):
        with open(path, "a", encoding="utf-8"):
            pass
    return path


def list_sessions() -> list[str]:
    """Names of all session directories under the runtime root."""
    root = get_runtime_root()
    if not os.path.isdir(root):
        return []
    try:
        return sorted(
            name for name in os.listdir(root) if os.path.isdir(os.path.join(root, name))
        )
    except OSError as e:
        logger.debug("Error listing sessions in %s: %s", root, e)
        return []


# ── Per-interaction files ────────────────────────────────────────────────────


def get_result_dir() -> str:
    override = os.environ.get(ENV_RESULT_DIR, "")
    if override.strip():
        return override
    return configured_result_dir() or tempfile.gettempdir()


def result_file_path(interaction_id: str) -> str:
    """Direct result file, derived from the interaction ID alone."""
    return os.path.join(
        get_result_dir(), f"{RESULT_FILE_PREFIX}{interaction_id}{RESULT_FILE_SUFFIX}"
    )


def progress_file_path(interaction_id: str) -> str:
    return os.path.join(
        get_result_dir(), f"{RESULT_FILE_PREFIX}{interaction_id}{PROGRESS_FILE_SUFFIX}"
    )


def pending_file_path(interaction_id: str) -> str:
    """Marker a producer leaves while it waits for the controller to confirm."""
    return result_file_path(interaction_id) + PENDING_FILE_SUFFIX
