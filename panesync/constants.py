"""
Centralised constants for panesync.

All file names, environment variable names, default intervals and buffer
sizes live here so they are easy to find, tune, and test.
"""

from __future__ import annotations

import os

# ── Network & server ──────────────────────────────────────────────────────────

DEFAULT_PORT = 5112
"""Default HTTP port for the inspection API."""

LOCALHOST = "127.0.0.1"
"""Bind address; the inspection API is local-only."""

# ── File-system paths ─────────────────────────────────────────────────────────

PANESYNC_DIR = os.path.join(os.path.expanduser("~"), ".panesync")
DEFAULT_RUNTIME_ROOT = os.path.join(PANESYNC_DIR, "sessions")
CONFIG_PATH = os.path.join(PANESYNC_DIR, "config.json")

EVENTS_FILE_NAME = "events.jsonl"
HEARTBEAT_FILE_NAME = "heartbeat"
SNAPSHOT_DIR_NAME = "snapshots"
DEFAULT_SESSION_NAME = "session"
"""Fallback used when a session name normalizes to nothing."""

RESULT_FILE_PREFIX = "panesync-interaction-"
RESULT_FILE_SUFFIX = ".result"
PROGRESS_FILE_SUFFIX = ".progress"
PENDING_FILE_SUFFIX = ".pending"

# ── Environment variables ─────────────────────────────────────────────────────

ENV_RUNTIME_DIR = "PANESYNC_RUNTIME_DIR"
ENV_RESULT_DIR = "PANESYNC_RESULT_DIR"

ENV_INTERACTION_ID = "PANESYNC_INTERACTION_ID"
ENV_RESULT_FILE = "PANESYNC_RESULT_FILE"
ENV_PROGRESS_FILE = "PANESYNC_PROGRESS_FILE"
ENV_EVENTS_FILE = "PANESYNC_EVENTS_FILE"
ENV_PID_FILE = "PANESYNC_PID_FILE"
ENV_HEARTBEAT_FILE = "PANESYNC_HEARTBEAT_FILE"

# ── Polling & liveness intervals (milliseconds) ──────────────────────────────

HEARTBEAT_INTERVAL_MS = 1000
"""How often the session owner touches its heartbeat file."""

HEARTBEAT_MAX_AGE_MS = 2000
"""A heartbeat older than this means the session owner is gone."""

INTERACTION_POLL_INTERVAL_MS = 500
"""How often the controller checks for an interaction result."""

MAX_FINISHED_INTERACTIONS = 256
"""Finished interactions a manager remembers before forgetting the oldest."""

DEFAULT_WATCH_INTERVAL_MS = 2000
"""Default tick interval for a command watcher."""

# ── Buffer sizes ─────────────────────────────────────────────────────────────

EVENT_TAIL_BUFFER = 16_384
"""Bytes to read from the end of events.jsonl for recent-event parsing."""

# ── Event vocabulary ─────────────────────────────────────────────────────────

EVENT_TYPES: frozenset[str] = frozenset({"ready", "error", "log", "result", "reload", "status"})

RESULT_ACTIONS: frozenset[str] = frozenset({"accept", "decline", "cancel", "timeout"})

LOG_LEVELS: frozenset[str] = frozenset({"info", "warn", "error"})

PARSE_MODES: tuple[str, ...] = ("number", "json", "lines", "raw", "auto")

# ── Watcher adapter defaults ─────────────────────────────────────────────────

GAUGE_DEFAULT_MIN = 0
GAUGE_DEFAULT_MAX = 100
CHART_DEFAULT_LABEL = "Value"
