"""
panesync: FastAPI inspection API.

Read-only view over the session runtime directory:
  - Sessions with heartbeat liveness and event counts
  - Event log contents, optionally filtered by type
  - Interaction results (direct result file or event log)
  - Latest watcher snapshots
  - Auto-generated OpenAPI docs at /docs

The API only reads the same files every other process uses; nothing here is
needed for the protocol itself to work.
"""

import os
from typing import Any

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse

from . import heartbeat
from .__version__ import __version__
from .config import heartbeat_max_age_ms
from .constants import SNAPSHOT_DIR_NAME
from .events import get_event_log
from .results import find_result, read_direct_result
from .runtime import get_runtime_root, list_sessions, session_dir, snapshot_path
from .schemas import (
    ActionResponse,
    HeartbeatResponse,
    ResultResponse,
    ServerInfoResponse,
    SessionResponse,
)
from .watcher import read_snapshot

app = FastAPI(
    title="panesync",
    version=__version__,
    description="Inspect panesync sessions: events, results, heartbeats and snapshots.",
)


# ── Helpers ──────────────────────────────────────────────────────────────────


def _not_found(message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=404)


def _session_exists(name: str) -> bool:
    return os.path.isdir(session_dir(name))


def list_snapshots(name: str) -> list[str]:
    directory = os.path.join(session_dir(name), SNAPSHOT_DIR_NAME)
    if not os.path.isdir(directory):
        return []
    return sorted(
        entry[: -len(".json")]
        for entry in os.listdir(directory)
        if entry.endswith(".json") and not entry.startswith(".")
    )


def describe_session(name: str) -> dict:
    """Summary of one session for the session list."""
    max_age = heartbeat_max_age_ms()
    age = heartbeat.age_ms(name)
    return {
        "name": name,
        "alive": age is not None and age < max_age,
        "heartbeat_age_ms": age,
        "event_count": len(get_event_log(name).read_all()),
        "snapshots": list_snapshots(name),
    }


# ── API Routes ───────────────────────────────────────────────────────────────


@app.get("/api/sessions", response_model=list[SessionResponse])
def api_sessions():
    """List all sessions under the runtime root."""
    return [describe_session(name) for name in list_sessions()]


@app.get("/api/session/{name}/events", response_model=list[dict[str, Any]])
def api_events(
    name: str,
    type: str | None = Query(default=None, description="Only events of this type"),
    limit: int | None = Query(default=None, ge=1, description="Only the last N events"),
):
    """Return a session's events in append order."""
    if not _session_exists(name):
        return _not_found(f"Session {name!r} not found")
    events = get_event_log(name).read_all()
    if type:
        events = [e for e in events if e.type == type]
    if limit:
        events = events[-limit:]
    return [e.to_dict() for e in events]


@app.get("/api/session/{name}/results/{interaction_id}", response_model=ResultResponse)
def api_result(name: str, interaction_id: str):
    """Return the outcome of an interaction, preferring the direct result file."""
    direct = read_direct_result(interaction_id)
    if direct is not None:
        return {"id": interaction_id, **direct.to_dict(), "source": "file"}
    event = find_result(name, interaction_id)
    if event is None:
        return _not_found(f"No result for interaction {interaction_id!r}")
    data = event.to_dict()
    data.pop("ts", None)
    data.pop("type", None)
    return {**data, "source": "log"}


@app.get("/api/session/{name}/heartbeat", response_model=HeartbeatResponse)
def api_heartbeat(name: str):
    """Report whether the session owner is still touching its heartbeat."""
    max_age = heartbeat_max_age_ms()
    age = heartbeat.age_ms(name)
    return {"alive": age is not None and age < max_age, "age_ms": age, "max_age_ms": max_age}


@app.get("/api/session/{name}/snapshots/{snapshot}")
def api_snapshot(name: str, snapshot: str):
    """Return the latest published snapshot document."""
    document = read_snapshot(snapshot_path(name, snapshot))
    if document is None:
        return _not_found(f"Snapshot {snapshot!r} not found")
    return JSONResponse(document)


@app.post("/api/session/{name}/clear", response_model=ActionResponse)
def api_clear(name: str):
    """Truncate a session's event log."""
    if not _session_exists(name):
        return JSONResponse(
            {"success": False, "message": f"Session {name!r} not found"}, status_code=404
        )
    get_event_log(name).clear()
    return {"success": True, "message": f"Cleared events for {name}"}


@app.get("/api/server-info", response_model=ServerInfoResponse)
def server_info(request: Request):
    """Return server metadata including PID."""
    host = request.headers.get("host", "localhost:5112")
    return {"pid": os.getpid(), "port": host.split(":")[-1], "runtime_root": get_runtime_root()}
