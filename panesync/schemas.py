"""
Pydantic response models for the inspection API.

These define the JSON shapes for all API endpoints and give us
automatic OpenAPI schema generation + Swagger UI.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

# ── Session list (/api/sessions) ─────────────────────────────────────────────


class SessionResponse(BaseModel):
    """A session as returned by GET /api/sessions."""

    name: str
    alive: bool = False
    heartbeat_age_ms: float | None = None
    event_count: int = 0
    snapshots: list[str] = Field(default_factory=list)


# ── Heartbeat (/api/session/{name}/heartbeat) ────────────────────────────────


class HeartbeatResponse(BaseModel):
    alive: bool
    age_ms: float | None = None
    max_age_ms: int


# ── Results (/api/session/{name}/results/{id}) ───────────────────────────────


class ResultResponse(BaseModel):
    """Outcome of one interaction."""

    id: str
    action: str
    answers: dict[str, str | list[str]] | None = None
    result: Any = None
    source: str  # 'file' | 'log'


# ── Generic ─────────────────────────────────────────────────────────────────


class ActionResponse(BaseModel):
    """Generic success/failure response for POST actions."""

    success: bool
    message: str = ""


class ServerInfoResponse(BaseModel):
    pid: int
    port: str
    runtime_root: str
