"""Tests for dashboard_api.py — the read-only inspection API."""

import os
import time

import pytest
from fastapi.testclient import TestClient

from panesync import heartbeat
from panesync.atomic import publish_json
from panesync.dashboard_api import app
from panesync.events import emit_error, emit_ready, emit_result, read_events
from panesync.models import InteractionResult
from panesync.results import write_direct_result
from panesync.runtime import heartbeat_path, snapshot_path


@pytest.fixture
def client():
    return TestClient(app)


class TestSessions:
    def test_empty(self, client):
        resp = client.get("/api/sessions")
        assert resp.status_code == 200
        assert resp.json() == []

    def test_lists_sessions_with_liveness(self, client):
        emit_ready("alive", "api")
        heartbeat.touch("alive")
        emit_ready("stale", "api")
        emit_error("stale", "api", "boom")
        path = heartbeat.ensure("stale")
        old = time.time() - 60
        os.utime(path, (old, old))
        publish_json(snapshot_path("alive", "cpu"), {"value": 3})

        sessions = {s["name"]: s for s in client.get("/api/sessions").json()}
        assert sessions["alive"]["alive"] is True
        assert sessions["alive"]["event_count"] == 1
        assert sessions["alive"]["snapshots"] == ["cpu"]
        assert sessions["stale"]["alive"] is False
        assert sessions["stale"]["event_count"] == 2
        assert sessions["stale"]["heartbeat_age_ms"] >= 60_000


class TestEvents:
    def test_returns_events_in_order(self, client):
        emit_ready("S", "a", port=3000)
        emit_error("S", "b", "crashed", 1)
        data = client.get("/api/session/S/events").json()
        assert [e["type"] for e in data] == ["ready", "error"]
        assert data[0]["port"] == 3000

    def test_filter_and_limit(self, client):
        for i in range(5):
            emit_ready("S", f"svc-{i}")
        emit_error("S", "x", "bad")
        data = client.get("/api/session/S/events", params={"type": "ready", "limit": 2}).json()
        assert [e["svc"] for e in data] == ["svc-3", "svc-4"]

    def test_unknown_session(self, client):
        assert client.get("/api/session/nope/events").status_code == 404


class TestResults:
    def test_direct_file(self, client):
        write_direct_result("int-1", InteractionResult(action="accept", answers={"a": "b"}))
        data = client.get("/api/session/S/results/int-1").json()
        assert data["source"] == "file"
        assert data["action"] == "accept"
        assert data["answers"] == {"a": "b"}

    def test_event_log(self, client):
        emit_result("S", "int-2", "decline", result={"code": 4})
        data = client.get("/api/session/S/results/int-2").json()
        assert data["source"] == "log"
        assert data["id"] == "int-2"
        assert data["result"] == {"code": 4}

    def test_malformed_answers_are_not_served(self, client, result_dir):
        (result_dir / "panesync-interaction-int-3.result").write_text(
            '{"action": "accept", "answers": {"n": 3}}', encoding="utf-8"
        )
        resp = client.get("/api/session/S/results/int-3")
        assert resp.status_code == 404

    def test_missing(self, client):
        resp = client.get("/api/session/S/results/int-9")
        assert resp.status_code == 404
        assert "int-9" in resp.json()["error"]


class TestHeartbeat:
    def test_alive(self, client):
        heartbeat.touch("S")
        data = client.get("/api/session/S/heartbeat").json()
        assert data["alive"] is True
        assert data["max_age_ms"] == 2000

    def test_no_heartbeat(self, client):
        data = client.get("/api/session/S/heartbeat").json()
        assert data == {"alive": False, "age_ms": None, "max_age_ms": 2000}
        assert not os.path.exists(heartbeat_path("S"))


class TestSnapshots:
    def test_latest_document(self, client):
        publish_json(snapshot_path("S", "files"), [{"label": "a", "value": 1}])
        resp = client.get("/api/session/S/snapshots/files")
        assert resp.status_code == 200
        assert resp.json() == [{"label": "a", "value": 1}]

    def test_missing(self, client):
        assert client.get("/api/session/S/snapshots/none").status_code == 404


class TestClear:
    def test_clears_log(self, client):
        emit_ready("S", "a")
        resp = client.post("/api/session/S/clear")
        assert resp.json()["success"] is True
        assert read_events("S") == []

    def test_unknown_session(self, client):
        resp = client.post("/api/session/nope/clear")
        assert resp.status_code == 404
        assert resp.json()["success"] is False


class TestServerInfo:
    def test_reports_pid_and_root(self, client, runtime_dir):
        data = client.get("/api/server-info").json()
        assert data["pid"] == os.getpid()
        assert data["runtime_root"] == str(runtime_dir)
