"""Shared pytest fixtures for the test suite."""

import json

import pytest

import panesync.config as config_mod


@pytest.fixture(autouse=True)
def runtime_dir(tmp_path, monkeypatch):
    """Point every session and result file at a temporary directory."""
    sessions = tmp_path / "sessions"
    results = tmp_path / "results"
    sessions.mkdir()
    results.mkdir()
    monkeypatch.setenv("PANESYNC_RUNTIME_DIR", str(sessions))
    monkeypatch.setenv("PANESYNC_RESULT_DIR", str(results))
    monkeypatch.setattr(config_mod, "CONFIG_PATH", str(tmp_path / "config.json"))
    config_mod.reset_config()
    yield sessions
    config_mod.reset_config()


@pytest.fixture
def result_dir(tmp_path):
    return tmp_path / "results"


def write_events(runtime_dir, session, lines):
    """Write raw lines (dicts are JSON-encoded) to a session's events.jsonl."""
    session_dir = runtime_dir / session
    session_dir.mkdir(parents=True, exist_ok=True)
    events_file = session_dir / "events.jsonl"
    with open(events_file, "w", encoding="utf-8") as f:
        for line in lines:
            f.write((json.dumps(line) if isinstance(line, dict) else line) + "\n")
    return events_file


@pytest.fixture
def make_events(runtime_dir):
    """Fixture that returns a helper to write events.jsonl files."""

    def _make(session, lines):
        return write_events(runtime_dir, session, lines)

    return _make
