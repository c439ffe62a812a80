"""Tests for the interaction manager."""

import os
import signal
from unittest.mock import patch

import pytest

from panesync import heartbeat
from panesync.events import emit_result
from panesync.interactions import InteractionManager, InteractionNotFoundError
from panesync.models import InteractionResult, InteractionStatus
from panesync.results import (
    InteractionContext,
    is_acknowledged,
    mark_pending,
    report_result,
    write_direct_result,
)
from panesync.runtime import events_file_path, pid_file_path


@pytest.fixture
def manager():
    return InteractionManager("S", poll_interval_ms=10)


class TestCreate:
    def test_generated_ids_are_unique(self, manager):
        ids = {manager.generate_id() for _ in range(50)}
        assert len(ids) == 50
        assert all(i.startswith("interaction-") for i in ids)

    def test_context_carries_session_paths(self, manager):
        ctx = manager.create("int-1")
        assert ctx.interaction_id == "int-1"
        assert ctx.events_file == events_file_path("S")
        assert ctx.pid_file == pid_file_path("S", "int-1")
        assert ctx.heartbeat_file is None
        assert manager.get_state("int-1").status is InteractionStatus.PENDING

    def test_heartbeat_included_when_session_is_managed(self, manager):
        heartbeat.ensure("S")
        ctx = manager.create("int-1")
        assert ctx.heartbeat_file is not None
        assert "PANESYNC_HEARTBEAT_FILE" in ctx.to_env()

    def test_create_without_id_generates_one(self, manager):
        ctx = manager.create()
        assert manager.pending_ids() == [ctx.interaction_id]


class TestPoll:
    def test_still_pending(self, manager):
        manager.create("int-1")
        assert manager.poll("int-1").status is InteractionStatus.PENDING

    def test_accept_through_event_log(self, manager):
        manager.create("int-1")
        emit_result("S", "int-1", "accept", {"name": "x"})
        state = manager.poll("int-1")
        assert state.status is InteractionStatus.ACCEPTED
        assert state.result.answers == {"name": "x"}
        assert manager.pending_ids() == []

    def test_decline_through_direct_file(self, manager):
        manager.create("int-1")
        write_direct_result("int-1", InteractionResult(action="decline"))
        assert manager.poll("int-1").status is InteractionStatus.DECLINED

    def test_producer_using_only_its_environment(self, manager):
        env = manager.create("int-1").to_env()
        report_result(InteractionContext.from_env(env), "accept", result={"picked": 2})
        state = manager.poll("int-1")
        assert state.status is InteractionStatus.ACCEPTED
        assert state.result.result == {"picked": 2}

    def test_terminal_state_is_sticky(self, manager):
        manager.create("int-1")
        emit_result("S", "int-1", "decline")
        manager.poll("int-1")
        emit_result("S", "int-1", "accept")
        assert manager.poll("int-1").status is InteractionStatus.DECLINED

    def test_deadline_times_out(self, manager):
        manager.create("int-1", timeout_ms=1)
        with patch("panesync.interactions.time.monotonic", return_value=10**9):
            state = manager.poll("int-1")
        assert state.status is InteractionStatus.TIMED_OUT
        assert state.result.action == "timeout"

    def test_unknown_id_raises(self, manager):
        with pytest.raises(InteractionNotFoundError):
            manager.poll("nope")


class TestWaitForResult:
    def test_returns_immediately_when_done(self, manager):
        manager.create("int-1")
        emit_result("S", "int-1", "accept")
        assert manager.wait_for_result("int-1", 5000) == InteractionResult(action="accept")

    def test_zero_timeout_checks_once(self, manager):
        manager.create("int-1")
        assert manager.wait_for_result("int-1") is None

    def test_gives_up_after_timeout(self, manager):
        manager.create("int-1")
        assert manager.wait_for_result("int-1", 50) is None
        assert manager.get_state("int-1").status is InteractionStatus.PENDING

    def test_picks_up_result_while_waiting(self, manager):
        manager.create("int-1")
        calls = {"n": 0}

        def _sleep(seconds):
            calls["n"] += 1
            if calls["n"] == 2:
                emit_result("S", "int-1", "cancel")

        with patch("panesync.interactions.time.sleep", side_effect=_sleep):
            result = manager.wait_for_result("int-1", 5000)
        assert result.action == "cancel"
        assert manager.get_state("int-1").status is InteractionStatus.CANCELLED


class TestCancel:
    def test_cancel_signals_producer_and_forgets_state(self, manager):
        ctx = manager.create("int-1")
        with open(ctx.pid_file, "w", encoding="utf-8") as f:
            f.write("4242")
        with patch("panesync.interactions.os.kill") as mock_kill:
            assert manager.cancel("int-1") is True
        mock_kill.assert_called_once_with(4242, signal.SIGTERM)
        assert manager.get_state("int-1") is None
        assert not os.path.exists(ctx.pid_file)

    def test_cancel_without_pid_file(self, manager):
        manager.create("int-1")
        with patch("panesync.interactions.os.kill") as mock_kill:
            assert manager.cancel("int-1") is True
        mock_kill.assert_not_called()

    def test_cancel_unknown_or_finished(self, manager):
        assert manager.cancel("nope") is False
        manager.create("int-1")
        emit_result("S", "int-1", "accept")
        manager.poll("int-1")
        assert manager.cancel("int-1") is False

    def test_cancel_all(self, manager):
        manager.create("a")
        manager.create("b")
        manager.cancel_all()
        assert manager.pending_ids() == []


class TestAcknowledge:
    def test_removes_pending_marker(self, manager):
        ctx = manager.create("int-1")
        mark_pending(ctx)
        manager.acknowledge("int-1")
        manager.acknowledge("int-1")
        assert not os.path.exists(ctx.pending_file)

    def test_follows_the_context_not_the_current_result_dir(self, manager, monkeypatch, tmp_path):
        ctx = manager.create("int-1")
        mark_pending(ctx)
        monkeypatch.setenv("PANESYNC_RESULT_DIR", str(tmp_path / "elsewhere"))
        manager.acknowledge("int-1")
        assert is_acknowledged(ctx)


class TestFinishedInteractionCleanup:
    def test_accept_removes_pid_file_and_pending_marker(self, manager):
        ctx = manager.create("int-1")
        with open(ctx.pid_file, "w", encoding="utf-8") as f:
            f.write("4242")
        mark_pending(ctx)
        write_direct_result("int-1", InteractionResult(action="accept"))
        assert manager.wait_for_result("int-1", 5000).action == "accept"
        assert not os.path.exists(ctx.pid_file)
        assert is_acknowledged(ctx)
        assert manager.get_state("int-1").status is InteractionStatus.ACCEPTED

    def test_timeout_removes_pid_file(self, manager):
        ctx = manager.create("int-1", timeout_ms=1)
        with open(ctx.pid_file, "w", encoding="utf-8") as f:
            f.write("4242")
        with patch("panesync.interactions.time.monotonic", return_value=10**9):
            manager.poll("int-1")
        assert not os.path.exists(ctx.pid_file)

    def test_oldest_finished_interactions_are_forgotten(self, manager):
        with patch("panesync.interactions.MAX_FINISHED_INTERACTIONS", 2):
            manager.create("pending")
            for name in ("a", "b", "c"):
                manager.create(name)
                emit_result("S", name, "decline")
                manager.poll(name)
        assert manager.get_state("a") is None
        assert manager.get_state("b") is not None
        assert manager.get_state("c") is not None
        assert manager.pending_ids() == ["pending"]
