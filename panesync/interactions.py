"""
Controller-side tracking of spawned interactions.

The manager hands out an ``InteractionContext`` for each interaction, then
watches the result channel until the interaction reaches a terminal state:
accepted, declined, cancelled, or timed out. A timeout is the controller's
own deadline; producers never need to emit one. Spawning the process (in a
pane, a tab, a terminal window) is the caller's business.
"""

from __future__ import annotations

import itertools
import logging
import os
import signal
import time

from .config import interaction_poll_interval_ms
from .constants import MAX_FINISHED_INTERACTIONS
from .events import init_events
from .models import InteractionResult, InteractionState, InteractionStatus, now_ms
from .results import InteractionContext, lookup_result
from .runtime import heartbeat_path, pending_file_path, pid_file_path

logger = logging.getLogger(__name__)


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.debug("Could not remove %s: %s", path, e)


class InteractionNotFoundError(KeyError):
    """No interaction with that ID is being tracked."""


class InteractionManager:
    def __init__(self, session_name: str, poll_interval_ms: int | None = None):
        self.session_name = session_name
        self.poll_interval_ms = poll_interval_ms or interaction_poll_interval_ms()
        self._interactions: dict[str, InteractionState] = {}
        self._counter = itertools.count(1)

    def generate_id(self) -> str:
        return f"interaction-{next(self._counter)}-{now_ms()}"

    def create(self, interaction_id: str | None = None, timeout_ms: int | None = None) -> InteractionContext:
        """Register a pending interaction and return the context to spawn it with."""
        interaction_id = interaction_id or self.generate_id()
        events_file = init_events(self.session_name)
        pid_file = pid_file_path(self.session_name, interaction_id)
        hb_path = heartbeat_path(self.session_name)
        context = InteractionContext.for_interaction(
            interaction_id,
            events_file=events_file,
            pid_file=pid_file,
            # Only managed sessions have a heartbeat for the child to watch
            heartbeat_file=hb_path if os.path.exists(hb_path) else None,
        )
        self._interactions[interaction_id] = InteractionState(
            id=interaction_id,
            timeout_ms=timeout_ms,
            pid_file=pid_file,
            pending_file=context.pending_file,
        )
        logger.debug("Registered interaction %s in session %s", interaction_id, self.session_name)
        return context

    def _require(self, interaction_id: str) -> InteractionState:
        state = self._interactions.get(interaction_id)
        if state is None:
            raise InteractionNotFoundError(interaction_id)
        return state

    def get_state(self, interaction_id: str) -> InteractionState | None:
        return self._interactions.get(interaction_id)

    def pending_ids(self) -> list[str]:
        return [
            sid
            for sid, state in self._interactions.items()
            if state.status is InteractionStatus.PENDING
        ]

    def _finish(self, state: InteractionState, result: InteractionResult) -> None:
        state.status = InteractionStatus.for_action(result.action)
        state.result = result
        logger.info("Interaction %s finished: %s", state.id, state.status.value)
        self._release_files(state)
        self._forget_oldest_finished()

    def _forget_oldest_finished(self) -> None:
        finished = [sid for sid, s in self._interactions.items() if s.status.is_terminal]
        for sid in finished[: max(0, len(finished) - MAX_FINISHED_INTERACTIONS)]:
            del self._interactions[sid]

    def poll(self, interaction_id: str) -> InteractionState:
        """Advance one interaction: deadline first, then the result channel."""
        state = self._require(interaction_id)
        if state.status.is_terminal:
            return state

        if state.timeout_ms:
            elapsed_ms = (time.monotonic() - state.created_at) * 1000
            if elapsed_ms >= state.timeout_ms:
                self._finish(state, InteractionResult(action="timeout"))
                return state

        result = lookup_result(self.session_name, interaction_id)
        if result is not None:
            self._finish(state, result)
        return state

    def wait_for_result(self, interaction_id: str, timeout_ms: int = 0) -> InteractionResult | None:
        """Block until the interaction is terminal or ``timeout_ms`` elapses.

        With ``timeout_ms <= 0`` this only checks once and returns None while
        the interaction is still pending.
        """
        state = self.poll(interaction_id)
        if state.status.is_terminal or timeout_ms <= 0:
            return state.result

        deadline = time.monotonic() + timeout_ms / 1000
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return None
            time.sleep(min(self.poll_interval_ms / 1000, remaining))
            state = self.poll(interaction_id)
            if state.status.is_terminal:
                return state.result

    def _signal_producer(self, state: InteractionState) -> None:
        if not state.pid_file:
            return
        try:
            with open(state.pid_file, encoding="utf-8") as f:
                pid = int(f.read().strip())
        except (OSError, ValueError):
            return
        if pid <= 0:
            return
        try:
            os.kill(pid, signal.SIGTERM)
        except OSError as e:
            logger.debug("Could not signal PID %d for %s: %s", pid, state.id, e)

    def cancel(self, interaction_id: str) -> bool:
        """Cancel a pending interaction. False if unknown or already finished."""
        state = self._interactions.get(interaction_id)
        if state is None or state.status.is_terminal:
            return False
        self._signal_producer(state)
        self._finish(state, InteractionResult(action="cancel"))
        self.cleanup(interaction_id)
        return True

    def acknowledge(self, interaction_id: str) -> None:
        """Let a producer waiting on its pending marker exit."""
        state = self._interactions.get(interaction_id)
        _remove_quietly(
            state.pending_file if state and state.pending_file else pending_file_path(interaction_id)
        )

    def _release_files(self, state: InteractionState) -> None:
        _remove_quietly(state.pending_file or pending_file_path(state.id))
        if state.pid_file:
            _remove_quietly(state.pid_file)

    def cleanup(self, interaction_id: str) -> None:
        state = self._interactions.pop(interaction_id, None)
        if state is not None:
            self._release_files(state)

    def cancel_all(self) -> None:
        for interaction_id in list(self._interactions):
            self.cancel(interaction_id)
