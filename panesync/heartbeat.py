"""
Session heartbeat: a zero-byte file whose mtime says the owner is alive.

The owning process touches the file on a fixed cadence. Anyone else decides
liveness from the file's age, without needing a PID (which can be reused) or
a live handle. Removing the file is the owner's way of saying the session
has ended.
"""

from __future__ import annotations

import logging
import os
import threading
import time

from .config import heartbeat_interval_ms, heartbeat_max_age_ms
from .runtime import heartbeat_path

logger = logging.getLogger(__name__)


def ensure(session_name: str) -> str:
    """Create the heartbeat file if absent and return its path."""
    path = heartbeat_path(session_name)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    if not os.path.exists(path):
        with open(path, "a", encoding="utf-8"):
            pass
    return path


def touch(session_name: str) -> None:
    """Set the heartbeat's mtime to now, recreating the file if it vanished."""
    path = heartbeat_path(session_name)
    try:
        os.utime(path, None)
    except FileNotFoundError:
        ensure(session_name)


def age_ms(session_name: str) -> float | None:
    """Milliseconds since the last touch, or None if there is no heartbeat."""
    try:
        mtime = os.stat(heartbeat_path(session_name)).st_mtime
    except OSError:
        return None
    return max(0.0, (time.time() - mtime) * 1000)


def is_fresh(session_name: str, max_age_ms: int | None = None) -> bool:
    if max_age_ms is None:
        max_age_ms = heartbeat_max_age_ms()
    age = age_ms(session_name)
    return age is not None and age < max_age_ms


def remove(session_name: str) -> None:
    try:
        os.remove(heartbeat_path(session_name))
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Could not remove heartbeat for %s: %s", session_name, e)


class HeartbeatKeeper:
    """Touches a session's heartbeat from a daemon thread until stopped."""

    def __init__(self, session_name: str, interval_ms: int | None = None):
        self.session_name = session_name
        self.interval_ms = interval_ms or heartbeat_interval_ms()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None:
            return
        ensure(self.session_name)
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name=f"heartbeat-{self.session_name}", daemon=True
        )
        self._thread.start()

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                touch(self.session_name)
            except OSError as e:
                logger.warning("Heartbeat touch failed for %s: %s", self.session_name, e)
            self._stop.wait(self.interval_ms / 1000)

    def stop(self, remove_file: bool = False) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=self.interval_ms / 1000 + 1)
            self._thread = None
        if remove_file:
            remove(self.session_name)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
