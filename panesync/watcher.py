"""
Command watcher: sample an external command on a timer and publish a snapshot.

The command string runs through the shell on purpose: it comes from the
operator's own command line and may contain pipes and redirects (for example
``wc -l *.py | awk '{print $1}'``). It is not sanitized. Do not feed it
input from an untrusted source.

Every tick replaces the snapshot file wholesale via an atomic publish. A
failing command produces an error snapshot instead of an exception, and the
watcher keeps ticking.
"""

from __future__ import annotations

import json
import logging
import math
import re
import subprocess
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .atomic import publish_json
from .constants import CHART_DEFAULT_LABEL, GAUGE_DEFAULT_MAX, GAUGE_DEFAULT_MIN, PARSE_MODES
from .models import AdapterHints, WatcherConfig

logger = logging.getLogger(__name__)

_NUMERIC_LITERAL = re.compile(r"^-?\d+\.?\d*$")
_NUMERIC_PREFIX = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


class CommandError(Exception):
    """The watched command could not be run or exited non-zero."""

    def __init__(self, message: str, returncode: int | None = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


# ── Output parsers ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ParseAttempt:
    ok: bool
    value: Any = None


_NO_MATCH = ParseAttempt(False)


def _to_number(text: str) -> int | float | None:
    try:
        value = float(text)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return int(value) if value.is_integer() else value


def _reject_constant(name: str):
    raise ValueError(f"non-standard JSON constant {name}")


def _loads_strict(text: str) -> Any:
    return json.loads(text, parse_constant=_reject_constant)


def try_number_literal(text: str) -> ParseAttempt:
    if not _NUMERIC_LITERAL.match(text):
        return _NO_MATCH
    value = _to_number(text)
    return ParseAttempt(True, {"value": value}) if value is not None else _NO_MATCH


def try_json_document(text: str) -> ParseAttempt:
    bracketed = (text.startswith("{") and text.endswith("}")) or (
        text.startswith("[") and text.endswith("]")
    )
    if not bracketed:
        return _NO_MATCH
    try:
        return ParseAttempt(True, _loads_strict(text))
    except (ValueError, RecursionError):
        return _NO_MATCH


def _line_items(text: str) -> list[dict[str, Any]]:
    lines = [line.strip() for line in text.split("\n") if line.strip()]
    return [{"label": line, "value": index} for index, line in enumerate(lines, 1)]


def try_line_list(text: str) -> ParseAttempt:
    if "\n" not in text:
        return _NO_MATCH
    return ParseAttempt(True, _line_items(text))


def parse_raw(text: str) -> dict[str, Any]:
    return {"value": text}


AUTO_PARSERS: tuple[Callable[[str], ParseAttempt], ...] = (
    try_number_literal,
    try_json_document,
    try_line_list,
)
"""Tried in order by ``auto`` mode; the first success wins, raw is the fallback."""


def parse_output(output: str, mode: str) -> Any:
    """Turn raw command output into a JSON-ready value according to ``mode``."""
    text = output.strip()

    if mode == "auto":
        for parser in AUTO_PARSERS:
            attempt = parser(text)
            if attempt.ok:
                return attempt.value
        return parse_raw(text)

    if mode == "number":
        match = _NUMERIC_PREFIX.match(text)
        value = _to_number(match.group(0)) if match else None
        return {"value": value if value is not None else 0}
    if mode == "json":
        try:
            return _loads_strict(text)
        except (ValueError, RecursionError):
            return {"error": "Invalid JSON", "raw": text}
    if mode == "lines":
        return _line_items(text)
    return parse_raw(text)


# ── Consumer adapters ────────────────────────────────────────────────────────


def _arg_number(args: dict[str, str], key: str, default: int | float) -> int | float:
    raw = args.get(key)
    if not raw:
        return default
    match = _NUMERIC_PREFIX.match(str(raw).strip())
    value = _to_number(match.group(0)) if match else None
    return value if value is not None else default


def format_for_component(data: Any, hints: AdapterHints | None = None) -> Any:
    """Reshape a parsed scalar into what the target component expects."""
    if hints is None or not isinstance(data, dict):
        return data
    value = data.get("value")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return data

    args = hints.args
    if hints.component == "gauge":
        return {
            "value": value,
            "label": args.get("label", ""),
            "unit": args.get("unit", ""),
            "min": _arg_number(args, "min", GAUGE_DEFAULT_MIN),
            "max": _arg_number(args, "max", GAUGE_DEFAULT_MAX),
        }
    if hints.component == "chart":
        return [{"label": args.get("label") or CHART_DEFAULT_LABEL, "value": value}]
    return data


# ── Execution ────────────────────────────────────────────────────────────────


def execute_command(command: str) -> str:
    """Run ``command`` through the shell and return its stdout."""
    try:
        completed = subprocess.run(
            command,
            shell=True,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            check=False,
        )
    except OSError as e:
        raise CommandError(f"Failed to run command: {e}") from e
    if completed.returncode != 0:
        stderr = (completed.stderr or "").strip()
        message = stderr or f"Command exited with code {completed.returncode}: {command}"
        raise CommandError(message, returncode=completed.returncode, stderr=stderr)
    return completed.stdout or ""


class CommandWatcher:
    """Runs one command on a fixed interval and republishes its snapshot.

    The next tick is scheduled only after the current one settles, so a slow
    command delays sampling instead of piling up. ``stop()`` does not
    interrupt a command already running; that tick may still publish once.
    """

    def __init__(
        self,
        config: WatcherConfig,
        on_error: Callable[[Exception], None] | None = None,
    ):
        if config.parse_mode not in PARSE_MODES:
            raise ValueError(
                f"Unknown parse mode {config.parse_mode!r}; expected one of {', '.join(PARSE_MODES)}"
            )
        if config.interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        self.config = config
        self.on_error = on_error
        self.tick_count = 0
        self.last_document: Any = None
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def _report(self, error: Exception) -> None:
        if self.on_error is None:
            return
        try:
            self.on_error(error)
        except Exception:
            logger.exception("Watcher error callback failed")

    def tick(self) -> Any:
        """Run the command once and publish the resulting snapshot."""
        cfg = self.config
        try:
            output = execute_command(cfg.command)
            document = format_for_component(parse_output(output, cfg.parse_mode), cfg.hints)
        except CommandError as e:
            logger.debug("Watched command failed: %s", e)
            self._report(e)
            document = {"error": str(e), "value": 0}
        except Exception as e:  # pylint: disable=broad-except
            logger.warning("Could not turn output of %r into a snapshot: %s", cfg.command, e)
            self._report(e)
            document = {"error": str(e) or type(e).__name__, "value": 0}

        try:
            publish_json(cfg.output_path, document)
        except OSError as e:
            logger.warning("Failed to publish snapshot %s: %s", cfg.output_path, e)
            self._report(e)

        self.tick_count += 1
        self.last_document = document
        return document

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("Unexpected error in watcher tick for %r", self.config.command)
            self._stop.wait(self.config.interval_ms / 1000)

    def start(self) -> None:
        """Tick immediately, then every ``interval_ms`` after each tick settles."""
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="command-watcher", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Halt future ticks without waiting for an in-flight one."""
        self._stop.set()

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()


def start_command_watcher(
    config: WatcherConfig, on_error: Callable[[Exception], None] | None = None
) -> CommandWatcher:
    """Start a watcher and hand it back; call ``stop()`` on it to cancel."""
    watcher = CommandWatcher(config, on_error=on_error)
    watcher.start()
    return watcher


def read_snapshot(path: str) -> Any | None:
    """Latest snapshot document, or None if not yet published."""
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        return None
    except (OSError, json.JSONDecodeError) as e:
        logger.debug("Ignoring unreadable snapshot %s: %s", path, e)
        return None
