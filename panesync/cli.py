"""
panesync - CLI entry point.
Provides start, stop and status for the inspection server, plus watch and
wait for driving the file protocol from a shell.
"""

import argparse
import json
import logging
import os
import signal
import subprocess
import sys
import threading

from . import heartbeat
from .__version__ import __version__
from .config import server_port
from .constants import LOCALHOST, PANESYNC_DIR, PARSE_MODES, DEFAULT_WATCH_INTERVAL_MS
from .events import emit_error, emit_ready
from .interactions import InteractionManager
from .models import AdapterHints, WatcherConfig
from .runtime import snapshot_path
from .watcher import CommandWatcher

PID_FILE = os.path.join(PANESYNC_DIR, "server.pid")

BANNER = f"""\
  panesync inspection API v{__version__}
  Open http://localhost:{{port}}/docs
"""


def _read_pid_file() -> int | None:
    """Read PID from the PID file, returning None if corrupt or missing."""
    if not os.path.exists(PID_FILE):
        return None
    try:
        with open(PID_FILE, encoding="utf-8") as f:
            return int(f.read().strip())
    except (ValueError, OSError):
        return None


def _write_pid_file(pid: int) -> None:
    os.makedirs(os.path.dirname(PID_FILE), exist_ok=True)
    with open(PID_FILE, "w", encoding="utf-8") as f:
        f.write(str(pid))


def cmd_serve(args):
    """Internal: run the uvicorn server in-process (used by --background)."""
    import uvicorn

    uvicorn.run(
        "panesync.dashboard_api:app",
        host=LOCALHOST,
        port=args.port,
        log_level="warning",
    )


def cmd_start(args):
    """Start the inspection server."""
    old_pid = _read_pid_file()
    if old_pid is not None:
        try:
            os.kill(old_pid, 0)
            print(f"Server already running (PID {old_pid}) at http://localhost:{args.port}")
            return
        except OSError:
            os.remove(PID_FILE)

    if args.background:
        cmd = [sys.executable, "-m", "panesync.cli", "_serve", "--port", str(args.port)]
        proc = subprocess.Popen(  # pylint: disable=consider-using-with
            cmd,
            creationflags=subprocess.CREATE_NO_WINDOW if sys.platform == "win32" else 0,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
        _write_pid_file(proc.pid)
        print(f"Server started in background (PID {proc.pid})")
        print(BANNER.format(port=args.port))
    else:
        # Foreground - write PID for status checks, run directly
        _write_pid_file(os.getpid())
        try:
            print(BANNER.format(port=args.port))
            cmd_serve(args)
        finally:
            if os.path.exists(PID_FILE):
                os.remove(PID_FILE)


def cmd_stop(_args):
    """Stop the inspection server."""
    pid = _read_pid_file()
    if pid is None:
        print("Server is not running (no PID file found).")
        return

    try:
        if sys.platform == "win32":
            subprocess.run(["taskkill", "/F", "/PID", str(pid)], capture_output=True, check=False)
        else:
            os.kill(pid, signal.SIGTERM)
        print(f"Server stopped (PID {pid}).")
    except OSError as e:
        print(f"Could not stop process {pid}: {e}")
    finally:
        if os.path.exists(PID_FILE):
            os.remove(PID_FILE)


def cmd_status(_args):
    """Check if the inspection server is running."""
    pid = _read_pid_file()
    if pid is None:
        print("Server is not running.")
        return

    try:
        os.kill(pid, 0)
        print(f"Server is running (PID {pid})")
    except OSError:
        print("Server PID file exists but process is not running. Cleaning up.")
        os.remove(PID_FILE)


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}") from None
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {number}")
    return number


def _parse_component_args(pairs: list[str]) -> dict[str, str]:
    args: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise SystemExit(f"--arg expects key=value, got {pair!r}")
        args[key] = value
    return args


def cmd_watch(args):
    """Sample a command until interrupted, keeping the session heartbeat alive."""
    output = args.output or snapshot_path(args.session, args.name)
    hints = None
    if args.component:
        hints = AdapterHints(component=args.component, args=_parse_component_args(args.arg))
    config = WatcherConfig(
        command=args.cmd,
        output_path=output,
        interval_ms=args.interval,
        parse_mode=args.parse,
        hints=hints,
    )

    def _on_error(error: Exception) -> None:
        emit_error(args.session, args.name, str(error), getattr(error, "returncode", None))

    watcher = CommandWatcher(config, on_error=_on_error)
    keeper = heartbeat.HeartbeatKeeper(args.session)
    done = threading.Event()

    keeper.start()
    watcher.start()
    emit_ready(args.session, args.name)
    print(f"Watching {args.cmd!r} every {args.interval}ms -> {output}")
    try:
        done.wait()
    except KeyboardInterrupt:
        pass
    finally:
        watcher.stop()
        keeper.stop(remove_file=True)


def cmd_wait(args):
    """Wait for an interaction result and print it as JSON."""
    manager = InteractionManager(args.session)
    manager.create(args.id, timeout_ms=args.timeout or None)
    if args.timeout:
        result = manager.wait_for_result(args.id, args.timeout + manager.poll_interval_ms)
    else:
        result = None
        while result is None:
            result = manager.wait_for_result(args.id, 60_000)
    manager.acknowledge(args.id)
    if result is None:
        print(json.dumps({"action": "timeout"}))
        sys.exit(1)
    print(json.dumps(result.to_dict()))
    if result.action != "accept":
        sys.exit(1)


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="panesync",
        description="panesync - file-based event log and live-state sync for terminal sessions",
        epilog=(
            "Examples:\n"
            "  panesync start                               Serve the inspection API\n"
            "  panesync start -b --port 8080                Background on custom port\n"
            "  panesync watch 'echo 7' --parse number       Publish a snapshot every 2s\n"
            "  panesync wait my-session interaction-1-17    Block until a result lands\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command")

    start_p = sub.add_parser("start", help="Start the inspection web server")
    start_p.add_argument(
        "--port",
        type=int,
        default=server_port(),
        help="Port to listen on (default: %(default)s)",
    )
    start_p.add_argument(
        "--background", "-b", action="store_true", help="Run as a background process (detached)"
    )

    sub.add_parser("stop", help="Stop the background inspection server")
    sub.add_parser("status", help="Check if the inspection server is running")

    serve_p = sub.add_parser("_serve", help=argparse.SUPPRESS)
    serve_p.add_argument("--port", type=int, default=server_port())

    watch_p = sub.add_parser("watch", help="Run a command on an interval and publish its output")
    watch_p.add_argument("cmd", metavar="command", help="Shell command to sample (trusted input)")
    watch_p.add_argument("--session", default="default", help="Session name (default: %(default)s)")
    watch_p.add_argument("--name", default="watch", help="Snapshot name (default: %(default)s)")
    watch_p.add_argument("--output", help="Snapshot path (default: the session's snapshot dir)")
    watch_p.add_argument(
        "--interval", type=_positive_int, default=DEFAULT_WATCH_INTERVAL_MS, help="Tick interval in ms"
    )
    watch_p.add_argument("--parse", choices=PARSE_MODES, default="auto")
    watch_p.add_argument("--component", help="Shape output for a component (gauge, chart)")
    watch_p.add_argument("--arg", action="append", default=[], help="Component arg key=value")

    wait_p = sub.add_parser("wait", help="Wait for an interaction result")
    wait_p.add_argument("session")
    wait_p.add_argument("id")
    wait_p.add_argument("--timeout", type=int, default=0, help="Give up after this many ms")

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if not args.command:
        parser.print_help()
        return

    {
        "start": cmd_start,
        "_serve": cmd_serve,
        "stop": cmd_stop,
        "status": cmd_status,
        "watch": cmd_watch,
        "wait": cmd_wait,
    }[args.command](args)


if __name__ == "__main__":
    main()
