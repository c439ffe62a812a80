"""User configuration for panesync.

Settings are read from an optional ~/.panesync/config.json and cached for the
life of the process. Anything missing falls back to the defaults in
constants.py.
"""

from __future__ import annotations

import json
import logging
import os

from .constants import (
    CONFIG_PATH,
    DEFAULT_PORT,
    HEARTBEAT_INTERVAL_MS,
    HEARTBEAT_MAX_AGE_MS,
    INTERACTION_POLL_INTERVAL_MS,
)

logger = logging.getLogger(__name__)

# Loaded once on first call
_custom_config: dict | None = None


def _load_config() -> dict:
    """Load optional user config from ~/.panesync/config.json.

    Expected format:
    {
        "runtime_dir": "/path/to/sessions",
        "result_dir": "/tmp",
        "heartbeat": {"interval_ms": 1000, "max_age_ms": 2000},
        "interactions": {"poll_interval_ms": 500},
        "server": {"port": 5112}
    }
    """
    global _custom_config
    if _custom_config is not None:
        return _custom_config
    _custom_config = {}
    if os.path.exists(CONFIG_PATH):
        try:
            with open(CONFIG_PATH, encoding="utf-8") as f:
                data = json.load(f)
            if isinstance(data, dict):
                _custom_config = data
            else:
                logger.warning("Ignoring %s: top level is not an object", CONFIG_PATH)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable config %s: %s", CONFIG_PATH, e)
    return _custom_config


def reset_config() -> None:
    """Forget the cached config so the next lookup re-reads the file."""
    global _custom_config
    _custom_config = None


def _section(name: str) -> dict:
    value = _load_config().get(name, {})
    return value if isinstance(value, dict) else {}


def _positive_int(value, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def configured_runtime_dir() -> str | None:
    value = _load_config().get("runtime_dir")
    return value if isinstance(value, str) and value.strip() else None


def configured_result_dir() -> str | None:
    value = _load_config().get("result_dir")
    return value if isinstance(value, str) and value.strip() else None


def heartbeat_interval_ms() -> int:
    return _positive_int(_section("heartbeat").get("interval_ms"), HEARTBEAT_INTERVAL_MS)


def heartbeat_max_age_ms() -> int:
    return _positive_int(_section("heartbeat").get("max_age_ms"), HEARTBEAT_MAX_AGE_MS)


def interaction_poll_interval_ms() -> int:
    return _positive_int(
        _section("interactions").get("poll_interval_ms"), INTERACTION_POLL_INTERVAL_MS
    )


def server_port() -> int:
    return _positive_int(_section("server").get("port"), DEFAULT_PORT)
