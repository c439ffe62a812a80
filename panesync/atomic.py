"""Atomic publish: write to a temp file, then rename it over the target.

A concurrent reader of the target sees either the old complete document or
the new complete one. The temp file lives in the target's directory so the
rename never crosses a filesystem.
"""

from __future__ import annotations

import json
import os
import tempfile

# Read once; os.umask can only be queried by setting it
_UMASK = os.umask(0)
os.umask(_UMASK)


def publish(path: str, data: bytes | str) -> None:
    """Atomically replace ``path`` with ``data``.

    Raises OSError if the temp write or the rename fails; ``path`` is left
    untouched in that case.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(
        dir=directory, prefix=f".{os.path.basename(path)}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        # mkstemp creates 0600; published files get the usual umask-derived mode
        os.chmod(tmp_path, 0o666 & ~_UMASK)
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def dumps_compact(obj) -> str:
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False)


def publish_json(path: str, obj) -> None:
    """Serialize ``obj`` compactly and publish it atomically."""
    publish(path, dumps_compact(obj))
