"""Tests for atomic.py"""

import json
import os
import stat
import sys
from unittest.mock import patch

import pytest

from panesync.atomic import _UMASK, dumps_compact, publish, publish_json


class TestPublish:
    def test_creates_parent_directories(self, tmp_path):
        target = tmp_path / "a" / "b" / "doc.txt"
        publish(str(target), "hello")
        assert target.read_text(encoding="utf-8") == "hello"

    def test_replaces_existing_content(self, tmp_path):
        target = tmp_path / "doc.txt"
        publish(str(target), "first version, rather long")
        publish(str(target), b"second")
        assert target.read_bytes() == b"second"

    def test_failed_rename_keeps_old_content(self, tmp_path):
        target_dir = tmp_path / "docs"
        target_dir.mkdir()
        target = target_dir / "doc.txt"
        publish(str(target), "old")
        with patch("panesync.atomic.os.replace", side_effect=OSError("rename failed")):
            with pytest.raises(OSError, match="rename failed"):
                publish(str(target), "new")
        assert target.read_text(encoding="utf-8") == "old"
        assert os.listdir(target_dir) == ["doc.txt"]


    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permission bits")
    def test_published_file_is_not_owner_only(self, tmp_path):
        target = tmp_path / "doc.txt"
        publish(str(target), "hello")
        assert stat.S_IMODE(os.stat(target).st_mode) == 0o666 & ~_UMASK

class TestPublishJson:
    def test_compact_and_unicode(self, tmp_path):
        target = tmp_path / "doc.json"
        publish_json(str(target), {"label": "café", "value": [1, 2]})
        text = target.read_text(encoding="utf-8")
        assert text == '{"label":"café","value":[1,2]}'
        assert json.loads(text)["label"] == "café"

    def test_dumps_compact(self):
        assert dumps_compact({"a": 1, "b": None}) == '{"a":1,"b":null}'
