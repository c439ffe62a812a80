"""Tests for heartbeat.py"""

import os
import time

import panesync.config as config_mod
from panesync import heartbeat
from panesync.runtime import heartbeat_path


class TestFreshness:
    def test_fresh_after_touch(self):
        heartbeat.touch("S")
        assert heartbeat.is_fresh("S", 2000)

    def test_stale_when_mtime_is_old(self):
        path = heartbeat.ensure("S")
        old = time.time() - 3
        os.utime(path, (old, old))
        assert not heartbeat.is_fresh("S", 2000)
        assert heartbeat.age_ms("S") >= 3000

    def test_missing_is_not_fresh(self):
        assert heartbeat.age_ms("S") is None
        assert not heartbeat.is_fresh("S", 2000)

    def test_touch_refreshes_stale_file(self):
        path = heartbeat.ensure("S")
        old = time.time() - 60
        os.utime(path, (old, old))
        heartbeat.touch("S")
        assert heartbeat.is_fresh("S", 2000)

    def test_default_max_age_from_config(self, tmp_path):
        (tmp_path / "config.json").write_text(
            '{"heartbeat": {"max_age_ms": 10000}}', encoding="utf-8"
        )
        config_mod.reset_config()
        path = heartbeat.ensure("S")
        old = time.time() - 5
        os.utime(path, (old, old))
        assert heartbeat.is_fresh("S")

    def test_remove(self):
        heartbeat.ensure("S")
        heartbeat.remove("S")
        heartbeat.remove("S")
        assert not os.path.exists(heartbeat_path("S"))


class TestHeartbeatKeeper:
    def test_keeps_file_fresh_until_stopped(self):
        keeper = heartbeat.HeartbeatKeeper("S", interval_ms=20)
        keeper.start()
        try:
            assert keeper.running
            path = heartbeat_path("S")
            old = time.time() - 60
            os.utime(path, (old, old))
            deadline = time.monotonic() + 5
            while not heartbeat.is_fresh("S", 2000) and time.monotonic() < deadline:
                time.sleep(0.01)
            assert heartbeat.is_fresh("S", 2000)
        finally:
            keeper.stop()
        assert not keeper.running
        assert os.path.exists(heartbeat_path("S"))

    def test_stop_can_remove_file(self):
        keeper = heartbeat.HeartbeatKeeper("S", interval_ms=20)
        keeper.start()
        keeper.stop(remove_file=True)
        assert not os.path.exists(heartbeat_path("S"))
