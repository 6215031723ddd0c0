"""Tests for ProcessIdentityCache."""

import asyncio
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import Mock

import psutil
import pytest

from dbuddy.errors import ProcessNotFound
from dbuddy.models import ProcessInfo
from dbuddy.process import ProcessIdentityCache, lookup_process


class TestProcessIdentityCache:
    """Tests for cache resolution."""

    def test_resolve_caches(self, fake_lookup):
        """Test a resolved pid is looked up once."""
        cache = ProcessIdentityCache(fake_lookup)
        first = cache.resolve(100)
        second = cache.resolve(100)

        assert first is second
        assert first.app_name == "gedit"
        assert first.argv == ("/usr/bin/gedit", "--new")
        assert fake_lookup.call_count == 1

    def test_failure_cached_as_sentinel(self, fake_lookup):
        """Test a vanished pid is not looked up again."""
        cache = ProcessIdentityCache(fake_lookup)
        identity = cache.resolve(7)
        cache.resolve(7)

        assert not identity.resolved
        assert "no such process" in identity.error
        assert fake_lookup.call_count == 1
        assert cache.stats()["unresolved"] == 1

    def test_unexpected_error_is_not_fatal(self):
        """Test arbitrary lookup errors degrade to a sentinel."""
        cache = ProcessIdentityCache(Mock(side_effect=OSError("boom")))
        identity = cache.resolve(3)
        assert not identity.resolved
        assert "OSError" in identity.error

    def test_concurrent_resolution_is_deduplicated(self):
        """Test N concurrent callers for one pid cause one lookup."""
        calls = []

        def slow_lookup(pid: int) -> ProcessInfo:
            calls.append(pid)
            time.sleep(0.1)
            return ProcessInfo(pid=pid, name="slow", exe="/bin/slow")

        cache = ProcessIdentityCache(slow_lookup)
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            return cache.resolve(55)

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: worker(), range(8)))

        assert calls == [55]
        assert all(r is results[0] for r in results)
        assert cache.stats()["lookups"] == 1
        assert cache.stats()["in_flight"] == 0

    def test_slow_lookup_does_not_block_other_pids(self):
        """Test the lock is not held across the lookup."""
        release = threading.Event()

        def lookup(pid: int) -> ProcessInfo:
            if pid == 1:
                release.wait(2.0)
            return ProcessInfo(pid=pid, name=f"p{pid}")

        cache = ProcessIdentityCache(lookup)
        with ThreadPoolExecutor(max_workers=2) as pool:
            slow = pool.submit(cache.resolve, 1)
            fast = pool.submit(cache.resolve, 2)
            assert fast.result(timeout=1.0).app_name == "p2"
            assert not slow.done()
            release.set()
            assert slow.result(timeout=1.0).app_name == "p1"

    def test_label(self, fake_lookup):
        """Test labels for resolved, unresolved and unknown pids."""
        cache = ProcessIdentityCache(fake_lookup)
        cache.resolve(100)
        cache.resolve(7)

        assert cache.label(100, ":1.1") == "gedit:100"
        assert cache.label(7, ":1.1") == ":1.1"
        assert cache.label(None, ":1.1") == ":1.1"
        assert cache.label(8, ":1.1") == ":1.1"
        assert fake_lookup.call_count == 2

    @pytest.mark.asyncio
    async def test_aresolve_runs_off_loop(self, fake_lookup):
        """Test async resolution shares the same cache."""
        cache = ProcessIdentityCache(fake_lookup)
        results = await asyncio.gather(*(cache.aresolve(100) for _ in range(5)))

        assert {r.label for r in results} == {"gedit:100"}
        assert fake_lookup.call_count == 1
        assert cache.peek(100) is results[0]


class TestLookupProcess:
    """Tests for the psutil-backed lookup."""

    def test_current_process(self):
        """Test the running interpreter can be described."""
        info = lookup_process(os.getpid())
        assert info.pid == os.getpid()
        assert info.name

    def test_missing_process(self, monkeypatch):
        """Test a vanished pid maps to ProcessNotFound."""

        def gone(pid):
            raise psutil.NoSuchProcess(pid)

        monkeypatch.setattr(psutil, "Process", gone)
        with pytest.raises(ProcessNotFound):
            lookup_process(999999)
