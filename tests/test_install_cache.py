"""
Tests for the installed-status cache.
"""

from __future__ import annotations

import threading

import pytest

from dotpkg.adapters.mock import MockPackageManager
from dotpkg.core.errors import CommandError
from dotpkg.core.services.install_cache import InstallStatusCache


class TestInstallStatusCache:
    def test_refresh_uses_one_batch_call(self):
        m = MockPackageManager()
        m.set_installed("zsh")
        m.set_installed("tmux")
        cache = InstallStatusCache(m)
        cache.refresh()

        assert cache.populated
        assert cache.is_installed("zsh")
        assert cache.is_installed("tmux")
        assert not cache.is_installed("fzf")
        assert m.call_count("list_installed") == 1
        assert m.call_count("is_installed") == 0

    def test_not_refreshed_falls_back(self):
        m = MockPackageManager()
        m.set_installed("zsh")
        cache = InstallStatusCache(m)
        assert cache.is_installed("zsh")
        assert cache.is_installed("zsh")
        assert m.call_count("is_installed") == 1

    def test_failed_refresh_keeps_old_map(self):
        m = MockPackageManager()
        m.set_installed("zsh")
        cache = InstallStatusCache(m)
        cache.refresh()

        m.list_error = CommandError(["dpkg"], 2)
        with pytest.raises(CommandError):
            cache.refresh()
        assert cache.is_installed("zsh")
        m.set_installed("git")
        assert cache.is_installed("git")

    def test_no_auto_expiry(self):
        m = MockPackageManager()
        cache = InstallStatusCache(m)
        cache.refresh()
        m.set_installed("zsh")
        assert not cache.is_installed("zsh")

    def test_invalidate(self):
        m = MockPackageManager()
        cache = InstallStatusCache(m)
        cache.refresh()
        cache.invalidate()
        assert not cache.populated
        m.set_installed("zsh")
        assert cache.is_installed("zsh")

    def test_set(self):
        cache = InstallStatusCache(MockPackageManager())
        cache.refresh()
        cache.set("zsh", True)
        assert cache.is_installed("zsh")

    def test_concurrent_readers(self):
        m = MockPackageManager()
        for i in range(50):
            m.set_installed(f"pkg{i}")
        cache = InstallStatusCache(m)
        cache.refresh()

        errors = []

        def reader():
            for i in range(50):
                if not cache.is_installed(f"pkg{i}"):
                    errors.append(i)

        threads = [threading.Thread(target=reader) for _ in range(8)]
        threads.append(threading.Thread(target=cache.refresh))
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert errors == []
