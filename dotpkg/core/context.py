"""
Host context — the memoized answers to "what host is this?"

Platform, active manager and memory size are probed once per
:class:`HostContext` and served from memory afterwards. The CLI (or an
embedding application) installs one context at startup:

    - CLI:      main.py   → context.set_context(HostContext(settings))
    - Tests:    conftest  → context.set_context(HostContext(root=tmp_path, ...))

Module-level functions delegate to the installed context, creating a
default one on first use.

``all_managers()`` is deliberately not memoized: it re-probes binaries
on every call. Callers that want one cached manager use
``detect_manager()``.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Generic, TypeVar

from dotpkg.adapters.managers.base import PackageManager
from dotpkg.core.detection.hardware import (
    DEFAULT_LOW_MEMORY_MB,
    is_low_memory,
    read_total_memory_mb,
)
from dotpkg.core.detection.managers import available_managers, select_manager
from dotpkg.core.detection.platform import probe_platform
from dotpkg.core.models.package import Platform
from dotpkg.core.models.settings import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Once(Generic[T]):
    """Run an initializer exactly once and memoize its result.

    Concurrent first callers block until the initializer finishes. Once
    the value is set, reads take no lock. If the initializer raises, the
    exception propagates and the next call tries again.
    """

    def __init__(self, init: Callable[[], T]):
        self._init = init
        self._lock = threading.Lock()
        self._done = False
        self._value: T | None = None

    @property
    def done(self) -> bool:
        return self._done

    def get(self) -> T:
        if self._done:
            return self._value  # type: ignore[return-value]
        with self._lock:
            if not self._done:
                self._value = self._init()
                self._done = True
        return self._value  # type: ignore[return-value]


class HostContext:
    """Memoized host facts, bound to a settings object and a filesystem root."""

    def __init__(
        self,
        settings: Settings | None = None,
        root: Path = Path("/"),
        system: str | None = None,
    ):
        self.settings = settings or Settings()
        self.root = root
        self.system = system
        self._platform = Once(lambda: probe_platform(self.root, self.system))
        self._manager = Once(lambda: select_manager(self.platform(), self.settings))
        self._memory = Once(lambda: read_total_memory_mb(self.root))

    def platform(self) -> Platform:
        return self._platform.get()

    def manager(self) -> PackageManager | None:
        return self._manager.get()

    def all_managers(self) -> list[PackageManager]:
        return available_managers(self.settings)

    def total_memory_mb(self) -> int:
        return self._memory.get()

    def is_low_memory(self, threshold_mb: int = DEFAULT_LOW_MEMORY_MB) -> bool:
        return is_low_memory(self.total_memory_mb(), threshold_mb)


# ── Default context ─────────────────────────────────────────────

_context: HostContext | None = None
_context_lock = threading.Lock()


def get_context() -> HostContext:
    """Return the installed context, creating a default one if needed."""
    global _context
    ctx = _context
    if ctx is not None:
        return ctx
    with _context_lock:
        if _context is None:
            _context = HostContext()
        return _context


def set_context(ctx: HostContext) -> None:
    """Install ``ctx`` as the process context."""
    global _context
    with _context_lock:
        _context = ctx
    logger.debug("Host context installed (root=%s)", ctx.root)


def reset_context() -> None:
    """Drop the installed context; the next call probes again."""
    global _context
    with _context_lock:
        _context = None


def detect_platform() -> Platform:
    return get_context().platform()


def detect_manager() -> PackageManager | None:
    return get_context().manager()


def all_managers() -> list[PackageManager]:
    return get_context().all_managers()


def total_memory_mb() -> int:
    return get_context().total_memory_mb()


def is_low_memory_system(threshold_mb: int = DEFAULT_LOW_MEMORY_MB) -> bool:
    return get_context().is_low_memory(threshold_mb)
