"""
Installed-status cache — answer "is X installed?" without a subprocess
per question.

One ``list_installed()`` batch call fills a name → bool map. Entries
never expire; callers invalidate or refresh when they know the host
changed (after an install, for instance).
"""

from __future__ import annotations

import logging
import threading

from dotpkg.adapters.managers.base import PackageManager
from dotpkg.core.errors import PackageManagerError

logger = logging.getLogger(__name__)


class InstallStatusCache:
    """Lock-protected installed-status map for one manager."""

    def __init__(self, manager: PackageManager):
        self.manager = manager
        self._lock = threading.Lock()
        self._installed: dict[str, bool] = {}
        self._populated = False
        self._complete = False

    @property
    def populated(self) -> bool:
        with self._lock:
            return self._populated

    def refresh(self) -> None:
        """Reload the map from one batch query.

        On failure the previous map is kept and the error propagates.
        Later lookups fall back to per-package checks until a refresh
        succeeds.
        """
        try:
            packages = self.manager.list_installed()
        except PackageManagerError:
            with self._lock:
                self._complete = False
            raise

        installed = {p.name: True for p in packages}
        with self._lock:
            self._installed = installed
            self._populated = True
            self._complete = True
        logger.debug("Install cache for %s: %d package(s)", self.manager.name, len(installed))

    def invalidate(self) -> None:
        """Forget everything; the next lookup needs a refresh."""
        with self._lock:
            self._installed = {}
            self._populated = False
            self._complete = False

    def set(self, name: str, installed: bool) -> None:
        """Record a known status (e.g. right after installing ``name``)."""
        with self._lock:
            self._installed[name] = installed

    def is_installed(self, name: str) -> bool:
        """Cached status of ``name``.

        After a successful refresh a missing name means not installed.
        Without one, the manager is asked directly and the answer cached.
        """
        with self._lock:
            if name in self._installed:
                return self._installed[name]
            complete = self._complete

        if complete:
            return False

        installed = self.manager.is_installed(name)
        self.set(name, installed)
        return installed
