"""
Package manager base — the contract every backend implements.

Callers only talk to package managers through this interface, never to
``brew``/``pacman``/``apt`` directly. Adding a backend means subclassing
:class:`PackageManager` and registering it in
:mod:`dotpkg.core.detection.managers`; no caller changes.

Error contract:
    - binary missing        → ``is_available()`` is False (not an error)
    - non-zero exit         → :class:`CommandError`, no retry
    - unparseable line      → skipped, never an exception
"""

from __future__ import annotations

import logging
import shutil
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence

from dotpkg.adapters.shell.command import run_command, with_sudo
from dotpkg.adapters.shell.streaming import (
    StreamingCmd,
    Step,
    run_streaming,
    run_streaming_steps,
)
from dotpkg.core.errors import PackageManagerError
from dotpkg.core.models.package import Package
from dotpkg.core.models.settings import Settings

logger = logging.getLogger(__name__)


class PackageManager(ABC):
    """Abstract base class for all package manager backends.

    Each instance resolves the path of its binary once, in ``__init__``,
    and never re-resolves it. Build a new instance to re-probe the host.
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or Settings()
        self._binary_path = ""

    @property
    @abstractmethod
    def name(self) -> str:
        """Manager identifier and routing tag (e.g. 'brew', 'paru', 'apt')."""

    @property
    def binary_path(self) -> str:
        """Resolved path of the underlying binary ('' when not found)."""
        return self._binary_path

    def is_available(self) -> bool:
        """Whether the underlying binary was found on this host."""
        return bool(self._binary_path)

    @abstractmethod
    def needs_sudo(self) -> bool:
        """Whether mutating operations run under the elevation command."""

    # ── Mutations ───────────────────────────────────────────────

    @abstractmethod
    def install(self, *packages: str) -> None:
        """Install packages. No-op for an empty list."""

    @abstractmethod
    def uninstall(self, *packages: str) -> None:
        """Remove packages. No-op for an empty list."""

    @abstractmethod
    def update(self, *packages: str) -> None:
        """Upgrade specific packages. No-op for an empty list."""

    @abstractmethod
    def update_all(self) -> None:
        """Upgrade everything the manager owns."""

    # ── Queries ─────────────────────────────────────────────────

    @abstractmethod
    def is_installed(self, package: str) -> bool:
        """Whether ``package`` is installed. Never raises."""

    @abstractmethod
    def get_version(self, package: str) -> str:
        """Installed version of ``package``.

        Raises:
            PackageManagerError: Not installed, or version unparseable.
        """

    @abstractmethod
    def check_outdated(self) -> list[Package]:
        """Packages with a newer version available."""

    @abstractmethod
    def search(self, query: str) -> list[Package]:
        """Packages matching ``query``."""

    @abstractmethod
    def list_installed(self) -> list[Package]:
        """All installed packages, from one batch query."""

    # ── Streaming ───────────────────────────────────────────────

    @abstractmethod
    def install_streaming(
        self, *packages: str, cancel: threading.Event | None = None,
    ) -> StreamingCmd:
        """Start an install and return its live process handle."""

    @abstractmethod
    def update_streaming(
        self, *packages: str, cancel: threading.Event | None = None,
    ) -> StreamingCmd:
        """Start an upgrade of specific packages."""

    @abstractmethod
    def update_all_streaming(
        self, cancel: threading.Event | None = None,
    ) -> StreamingCmd:
        """Start a full upgrade."""

    # ── Helpers for subclasses ──────────────────────────────────

    def _resolve(self, binary: str) -> str:
        path = shutil.which(binary) or ""
        logger.debug("Resolved %s → %s", binary, path or "(not found)")
        return path

    def _require_binary(self) -> str:
        if not self._binary_path:
            raise PackageManagerError(f"{self.name} is not installed")
        return self._binary_path

    def _query(self, argv: Sequence[str], *, ok_codes: Iterable[int] = (0,)) -> str:
        """Run a read-only query and return its stdout."""
        result = run_command(
            argv, timeout=self.settings.query_timeout, ok_codes=ok_codes,
        )
        return result.stdout

    def _mutate(self, argv: Sequence[str], *, sudo: bool) -> None:
        """Run a mutating command to completion."""
        if sudo:
            argv = with_sudo(argv, self.settings.sudo_command)
        run_command(argv, timeout=self.settings.mutate_timeout)

    def _stream(
        self,
        argv: Sequence[str],
        *,
        sudo: bool,
        cancel: threading.Event | None,
    ) -> StreamingCmd:
        if sudo:
            argv = with_sudo(argv, self.settings.sudo_command)
        return run_streaming(
            argv[0], *argv[1:],
            cancel=cancel, buffer_size=self.settings.stream_buffer,
        )

    def _stream_steps(
        self,
        steps: Sequence[Step],
        *,
        sudo: bool,
        cancel: threading.Event | None,
    ) -> StreamingCmd:
        if sudo:
            steps = [(label, with_sudo(argv, self.settings.sudo_command)) for label, argv in steps]
        return run_streaming_steps(
            steps, cancel=cancel, buffer_size=self.settings.stream_buffer,
        )

    @staticmethod
    def _require_packages(packages: Sequence[str]) -> None:
        if not packages:
            raise PackageManagerError("no packages specified")

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r} path={self._binary_path!r}>"
