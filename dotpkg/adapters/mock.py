"""
Mock package manager — test double for the PackageManager contract.

Never touches a subprocess. Every call is recorded, results are plain
attributes the test sets up front, and any operation can be made to
fail by setting the matching ``*_error`` attribute.
"""

from __future__ import annotations

import threading

from dotpkg.adapters.managers.base import PackageManager
from dotpkg.adapters.shell.streaming import StreamingCmd
from dotpkg.core.errors import CommandError, PackageManagerError
from dotpkg.core.models.package import Package, outdated_package


class MockPackageManager(PackageManager):
    """Configurable in-memory backend.

    By default it is available, needs no sudo, has nothing installed and
    nothing outdated.
    """

    def __init__(
        self,
        manager_name: str = "mock",
        available: bool = True,
        sudo: bool = False,
        stream_output: list[str] | None = None,
    ):
        super().__init__()
        self._name = manager_name
        self._binary_path = f"/usr/bin/{manager_name}" if available else ""
        self.sudo = sudo
        self.stream_output = list(stream_output or [f"[{manager_name}] done"])

        self.installed: dict[str, str] = {}
        self.outdated: list[Package] = []
        self.search_results: list[Package] = []

        self.install_error: Exception | None = None
        self.uninstall_error: Exception | None = None
        self.update_error: Exception | None = None
        self.update_all_error: Exception | None = None
        self.outdated_error: Exception | None = None
        self.search_error: Exception | None = None
        self.list_error: Exception | None = None
        self.stream_error: CommandError | None = None

        self._lock = threading.Lock()
        self._calls: list[tuple[str, tuple[str, ...]]] = []

    @property
    def name(self) -> str:
        return self._name

    def needs_sudo(self) -> bool:
        return self.sudo

    # ── Setup helpers ───────────────────────────────────────────

    def set_installed(self, name: str, version: str = "1.0.0") -> None:
        self.installed[name] = version

    def set_outdated(self, name: str, current: str, latest: str) -> None:
        self.installed.setdefault(name, current)
        self.outdated.append(outdated_package(name, current, latest, self._name))

    def reset(self) -> None:
        """Forget recorded calls and configured state."""
        with self._lock:
            self._calls.clear()
        self.installed.clear()
        self.outdated.clear()
        self.search_results.clear()
        for attr in (
            "install_error", "uninstall_error", "update_error",
            "update_all_error", "outdated_error", "search_error",
            "list_error", "stream_error",
        ):
            setattr(self, attr, None)

    # ── Call tracking ───────────────────────────────────────────

    @property
    def calls(self) -> list[tuple[str, tuple[str, ...]]]:
        """(method, args) for every call, in order."""
        with self._lock:
            return list(self._calls)

    def call_count(self, method: str) -> int:
        return sum(1 for m, _ in self.calls if m == method)

    def _record(self, method: str, *args: str) -> None:
        with self._lock:
            self._calls.append((method, args))

    # ── Mutations ───────────────────────────────────────────────

    def install(self, *packages: str) -> None:
        self._record("install", *packages)
        if self.install_error:
            raise self.install_error
        for pkg in packages:
            self.installed.setdefault(pkg, "1.0.0")

    def uninstall(self, *packages: str) -> None:
        self._record("uninstall", *packages)
        if self.uninstall_error:
            raise self.uninstall_error
        for pkg in packages:
            self.installed.pop(pkg, None)

    def update(self, *packages: str) -> None:
        self._record("update", *packages)
        if self.update_error:
            raise self.update_error
        self._apply_updates(set(packages))

    def update_all(self) -> None:
        self._record("update_all")
        if self.update_all_error:
            raise self.update_all_error
        self._apply_updates({p.name for p in self.outdated})

    def _apply_updates(self, names: set[str]) -> None:
        remaining = []
        for pkg in self.outdated:
            if pkg.name in names:
                self.installed[pkg.name] = pkg.latest_version
            else:
                remaining.append(pkg)
        self.outdated = remaining

    # ── Queries ─────────────────────────────────────────────────

    def is_installed(self, package: str) -> bool:
        self._record("is_installed", package)
        return package in self.installed

    def get_version(self, package: str) -> str:
        self._record("get_version", package)
        if package not in self.installed:
            raise PackageManagerError(f"package {package} not installed")
        return self.installed[package]

    def check_outdated(self) -> list[Package]:
        self._record("check_outdated")
        if self.outdated_error:
            raise self.outdated_error
        return list(self.outdated)

    def search(self, query: str) -> list[Package]:
        self._record("search", query)
        if self.search_error:
            raise self.search_error
        return [p for p in self.search_results if query in p.name]

    def list_installed(self) -> list[Package]:
        self._record("list_installed")
        if self.list_error:
            raise self.list_error
        return [
            Package(name=name, current_version=version, installed_by=self._name)
            for name, version in self.installed.items()
        ]

    # ── Streaming ───────────────────────────────────────────────

    def install_streaming(
        self, *packages: str, cancel: threading.Event | None = None,
    ) -> StreamingCmd:
        self._require_packages(packages)
        self._record("install_streaming", *packages)
        return self._replay()

    def update_streaming(
        self, *packages: str, cancel: threading.Event | None = None,
    ) -> StreamingCmd:
        self._require_packages(packages)
        self._record("update_streaming", *packages)
        return self._replay()

    def update_all_streaming(
        self, cancel: threading.Event | None = None,
    ) -> StreamingCmd:
        self._record("update_all_streaming")
        return self._replay()

    def _replay(self) -> StreamingCmd:
        return StreamingCmd.from_lines(
            self.stream_output, error=self.stream_error, argv=(self._name,),
        )
