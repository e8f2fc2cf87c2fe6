"""
Homebrew backend.

Homebrew runs unprivileged, so nothing here is wrapped in sudo. Outdated
and version queries use ``--json=v2``; installed packages come from the
batch ``brew list --versions`` (formulae) and ``--cask --versions``
listings.
"""

from __future__ import annotations

import json
import logging
import sys
import threading
from typing import Any

from dotpkg.adapters.managers.base import PackageManager
from dotpkg.adapters.shell.command import command_succeeds
from dotpkg.adapters.shell.streaming import StreamingCmd
from dotpkg.core.errors import PackageManagerError
from dotpkg.core.models.package import Package, outdated_package
from dotpkg.core.models.settings import Settings

logger = logging.getLogger(__name__)

TAG_FORMULA = "brew"
TAG_CASK = "brew-cask"


# ── Parsers ─────────────────────────────────────────────────────


def _load_json(text: str, what: str) -> dict[str, Any]:
    try:
        data = json.loads(text or "{}")
    except json.JSONDecodeError as e:
        raise PackageManagerError(f"brew {what}: invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise PackageManagerError(f"brew {what}: expected a JSON object")
    return data


def _entries(data: dict[str, Any], key: str) -> list[dict[str, Any]]:
    items = data.get(key)
    if not isinstance(items, list):
        return []
    entries = [item for item in items if isinstance(item, dict)]
    if len(entries) != len(items):
        logger.debug("Skipping %d malformed %s entries", len(items) - len(entries), key)
    return entries


def _cask_installed(entry: dict[str, Any]) -> str:
    # Older brew: "installed_version": "1.2"; newer: "installed_versions": ["1.2"]
    versions = entry.get("installed_versions")
    if isinstance(versions, list) and versions:
        return str(versions[0])
    return str(entry.get("installed_version") or "")


def parse_outdated(text: str) -> list[Package]:
    """Parse ``brew outdated --json=v2``.

    Entries that are not JSON objects or carry no name are skipped.
    """
    data = _load_json(text, "outdated")
    packages: list[Package] = []

    for f in _entries(data, "formulae"):
        name = f.get("name")
        if not name:
            logger.debug("Skipping nameless formula entry: %r", f)
            continue
        installed = f.get("installed_versions")
        if not isinstance(installed, list):
            installed = []
        pkg = outdated_package(
            str(name), str(installed[0]) if installed else "",
            str(f.get("current_version") or ""), TAG_FORMULA,
        )
        if pkg.outdated:
            packages.append(pkg)

    for c in _entries(data, "casks"):
        name = c.get("name")
        if not name:
            continue
        pkg = outdated_package(
            str(name), _cask_installed(c), str(c.get("current_version") or ""), TAG_CASK,
        )
        if pkg.outdated:
            packages.append(pkg)

    return packages


def parse_info_version(text: str, package: str) -> str:
    """Installed version from ``brew info --json=v2 PKG``.

    Raises:
        PackageManagerError: Neither a formula nor a cask is installed.
    """
    data = _load_json(text, "info")

    formulae = _entries(data, "formulae")
    if formulae:
        installed = formulae[0].get("installed")
        if isinstance(installed, list) and installed and isinstance(installed[0], dict):
            version = installed[0].get("version")
            if version:
                return str(version)

    casks = _entries(data, "casks")
    if casks and casks[0].get("installed"):
        return str(casks[0]["installed"])

    raise PackageManagerError(f"package {package} not installed")


def parse_version_listing(text: str) -> dict[str, str]:
    """Parse ``brew list --versions`` lines (``name version [version...]``)."""
    versions: dict[str, str] = {}
    for line in text.splitlines():
        parts = line.split()
        if len(parts) >= 2:
            versions[parts[0]] = parts[1]
    return versions


def parse_search(text: str) -> list[Package]:
    """Parse ``brew search`` output.

    Results are grouped under ``==> Formulae`` / ``==> Casks`` headers
    when both kinds match; a terminal may print several names per line.
    """
    packages: list[Package] = []
    tag = TAG_FORMULA
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        if line.startswith("==>"):
            tag = TAG_CASK if "cask" in line.lower() else TAG_FORMULA
            continue
        for name in line.split():
            packages.append(Package(name=name, installed_by=tag))
    return packages


# ── Backend ─────────────────────────────────────────────────────


class BrewManager(PackageManager):
    """Homebrew (formulae and casks)."""

    def __init__(self, settings: Settings | None = None):
        super().__init__(settings)
        self._binary_path = self._resolve("brew")

    @property
    def name(self) -> str:
        return "brew"

    def needs_sudo(self) -> bool:
        return False

    def install(self, *packages: str) -> None:
        if packages:
            self._mutate([self._require_binary(), "install", *packages], sudo=False)

    def uninstall(self, *packages: str) -> None:
        if packages:
            self._mutate([self._require_binary(), "uninstall", *packages], sudo=False)

    def update(self, *packages: str) -> None:
        if packages:
            self._mutate([self._require_binary(), "upgrade", *packages], sudo=False)

    def update_all(self) -> None:
        self._mutate([self._require_binary(), "upgrade"], sudo=False)

    def is_installed(self, package: str) -> bool:
        if not self.is_available():
            return False
        return command_succeeds(
            [self._binary_path, "list", package], timeout=self.settings.query_timeout,
        )

    def get_version(self, package: str) -> str:
        out = self._query([self._require_binary(), "info", "--json=v2", package])
        return parse_info_version(out, package)

    def check_outdated(self) -> list[Package]:
        out = self._query([self._require_binary(), "outdated", "--json=v2"])
        return parse_outdated(out)

    def search(self, query: str) -> list[Package]:
        # brew search exits 1 when nothing matches
        out = self._query([self._require_binary(), "search", query], ok_codes=(0, 1))
        return parse_search(out)

    def list_installed(self) -> list[Package]:
        binary = self._require_binary()
        formulae = parse_version_listing(self._query([binary, "list", "--versions"]))
        casks: dict[str, str] = {}
        if sys.platform == "darwin":
            # Casks are macOS-only; Linuxbrew rejects --cask
            casks = parse_version_listing(
                self._query([binary, "list", "--cask", "--versions"]),
            )

        packages = [
            Package(name=name, current_version=version, installed_by=TAG_FORMULA)
            for name, version in formulae.items()
        ]
        packages.extend(
            Package(name=name, current_version=version, installed_by=TAG_CASK)
            for name, version in casks.items()
            if name not in formulae
        )
        return packages

    def install_streaming(
        self, *packages: str, cancel: threading.Event | None = None,
    ) -> StreamingCmd:
        self._require_packages(packages)
        return self._stream(
            [self._require_binary(), "install", *packages], sudo=False, cancel=cancel,
        )

    def update_streaming(
        self, *packages: str, cancel: threading.Event | None = None,
    ) -> StreamingCmd:
        self._require_packages(packages)
        return self._stream(
            [self._require_binary(), "upgrade", *packages], sudo=False, cancel=cancel,
        )

    def update_all_streaming(
        self, cancel: threading.Event | None = None,
    ) -> StreamingCmd:
        return self._stream([self._require_binary(), "upgrade"], sudo=False, cancel=cancel)
