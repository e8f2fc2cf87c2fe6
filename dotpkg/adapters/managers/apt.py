"""
Debian / Ubuntu backend (also Raspberry Pi OS).

Every mutation runs under sudo. Installed-package listing is built from
two batch queries (``dpkg-query`` for versions, ``dpkg --get-selections``
for what's installed) joined in memory. Looking each package up with
its own ``dpkg -s`` call is N subprocesses, which on a host with a few
hundred packages took 5-25 seconds.
"""

from __future__ import annotations

import logging
import threading

from dotpkg.adapters.managers.base import PackageManager
from dotpkg.adapters.shell.command import run_command
from dotpkg.adapters.shell.streaming import StreamingCmd
from dotpkg.core.errors import CommandError, PackageManagerError, StepFailedError
from dotpkg.core.models.package import Package, outdated_package
from dotpkg.core.models.settings import Settings

logger = logging.getLogger(__name__)

TAG = "apt"

_DPKG_VERSIONS_FORMAT = "-f=${Package}\t${Version}\n"
_NOISE_PREFIXES = ("Listing...", "Sorting...", "Full Text Search...", "WARNING:")


# ── Parsers ─────────────────────────────────────────────────────


def parse_upgradable(text: str) -> list[Package]:
    """Parse ``apt list --upgradable``.

    Format::

        vim/jammy-updates 2:8.2.3995-1ubuntu2.7 amd64 [upgradable from: 2:8.2.3995-1ubuntu2.3]
    """
    packages: list[Package] = []
    for line in text.splitlines():
        if not line.strip() or line.startswith(_NOISE_PREFIXES):
            continue

        parts = line.split()
        if len(parts) < 4:
            logger.debug("Skipping unparseable upgradable line: %r", line)
            continue

        name = parts[0].split("/", 1)[0]
        latest = parts[1]
        current = ""
        for i, token in enumerate(parts):
            if token == "from:" and i + 1 < len(parts):
                current = parts[i + 1].rstrip("]")
        if not current:
            logger.debug("Skipping upgradable line without a current version: %r", line)
            continue

        pkg = outdated_package(name, current, latest, TAG)
        if pkg.outdated:
            packages.append(pkg)
    return packages


def parse_versions(text: str) -> dict[str, str]:
    """Parse ``dpkg-query -W -f='${Package}\\t${Version}\\n'`` into name → version."""
    versions: dict[str, str] = {}
    for line in text.splitlines():
        parts = line.split("\t", 1)
        if len(parts) == 2 and parts[0]:
            versions[parts[0]] = parts[1].strip()
    return versions


def parse_selections(text: str) -> list[str]:
    """Names in the ``install`` state from ``dpkg --get-selections``."""
    names: list[str] = []
    for line in text.splitlines():
        parts = line.split()
        if len(parts) >= 2 and parts[1] == "install":
            names.append(parts[0])
    return names


def join_installed(names: list[str], versions: dict[str, str]) -> list[Package]:
    """Attach versions from the batch map to selected package names.

    Multi-arch selections are listed as ``name:arch`` while dpkg-query
    reports the bare name, so fall back to the name without the suffix.
    """
    packages: list[Package] = []
    for name in names:
        version = versions.get(name)
        if version is None and ":" in name:
            version = versions.get(name.split(":", 1)[0])
        packages.append(Package(
            name=name, current_version=version or "", installed_by=TAG,
        ))
    return packages


def parse_search(text: str) -> list[Package]:
    """Parse ``apt search`` output.

    Each hit is a header ``name/suite version arch [installed]`` followed
    by an indented description line, with a blank line between hits.
    """
    packages: list[Package] = []
    descriptions: list[list[str]] = []

    for line in text.splitlines():
        if not line.strip() or line.startswith(_NOISE_PREFIXES):
            continue

        if line[0].isspace():
            if descriptions:
                descriptions[-1].append(line.strip())
            continue

        parts = line.split()
        if len(parts) < 2:
            continue
        name = parts[0].split("/", 1)[0]
        version = parts[1]
        installed = any(p.startswith("[installed") for p in parts[2:])

        packages.append(Package(
            name=name,
            current_version=version if installed else "",
            latest_version=version,
            installed_by=TAG,
        ))
        descriptions.append([])

    return [
        pkg.model_copy(update={"description": " ".join(desc)})
        for pkg, desc in zip(packages, descriptions)
    ]


# ── Backend ─────────────────────────────────────────────────────


class AptManager(PackageManager):
    """apt + dpkg."""

    def __init__(self, settings: Settings | None = None):
        super().__init__(settings)
        self._binary_path = self._resolve("apt")

    @property
    def name(self) -> str:
        return "apt"

    def needs_sudo(self) -> bool:
        return True

    # ── Mutations ───────────────────────────────────────────────

    def install(self, *packages: str) -> None:
        if packages:
            self._mutate([self._require_binary(), "install", "-y", *packages], sudo=True)

    def uninstall(self, *packages: str) -> None:
        if packages:
            self._mutate([self._require_binary(), "remove", "-y", *packages], sudo=True)

    def update(self, *packages: str) -> None:
        if not packages:
            return
        self._refresh_index(best_effort=True)
        # install upgrades packages that are already installed
        self._mutate([self._require_binary(), "install", "-y", *packages], sudo=True)

    def update_all(self) -> None:
        self._refresh_index(best_effort=False)
        try:
            self._mutate([self._require_binary(), "upgrade", "-y"], sudo=True)
        except CommandError as e:
            raise StepFailedError("apt upgrade", e) from e

    def _refresh_index(self, best_effort: bool) -> None:
        """Run ``apt update``.

        Raises:
            StepFailedError: The refresh failed and ``best_effort`` is False.
        """
        try:
            self._mutate([self._require_binary(), "update"], sudo=True)
        except CommandError as e:
            if not best_effort:
                raise StepFailedError("apt update", e) from e
            logger.debug("Index refresh failed, continuing with cached lists: %s", e)

    # ── Queries ─────────────────────────────────────────────────

    def is_installed(self, package: str) -> bool:
        try:
            r = run_command(
                ["dpkg-query", "-W", "-f=${Status}", package],
                timeout=self.settings.query_timeout,
                check=False,
            )
        except CommandError as e:
            logger.debug("dpkg-query unavailable: %s", e)
            return False
        return "install ok installed" in r.stdout

    def get_version(self, package: str) -> str:
        try:
            out = self._query(["dpkg-query", "-W", "-f=${Version}", package])
        except CommandError as e:
            raise PackageManagerError(f"package {package} not installed") from e
        version = out.strip()
        if not version:
            raise PackageManagerError(f"could not find version for {package}")
        return version

    def check_outdated(self) -> list[Package]:
        binary = self._require_binary()
        if self.settings.apt_refresh_before_check:
            self._refresh_index(best_effort=True)
        out = self._query([binary, "list", "--upgradable"])
        return parse_upgradable(out)

    def search(self, query: str) -> list[Package]:
        out = self._query([self._require_binary(), "search", query])
        return parse_search(out)

    def installed_versions(self) -> dict[str, str]:
        """Name → version for every package dpkg knows, in one query."""
        return parse_versions(self._query(["dpkg-query", "-W", _DPKG_VERSIONS_FORMAT]))

    def list_installed(self) -> list[Package]:
        versions = self.installed_versions()
        names = parse_selections(self._query(["dpkg", "--get-selections"]))
        return join_installed(names, versions)

    # ── Streaming ───────────────────────────────────────────────

    def install_streaming(
        self, *packages: str, cancel: threading.Event | None = None,
    ) -> StreamingCmd:
        self._require_packages(packages)
        return self._stream(
            [self._require_binary(), "install", "-y", *packages], sudo=True, cancel=cancel,
        )

    def update_streaming(
        self, *packages: str, cancel: threading.Event | None = None,
    ) -> StreamingCmd:
        self._require_packages(packages)
        return self._stream(
            [self._require_binary(), "install", "-y", *packages], sudo=True, cancel=cancel,
        )

    def update_all_streaming(
        self, cancel: threading.Event | None = None,
    ) -> StreamingCmd:
        binary = self._require_binary()
        return self._stream_steps(
            [
                ("apt update", [binary, "update"]),
                ("apt upgrade", [binary, "upgrade", "-y"]),
            ],
            sudo=True,
            cancel=cancel,
        )
