"""
Arch Linux backend — pacman, or an AUR helper (paru, yay) in its place.

AUR helpers accept pacman's flags, run unprivileged and call sudo
themselves when they need to, so only plain pacman gets the sudo prefix.

Update checks use ``checkupdates`` (from pacman-contrib) for the official
repos because it works on a private copy of the sync database and needs
no root. Without it, ``pacman -Qu`` against the current database is the
fallback. Helpers add ``-Qua`` for AUR packages.
"""

from __future__ import annotations

import logging
import shutil
import threading

from dotpkg.adapters.managers.base import PackageManager
from dotpkg.adapters.shell.command import command_succeeds
from dotpkg.adapters.shell.streaming import StreamingCmd
from dotpkg.core.errors import PackageManagerError
from dotpkg.core.models.package import Package, outdated_package
from dotpkg.core.models.settings import Settings

logger = logging.getLogger(__name__)

TAG_REPO = "pacman"
TAG_AUR = "aur"

# checkupdates: 0 = updates listed, 2 = no updates
_CHECKUPDATES_OK = (0, 2)
# pacman -Qu / helper -Qua: 1 = nothing to upgrade
_QUERY_UPGRADES_OK = (0, 1)


# ── Parsers ─────────────────────────────────────────────────────


def parse_update_lines(text: str, installed_by: str) -> list[Package]:
    """Parse ``name old -> new`` lines (checkupdates, ``-Qu``, ``-Qua``).

    Lines that don't split into exactly that shape are skipped. A
    trailing ``[ignored]`` marker (IgnorePkg) is dropped.
    """
    packages: list[Package] = []
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        if line.endswith("[ignored]"):
            line = line[: -len("[ignored]")].rstrip()

        parts = line.split(" -> ")
        if len(parts) != 2:
            logger.debug("Skipping unparseable update line: %r", line)
            continue
        name_parts = parts[0].split()
        latest = parts[1].strip()
        if len(name_parts) < 2 or not latest or " " in latest:
            logger.debug("Skipping unparseable update line: %r", line)
            continue

        pkg = outdated_package(name_parts[0], name_parts[1], latest, installed_by)
        if pkg.outdated:
            packages.append(pkg)
    return packages


def parse_query_versions(text: str) -> dict[str, str]:
    """Parse ``pacman -Q`` output (``name version`` per line)."""
    versions: dict[str, str] = {}
    for line in text.splitlines():
        parts = line.split()
        if len(parts) >= 2:
            versions[parts[0]] = parts[1]
    return versions


def parse_search(text: str, installed_by: str) -> list[Package]:
    """Parse ``pacman -Ss`` / helper search output.

    Header lines look like ``extra/ripgrep 14.1.0-1 [installed]``; the
    description follows on one or more indented lines. A description is
    attached to the most recent header even when blank lines intervene.
    Results from the ``aur`` repo are tagged ``aur``.
    """
    packages: list[Package] = []
    descriptions: list[list[str]] = []

    for line in text.splitlines():
        if not line.strip():
            continue

        if line[0].isspace():
            if descriptions:
                descriptions[-1].append(line.strip())
            continue

        parts = line.split()
        if len(parts) < 2:
            continue
        repo, _, name = parts[0].rpartition("/")
        version = parts[1]

        current = ""
        rest = " ".join(parts[2:])
        if "[installed]" in rest:
            current = version
        elif "[installed: " in rest:
            current = rest.split("[installed: ", 1)[1].split("]", 1)[0]

        packages.append(Package(
            name=name,
            current_version=current,
            latest_version=version,
            installed_by=TAG_AUR if repo == "aur" else installed_by,
        ))
        descriptions.append([])

    return [
        pkg.model_copy(update={"description": " ".join(desc)})
        for pkg, desc in zip(packages, descriptions)
    ]


# ── Backend ─────────────────────────────────────────────────────


class PacmanManager(PackageManager):
    """pacman, or the first resolvable AUR helper when ``prefer_helper``."""

    def __init__(self, settings: Settings | None = None, prefer_helper: bool = False):
        super().__init__(settings)
        self._helper = ""
        if prefer_helper:
            for helper in self.settings.aur_helpers:
                path = self._resolve(helper)
                if path:
                    self._binary_path = path
                    self._helper = helper
                    break
        if not self._helper:
            self._binary_path = self._resolve("pacman")

    @property
    def name(self) -> str:
        return self._helper or "pacman"

    @property
    def uses_helper(self) -> bool:
        return bool(self._helper)

    def needs_sudo(self) -> bool:
        return not self.uses_helper

    # ── Mutations ───────────────────────────────────────────────

    def install(self, *packages: str) -> None:
        if packages:
            self._mutate(self._install_argv(packages), sudo=self.needs_sudo())

    def uninstall(self, *packages: str) -> None:
        if packages:
            self._mutate(
                [self._require_binary(), "-R", "--noconfirm", *packages],
                sudo=self.needs_sudo(),
            )

    def update(self, *packages: str) -> None:
        if packages:
            self._mutate(self._update_argv(packages), sudo=self.needs_sudo())

    def update_all(self) -> None:
        self._mutate(
            [self._require_binary(), "-Syu", "--noconfirm"], sudo=self.needs_sudo(),
        )

    # ── Queries ─────────────────────────────────────────────────

    def is_installed(self, package: str) -> bool:
        if not self.is_available():
            return False
        return command_succeeds(
            [self._binary_path, "-Q", package], timeout=self.settings.query_timeout,
        )

    def get_version(self, package: str) -> str:
        try:
            out = self._query([self._require_binary(), "-Q", package])
        except PackageManagerError as e:
            raise PackageManagerError(f"package {package} not installed") from e
        version = parse_query_versions(out).get(package)
        if not version:
            raise PackageManagerError(f"could not parse version for {package}")
        return version

    def check_outdated(self) -> list[Package]:
        self._require_binary()
        checkupdates = shutil.which("checkupdates")
        if checkupdates:
            out = self._query([checkupdates], ok_codes=_CHECKUPDATES_OK)
        else:
            pacman = shutil.which("pacman") or self._binary_path
            logger.debug("checkupdates not found, falling back to %s -Qu", pacman)
            out = self._query([pacman, "-Qu"], ok_codes=_QUERY_UPGRADES_OK)
        packages = parse_update_lines(out, TAG_REPO)

        if self.uses_helper:
            aur = self._query([self._binary_path, "-Qua"], ok_codes=_QUERY_UPGRADES_OK)
            packages.extend(parse_update_lines(aur, TAG_AUR))

        return packages

    def search(self, query: str) -> list[Package]:
        # -Ss exits 1 when nothing matches
        out = self._query([self._require_binary(), "-Ss", query], ok_codes=(0, 1))
        return parse_search(out, self.name)

    def list_installed(self) -> list[Package]:
        versions = parse_query_versions(self._query([self._require_binary(), "-Q"]))
        return [
            Package(name=name, current_version=version, installed_by=self.name)
            for name, version in versions.items()
        ]

    # ── Streaming ───────────────────────────────────────────────

    def install_streaming(
        self, *packages: str, cancel: threading.Event | None = None,
    ) -> StreamingCmd:
        self._require_packages(packages)
        return self._stream(
            self._install_argv(packages), sudo=self.needs_sudo(), cancel=cancel,
        )

    def update_streaming(
        self, *packages: str, cancel: threading.Event | None = None,
    ) -> StreamingCmd:
        self._require_packages(packages)
        return self._stream(
            self._update_argv(packages), sudo=self.needs_sudo(), cancel=cancel,
        )

    def update_all_streaming(
        self, cancel: threading.Event | None = None,
    ) -> StreamingCmd:
        return self._stream(
            [self._require_binary(), "-Syu", "--noconfirm"],
            sudo=self.needs_sudo(), cancel=cancel,
        )

    def _install_argv(self, packages: tuple[str, ...]) -> list[str]:
        return [self._require_binary(), "-S", "--noconfirm", "--needed", *packages]

    def _update_argv(self, packages: tuple[str, ...]) -> list[str]:
        return [self._require_binary(), "-S", "--noconfirm", *packages]
