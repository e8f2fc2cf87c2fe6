"""
Update operations — check and apply updates across every package manager.

A host can carry more than one backend, so update checks fan out to all
of them. One backend failing does not sink the whole check: its error is
logged and it contributes nothing. Only a host with no backend at all is
an error.

Follow-up operations route each package back to the manager that
reported it through ``Package.installed_by``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from dotpkg.adapters.managers.base import PackageManager
from dotpkg.core import context
from dotpkg.core.detection.managers import manager_by_name
from dotpkg.core.errors import NoManagerError, PackageManagerError
from dotpkg.core.models.package import Package, UpdateResult

logger = logging.getLogger(__name__)


# ── Check ───────────────────────────────────────────────────────


def check_all_updates(
    managers: Sequence[PackageManager] | None = None,
) -> list[Package]:
    """Outdated packages from every manager, deduplicated and sorted.

    Args:
        managers: Backends to query (default: every available one).

    Returns:
        Outdated packages sorted by name. When two managers report the
        same name, the first manager's record is kept.

    Raises:
        NoManagerError: There is no manager to query.
    """
    if managers is None:
        managers = context.all_managers()
    if not managers:
        raise NoManagerError()

    seen: set[str] = set()
    packages: list[Package] = []
    for manager in managers:
        try:
            outdated = manager.check_outdated()
        except PackageManagerError as e:
            logger.warning("Skipping %s: update check failed: %s", manager.name, e)
            continue
        logger.debug("%s reported %d outdated package(s)", manager.name, len(outdated))

        for pkg in outdated:
            if pkg.name in seen:
                continue
            seen.add(pkg.name)
            packages.append(pkg)

    packages.sort(key=lambda p: p.name)
    return packages


def check_dotfiles_updates(
    managers: Sequence[PackageManager] | None = None,
    names: Iterable[str] | None = None,
) -> list[Package]:
    """Like :func:`check_all_updates`, limited to the tracked tool set.

    Args:
        managers: Backends to query (default: every available one).
        names: Package names to keep (default: the context settings'
            ``tracked_packages``; an empty list keeps nothing).
    """
    if names is None:
        names = context.get_context().settings.tracked_packages
    wanted = set(names)
    return [p for p in check_all_updates(managers) if p.name in wanted]


# ── Apply ───────────────────────────────────────────────────────


def update_packages(packages: Iterable[Package]) -> list[UpdateResult]:
    """Update packages, one batch per owning manager.

    Packages are grouped by ``installed_by`` and each group is handed to
    its manager in one call. Every package gets a result; a group whose
    manager is unknown or missing, or whose update fails, is reported as
    failed without stopping the other groups.
    """
    groups: dict[str, list[Package]] = {}
    for pkg in packages:
        groups.setdefault(pkg.installed_by, []).append(pkg)

    settings = context.get_context().settings
    results: list[UpdateResult] = []
    for tag, group in groups.items():
        manager = manager_by_name(tag, settings)
        if manager is None or not manager.is_available():
            error = f"unknown package manager: {tag or '(none)'}"
            logger.warning("Cannot update %d package(s): %s", len(group), error)
            results.extend(UpdateResult(package=p, success=False, error=error) for p in group)
            continue

        try:
            manager.update(*(p.name for p in group))
        except PackageManagerError as e:
            logger.warning("%s update failed: %s", manager.name, e)
            results.extend(UpdateResult(package=p, success=False, error=str(e)) for p in group)
            continue

        results.extend(UpdateResult(package=p, success=True) for p in group)
    return results


def update_all_packages(managers: Sequence[PackageManager] | None = None) -> None:
    """Run a full upgrade on every manager.

    All managers are attempted even if one fails.

    Raises:
        NoManagerError: There is no manager to run.
        PackageManagerError: One or more upgrades failed; the message
            names each failing manager.
    """
    if managers is None:
        managers = context.all_managers()
    if not managers:
        raise NoManagerError()

    failures: list[str] = []
    for manager in managers:
        logger.info("Upgrading everything via %s", manager.name)
        try:
            manager.update_all()
        except PackageManagerError as e:
            logger.warning("%s upgrade failed: %s", manager.name, e)
            failures.append(f"{manager.name}: {e}")

    if failures:
        raise PackageManagerError("update failed: " + "; ".join(failures))


# ── Install ─────────────────────────────────────────────────────


def _active_manager() -> PackageManager:
    manager = context.detect_manager()
    if manager is None:
        raise NoManagerError("no package manager detected for this platform")
    return manager


def install_packages(*names: str) -> None:
    """Install packages with the detected manager."""
    if not names:
        return
    manager = _active_manager()
    logger.info("Installing %s via %s", ", ".join(names), manager.name)
    manager.install(*names)


def install_package(name: str) -> None:
    install_packages(name)


def is_package_installed(name: str) -> bool:
    """Whether the detected manager reports ``name`` as installed.

    False when no manager is detected.
    """
    manager = context.detect_manager()
    if manager is None:
        return False
    return manager.is_installed(name)
