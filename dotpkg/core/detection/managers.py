"""
Manager selection — map a platform to its native backend.

``select_manager`` is the uncached policy; :mod:`dotpkg.core.context`
memoizes it. ``available_managers`` re-probes the host on every call
because a host can carry more than one backend (Linuxbrew next to
pacman, for instance).
"""

from __future__ import annotations

import logging

from dotpkg.adapters.managers.apt import AptManager
from dotpkg.adapters.managers.base import PackageManager
from dotpkg.adapters.managers.brew import TAG_CASK, BrewManager
from dotpkg.adapters.managers.pacman import TAG_AUR, PacmanManager
from dotpkg.core.models.package import Platform
from dotpkg.core.models.settings import Settings

logger = logging.getLogger(__name__)


def select_manager(
    platform: Platform,
    settings: Settings | None = None,
) -> PackageManager | None:
    """The native manager for ``platform``, or None.

    On Arch an AUR helper is preferred when one resolves; pacman is the
    silent fallback. A selected backend whose binary is missing yields
    None just like an unknown platform.
    """
    settings = settings or Settings()
    manager: PackageManager | None
    if platform == Platform.MACOS:
        manager = BrewManager(settings)
    elif platform == Platform.ARCH:
        manager = PacmanManager(settings, prefer_helper=True)
    elif platform in (Platform.DEBIAN, Platform.PI):
        manager = AptManager(settings)
    else:
        manager = None

    if manager is None or not manager.is_available():
        logger.debug("No usable package manager for platform %s", platform.value)
        return None
    logger.debug("Selected %r for platform %s", manager, platform.value)
    return manager


def available_managers(settings: Settings | None = None) -> list[PackageManager]:
    """Every backend present on this host: brew, AUR helper, pacman, apt."""
    settings = settings or Settings()
    candidates: list[PackageManager] = [BrewManager(settings)]

    helper = PacmanManager(settings, prefer_helper=True)
    if helper.uses_helper:
        candidates.append(helper)
    candidates.append(PacmanManager(settings))
    candidates.append(AptManager(settings))

    managers = [m for m in candidates if m.is_available()]
    logger.debug("Available managers: %s", [m.name for m in managers])
    return managers


def manager_by_name(
    name: str,
    settings: Settings | None = None,
) -> PackageManager | None:
    """Fresh backend for a ``Package.installed_by`` routing tag."""
    settings = settings or Settings()
    if name in ("brew", TAG_CASK):
        return BrewManager(settings)
    if name == "pacman":
        return PacmanManager(settings)
    if name == TAG_AUR or name in settings.aur_helpers or name in ("paru", "yay"):
        helper = PacmanManager(settings, prefer_helper=True)
        return helper if helper.uses_helper else None
    if name == "apt":
        return AptManager(settings)
    return None
