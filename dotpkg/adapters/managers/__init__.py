"""Package manager backends — brew, pacman/AUR helper, apt."""

from dotpkg.adapters.managers.apt import AptManager
from dotpkg.adapters.managers.base import PackageManager
from dotpkg.adapters.managers.brew import BrewManager
from dotpkg.adapters.managers.pacman import PacmanManager

__all__ = ["AptManager", "BrewManager", "PackageManager", "PacmanManager"]
