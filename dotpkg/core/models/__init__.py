"""
Domain models — Pydantic types for the package-manager layer.

    from dotpkg.core.models import Package, Platform, Settings
"""

from dotpkg.core.models.package import Package, Platform, UpdateResult
from dotpkg.core.models.settings import DOTFILES_PACKAGES, Settings

__all__ = [
    "DOTFILES_PACKAGES",
    "Package",
    "Platform",
    "Settings",
    "UpdateResult",
]
