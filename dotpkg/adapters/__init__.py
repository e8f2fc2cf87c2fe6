"""Adapters — bindings for external package-management tools.

Public re-exports for convenient access.
"""

from dotpkg.adapters.managers.base import PackageManager
from dotpkg.adapters.mock import MockPackageManager

__all__ = [
    "MockPackageManager",
    "PackageManager",
]
