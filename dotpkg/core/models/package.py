"""
Package models — the uniform record every backend parses into.

Each package manager speaks a different output dialect (JSON from brew,
``name old -> new`` from pacman, ``name/suite new arch [upgradable from:
old]`` from apt). All of them are normalised into :class:`Package` so
callers never need to know which tool produced a record.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, model_validator


class Platform(str, Enum):
    """Operating system / distribution family of the host."""

    MACOS = "macos"
    ARCH = "arch"
    DEBIAN = "debian"
    PI = "pi"              # Raspberry Pi, uses Debian packages
    UNKNOWN = "unknown"


class Package(BaseModel):
    """A package as reported by one package manager.

    ``installed_by`` is a routing tag (``brew``, ``brew-cask``, ``pacman``,
    ``paru``, ``aur``, ``apt``...), not a reference to a manager object.
    Follow-up operations use it to find the manager that owns the package.
    """

    name: str
    current_version: str = ""
    latest_version: str = ""
    outdated: bool = False
    installed_by: str = ""
    description: str = ""

    @model_validator(mode="after")
    def _outdated_needs_latest(self) -> Package:
        if self.outdated and not self.latest_version:
            raise ValueError(
                f"package {self.name!r} marked outdated without a latest version"
            )
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-ready dict."""
        return self.model_dump()


class UpdateResult(BaseModel):
    """Outcome of updating one package through its owning manager."""

    package: Package
    success: bool
    error: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "package": self.package.to_dict(),
            "success": self.success,
            "error": self.error,
        }


def outdated_package(
    name: str,
    current: str,
    latest: str,
    installed_by: str,
) -> Package:
    """Build a record for a package a backend reported as upgradable.

    ``outdated`` is only set when a latest version was actually seen and
    differs from the installed one.
    """
    return Package(
        name=name,
        current_version=current,
        latest_version=latest,
        outdated=bool(latest) and latest != current,
        installed_by=installed_by,
    )
