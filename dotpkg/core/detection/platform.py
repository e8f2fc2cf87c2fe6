"""
Platform probes — which OS / distribution family is this host?

All probes are read-only and resolve marker files against ``root`` so
tests can point them at a temporary directory tree. Memoization lives in
:mod:`dotpkg.core.context`, not here.

Order matters: a Raspberry Pi also ships ``/etc/debian_version``, so the
board check runs before the generic distribution markers.
"""

from __future__ import annotations

import logging
import platform as _platform
from pathlib import Path

from dotpkg.core.models.package import Platform

logger = logging.getLogger(__name__)

_DEVICE_TREE_MODEL = "sys/firmware/devicetree/base/model"
_DEVICE_TREE_MODEL_LEGACY = "proc/device-tree/model"
_CPUINFO = "proc/cpuinfo"

_ARCH_MARKERS = ("etc/arch-release", "etc/cachyos-release")
_DEBIAN_MARKER = "etc/debian_version"


def _read_text(path: Path) -> str:
    try:
        # device-tree strings are NUL-terminated
        return path.read_text(encoding="utf-8", errors="replace").replace("\x00", "")
    except OSError:
        return ""


def is_raspberry_pi(root: Path = Path("/")) -> bool:
    """Whether the board is a Raspberry Pi.

    The device-tree model is authoritative; older kernels only expose
    the SoC in ``/proc/cpuinfo`` (``Hardware : BCM2835``).
    """
    for rel in (_DEVICE_TREE_MODEL, _DEVICE_TREE_MODEL_LEGACY):
        if "raspberry pi" in _read_text(root / rel).lower():
            return True

    for line in _read_text(root / _CPUINFO).lower().splitlines():
        if "raspberry pi" in line:
            return True
        if line.startswith("hardware") and "bcm2" in line:
            return True
    return False


def probe_platform(root: Path = Path("/"), system: str | None = None) -> Platform:
    """Detect the platform family.

    Args:
        root: Filesystem root the marker files are resolved against.
        system: Kernel name as reported by ``platform.system()``;
            injected by tests.

    Returns:
        The detected platform, ``Platform.UNKNOWN`` if nothing matched.
    """
    system = system if system is not None else _platform.system()

    if system == "Darwin":
        result = Platform.MACOS
    elif system != "Linux":
        result = Platform.UNKNOWN
    elif is_raspberry_pi(root):
        result = Platform.PI
    elif any((root / marker).exists() for marker in _ARCH_MARKERS):
        result = Platform.ARCH
    elif (root / _DEBIAN_MARKER).exists():
        result = Platform.DEBIAN
    else:
        result = Platform.UNKNOWN

    logger.debug("Platform probe (%s, root=%s) → %s", system, root, result.value)
    return result
