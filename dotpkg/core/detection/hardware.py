"""Hardware probes — memory size for low-memory hosts (Pi Zero, Pi 3)."""

from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_LOW_MEMORY_MB = 1024


def read_total_memory_mb(root: Path = Path("/")) -> int:
    """Total RAM in MiB from ``/proc/meminfo``, or 0 when unknown."""
    try:
        text = (root / "proc" / "meminfo").read_text(encoding="utf-8")
    except OSError as e:
        logger.debug("Cannot read meminfo: %s", e)
        return 0

    for line in text.splitlines():
        if line.startswith("MemTotal:"):
            parts = line.split()
            if len(parts) >= 2 and parts[1].isdigit():
                return int(parts[1]) // 1024
            break
    return 0


def is_low_memory(total_mb: int, threshold_mb: int = DEFAULT_LOW_MEMORY_MB) -> bool:
    """Known memory below ``threshold_mb`` (non-positive → the default)."""
    if threshold_mb <= 0:
        threshold_mb = DEFAULT_LOW_MEMORY_MB
    return 0 < total_mb < threshold_mb
