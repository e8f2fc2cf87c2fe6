"""
Blocking command runner — the single place where ``subprocess.run`` is
called for package-manager queries and mutations.

Commands are always argument vectors, never shell strings, so package
names and search queries can't be interpreted by a shell. Standard input
is /dev/null: a subcommand that unexpectedly prompts fails instead of
hanging the caller.
"""

from __future__ import annotations

import logging
import os
import subprocess
import time
from collections.abc import Iterable, Sequence

from dotpkg.core.errors import CommandError

logger = logging.getLogger(__name__)

# Captured stderr kept on CommandError
_STDERR_TAIL = 2000


def with_sudo(argv: Sequence[str], sudo_command: Sequence[str] = ("sudo",)) -> list[str]:
    """Prefix ``argv`` with the elevation command.

    No prefix when already running as root.
    """
    if hasattr(os, "geteuid") and os.geteuid() == 0:
        return list(argv)
    return [*sudo_command, *argv]


def run_command(
    argv: Sequence[str],
    *,
    timeout: int | None = None,
    ok_codes: Iterable[int] = (0,),
    check: bool = True,
) -> subprocess.CompletedProcess[str]:
    """Run a command to completion and capture its output.

    Args:
        argv: Command and arguments.
        timeout: Seconds before the command is killed (None = no limit).
        ok_codes: Exit statuses treated as success. Some tools use a
            non-zero status for "nothing found" (``checkupdates`` exits 2
            when there are no updates).
        check: If False, never raise for the exit status.

    Returns:
        The completed process (``stdout``/``stderr`` as text).

    Raises:
        CommandError: The command could not start, timed out, or exited
            with a status outside ``ok_codes`` (when ``check`` is set).
    """
    argv = list(argv)
    logger.debug("Executing: %s", argv)
    start = time.monotonic()

    try:
        result = subprocess.run(
            argv,
            capture_output=True,
            text=True,
            stdin=subprocess.DEVNULL,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise CommandError(
            argv, None, message=f"{' '.join(argv)} timed out ({timeout}s)",
        ) from e
    except OSError as e:
        raise CommandError(
            argv, None, message=f"{' '.join(argv)} could not start: {e}",
        ) from e

    elapsed_ms = int((time.monotonic() - start) * 1000)
    logger.debug("%s exited %d in %dms", argv[0], result.returncode, elapsed_ms)

    if check and result.returncode not in set(ok_codes):
        stderr = result.stderr[-_STDERR_TAIL:] if result.stderr else ""
        raise CommandError(argv, result.returncode, stderr)

    return result


def command_succeeds(argv: Sequence[str], *, timeout: int | None = None) -> bool:
    """Run a probe command and report whether it exited 0.

    Never raises: a missing binary or a timeout counts as failure.
    """
    try:
        run_command(argv, timeout=timeout)
    except CommandError as e:
        logger.debug("Probe failed: %s", e)
        return False
    return True
