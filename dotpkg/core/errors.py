"""
Error types for the package-manager layer.

    PackageManagerError
    ├── CommandError          external process exited non-zero / failed to start
    │   ├── CommandCancelled  process was cancelled before it finished
    │   └── StepFailedError   one step of a multi-step operation failed
    └── NoManagerError        no package manager is available on this host

An unavailable backend is NOT an error: it shows up as
``is_available() is False`` so selection can skip it.
"""

from __future__ import annotations

from collections.abc import Sequence


class PackageManagerError(Exception):
    """Base exception for package manager operations."""


class NoManagerError(PackageManagerError):
    """Raised when an operation needs a package manager and none exists."""

    def __init__(self, message: str = "no package managers available"):
        super().__init__(message)


class CommandError(PackageManagerError):
    """An external command failed.

    Attributes:
        argv: The argument vector that was executed.
        returncode: Exit status, or None if the process never ran to exit.
        stderr: Tail of the captured stderr (empty for streamed commands).
    """

    def __init__(
        self,
        argv: Sequence[str],
        returncode: int | None,
        stderr: str = "",
        message: str | None = None,
    ):
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        if message is None:
            message = f"{' '.join(self.argv)} failed (exit {returncode})"
            tail = stderr.strip().splitlines()
            if tail:
                message = f"{message}: {tail[-1]}"
        super().__init__(message)


class CommandCancelled(CommandError):
    """The process was terminated because its operation was cancelled."""

    def __init__(self, argv: Sequence[str], returncode: int | None = None):
        super().__init__(
            argv, returncode, message=f"{' '.join(argv)} cancelled",
        )


class StepFailedError(CommandError):
    """A step of a sequential multi-command operation failed.

    ``step`` names the failing step (e.g. ``"apt update"``); ``cause`` is
    the underlying :class:`CommandError`.
    """

    def __init__(self, step: str, cause: CommandError):
        self.step = step
        self.cause = cause
        super().__init__(
            cause.argv,
            cause.returncode,
            cause.stderr,
            message=f"{step} failed: {cause}",
        )
