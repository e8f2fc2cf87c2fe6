"""
Streaming command execution — run a process and expose its output live.

Long package operations (``apt upgrade``, ``paru -Syu``) take minutes, so
callers need their output while they run, and a way to stop them.

Each :class:`StreamingCmd` owns:

- two reader threads, one per pipe (stdout, stderr), pushing lines into
  one bounded queue. Order within a pipe is preserved; order between the
  two pipes is only approximate.
- a watcher thread that kills the process group once cancellation is
  requested.
- a supervisor thread that joins both readers, closes the output, waits
  on the process, and resolves ``done`` with the final error (or None).

A caller that never reads the output can't wedge the process past
cancellation: readers retry a full queue in short slices and give up as
soon as the cancel event is set.
"""

from __future__ import annotations

import logging
import os
import queue
import signal
import subprocess
import threading
import time
from collections.abc import Iterable, Iterator, Mapping, Sequence
from concurrent.futures import Future
from typing import IO

from dotpkg.adapters.shell.command import with_sudo
from dotpkg.core.errors import (
    CommandCancelled,
    CommandError,
    StepFailedError,
)
from dotpkg.core.observability.logging_config import PROCESS_LOGGER

logger = logging.getLogger(__name__)
_transcript = logging.getLogger(PROCESS_LOGGER)

DEFAULT_BUFFER = 100

_PUT_SLICE = 0.05        # seconds a reader waits on a full queue before re-checking cancel
_GET_SLICE = 0.05        # seconds a consumer waits on an empty queue before re-checking close
_WATCH_SLICE = 0.1       # watcher poll interval
_TERM_GRACE = 2.0        # SIGTERM → SIGKILL delay
_ABANDON_GRACE = 1.0     # after the process is gone, how long to wait for stuck readers

# (label, argv) pairs for run_streaming_steps
Step = tuple[str, Sequence[str]]


class StreamingCmd:
    """One in-flight external process (or chain of processes).

    Iterate the instance (or :meth:`lines`) to consume output; iteration
    ends once the output is closed and drained. ``done`` is a Future that
    resolves to the final error (``None`` on exit status 0).
    """

    def __init__(
        self,
        argv: Sequence[str],
        *,
        cancel: threading.Event | None = None,
        buffer_size: int = DEFAULT_BUFFER,
    ):
        self.argv = list(argv)
        self.step: str | None = None
        self.process: subprocess.Popen[str] | None = None
        self.done: Future[CommandError | None] = Future()
        self._cancel = cancel if cancel is not None else threading.Event()
        self._queue: queue.Queue[str] = queue.Queue(maxsize=max(buffer_size, 1))
        self._closed = threading.Event()

    def __repr__(self) -> str:
        state = "done" if self.done.done() else "running"
        return f"<StreamingCmd {self.argv[0]!r} {state}>"

    # ── Caller side ─────────────────────────────────────────────

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    @property
    def closed(self) -> bool:
        """True once no more lines will be produced."""
        return self._closed.is_set()

    @property
    def returncode(self) -> int | None:
        if self.process is None:
            return None
        return self.process.returncode

    def cancel(self) -> None:
        """Stop the running command.

        The process group is terminated, pending readers give up, and
        :meth:`wait` raises :class:`CommandCancelled`.
        """
        self._cancel.set()

    def wait(self, timeout: float | None = None) -> None:
        """Block until the command completes.

        Raises:
            CommandError: Non-zero exit (``CommandCancelled`` if cancelled,
                ``StepFailedError`` for a failed step of a chain).
            concurrent.futures.TimeoutError: ``timeout`` elapsed first.
        """
        error = self.done.result(timeout=timeout)
        if error is not None:
            raise error

    def lines(self) -> Iterator[str]:
        """Yield output lines as they arrive, until the output is closed."""
        while True:
            try:
                yield self._queue.get(timeout=_GET_SLICE)
            except queue.Empty:
                if self._closed.is_set() and self._queue.empty():
                    return

    __iter__ = lines

    # ── Producer side ───────────────────────────────────────────

    def _emit(self, line: str) -> bool:
        """Queue one line. Returns False if cancellation won the race."""
        while not self._cancel.is_set():
            try:
                self._queue.put(line, timeout=_PUT_SLICE)
                return True
            except queue.Full:
                continue
        return False

    def _close_output(self) -> None:
        self._closed.set()

    def _finish(self, error: CommandError | None) -> None:
        if not self.done.done():
            self.done.set_result(error)

    @classmethod
    def from_lines(
        cls,
        lines: Iterable[str],
        error: CommandError | None = None,
        argv: Sequence[str] = ("true",),
    ) -> StreamingCmd:
        """Build an already-finished command replaying ``lines``.

        Used by test doubles that must return a StreamingCmd without
        spawning anything.
        """
        lines = list(lines)
        cmd = cls(argv, buffer_size=len(lines) or 1)
        for line in lines:
            cmd._queue.put_nowait(line)
        cmd._close_output()
        cmd._finish(error)
        return cmd


# ── Process plumbing ────────────────────────────────────────────


def _spawn(argv: Sequence[str], env: Mapping[str, str] | None) -> subprocess.Popen[str]:
    """Start ``argv`` with piped output and stdin from /dev/null.

    The child gets its own session so cancellation can signal the whole
    process group (sudo and whatever it started).
    """
    logger.debug("Streaming: %s", list(argv))
    try:
        return subprocess.Popen(
            list(argv),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            errors="replace",
            bufsize=1,
            env=dict(env) if env is not None else None,
            start_new_session=True,
        )
    except OSError as e:
        raise CommandError(
            argv, None, message=f"{' '.join(argv)} could not start: {e}",
        ) from e


def _signal_group(proc: subprocess.Popen[str], sig: int) -> None:
    try:
        os.killpg(proc.pid, sig)
    except (ProcessLookupError, PermissionError):
        # Group already gone or not ours to signal; try the child alone
        try:
            proc.send_signal(sig)
        except ProcessLookupError:
            pass


def _terminate(proc: subprocess.Popen[str]) -> None:
    """SIGTERM the process group, then SIGKILL if it lingers."""
    if proc.poll() is not None:
        return
    logger.debug("Terminating pid %d", proc.pid)
    _signal_group(proc, signal.SIGTERM)
    try:
        proc.wait(timeout=_TERM_GRACE)
    except subprocess.TimeoutExpired:
        _signal_group(proc, signal.SIGKILL)


def _read_pipe(stream: StreamingCmd, pipe: IO[str], source: str) -> None:
    try:
        for raw in pipe:
            line = raw.rstrip("\r\n")
            _transcript.debug("[%s] %s", source, line)
            if not stream._emit(line):
                return
    except (OSError, ValueError) as e:
        # Pipe torn down underneath us during cancellation
        logger.debug("Reader for %s stopped: %s", source, e)
    finally:
        pipe.close()


def _watch(stream: StreamingCmd, proc: subprocess.Popen[str]) -> None:
    while proc.poll() is None:
        if stream._cancel.wait(_WATCH_SLICE):
            _terminate(proc)
            return


def _drain(stream: StreamingCmd, proc: subprocess.Popen[str]) -> None:
    """Pump both pipes into the stream's queue until EOF or cancellation."""
    assert proc.stdout is not None and proc.stderr is not None
    name = os.path.basename(stream.argv[0])
    readers = [
        threading.Thread(
            target=_read_pipe, args=(stream, proc.stdout, "stdout"),
            name=f"{name}-stdout", daemon=True,
        ),
        threading.Thread(
            target=_read_pipe, args=(stream, proc.stderr, "stderr"),
            name=f"{name}-stderr", daemon=True,
        ),
    ]
    watcher = threading.Thread(
        target=_watch, args=(stream, proc), name=f"{name}-watch", daemon=True,
    )
    for t in readers:
        t.start()
    watcher.start()

    abandon_at: float | None = None
    for t in readers:
        while t.is_alive():
            t.join(_PUT_SLICE)
            if stream.cancelled and proc.poll() is not None:
                # A grandchild may still hold the pipe open
                if abandon_at is None:
                    abandon_at = time.monotonic() + _ABANDON_GRACE
                elif time.monotonic() >= abandon_at:
                    logger.warning("Abandoning output readers for %s", name)
                    return


def _reap(stream: StreamingCmd, proc: subprocess.Popen[str], argv: Sequence[str]) -> CommandError | None:
    returncode = proc.wait()
    if returncode == 0:
        return None
    if stream.cancelled:
        return CommandCancelled(argv, returncode)
    return CommandError(argv, returncode)


# ── Public API ──────────────────────────────────────────────────


def run_streaming(
    command: str,
    *args: str,
    cancel: threading.Event | None = None,
    buffer_size: int = DEFAULT_BUFFER,
    env: Mapping[str, str] | None = None,
) -> StreamingCmd:
    """Start ``command args...`` and stream its output.

    Args:
        command: Executable name or path.
        *args: Arguments, passed as a vector (no shell).
        cancel: Optional shared cancel event. Setting it (or calling
            ``StreamingCmd.cancel()``) terminates the process.
        buffer_size: Max queued lines before readers wait for the consumer.
        env: Environment for the child (default: inherit).

    Raises:
        CommandCancelled: ``cancel`` was already set.
        CommandError: The process could not be started.
    """
    argv = [command, *args]
    stream = StreamingCmd(argv, cancel=cancel, buffer_size=buffer_size)
    if stream.cancelled:
        raise CommandCancelled(argv)

    proc = _spawn(argv, env)
    stream.process = proc

    def supervise() -> None:
        _drain(stream, proc)
        stream._close_output()
        stream._finish(_reap(stream, proc, argv))

    threading.Thread(
        target=supervise, name=f"{os.path.basename(command)}-supervisor", daemon=True,
    ).start()
    return stream


def run_streaming_with_sudo(
    command: str,
    *args: str,
    sudo_command: Sequence[str] = ("sudo",),
    cancel: threading.Event | None = None,
    buffer_size: int = DEFAULT_BUFFER,
    env: Mapping[str, str] | None = None,
) -> StreamingCmd:
    """Like :func:`run_streaming`, with the elevation command prefixed.

    Sudo credentials must already be cached; stdin is /dev/null so sudo
    can't prompt.
    """
    argv = with_sudo([command, *args], sudo_command)
    return run_streaming(
        argv[0], *argv[1:], cancel=cancel, buffer_size=buffer_size, env=env,
    )


def run_streaming_steps(
    steps: Sequence[Step],
    *,
    cancel: threading.Event | None = None,
    buffer_size: int = DEFAULT_BUFFER,
    env: Mapping[str, str] | None = None,
) -> StreamingCmd:
    """Run labelled commands one after another behind one StreamingCmd.

    Step N+1 starts only after step N exited 0. If a step fails, no later
    step runs and ``done`` resolves to :class:`StepFailedError` naming it.
    Output of all steps flows through the same line stream.

    Raises:
        ValueError: ``steps`` is empty.
        CommandCancelled: ``cancel`` was already set.
        StepFailedError: The first step could not be started.
    """
    if not steps:
        raise ValueError("run_streaming_steps needs at least one step")

    first_label, first_argv = steps[0]
    stream = StreamingCmd(first_argv, cancel=cancel, buffer_size=buffer_size)
    if stream.cancelled:
        raise CommandCancelled(first_argv)

    try:
        first_proc = _spawn(first_argv, env)
    except CommandError as e:
        raise StepFailedError(first_label, e) from e
    stream.step = first_label
    stream.process = first_proc

    def supervise() -> None:
        error: CommandError | None = None
        proc: subprocess.Popen[str] | None = first_proc
        for index, (label, argv) in enumerate(steps):
            if proc is None:
                if stream.cancelled:
                    error = CommandCancelled(argv)
                    break
                try:
                    proc = _spawn(argv, env)
                except CommandError as e:
                    error = StepFailedError(label, e)
                    break
                stream.step = label
                stream.argv = list(argv)
                stream.process = proc

            _drain(stream, proc)
            result = _reap(stream, proc, argv)
            proc = None
            if result is not None:
                if isinstance(result, CommandCancelled):
                    error = result
                else:
                    error = StepFailedError(label, result)
                logger.debug("Step %d/%d (%s) failed", index + 1, len(steps), label)
                break

        stream._close_output()
        stream._finish(error)

    threading.Thread(target=supervise, name="steps-supervisor", daemon=True).start()
    return stream
