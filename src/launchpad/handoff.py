"""Process handoff: run the managed application and wait for it.

The launcher stays alive as a supervisor while the application runs, and
reports the application's exit status as its own. Interactive signals are
ignored by the supervisor from just before the spawn until the child exits, so
Ctrl-C is handled by the application and the supervisor always outlives it.
The child gets those signals back at their default disposition.
"""

import errno
import logging
import os
import signal
import subprocess
import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

# Shell conventions for commands that could not be run
EXIT_NOT_FOUND = 127
EXIT_NOT_EXECUTABLE = 126


class LaunchError(Exception):
    """The application could not be started."""

    def __init__(self, executable: Path, reason: str, exit_code: int):
        self.executable = executable
        self.reason = reason
        self.exit_code = exit_code
        super().__init__(f"Cannot launch {executable}: {reason}")


@dataclass
class ChildProcessHandle:
    """A running application owned by the handoff until it exits."""

    executable: Path
    process: subprocess.Popen

    @property
    def pid(self) -> int:
        return self.process.pid

    def wait(self) -> int:
        """Block until the child exits and return its exit status.

        A child killed by signal N is reported as 128 + N.
        """
        returncode = self.process.wait()
        if returncode < 0:
            return 128 - returncode
        return returncode


def _interactive_signals() -> list[signal.Signals]:
    signals = [signal.SIGINT]
    if hasattr(signal, "SIGQUIT"):
        signals.append(signal.SIGQUIT)
    return signals


@contextmanager
def _ignore_interactive_signals() -> Iterator[list[signal.Signals]]:
    """Ignore SIGINT/SIGQUIT in this process for the duration of the block.

    Yields the signals this block switched to ignored; children spawned inside
    it must put those back to their default disposition.
    """
    if threading.current_thread() is not threading.main_thread():
        yield []
        return

    previous = {sig: signal.signal(sig, signal.SIG_IGN) for sig in _interactive_signals()}
    try:
        yield [sig for sig, handler in previous.items() if handler is not signal.SIG_IGN]
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


def _default_dispositions(signals: Sequence[signal.Signals]):
    """preexec_fn resetting `signals` to SIG_DFL in the child, or None."""
    if not signals or os.name != "posix":
        return None

    def reset() -> None:
        for sig in signals:
            signal.signal(sig, signal.SIG_DFL)

    return reset


def spawn(
    executable: Path,
    args: Sequence[str] = (),
    cwd: Path | None = None,
    reset_signals: Sequence[signal.Signals] = (),
) -> ChildProcessHandle:
    """Start the application as a child process.

    `reset_signals` are restored to their default disposition in the child
    before exec.

    Raises:
        LaunchError: If the executable is missing or cannot be executed
    """
    executable = Path(executable)
    cmd = [str(executable), *args]
    logger.debug("Spawning %s", cmd)
    try:
        process = subprocess.Popen(cmd, cwd=cwd, preexec_fn=_default_dispositions(reset_signals))
    except FileNotFoundError as e:
        raise LaunchError(executable, "file not found", EXIT_NOT_FOUND) from e
    except PermissionError as e:
        raise LaunchError(executable, "permission denied", EXIT_NOT_EXECUTABLE) from e
    except OSError as e:
        code = EXIT_NOT_FOUND if e.errno == errno.ENOENT else EXIT_NOT_EXECUTABLE
        raise LaunchError(executable, e.strerror or str(e), code) from e
    return ChildProcessHandle(executable=executable, process=process)


def launch(
    executable: Path,
    args: Sequence[str] = (),
    cwd: Path | None = None,
) -> int:
    """Run the application to completion and return its exit status.

    Start failures are logged and reported as 127 (not found) or 126
    (not executable); they are never retried.
    """
    logger.info("Launching %s", executable)
    # Ignored before the fork so a Ctrl-C can never leave the child unsupervised
    with _ignore_interactive_signals() as ignored:
        try:
            child = spawn(executable, args, cwd=cwd, reset_signals=ignored)
        except LaunchError as e:
            logger.error("%s", e)
            return e.exit_code

        logger.debug("Application running as pid %d (supervisor pid %d)", child.pid, os.getpid())
        exit_code = child.wait()

    logger.debug("Application exited with status %d", exit_code)
    return exit_code
