from __future__ import annotations

import logging
import shlex
import signal
import subprocess
import threading
from contextlib import contextmanager
from typing import Iterator, Protocol, Sequence

logger = logging.getLogger(__name__)


class CommandRunner(Protocol):
    def __call__(
        self,
        cmd: Sequence[str],
        *,
        capture: bool = False,
        cwd: str | None = None,
    ) -> subprocess.CompletedProcess[str]:
        ...


def format_command(cmd: Sequence[str]) -> str:
    return " ".join(shlex.quote(arg) for arg in cmd)


def _swallow_sigint(signum, frame) -> None:
    logger.debug("SIGINT while attached child runs; leaving it to the child")


@contextmanager
def sigint_left_to_child() -> Iterator[None]:
    """Keep Ctrl-C from aborting us while a child owns the terminal.

    The terminal delivers SIGINT to the whole foreground group, so the child
    still receives it and its exit code decides what happens next. SIG_IGN
    would be inherited across exec, so a no-op handler is installed instead.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return
    previous = signal.signal(signal.SIGINT, _swallow_sigint)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous if previous is not None else signal.SIG_DFL)


def run_command(
    cmd: Sequence[str],
    *,
    capture: bool = False,
    cwd: str | None = None,
) -> subprocess.CompletedProcess[str]:
    """Run a command synchronously and hand back its result.

    With ``capture`` the output is collected (used for probes); otherwise the
    child inherits the terminal so pulls and interactive runs stay visible,
    and Ctrl-C is left for the child to handle.
    A missing executable is reported as exit code 127 instead of raising.
    """
    argv = list(cmd)
    logger.debug("CMD %s", format_command(argv))
    try:
        if capture:
            res = subprocess.run(argv, text=True, capture_output=True, cwd=cwd)
        else:
            with sigint_left_to_child():
                res = subprocess.run(argv, text=True, cwd=cwd)
    except FileNotFoundError as exc:
        return subprocess.CompletedProcess(argv, 127, "", str(exc))
    if capture and res.stderr:
        logger.debug("STDERR %s", res.stderr.strip())
    logger.debug("EXIT %s -> %s", argv[0], res.returncode)
    return res
