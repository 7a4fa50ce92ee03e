"""External process invocation with a deadline and cooperative cancellation."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import tempfile
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from gatekeep.core.errors import GateTimeout, ToolUnavailable

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.1
REPORT_PLACEHOLDER = "{report}"
DIAGNOSTIC_LINES = 20


@dataclass
class CommandOutput:
    """What a finished tool process left behind."""

    argv: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    report: str | None = None
    duration: float = 0.0

    @property
    def text(self) -> str:
        """The report file if the command wrote one, else stdout."""
        return self.report if self.report is not None else self.stdout

    def diagnostics(self) -> str:
        """Last lines of stderr (or stdout), for failed-to-run details."""
        source = self.stderr.strip() or self.stdout.strip()
        return "\n".join(source.splitlines()[-DIAGNOSTIC_LINES:])


def _resolve_executable(exe: str, cwd: Path | None) -> str:
    if os.sep in exe or (os.altsep and os.altsep in exe):
        candidate = Path(exe)
        if not candidate.is_absolute() and cwd is not None:
            candidate = cwd / candidate
        if candidate.exists():
            return str(candidate)
        raise ToolUnavailable(f"Executable not found: {exe}", tool=exe)
    found = shutil.which(exe)
    if found is None:
        raise ToolUnavailable(f"Executable not found on PATH: {exe}", tool=exe)
    return found


def _kill(proc: subprocess.Popen) -> None:
    proc.kill()
    try:
        proc.communicate(timeout=5)
    except subprocess.TimeoutExpired:
        logger.warning("Process %d did not exit after kill", proc.pid)


def run_command(
    argv: list[str],
    *,
    cwd: Path | None = None,
    timeout: float | None = None,
    cancel: threading.Event | None = None,
    env: Mapping[str, str] | None = None,
) -> CommandOutput:
    """Run *argv* (never through a shell) and wait for it.

    Raises :class:`ToolUnavailable` if the process cannot start and
    :class:`GateTimeout` if it outlives *timeout* seconds or *cancel* is
    set; in both timeout cases the child is killed first.  A ``{report}``
    argument is replaced by a temporary file path whose content is read
    back into :attr:`CommandOutput.report`.
    """
    if not argv:
        raise ToolUnavailable("No command configured")
    if cancel is not None and cancel.is_set():
        raise GateTimeout("Cancelled before start", timeout=timeout, cancelled=True)

    exe = _resolve_executable(argv[0], cwd)
    report_path: Path | None = None
    args = list(argv)
    if any(REPORT_PLACEHOLDER in a for a in args[1:]):
        fd, name = tempfile.mkstemp(prefix="gatekeep-", suffix=".report")
        os.close(fd)
        report_path = Path(name)
        args = [a.replace(REPORT_PLACEHOLDER, name) for a in args]
    args[0] = exe

    run_env = {**os.environ, **dict(env)} if env is not None else None
    started = time.monotonic()
    deadline = started + timeout if timeout else None

    logger.debug("Running %s (timeout=%s)", " ".join(args), timeout)
    try:
        try:
            proc = subprocess.Popen(
                args,
                cwd=str(cwd) if cwd else None,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
                env=run_env,
            )
        except OSError as exc:
            raise ToolUnavailable(f"Cannot start {argv[0]}: {exc}", tool=argv[0]) from exc

        while True:
            try:
                stdout, stderr = proc.communicate(timeout=POLL_INTERVAL)
                break
            except subprocess.TimeoutExpired:
                if cancel is not None and cancel.is_set():
                    _kill(proc)
                    raise GateTimeout(
                        f"{argv[0]} cancelled", timeout=timeout, cancelled=True
                    ) from None
                if deadline is not None and time.monotonic() >= deadline:
                    _kill(proc)
                    raise GateTimeout(
                        f"{argv[0]} exceeded {timeout:g}s", timeout=timeout
                    ) from None

        report = None
        if report_path is not None and report_path.exists():
            report = report_path.read_text(errors="replace") or None

        duration = time.monotonic() - started
        logger.debug("%s exited %d after %.2fs", argv[0], proc.returncode, duration)
        return CommandOutput(
            argv=args,
            returncode=proc.returncode,
            stdout=stdout or "",
            stderr=stderr or "",
            report=report,
            duration=duration,
        )
    finally:
        if report_path is not None:
            report_path.unlink(missing_ok=True)
