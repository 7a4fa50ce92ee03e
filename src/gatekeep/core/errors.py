"""Typed failures raised by the gate, the sequencer and the TDD cycle.

Three families, each with a different recovery story:

* :class:`GateError` -- the gate could not produce a result.  Transient,
  safe to retry, no state has changed.
* :class:`VerificationFailure` -- a verification ran and revealed a broken
  invariant.  Forward progress halts until the caller decides what to do.
* :class:`ProtocolViolation` -- the caller asked for something the state
  machine does not allow right now.  Refused, no state has changed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from gatekeep.core.models import GateResult


class GatekeepError(Exception):
    """Base class for every gatekeep failure."""


class ConfigError(GatekeepError):
    """``gatekeep.toml`` holds a value that cannot be used."""


# ---------------------------------------------------------------------------
# Gate invocation
# ---------------------------------------------------------------------------


class GateError(GatekeepError):
    """The Verification Gate could not produce a result."""


class ToolUnavailable(GateError):
    def __init__(self, message: str, tool: str = "") -> None:
        super().__init__(message)
        self.tool = tool


class GateTimeout(GateError):
    def __init__(
        self,
        message: str,
        timeout: float | None = None,
        cancelled: bool = False,
    ) -> None:
        super().__init__(message)
        self.timeout = timeout
        self.cancelled = cancelled


class ToolFailure(GatekeepError):
    """A tool started but produced no usable report.

    Tools raise this; the gate turns it into a ``failed-to-run`` result.
    """

    def __init__(self, message: str, returncode: int | None = None, output: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.output = output


# ---------------------------------------------------------------------------
# Verification outcomes
# ---------------------------------------------------------------------------


class VerificationFailure(GatekeepError):
    def __init__(
        self,
        message: str,
        result: GateResult | None = None,
        failing: Iterable[str] = (),
    ) -> None:
        super().__init__(message)
        self.result = result
        self.failing = tuple(failing)


class RegressionDetected(VerificationFailure):
    """Tests that passed before now fail."""


class RefactorRegression(VerificationFailure):
    """A refactoring step left the suite red."""


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class ProtocolViolation(GatekeepError):
    pass


class SkippedRedPhase(ProtocolViolation):
    """GREEN was requested without a confirmed failing test."""


class InvalidTransition(ProtocolViolation):
    pass


class ConcurrentAccess(InvalidTransition):
    """A session was touched from a worker that does not own it."""
