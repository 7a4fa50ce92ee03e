"""gatekeep -- state-gated remediation and Red-Green-Refactor orchestration."""

from gatekeep._version import __version__
from gatekeep.core.errors import (
    GateError,
    GatekeepError,
    GateTimeout,
    InvalidTransition,
    RefactorRegression,
    RegressionDetected,
    SkippedRedPhase,
    ToolUnavailable,
)
from gatekeep.core.models import Finding, GateResult, GateStatus, Scope
from gatekeep.gate.verification import VerificationGate
from gatekeep.remediation.sequencer import RemediationSequencer
from gatekeep.session.session import Session
from gatekeep.tdd.cycle import TDDCycle

__all__ = [
    "__version__",
    "Finding",
    "GateError",
    "GateResult",
    "GateStatus",
    "GateTimeout",
    "GatekeepError",
    "InvalidTransition",
    "RefactorRegression",
    "RegressionDetected",
    "RemediationSequencer",
    "Scope",
    "Session",
    "SkippedRedPhase",
    "TDDCycle",
    "ToolUnavailable",
    "VerificationGate",
]
