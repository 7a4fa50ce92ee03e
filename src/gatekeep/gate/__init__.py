"""Verification Gate: invoke analysis and test tools, normalize their results."""

from gatekeep.gate.parsers import TestOutcome
from gatekeep.gate.tools import (
    AnalysisTool,
    CallableAnalysisTool,
    CallableTestTool,
    CommandAnalysisTool,
    CommandTestTool,
    TestTool,
)
from gatekeep.gate.verification import VerificationGate, require_verdict

__all__ = [
    "AnalysisTool",
    "CallableAnalysisTool",
    "CallableTestTool",
    "CommandAnalysisTool",
    "CommandTestTool",
    "TestOutcome",
    "TestTool",
    "VerificationGate",
    "require_verdict",
]
