"""Shared fixtures: in-memory analysis and test tools behind a real gate."""

from __future__ import annotations

import pytest

from gatekeep.core.models import Finding, ScopeKind
from gatekeep.gate.parsers import TestOutcome
from gatekeep.gate.tools import AnalysisTool, TestTool
from gatekeep.gate.verification import VerificationGate


class FakeAnalysisTool(AnalysisTool):
    """Reports whatever is in ``findings``; ``errors`` are raised first, one per call."""

    name = "fake-lint"

    def __init__(self) -> None:
        self.findings: list[Finding] = []
        self.errors: list[Exception] = []
        self.calls: list = []

    def analyze(self, scope, timeout=None, cancel=None):
        self.calls.append(scope)
        if self.errors:
            raise self.errors.pop(0)
        if scope.kind is ScopeKind.FILES:
            return [f for f in self.findings if f.file in scope.targets]
        return list(self.findings)


class FakeTestTool(TestTool):
    """Reports ``outcomes`` ({test id: passed}) as the state of the suite."""

    name = "fake-tests"

    def __init__(self) -> None:
        self.outcomes: dict[str, bool] = {}
        self.errors: list[Exception] = []
        self.calls: list = []

    def run_tests(self, scope, timeout=None, cancel=None):
        self.calls.append(scope)
        if self.errors:
            raise self.errors.pop(0)
        outcomes = self.outcomes
        if scope.kind is ScopeKind.TEST:
            outcomes = {t: ok for t, ok in outcomes.items() if t in scope.targets}
        return TestOutcome.from_mapping(outcomes)


@pytest.fixture
def analysis_tool() -> FakeAnalysisTool:
    return FakeAnalysisTool()


@pytest.fixture
def test_tool() -> FakeTestTool:
    return FakeTestTool()


@pytest.fixture
def gate(analysis_tool: FakeAnalysisTool, test_tool: FakeTestTool) -> VerificationGate:
    return VerificationGate(analysis_tool, test_tool)
