"""Verification Gate -- one interface over "run analysis" and "run tests"."""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Any

from gatekeep.core.config import GatekeepConfig
from gatekeep.core.errors import ToolFailure, ToolUnavailable
from gatekeep.core.models import GateKind, GateResult, GateStatus, Scope, ScopeKind
from gatekeep.gate.tools import (
    AnalysisTool,
    CommandAnalysisTool,
    CommandTestTool,
    TestTool,
)

logger = logging.getLogger(__name__)

ANALYSIS_SCOPES = (ScopeKind.ALL, ScopeKind.FILES)


def require_verdict(result: GateResult) -> GateResult:
    """Treat a ``failed-to-run`` result as the tool being unavailable."""
    if not result.ran:
        message = f"{result.kind.value} run for '{result.scope}' failed to run"
        if result.detail:
            message += f": {result.detail}"
        raise ToolUnavailable(message)
    return result


class VerificationGate:
    """Invokes the analysis and test tools and normalizes their output.

    The only state kept across calls is the most recent successful result
    per (kind, scope), used to compute finding deltas and to decide which
    failing tests passed before.

    Usage::

        gate = VerificationGate.from_config(load_config(root), root)
        lint = gate.run_analysis(Scope.all(), timeout=120)
        tests = gate.run_tests(Scope.all())
    """

    def __init__(
        self,
        analysis_tool: AnalysisTool | None = None,
        test_tool: TestTool | None = None,
    ) -> None:
        self.analysis_tool = analysis_tool
        self.test_tool = test_tool
        self._latest: dict[tuple[GateKind, str], GateResult] = {}

    @classmethod
    def from_config(cls, config: GatekeepConfig, project_path: Path) -> VerificationGate:
        analysis = CommandAnalysisTool(
            config.analysis.command,
            fmt=config.analysis.format,
            cwd=project_path,
            timeout=config.analysis.timeout,
        )
        tests = CommandTestTool(
            config.tests.command,
            fmt=config.tests.format,
            cwd=project_path,
            timeout=config.tests.timeout,
            category_args=config.tests.category_args,
            ok_returncodes=config.tests.ok_returncodes,
        )
        return cls(analysis, tests)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run_analysis(
        self,
        scope: Scope | None = None,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> GateResult:
        """Run the analysis tool over *scope* (all files by default).

        ``clean`` when nothing is reported, otherwise ``regressed`` with
        ``delta`` relative to the previous result for the same scope.
        """
        scope = scope or Scope.all()
        if scope.kind not in ANALYSIS_SCOPES:
            raise ValueError(f"analysis scope must be 'all' or 'files', got '{scope.kind.value}'")
        tool = self.analysis_tool
        if tool is None:
            raise ToolUnavailable("No analysis tool configured")

        started_at = datetime.now()
        t0 = time.monotonic()
        effective = timeout if timeout is not None else tool.timeout
        logger.debug("Gate: analysis %s via %s", scope, tool.name)
        try:
            findings = tool.analyze(scope, timeout=effective, cancel=cancel)
        except ToolFailure as exc:
            return self._failed(GateKind.ANALYSIS, scope, exc, started_at, t0)

        prior = self._latest.get((GateKind.ANALYSIS, scope.key))
        delta = len(findings) - len(prior.findings) if prior is not None else None
        result = GateResult(
            kind=GateKind.ANALYSIS,
            scope=scope,
            status=GateStatus.REGRESSED if findings else GateStatus.CLEAN,
            findings=tuple(findings),
            delta=delta,
            started_at=started_at,
            duration=time.monotonic() - t0,
        )
        self._latest[(GateKind.ANALYSIS, scope.key)] = result
        logger.info(
            "Gate: analysis %s -> %s (%d findings, delta %s)",
            scope, result.status.value, len(findings), delta,
        )
        return result

    def run_tests(
        self,
        scope: Scope | None = None,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
        baseline: GateResult | None = None,
    ) -> GateResult:
        """Run the test tool over *scope* (the full suite by default).

        ``clean`` if every targeted test passes, ``regressed`` if a test
        that passed in the baseline now fails, ``unchanged`` if the only
        failures were not passing before.  The baseline is *baseline* when
        given, else the previous result for the same scope.
        """
        scope = scope or Scope.all()
        if baseline is not None and baseline.kind is not GateKind.TESTS:
            raise ValueError("a test baseline must be a test result")
        tool = self.test_tool
        if tool is None:
            raise ToolUnavailable("No test tool configured")

        started_at = datetime.now()
        t0 = time.monotonic()
        effective = timeout if timeout is not None else tool.timeout
        logger.debug("Gate: tests %s via %s", scope, tool.name)
        try:
            outcome = tool.run_tests(scope, timeout=effective, cancel=cancel)
        except ToolFailure as exc:
            return self._failed(GateKind.TESTS, scope, exc, started_at, t0)

        reference = baseline
        if reference is None:
            reference = self._latest.get((GateKind.TESTS, scope.key))
        previously_passing = set(reference.passed) if reference is not None else set()
        failed = sorted(outcome.failed)
        newly_failing = [t for t in failed if t in previously_passing]

        if not failed:
            status = GateStatus.CLEAN
        elif newly_failing:
            status = GateStatus.REGRESSED
        else:
            status = GateStatus.UNCHANGED

        result = GateResult(
            kind=GateKind.TESTS,
            scope=scope,
            status=status,
            passed=tuple(sorted(outcome.passed)),
            failed=tuple(failed),
            newly_failing=tuple(newly_failing),
            started_at=started_at,
            duration=time.monotonic() - t0,
        )
        self._latest[(GateKind.TESTS, scope.key)] = result
        if status is GateStatus.REGRESSED:
            logger.warning("Gate: tests %s regressed: %s", scope, ", ".join(newly_failing))
        else:
            logger.info(
                "Gate: tests %s -> %s (%d passed, %d failed)",
                scope, status.value, len(result.passed), len(failed),
            )
        return result

    def last_result(self, kind: GateKind, scope: Scope | None = None) -> GateResult | None:
        return self._latest.get((kind, (scope or Scope.all()).key))

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {"latest": [r.to_dict() for r in self._latest.values()]}

    def restore(self, data: dict[str, Any]) -> None:
        """Reload the per-scope results saved by :meth:`to_dict`."""
        self._latest = {}
        for raw in data.get("latest", []):
            result = GateResult.from_dict(raw)
            self._latest[(result.kind, result.scope.key)] = result

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _failed(
        self,
        kind: GateKind,
        scope: Scope,
        exc: ToolFailure,
        started_at: datetime,
        t0: float,
    ) -> GateResult:
        detail = str(exc)
        if exc.output:
            detail += f"\n{exc.output}"
        logger.warning("Gate: %s %s failed to run: %s", kind.value, scope, exc)
        # Not recorded as the latest result: it carries nothing to diff against.
        return GateResult(
            kind=kind,
            scope=scope,
            status=GateStatus.FAILED_TO_RUN,
            detail=detail,
            started_at=started_at,
            duration=time.monotonic() - t0,
        )
