"""TDD cycle state machine: RED -> GREEN -> REFACTOR -> CLOSED, one test at a time."""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Any

from gatekeep.core.errors import (
    InvalidTransition,
    RefactorRegression,
    RegressionDetected,
    SkippedRedPhase,
)
from gatekeep.core.guard import SingleOwner
from gatekeep.core.models import (
    CycleRun,
    CycleSnapshot,
    CycleState,
    GateKind,
    GateResult,
    GateStatus,
    Scope,
    TestCase,
    TestCaseView,
)
from gatekeep.gate.verification import VerificationGate, require_verdict

logger = logging.getLogger(__name__)

ACTIVE_STATES = (CycleState.RED, CycleState.GREEN)
PROTECTED_STATES = (CycleState.GREEN, CycleState.REFACTOR, CycleState.CLOSED)


class TDDCycle(SingleOwner):
    """Enforces the Red-Green-Refactor discipline over a registry of test cases.

    * GREEN is only accepted after a failing run of the same test was
      observed (``confirm_red``), and only if no protected test broke.
    * Every REFACTOR step must leave the full suite clean.
    * At most one test case is in RED or GREEN at any time.

    Each check consumes one test :class:`GateResult`, either run on demand
    through the gate or handed in by the caller, and records it as a
    :class:`CycleRun`.
    """

    def __init__(self, gate: VerificationGate, max_runs: int = 200) -> None:
        self.gate = gate
        self.max_runs = max_runs
        self._cases: dict[str, TestCase] = {}
        self._runs: list[CycleRun] = []
        self._bind_owner()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def begin_red_phase(self, test_id: str, description: str = "") -> TestCase:
        """Register *test_id* (or re-open it once closed) in RED."""
        self._check_owner("begin_red_phase")
        busy = next(
            (
                c
                for c in self._cases.values()
                if c.state in ACTIVE_STATES and c.test_id != test_id
            ),
            None,
        )
        if busy is not None:
            raise InvalidTransition(
                f"'{busy.test_id}' is still {busy.state.value}; one test at a time"
            )

        case = self._cases.get(test_id)
        if case is None:
            case = TestCase(test_id=test_id, description=description)
            self._cases[test_id] = case
        elif case.state is CycleState.CLOSED:
            case.state = CycleState.RED
            case.red_run = None
            case.refactor_passes = 0
            case.violation = ""
            case.opened_at = datetime.now()
            case.closed_at = None
            if description:
                case.description = description
        else:
            raise InvalidTransition(f"'{test_id}' is already in {case.state.value}")

        logger.info("RED phase begun for %s", test_id)
        return case

    def confirm_red(
        self,
        test_id: str,
        result: GateResult | None = None,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> CycleRun:
        """Record that *test_id* was observed failing."""
        self._check_owner("confirm_red")
        case = self._require_state(test_id, CycleState.RED, "confirm_red")
        result = self._tests(result, Scope.test(test_id), timeout, cancel)

        outcome = result.outcome_of(test_id)
        if outcome is None:
            raise InvalidTransition(f"'{test_id}' was not reported by the test run")
        if outcome:
            case.violation = "test passed before any implementation"
            raise InvalidTransition(
                f"'{test_id}' already passes; RED needs a failing test"
            )

        run = self._record(result, test_id, CycleState.RED)
        case.red_run = run
        case.violation = ""
        logger.info("RED confirmed for %s", test_id)
        return run

    def confirm_green(
        self,
        test_id: str,
        result: GateResult | None = None,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> CycleRun:
        """Accept the implementation: the test now passes and nothing else broke."""
        self._check_owner("confirm_green")
        case = self._require_state(test_id, CycleState.RED, "confirm_green")
        if case.red_run is None:
            raise SkippedRedPhase(
                f"'{test_id}' was never observed failing; run confirm_red first"
            )
        result = self._tests(result, Scope.all(), timeout, cancel)
        self._require_fresh(result, case.red_run.timestamp)

        outcome = result.outcome_of(test_id)
        if outcome is None:
            raise InvalidTransition(f"'{test_id}' was not reported by the test run")
        if not outcome:
            raise InvalidTransition(f"'{test_id}' is still failing")

        broken: list[str] = []
        unreported: list[str] = []
        for other in self._cases.values():
            if other.test_id == test_id or other.state not in PROTECTED_STATES:
                continue
            status = result.outcome_of(other.test_id)
            if status is False or (status is None and result.scope.covers_all):
                broken.append(other.test_id)
            elif status is None:
                unreported.append(other.test_id)

        if broken:
            self._record(result, test_id, CycleState.GREEN)
            case.violation = "regressed: " + ", ".join(broken)
            logger.warning("GREEN refused for %s: %s", test_id, case.violation)
            raise RegressionDetected(
                f"'{test_id}' passes but previously passing tests fail: "
                + ", ".join(broken),
                result=result,
                failing=broken,
            )
        if unreported:
            raise InvalidTransition(
                "The test run does not cover " + ", ".join(unreported)
                + "; run the full suite"
            )

        run = self._record(result, test_id, CycleState.GREEN)
        case.state = CycleState.GREEN
        case.violation = ""
        logger.info("GREEN confirmed for %s", test_id)
        return run

    def enter_refactor(
        self,
        test_id: str,
        result: GateResult | None = None,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> CycleRun:
        """Move GREEN -> REFACTOR, or verify another REFACTOR step.

        The full suite must be clean afterwards; otherwise the test case
        stays in REFACTOR with the violation recorded and
        :class:`RefactorRegression` is raised.  The offending change has to
        be reverted by the caller before retrying.
        """
        self._check_owner("enter_refactor")
        case = self._require_case(test_id)
        if case.state not in (CycleState.GREEN, CycleState.REFACTOR):
            raise InvalidTransition(
                f"enter_refactor: '{test_id}' is {case.state.value}, not green or refactor"
            )
        result = self._tests(result, Scope.all(), timeout, cancel)
        if not result.scope.covers_all:
            raise InvalidTransition("A refactor must be verified against the full suite")
        runs = self.history(test_id)
        self._require_fresh(result, runs[-1].timestamp if runs else None)

        if case.state is CycleState.GREEN:
            case.state = CycleState.REFACTOR
            logger.info("REFACTOR entered for %s", test_id)

        run = self._record(result, test_id, CycleState.REFACTOR)
        if result.status is not GateStatus.CLEAN:
            failing = list(result.failed)
            case.violation = "suite not clean after refactor: " + ", ".join(failing)
            logger.warning("Refactor of %s refused: %s", test_id, case.violation)
            raise RefactorRegression(
                f"Refactor left failing tests: {', '.join(failing)}; revert the change",
                result=result,
                failing=failing,
            )

        case.refactor_passes += 1
        case.violation = ""
        return run

    def close_cycle(self, test_id: str) -> TestCase:
        """Close a test case whose last refactor verification was clean."""
        self._check_owner("close_cycle")
        case = self._require_state(test_id, CycleState.REFACTOR, "close_cycle")
        if case.violation:
            raise RefactorRegression(
                f"'{test_id}' cannot close: {case.violation}",
                failing=self._last_failing(test_id),
            )
        case.state = CycleState.CLOSED
        case.red_run = None
        case.closed_at = datetime.now()
        logger.info("Cycle closed for %s after %d refactor pass(es)", test_id, case.refactor_passes)
        return case

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def get(self, test_id: str) -> TestCase | None:
        return self._cases.get(test_id)

    def history(self, test_id: str | None = None) -> list[CycleRun]:
        if test_id is None:
            return list(self._runs)
        return [r for r in self._runs if r.test_id == test_id]

    def snapshot(self) -> CycleSnapshot:
        return CycleSnapshot(
            test_cases=tuple(
                TestCaseView(
                    test_id=c.test_id,
                    state=c.state,
                    description=c.description,
                    violation=c.violation,
                    red_confirmed=c.red_run is not None,
                )
                for c in self._cases.values()
            )
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "test_cases": [c.to_dict() for c in self._cases.values()],
            "runs": [r.to_dict() for r in self._runs],
        }

    def restore(self, data: dict[str, Any]) -> None:
        self._check_owner("restore")
        self._cases = {}
        for raw in data.get("test_cases", []):
            case = TestCase.from_dict(raw)
            self._cases[case.test_id] = case
        self._runs = [CycleRun.from_dict(r) for r in data.get("runs", [])]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_case(self, test_id: str) -> TestCase:
        case = self._cases.get(test_id)
        if case is None:
            raise InvalidTransition(f"Unknown test case '{test_id}'; begin a RED phase first")
        return case

    def _require_state(self, test_id: str, state: CycleState, operation: str) -> TestCase:
        case = self._require_case(test_id)
        if case.state is not state:
            raise InvalidTransition(
                f"{operation}: '{test_id}' is {case.state.value}, expected {state.value}"
            )
        return case

    def _tests(
        self,
        result: GateResult | None,
        scope: Scope,
        timeout: float | None,
        cancel: threading.Event | None,
    ) -> GateResult:
        if result is None:
            result = self.gate.run_tests(scope, timeout=timeout, cancel=cancel)
        elif result.kind is not GateKind.TESTS:
            raise ValueError("the TDD cycle consumes test results only")
        return require_verdict(result)

    def _require_fresh(self, result: GateResult, since: datetime | None) -> None:
        if any(run.gate_run_id == result.run_id for run in self._runs):
            raise InvalidTransition(
                "This test run was already used by the cycle; run the tests again"
            )
        if since is not None and result.started_at < since:
            raise InvalidTransition(
                "This test run started before the last recorded phase; run the tests again"
            )

    def _record(self, result: GateResult, test_id: str, phase: CycleState) -> CycleRun:
        run = CycleRun.from_result(result, test_id, phase)
        self._runs.append(run)
        if self.max_runs and len(self._runs) > self.max_runs:
            del self._runs[: len(self._runs) - self.max_runs]
        return run

    def _last_failing(self, test_id: str) -> tuple[str, ...]:
        runs = self.history(test_id)
        return runs[-1].failed if runs else ()
