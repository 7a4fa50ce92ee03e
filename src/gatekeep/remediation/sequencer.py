"""Remediation Sequencer -- fix one category at a time, gate every step."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any

from gatekeep.core.errors import InvalidTransition, RegressionDetected
from gatekeep.core.guard import SingleOwner
from gatekeep.core.models import (
    CategoryStatus,
    CategoryView,
    Finding,
    GateKind,
    GateResult,
    GateStatus,
    PlannedCategory,
    PlanSnapshot,
    RemediationPlan,
    Scope,
)
from gatekeep.gate.verification import VerificationGate, require_verdict
from gatekeep.remediation.categorizer import TierTable, categorize

logger = logging.getLogger(__name__)


@dataclass
class AdvanceResult:
    """What one :meth:`RemediationSequencer.advance_plan` call did."""

    completed: PlannedCategory | None = None
    started: PlannedCategory | None = None
    remaining: list[Finding] = field(default_factory=list)
    introduced: list[Finding] = field(default_factory=list)
    analysis: GateResult | None = None
    tests: GateResult | None = None
    finished: bool = False


class RemediationSequencer(SingleOwner):
    """Drives a :class:`RemediationPlan` through the Verification Gate.

    Category lifecycle::

        pending -> in_progress -> done
                   in_progress -> blocked -> in_progress   (retry)
        pending | in_progress | blocked -> abandoned

    At most one category is ``in_progress``.  A blocked category halts the
    whole plan until the caller retries or abandons it.
    """

    def __init__(
        self,
        gate: VerificationGate,
        table: TierTable | None = None,
        plan: RemediationPlan | None = None,
    ) -> None:
        self.gate = gate
        self.table = table or TierTable()
        self._plan = plan
        self._bind_owner()

    @property
    def plan(self) -> RemediationPlan | None:
        return self._plan

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def build_plan(self, result: GateResult, force: bool = False) -> RemediationPlan:
        """Categorize an analysis result into a fresh plan."""
        self._check_owner("build_plan")
        if result.kind is not GateKind.ANALYSIS:
            raise ValueError("a plan is built from an analysis result")
        require_verdict(result)
        self._check_replaceable(force)

        categories = categorize(result.findings, self.table)
        self._plan = RemediationPlan(
            scope=result.scope,
            steps=[PlannedCategory(category=c) for c in categories],
            findings={f.finding_id: f for f in result.findings},
        )
        logger.info(
            "Plan built for %s: %d findings in %d categories",
            result.scope, len(self._plan.findings), len(categories),
        )
        return self._plan

    def analyze(
        self,
        scope: Scope | None = None,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
        force: bool = False,
    ) -> RemediationPlan:
        """Run the analysis gate and build a plan from its findings."""
        self._check_owner("analyze")
        self._check_replaceable(force)
        result = self.gate.run_analysis(scope, timeout=timeout, cancel=cancel)
        return self.build_plan(result, force=force)

    # ------------------------------------------------------------------
    # Control operations
    # ------------------------------------------------------------------

    def advance_plan(
        self,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> AdvanceResult:
        """Verify the category in progress, or start the next one.

        With a category in progress, re-runs analysis for the plan's scope
        and the full test suite.  Regressed tests block the category and
        raise :class:`RegressionDetected`; findings still present leave it
        in progress; otherwise it is marked done and the next pending
        category is started.  Gate errors propagate with no status change.
        """
        self._check_owner("advance_plan")
        plan = self._require_plan()

        blocked = plan.blocked
        if blocked is not None:
            raise InvalidTransition(
                f"Plan is blocked on '{blocked.name}' ({blocked.reason}); "
                "retry or abandon it first"
            )

        active = plan.active
        if active is None:
            return self._start_next(AdvanceResult(), timeout, cancel)
        return self._verify(active, timeout, cancel)

    def retry_blocked_category(self) -> PlannedCategory:
        """Put the blocked category back in progress for another fix attempt."""
        self._check_owner("retry_blocked_category")
        step = self._require_plan().blocked
        if step is None:
            raise InvalidTransition("No blocked category to retry")
        step.status = CategoryStatus.IN_PROGRESS
        step.attempts += 1
        step.reason = ""
        logger.info("Retrying '%s' (attempt %d)", step.name, step.attempts)
        return step

    def abandon_category(self, name: str) -> PlannedCategory:
        self._check_owner("abandon_category")
        step = self._require_plan().step(name)
        if step is None:
            raise InvalidTransition(f"No category named '{name}' in the plan")
        if step.status in (CategoryStatus.DONE, CategoryStatus.ABANDONED):
            raise InvalidTransition(f"Category '{name}' is already {step.status.value}")
        previous = step.status
        step.status = CategoryStatus.ABANDONED
        step.reason = f"abandoned while {previous.value}"
        logger.info("Abandoned '%s' (was %s)", name, previous.value)
        return step

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def snapshot(self) -> PlanSnapshot:
        plan = self._plan
        if plan is None:
            return PlanSnapshot(finished=True)
        return PlanSnapshot(
            categories=tuple(
                CategoryView(
                    name=s.name,
                    risk_tier=s.category.risk_tier,
                    status=s.status,
                    finding_ids=s.category.finding_ids,
                    reason=s.reason,
                )
                for s in plan.steps
            ),
            scope=plan.scope,
            finished=plan.is_finished,
        )

    def to_dict(self) -> dict[str, Any] | None:
        return self._plan.to_dict() if self._plan is not None else None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_plan(self) -> RemediationPlan:
        if self._plan is None:
            raise InvalidTransition("No remediation plan; run an analysis first")
        return self._plan

    def _check_replaceable(self, force: bool) -> None:
        plan = self._plan
        if plan is None or force:
            return
        busy = plan.active or plan.blocked
        if busy is not None:
            raise InvalidTransition(
                f"Category '{busy.name}' is {busy.status.value}; "
                "finish it or rebuild with force"
            )

    def _start_next(
        self,
        outcome: AdvanceResult,
        timeout: float | None,
        cancel: threading.Event | None,
        baseline: GateResult | None = None,
    ) -> AdvanceResult:
        plan = self._require_plan()
        step = next(iter(plan.with_status(CategoryStatus.PENDING)), None)
        if step is None:
            outcome.finished = True
            logger.info("Plan finished")
            return outcome

        # Regressions are measured against the suite as it stood before
        # this category's fixes.  The previous category's verification run
        # already captured that state.
        if baseline is None:
            baseline = require_verdict(
                self.gate.run_tests(Scope.all(), timeout=timeout, cancel=cancel)
            )
        step.baseline = baseline
        step.status = CategoryStatus.IN_PROGRESS
        step.attempts += 1
        step.reason = ""
        outcome.started = step
        logger.info(
            "Started '%s' (tier %d, %d findings)",
            step.name, step.category.risk_tier, len(step.category.finding_ids),
        )
        return outcome

    def _verify(
        self,
        step: PlannedCategory,
        timeout: float | None,
        cancel: threading.Event | None,
    ) -> AdvanceResult:
        plan = self._require_plan()
        analysis = require_verdict(
            self.gate.run_analysis(plan.scope, timeout=timeout, cancel=cancel)
        )
        tests = require_verdict(
            self.gate.run_tests(
                Scope.all(), timeout=timeout, cancel=cancel, baseline=step.baseline
            )
        )

        if tests.status is GateStatus.REGRESSED:
            step.status = CategoryStatus.BLOCKED
            step.reason = "tests regressed: " + ", ".join(tests.newly_failing)
            logger.warning("Blocked '%s': %s", step.name, step.reason)
            raise RegressionDetected(
                f"Fixes for '{step.name}' broke previously passing tests",
                result=tests,
                failing=tests.newly_failing,
            )

        outcome = AdvanceResult(analysis=analysis, tests=tests)
        outcome.introduced = [
            f for f in analysis.findings if f.finding_id not in plan.findings
        ]
        outcome.remaining = [
            f for f in analysis.findings if self.table.category_name(f) == step.name
        ]
        if outcome.remaining:
            step.reason = f"{len(outcome.remaining)} finding(s) still reported"
            logger.info("'%s' not clean yet: %s", step.name, step.reason)
            return outcome

        step.status = CategoryStatus.DONE
        step.reason = ""
        outcome.completed = step
        logger.info("Completed '%s'", step.name)
        return self._start_next(outcome, timeout, cancel, baseline=tests)
