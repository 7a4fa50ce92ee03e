"""Shared data models used across gatekeep modules."""

from __future__ import annotations

import enum
import hashlib
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


class Severity(enum.Enum):
    ERROR = "error"
    WARNING = "warning"


class GateKind(enum.Enum):
    ANALYSIS = "analysis"
    TESTS = "tests"


class GateStatus(enum.Enum):
    CLEAN = "clean"
    REGRESSED = "regressed"
    UNCHANGED = "unchanged"
    FAILED_TO_RUN = "failed-to-run"


class CategoryStatus(enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    BLOCKED = "blocked"
    ABANDONED = "abandoned"


class CycleState(enum.Enum):
    RED = "red"
    GREEN = "green"
    REFACTOR = "refactor"
    CLOSED = "closed"


class ScopeKind(enum.Enum):
    ALL = "all"
    FILES = "files"
    TEST = "test"
    CATEGORY = "category"


def _parse_ts(value: Any) -> datetime:
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    if isinstance(value, datetime):
        return value
    return datetime.now()


@dataclass(frozen=True)
class Scope:
    """What a single gate invocation targets.

    Two scopes with the same ``key`` are "the same scope" for delta
    computation, regardless of the order their targets were given in.
    """

    kind: ScopeKind = ScopeKind.ALL
    targets: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "targets", tuple(sorted(set(self.targets))))
        if self.kind is ScopeKind.ALL and self.targets:
            raise ValueError("an 'all' scope takes no targets")
        if self.kind is not ScopeKind.ALL and not self.targets:
            raise ValueError(f"a '{self.kind.value}' scope needs at least one target")

    @classmethod
    def all(cls) -> Scope:
        return cls()

    @classmethod
    def files(cls, *paths: str) -> Scope:
        return cls(ScopeKind.FILES, tuple(str(p) for p in paths))

    @classmethod
    def test(cls, test_id: str) -> Scope:
        return cls(ScopeKind.TEST, (test_id,))

    @classmethod
    def category(cls, name: str) -> Scope:
        return cls(ScopeKind.CATEGORY, (name,))

    @property
    def covers_all(self) -> bool:
        return self.kind is ScopeKind.ALL

    @property
    def key(self) -> str:
        if self.covers_all:
            return "all"
        return f"{self.kind.value}:{','.join(self.targets)}"

    def __str__(self) -> str:
        return self.key

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "targets": list(self.targets)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Scope:
        return cls(ScopeKind(data.get("kind", "all")), tuple(data.get("targets", ())))


def derive_finding_id(
    rule_ids: tuple[str, ...], file: str, line: int, message: str
) -> str:
    """Stable identifier for a finding the tool did not name itself."""
    raw = "\x1f".join(["|".join(rule_ids), file, str(line), message])
    return hashlib.sha1(raw.encode("utf-8")).hexdigest()[:12]


@dataclass(frozen=True)
class Finding:
    """One static-analysis result, immutable once reported."""

    file: str = ""
    line: int = 0
    message: str = ""
    rule_ids: tuple[str, ...] = ()
    severity: Severity = Severity.WARNING
    end_line: int | None = None
    tool: str = ""
    finding_id: str = ""

    def __post_init__(self) -> None:
        rules = tuple(dict.fromkeys(r for r in self.rule_ids if r))
        object.__setattr__(self, "rule_ids", rules)
        if not self.finding_id:
            object.__setattr__(
                self,
                "finding_id",
                derive_finding_id(rules, self.file, self.line, self.message),
            )

    @property
    def rule_id(self) -> str:
        return self.rule_ids[0] if self.rule_ids else ""

    @property
    def location(self) -> str:
        if not self.file:
            return ""
        if self.end_line and self.end_line != self.line:
            return f"{self.file}:{self.line}-{self.end_line}"
        return f"{self.file}:{self.line}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "finding_id": self.finding_id,
            "file": self.file,
            "line": self.line,
            "end_line": self.end_line,
            "rule_ids": list(self.rule_ids),
            "severity": self.severity.value,
            "message": self.message,
            "tool": self.tool,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Finding:
        return cls(
            file=data.get("file", ""),
            line=data.get("line", 0),
            message=data.get("message", ""),
            rule_ids=tuple(data.get("rule_ids", ())),
            severity=Severity(data.get("severity", "warning")),
            end_line=data.get("end_line"),
            tool=data.get("tool", ""),
            finding_id=data.get("finding_id", ""),
        )


@dataclass(frozen=True)
class GateResult:
    """Uniform outcome of exactly one Verification Gate invocation."""

    kind: GateKind
    scope: Scope
    status: GateStatus
    findings: tuple[Finding, ...] = ()
    passed: tuple[str, ...] = ()
    failed: tuple[str, ...] = ()
    newly_failing: tuple[str, ...] = ()
    delta: int | None = None
    detail: str = ""
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    started_at: datetime = field(default_factory=datetime.now)
    duration: float = 0.0

    def __post_init__(self) -> None:
        for name in ("findings", "passed", "failed", "newly_failing"):
            object.__setattr__(self, name, tuple(getattr(self, name)))

    @property
    def ran(self) -> bool:
        return self.status is not GateStatus.FAILED_TO_RUN

    @property
    def is_clean(self) -> bool:
        return self.status is GateStatus.CLEAN

    def outcome_of(self, test_id: str) -> bool | None:
        """True if the test passed, False if it failed, None if not reported."""
        if test_id in self.failed:
            return False
        if test_id in self.passed:
            return True
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "kind": self.kind.value,
            "scope": self.scope.to_dict(),
            "status": self.status.value,
            "findings": [f.to_dict() for f in self.findings],
            "passed": list(self.passed),
            "failed": list(self.failed),
            "newly_failing": list(self.newly_failing),
            "delta": self.delta,
            "detail": self.detail,
            "started_at": self.started_at.isoformat(),
            "duration": self.duration,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GateResult:
        return cls(
            kind=GateKind(data["kind"]),
            scope=Scope.from_dict(data.get("scope", {})),
            status=GateStatus(data["status"]),
            findings=tuple(Finding.from_dict(f) for f in data.get("findings", [])),
            passed=tuple(data.get("passed", ())),
            failed=tuple(data.get("failed", ())),
            newly_failing=tuple(data.get("newly_failing", ())),
            delta=data.get("delta"),
            detail=data.get("detail", ""),
            run_id=data.get("run_id") or uuid.uuid4().hex,
            started_at=_parse_ts(data.get("started_at")),
            duration=data.get("duration", 0.0),
        )


@dataclass(frozen=True)
class CycleRun:
    """One test run consumed by the TDD cycle, tagged with the phase it served."""

    test_id: str
    phase: CycleState
    scope: Scope
    passed: tuple[str, ...] = ()
    failed: tuple[str, ...] = ()
    gate_run_id: str = ""
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = field(default_factory=datetime.now)

    @classmethod
    def from_result(cls, result: GateResult, test_id: str, phase: CycleState) -> CycleRun:
        return cls(
            test_id=test_id,
            phase=phase,
            scope=result.scope,
            passed=tuple(result.passed),
            failed=tuple(result.failed),
            gate_run_id=result.run_id,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "test_id": self.test_id,
            "phase": self.phase.value,
            "scope": self.scope.to_dict(),
            "passed": list(self.passed),
            "failed": list(self.failed),
            "gate_run_id": self.gate_run_id,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CycleRun:
        return cls(
            test_id=data["test_id"],
            phase=CycleState(data["phase"]),
            scope=Scope.from_dict(data.get("scope", {})),
            passed=tuple(data.get("passed", ())),
            failed=tuple(data.get("failed", ())),
            gate_run_id=data.get("gate_run_id", ""),
            run_id=data.get("run_id") or uuid.uuid4().hex,
            timestamp=_parse_ts(data.get("timestamp")),
        )


@dataclass
class TestCase:
    """One behavior under development, owned by a TDD cycle."""

    __test__ = False  # not a pytest class

    test_id: str
    description: str = ""
    state: CycleState = CycleState.RED
    red_run: CycleRun | None = None
    refactor_passes: int = 0
    violation: str = ""
    opened_at: datetime = field(default_factory=datetime.now)
    closed_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "test_id": self.test_id,
            "description": self.description,
            "state": self.state.value,
            "red_run": self.red_run.to_dict() if self.red_run else None,
            "refactor_passes": self.refactor_passes,
            "violation": self.violation,
            "opened_at": self.opened_at.isoformat(),
            "closed_at": self.closed_at.isoformat() if self.closed_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TestCase:
        red = data.get("red_run")
        closed = data.get("closed_at")
        return cls(
            test_id=data["test_id"],
            description=data.get("description", ""),
            state=CycleState(data.get("state", "red")),
            red_run=CycleRun.from_dict(red) if red else None,
            refactor_passes=data.get("refactor_passes", 0),
            violation=data.get("violation", ""),
            opened_at=_parse_ts(data.get("opened_at")),
            closed_at=_parse_ts(closed) if closed else None,
        )


@dataclass(frozen=True)
class Category:
    """A risk-tiered group of findings processed together."""

    name: str
    risk_tier: int
    finding_ids: tuple[str, ...] = ()
    rule_ids: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "risk_tier": self.risk_tier,
            "finding_ids": list(self.finding_ids),
            "rule_ids": list(self.rule_ids),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Category:
        return cls(
            name=data["name"],
            risk_tier=data["risk_tier"],
            finding_ids=tuple(data.get("finding_ids", ())),
            rule_ids=tuple(data.get("rule_ids", ())),
        )


@dataclass
class PlannedCategory:
    """A category's position in a remediation plan."""

    category: Category
    status: CategoryStatus = CategoryStatus.PENDING
    reason: str = ""
    baseline: GateResult | None = None
    attempts: int = 0

    @property
    def name(self) -> str:
        return self.category.name

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.to_dict(),
            "status": self.status.value,
            "reason": self.reason,
            "baseline": self.baseline.to_dict() if self.baseline else None,
            "attempts": self.attempts,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PlannedCategory:
        baseline = data.get("baseline")
        return cls(
            category=Category.from_dict(data["category"]),
            status=CategoryStatus(data.get("status", "pending")),
            reason=data.get("reason", ""),
            baseline=GateResult.from_dict(baseline) if baseline else None,
            attempts=data.get("attempts", 0),
        )


@dataclass
class RemediationPlan:
    """Ordered categories plus per-category status, owned by one sequencer."""

    scope: Scope
    steps: list[PlannedCategory] = field(default_factory=list)
    findings: dict[str, Finding] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.now)

    def step(self, name: str) -> PlannedCategory | None:
        return next((s for s in self.steps if s.name == name), None)

    def with_status(self, status: CategoryStatus) -> list[PlannedCategory]:
        return [s for s in self.steps if s.status is status]

    @property
    def active(self) -> PlannedCategory | None:
        return next(iter(self.with_status(CategoryStatus.IN_PROGRESS)), None)

    @property
    def blocked(self) -> PlannedCategory | None:
        return next(iter(self.with_status(CategoryStatus.BLOCKED)), None)

    @property
    def is_finished(self) -> bool:
        return all(
            s.status in (CategoryStatus.DONE, CategoryStatus.ABANDONED)
            for s in self.steps
        )

    def findings_of(self, step: PlannedCategory) -> list[Finding]:
        return [self.findings[f] for f in step.category.finding_ids if f in self.findings]

    def to_dict(self) -> dict[str, Any]:
        return {
            "scope": self.scope.to_dict(),
            "steps": [s.to_dict() for s in self.steps],
            "findings": [f.to_dict() for f in self.findings.values()],
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RemediationPlan:
        findings = [Finding.from_dict(f) for f in data.get("findings", [])]
        return cls(
            scope=Scope.from_dict(data.get("scope", {})),
            steps=[PlannedCategory.from_dict(s) for s in data.get("steps", [])],
            findings={f.finding_id: f for f in findings},
            created_at=_parse_ts(data.get("created_at")),
        )


# ---------------------------------------------------------------------------
# Read-only inspection views
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CategoryView:
    name: str
    risk_tier: int
    status: CategoryStatus
    finding_ids: tuple[str, ...]
    reason: str = ""


@dataclass(frozen=True)
class PlanSnapshot:
    categories: tuple[CategoryView, ...] = ()
    scope: Scope = field(default_factory=Scope.all)
    finished: bool = False

    @property
    def halted(self) -> CategoryView | None:
        return next(
            (c for c in self.categories if c.status is CategoryStatus.BLOCKED), None
        )


@dataclass(frozen=True)
class TestCaseView:
    __test__ = False

    test_id: str
    state: CycleState
    description: str = ""
    violation: str = ""
    red_confirmed: bool = False


@dataclass(frozen=True)
class CycleSnapshot:
    test_cases: tuple[TestCaseView, ...] = ()

    @property
    def active(self) -> TestCaseView | None:
        return next(
            (
                t
                for t in self.test_cases
                if t.state in (CycleState.RED, CycleState.GREEN)
            ),
            None,
        )
