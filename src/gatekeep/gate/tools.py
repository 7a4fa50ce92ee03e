"""Analysis and test tool adapters consumed by the Verification Gate."""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Iterable, Mapping, Union

from gatekeep.core.errors import GateTimeout, ToolFailure
from gatekeep.core.models import Finding, Scope, ScopeKind
from gatekeep.gate.parsers import (
    ReportFormatError,
    TestOutcome,
    parse_findings,
    parse_test_report,
)
from gatekeep.gate.runner import run_command

CATEGORY_PLACEHOLDER = "{category}"


def scope_arguments(scope: Scope, category_args: Iterable[str] = ()) -> list[str]:
    """Command-line arguments that narrow a tool run to *scope*."""
    if scope.kind is ScopeKind.ALL:
        return []
    if scope.kind is ScopeKind.CATEGORY:
        template = list(category_args)
        if not template:
            raise ValueError("this tool has no category_args to select a test category")
        args: list[str] = []
        for name in scope.targets:
            args.extend(a.replace(CATEGORY_PLACEHOLDER, name) for a in template)
        return args
    return list(scope.targets)


def _check_deadline(
    name: str,
    started: float,
    timeout: float | None,
    cancel: threading.Event | None,
) -> None:
    if cancel is not None and cancel.is_set():
        raise GateTimeout(f"{name} cancelled", timeout=timeout, cancelled=True)
    if timeout and time.monotonic() - started > timeout:
        raise GateTimeout(f"{name} exceeded {timeout:g}s", timeout=timeout)


class AnalysisTool(ABC):
    """Something that reports findings for a file scope."""

    name: str = ""
    timeout: float | None = None

    @abstractmethod
    def analyze(
        self,
        scope: Scope,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> list[Finding]:
        """Return every finding for *scope*.

        Raise ToolUnavailable if the tool cannot start, GateTimeout past the
        deadline or on cancel, ToolFailure if it ran without a usable report.
        """
        ...


class TestTool(ABC):
    """Something that runs tests for a scope and reports pass/fail per id."""

    __test__ = False

    name: str = ""
    timeout: float | None = None

    @abstractmethod
    def run_tests(
        self,
        scope: Scope,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> TestOutcome:
        ...


class CommandAnalysisTool(AnalysisTool):
    """Runs a linter/compiler command and parses its report."""

    def __init__(
        self,
        command: list[str],
        fmt: str = "json",
        cwd: Path | None = None,
        timeout: float | None = None,
        name: str | None = None,
    ) -> None:
        self.command = list(command)
        self.format = fmt
        self.cwd = cwd
        self.timeout = timeout
        self.name = name or (Path(command[0]).name if command else "analysis")

    def analyze(self, scope, timeout=None, cancel=None):
        output = run_command(
            self.command + scope_arguments(scope),
            cwd=self.cwd,
            timeout=timeout,
            cancel=cancel,
        )
        try:
            findings = parse_findings(output.text, self.format, tool=self.name)
        except ReportFormatError as exc:
            raise ToolFailure(
                f"{self.name}: {exc}", output.returncode, output.diagnostics()
            ) from exc
        # Linters exit non-zero when they report findings; non-zero with
        # nothing reported means the tool itself broke.
        if output.returncode != 0 and not findings:
            raise ToolFailure(
                f"{self.name} exited {output.returncode} without reporting findings",
                output.returncode,
                output.diagnostics(),
            )
        return findings


class CommandTestTool(TestTool):
    """Runs a test command and parses its report."""

    def __init__(
        self,
        command: list[str],
        fmt: str = "pytest",
        cwd: Path | None = None,
        timeout: float | None = None,
        category_args: Iterable[str] = ("-m", CATEGORY_PLACEHOLDER),
        ok_returncodes: Iterable[int] = (0, 1),
        name: str | None = None,
    ) -> None:
        self.command = list(command)
        self.format = fmt
        self.cwd = cwd
        self.timeout = timeout
        self.category_args = list(category_args)
        self.ok_returncodes = set(ok_returncodes)
        self.name = name or (Path(command[0]).name if command else "tests")

    def run_tests(self, scope, timeout=None, cancel=None):
        output = run_command(
            self.command + scope_arguments(scope, self.category_args),
            cwd=self.cwd,
            timeout=timeout,
            cancel=cancel,
        )
        if output.returncode not in self.ok_returncodes:
            raise ToolFailure(
                f"{self.name} exited {output.returncode}",
                output.returncode,
                output.diagnostics(),
            )
        try:
            outcome = parse_test_report(output.text, self.format)
        except ReportFormatError as exc:
            raise ToolFailure(
                f"{self.name}: {exc}", output.returncode, output.diagnostics()
            ) from exc
        if outcome.empty:
            raise ToolFailure(
                f"{self.name} reported no test results",
                output.returncode,
                output.diagnostics(),
            )
        return outcome


class CallableAnalysisTool(AnalysisTool):
    """Wraps an in-process ``func(scope) -> findings``.

    The callable cannot be interrupted; a result that arrives after the
    deadline or after *cancel* was set is discarded as a timeout.
    """

    def __init__(
        self, func: Callable[[Scope], Iterable[Finding]], name: str = "callable"
    ) -> None:
        self.func = func
        self.name = name

    def analyze(self, scope, timeout=None, cancel=None):
        started = time.monotonic()
        _check_deadline(self.name, started, timeout, cancel)
        findings = list(self.func(scope))
        _check_deadline(self.name, started, timeout, cancel)
        return findings


TestResults = Union[TestOutcome, Mapping[str, bool]]


class CallableTestTool(TestTool):
    """Wraps an in-process ``func(scope)`` returning a TestOutcome or {id: passed}."""

    def __init__(self, func: Callable[[Scope], TestResults], name: str = "callable") -> None:
        self.func = func
        self.name = name

    def run_tests(self, scope, timeout=None, cancel=None):
        started = time.monotonic()
        _check_deadline(self.name, started, timeout, cancel)
        result = self.func(scope)
        _check_deadline(self.name, started, timeout, cancel)
        if isinstance(result, TestOutcome):
            return result
        return TestOutcome.from_mapping(dict(result))
