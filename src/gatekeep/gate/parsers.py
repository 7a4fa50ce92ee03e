"""Normalize linter and test-runner output into findings and test outcomes."""

from __future__ import annotations

import json
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Any, Callable

from gatekeep.core.models import Finding, Severity


class ReportFormatError(ValueError):
    """Tool output does not match the configured report format."""


@dataclass
class TestOutcome:
    """Test ids a run reported as passing and failing."""

    __test__ = False

    passed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        failed = list(dict.fromkeys(self.failed))
        # A test reported twice (e.g. passed, then errored in teardown) failed.
        self.passed = [t for t in dict.fromkeys(self.passed) if t not in failed]
        self.failed = failed

    @property
    def empty(self) -> bool:
        return not self.passed and not self.failed

    @classmethod
    def from_mapping(cls, outcomes: dict[str, bool]) -> TestOutcome:
        return cls(
            passed=[t for t, ok in outcomes.items() if ok],
            failed=[t for t, ok in outcomes.items() if not ok],
        )


# ---------------------------------------------------------------------------
# Analysis reports
# ---------------------------------------------------------------------------

_RULE_KEYS = ("ruleId", "rule_id", "rule", "code", "symbol", "message-id", "check_id")
_FILE_KEYS = ("file", "filename", "path")
_ERROR_WORDS = {"error", "fatal", "critical", "high"}


def _severity(value: Any) -> Severity:
    if isinstance(value, str) and value.strip().lower() in _ERROR_WORDS:
        return Severity.ERROR
    return Severity.WARNING


def _int_or_none(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return None


def _finding_from_json(item: dict[str, Any], tool: str) -> Finding:
    rules: list[str] = []
    for key in ("ruleIds", "rule_ids", "rules"):
        value = item.get(key)
        if isinstance(value, list):
            rules.extend(str(v) for v in value if v)
    for key in _RULE_KEYS:
        value = item.get(key)
        if isinstance(value, str) and value:
            rules.append(value)

    file = next((str(item[k]) for k in _FILE_KEYS if item.get(k)), "")

    location = item.get("location") if isinstance(item.get("location"), dict) else {}
    end_location = (
        item.get("end_location") if isinstance(item.get("end_location"), dict) else {}
    )
    line = _int_or_none(item.get("line"))
    if line is None:
        line = _int_or_none(location.get("row", location.get("line"))) or 0
    end_line = _int_or_none(item.get("endLine", item.get("end_line")))
    if end_line is None:
        end_line = _int_or_none(end_location.get("row", end_location.get("line")))

    return Finding(
        file=file,
        line=line,
        end_line=end_line,
        message=str(item.get("message", "")),
        rule_ids=tuple(rules),
        severity=_severity(item.get("severity", item.get("type"))),
        tool=tool,
        finding_id=str(item.get("id") or ""),
    )


def parse_json_findings(text: str, tool: str = "") -> list[Finding]:
    """Parse a JSON list of finding objects.

    Understands ruff (``code``/``filename``/``location.row``), pylint
    (``symbol``/``message-id``/``path``/``type``) and the plain
    ``{ruleId, file, line, severity, message}`` shape.  A top-level object
    with a ``findings`` or ``results`` list is accepted too.
    """
    if not text.strip():
        return []
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ReportFormatError(f"invalid JSON report: {exc}") from exc

    if isinstance(data, dict):
        data = data.get("findings", data.get("results"))
    if not isinstance(data, list):
        raise ReportFormatError("JSON report must be a list of findings")

    return [_finding_from_json(item, tool) for item in data if isinstance(item, dict)]


_TEXT_LINE = re.compile(r"^(?P<file>[^:\s][^:]*):(?P<line>\d+)(?::(?P<col>\d+))?:\s*(?P<rest>.+)$")
_LEVEL_PREFIX = re.compile(r"^(?P<level>error|warning|note):\s*(?P<msg>.*)$", re.IGNORECASE)
_TRAILING_CODE = re.compile(r"\s*\[(?P<code>[\w.-]+)\]\s*$")
_LEADING_CODE = re.compile(r"^(?P<code>[A-Z]{1,4}\d{2,4})\b:?\s*(?P<msg>.*)$")


def parse_text_findings(text: str, tool: str = "") -> list[Finding]:
    """Parse ``path:line[:col]: CODE message`` and mypy-style lines."""
    findings: list[Finding] = []
    for raw in text.splitlines():
        match = _TEXT_LINE.match(raw.strip())
        if not match:
            continue
        rest = match.group("rest").strip()
        severity = Severity.WARNING
        rules: tuple[str, ...] = ()

        level = _LEVEL_PREFIX.match(rest)
        if level:
            if level.group("level").lower() == "note":
                continue
            severity = _severity(level.group("level"))
            rest = level.group("msg")
            trailing = _TRAILING_CODE.search(rest)
            if trailing:
                rules = (trailing.group("code"),)
                rest = rest[: trailing.start()]
        else:
            leading = _LEADING_CODE.match(rest)
            if leading:
                rules = (leading.group("code"),)
                rest = leading.group("msg")

        findings.append(
            Finding(
                file=match.group("file"),
                line=int(match.group("line")),
                message=rest.strip(),
                rule_ids=rules,
                severity=severity,
                tool=tool,
            )
        )
    return findings


ANALYSIS_FORMATS: dict[str, Callable[[str, str], list[Finding]]] = {
    "json": parse_json_findings,
    "text": parse_text_findings,
}


def parse_findings(text: str, fmt: str, tool: str = "") -> list[Finding]:
    try:
        parser = ANALYSIS_FORMATS[fmt]
    except KeyError:
        raise ReportFormatError(f"unknown analysis format '{fmt}'") from None
    return parser(text, tool)


# ---------------------------------------------------------------------------
# Test reports
# ---------------------------------------------------------------------------

_PYTEST_SUMMARY = re.compile(r"^(?P<outcome>PASSED|FAILED|ERROR|XPASS|XFAIL)\s+(?P<nodeid>\S+)")
_PASSING_OUTCOMES = {"PASSED", "XPASS", "XFAIL", "passed", "xpassed", "xfailed"}
_FAILING_OUTCOMES = {"FAILED", "ERROR", "failed", "error"}


def parse_pytest_summary(text: str) -> TestOutcome:
    """Parse the ``-rA`` short test summary of a pytest run."""
    passed: list[str] = []
    failed: list[str] = []
    for raw in text.splitlines():
        match = _PYTEST_SUMMARY.match(raw.strip())
        if not match:
            continue
        if match.group("outcome") in _FAILING_OUTCOMES:
            failed.append(match.group("nodeid"))
        else:
            passed.append(match.group("nodeid"))
    return TestOutcome(passed=passed, failed=failed)


def parse_junit(text: str) -> TestOutcome:
    """Parse a JUnit XML report; ids are ``classname::name``."""
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise ReportFormatError(f"invalid JUnit XML: {exc}") from exc

    passed: list[str] = []
    failed: list[str] = []
    for case in root.iter("testcase"):
        name = case.get("name", "")
        classname = case.get("classname", "")
        test_id = f"{classname}::{name}" if classname else name
        if case.find("skipped") is not None:
            continue
        if case.find("failure") is not None or case.find("error") is not None:
            failed.append(test_id)
        else:
            passed.append(test_id)
    return TestOutcome(passed=passed, failed=failed)


def parse_json_tests(text: str) -> TestOutcome:
    """Parse ``{"passed": [...], "failed": [...]}`` or a pytest-json-report."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ReportFormatError(f"invalid JSON report: {exc}") from exc
    if not isinstance(data, dict):
        raise ReportFormatError("JSON test report must be an object")

    if isinstance(data.get("tests"), list):
        passed: list[str] = []
        failed: list[str] = []
        for test in data["tests"]:
            outcome = test.get("outcome", "")
            if outcome in _FAILING_OUTCOMES:
                failed.append(test["nodeid"])
            elif outcome in _PASSING_OUTCOMES:
                passed.append(test["nodeid"])
        return TestOutcome(passed=passed, failed=failed)

    return TestOutcome(
        passed=[str(t) for t in data.get("passed", [])],
        failed=[str(t) for t in data.get("failed", [])],
    )


TEST_FORMATS: dict[str, Callable[[str], TestOutcome]] = {
    "pytest": parse_pytest_summary,
    "junit": parse_junit,
    "json": parse_json_tests,
}


def parse_test_report(text: str, fmt: str) -> TestOutcome:
    try:
        parser = TEST_FORMATS[fmt]
    except KeyError:
        raise ReportFormatError(f"unknown test report format '{fmt}'") from None
    return parser(text)
