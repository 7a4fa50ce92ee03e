"""Tests for report parsing: lint findings and test outcomes."""

from __future__ import annotations

import json

import pytest

from gatekeep.core.models import Severity
from gatekeep.gate.parsers import (
    ReportFormatError,
    TestOutcome,
    parse_findings,
    parse_json_findings,
    parse_json_tests,
    parse_junit,
    parse_pytest_summary,
    parse_test_report,
    parse_text_findings,
)

RUFF_REPORT = json.dumps([
    {
        "code": "F401",
        "filename": "src/app.py",
        "location": {"row": 3, "column": 8},
        "end_location": {"row": 3, "column": 10},
        "message": "`os` imported but unused",
    },
    {
        "code": "T201",
        "filename": "src/app.py",
        "location": {"row": 12, "column": 5},
        "end_location": {"row": 14, "column": 6},
        "message": "`print` found",
    },
])

PYLINT_REPORT = json.dumps([
    {
        "type": "error",
        "path": "pkg/io.py",
        "line": 5,
        "symbol": "bare-except",
        "message-id": "W0702",
        "message": "No exception type(s) specified",
    },
])


class TestJsonFindings:
    def test_ruff_report(self):
        findings = parse_json_findings(RUFF_REPORT, tool="ruff")

        assert len(findings) == 2
        first, second = findings
        assert first.file == "src/app.py"
        assert first.line == 3
        assert first.rule_ids == ("F401",)
        assert first.severity is Severity.WARNING
        assert first.tool == "ruff"
        assert first.location == "src/app.py:3"
        assert second.location == "src/app.py:12-14"

    def test_pylint_report_keeps_both_rule_names(self):
        (finding,) = parse_json_findings(PYLINT_REPORT)

        assert finding.rule_ids == ("bare-except", "W0702")
        assert finding.severity is Severity.ERROR
        assert finding.file == "pkg/io.py"

    def test_generic_shape_with_explicit_id(self):
        text = json.dumps({"findings": [
            {"id": "f-1", "ruleId": "debug-output", "file": "a.py", "line": "7",
             "severity": "warning", "message": "print call"},
        ]})
        (finding,) = parse_json_findings(text)

        assert finding.finding_id == "f-1"
        assert finding.rule_id == "debug-output"
        assert finding.line == 7

    def test_empty_output_means_no_findings(self):
        assert parse_json_findings("") == []
        assert parse_json_findings("[]") == []

    def test_invalid_json(self):
        with pytest.raises(ReportFormatError):
            parse_json_findings("not json")

    def test_wrong_shape(self):
        with pytest.raises(ReportFormatError):
            parse_json_findings('{"count": 3}')


class TestTextFindings:
    def test_flake8_lines(self):
        text = (
            "src/app.py:3:1: F401 'os' imported but unused\n"
            "src/app.py:40:80: E501 line too long (88 > 79 characters)\n"
        )
        findings = parse_text_findings(text, tool="flake8")

        assert [f.rule_id for f in findings] == ["F401", "E501"]
        assert findings[0].message == "'os' imported but unused"
        assert findings[1].line == 40

    def test_mypy_lines_skip_notes(self):
        text = (
            "pkg/mod.py:12: error: Incompatible return value type  [return-value]\n"
            "pkg/mod.py:12: note: See https://mypy.rtfd.io\n"
            "Found 1 error in 1 file (checked 3 source files)\n"
        )
        (finding,) = parse_text_findings(text)

        assert finding.rule_ids == ("return-value",)
        assert finding.severity is Severity.ERROR
        assert finding.message == "Incompatible return value type"

    def test_unknown_format(self):
        with pytest.raises(ReportFormatError):
            parse_findings("", "sarif")

    def test_dispatch(self):
        assert len(parse_findings(RUFF_REPORT, "json")) == 2


class TestTestReports:
    def test_pytest_summary(self):
        text = """\
..F.x
=========================== short test summary info ============================
PASSED tests/test_a.py::test_one
FAILED tests/test_a.py::test_two - AssertionError: assert 1 == 2
ERROR tests/test_b.py::test_three - RuntimeError: fixture broke
XFAIL tests/test_b.py::test_four - known bug
========================= 1 failed, 1 passed, 1 xfailed, 1 error in 0.12s ======
"""
        outcome = parse_pytest_summary(text)

        assert outcome.passed == ["tests/test_a.py::test_one", "tests/test_b.py::test_four"]
        assert outcome.failed == ["tests/test_a.py::test_two", "tests/test_b.py::test_three"]

    def test_teardown_error_counts_as_failure(self):
        text = "PASSED t.py::test_x\nERROR t.py::test_x - teardown failed\n"
        outcome = parse_pytest_summary(text)

        assert outcome.passed == []
        assert outcome.failed == ["t.py::test_x"]

    def test_junit(self):
        xml = """\
<testsuites>
  <testsuite name="pytest">
    <testcase classname="tests.test_a" name="test_one"/>
    <testcase classname="tests.test_a" name="test_two"><failure message="boom"/></testcase>
    <testcase classname="tests.test_b" name="test_three"><skipped/></testcase>
  </testsuite>
</testsuites>
"""
        outcome = parse_junit(xml)

        assert outcome.passed == ["tests.test_a::test_one"]
        assert outcome.failed == ["tests.test_a::test_two"]

    def test_junit_invalid(self):
        with pytest.raises(ReportFormatError):
            parse_junit("<testsuite")

    def test_json_lists(self):
        outcome = parse_json_tests('{"passed": ["t::a"], "failed": ["t::b"]}')
        assert outcome.passed == ["t::a"]
        assert outcome.failed == ["t::b"]

    def test_pytest_json_report(self):
        text = json.dumps({"tests": [
            {"nodeid": "t::a", "outcome": "passed"},
            {"nodeid": "t::b", "outcome": "failed"},
            {"nodeid": "t::c", "outcome": "skipped"},
        ]})
        outcome = parse_test_report(text, "json")

        assert outcome.passed == ["t::a"]
        assert outcome.failed == ["t::b"]

    def test_unknown_test_format(self):
        with pytest.raises(ReportFormatError):
            parse_test_report("", "tap")

    def test_outcome_from_mapping(self):
        outcome = TestOutcome.from_mapping({"t::a": True, "t::b": False})
        assert outcome.passed == ["t::a"]
        assert outcome.failed == ["t::b"]
        assert not outcome.empty
        assert TestOutcome().empty
