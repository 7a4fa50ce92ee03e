"""End-to-end tests for the gatekeep CLI against scripted tools."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest
from click.testing import CliRunner

from gatekeep.cli.main import cli

LINT_SCRIPT = """\
import pathlib
print(pathlib.Path("findings.json").read_text())
"""

SUITE_SCRIPT = """\
import pathlib
print(pathlib.Path("results.json").read_text())
"""


def _write_findings(project: Path, *rules_and_files: tuple[str, str]) -> None:
    findings = [
        {"ruleId": rule, "file": file, "line": 1, "message": f"{rule} in {file}"}
        for rule, file in rules_and_files
    ]
    (project / "findings.json").write_text(json.dumps(findings))


def _write_results(project: Path, **outcomes: bool) -> None:
    passed = [f"t::{name}" for name, ok in outcomes.items() if ok]
    failed = [f"t::{name}" for name, ok in outcomes.items() if not ok]
    (project / "results.json").write_text(json.dumps({"passed": passed, "failed": failed}))


@pytest.fixture
def project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """A project whose lint and test commands replay JSON files."""
    monkeypatch.delenv("GATEKEEP_SESSION", raising=False)
    python = json.dumps(sys.executable)
    (tmp_path / "lint.py").write_text(LINT_SCRIPT)
    (tmp_path / "suite.py").write_text(SUITE_SCRIPT)
    (tmp_path / "gatekeep.toml").write_text(
        f"[analysis]\ncommand = [{python}, \"lint.py\"]\nformat = \"json\"\n\n"
        f"[tests]\ncommand = [{python}, \"suite.py\"]\nformat = \"json\"\n"
    )
    _write_findings(tmp_path, ("unused-import", "a.py"), ("debug-output", "b.py"))
    _write_results(tmp_path, a=True, b=True)
    return tmp_path


def _run(project: Path, *args: str):
    return CliRunner().invoke(cli, ["--project", str(project), *args])


class TestRemediationCommands:
    def test_analyze_builds_plan(self, project: Path):
        result = _run(project, "analyze")

        assert result.exit_code == 0, result.output
        assert "unused-import" in result.output
        assert "debug-output" in result.output
        assert (project / ".gatekeep").is_dir()
        assert ".gatekeep/" in (project / ".gitignore").read_text()

    def test_plan_before_analyze(self, project: Path):
        result = _run(project, "plan")
        assert result.exit_code == 0
        assert "No remediation plan" in result.output

    def test_advance_through_plan(self, project: Path):
        _run(project, "analyze")
        result = _run(project, "advance")
        assert result.exit_code == 0, result.output
        assert "Now fixing" in result.output

        _write_findings(project, ("debug-output", "b.py"))
        result = _run(project, "advance")
        assert result.exit_code == 0, result.output
        assert "Done" in result.output

        _write_findings(project)
        result = _run(project, "advance")
        assert result.exit_code == 0, result.output
        assert "Plan finished" in result.output

    def test_regression_blocks_and_is_saved(self, project: Path):
        _run(project, "analyze")
        _run(project, "advance")
        _write_findings(project, ("debug-output", "b.py"))
        _write_results(project, a=False, b=True)

        result = _run(project, "advance")
        assert result.exit_code == 1

        result = _run(project, "plan")
        assert "blocked" in result.output

        assert _run(project, "advance").exit_code == 1
        _write_results(project, a=True, b=True)
        assert _run(project, "retry").exit_code == 0
        assert _run(project, "advance").exit_code == 0

    def test_abandon(self, project: Path):
        _run(project, "analyze")
        result = _run(project, "abandon", "debug-output")
        assert result.exit_code == 0, result.output
        assert "abandoned" in _run(project, "plan").output

    def test_missing_tool_exits_2(self, project: Path):
        (project / "gatekeep.toml").write_text(
            '[analysis]\ncommand = ["gatekeep-no-such-linter-xyz"]\n'
        )
        result = _run(project, "analyze")
        assert result.exit_code == 2

    def test_sessions_are_separate(self, project: Path):
        _run(project, "--session", "cleanup", "analyze")

        assert "No remediation plan" in _run(project, "plan").output
        assert "unused-import" in _run(project, "--session", "cleanup", "plan").output

        result = _run(project, "sessions")
        assert "cleanup" in result.output


class TestCycleCommands:
    def test_full_cycle(self, project: Path):
        assert _run(project, "cycle", "begin", "t::new", "-d", "new behavior").exit_code == 0

        _write_results(project, a=True, b=True, new=False)
        result = _run(project, "cycle", "red", "t::new")
        assert result.exit_code == 0, result.output

        _write_results(project, a=True, b=True, new=True)
        for step in ("green", "refactor", "close"):
            result = _run(project, "cycle", step, "t::new")
            assert result.exit_code == 0, result.output

        result = _run(project, "cycle", "status")
        assert "CLOSED" in result.output

    def test_green_before_red_is_refused(self, project: Path):
        _run(project, "cycle", "begin", "t::new")
        _write_results(project, a=True, b=True, new=True)

        result = _run(project, "cycle", "green", "t::new")
        assert result.exit_code == 1

    def test_status_shows_both(self, project: Path):
        _run(project, "analyze")
        _run(project, "cycle", "begin", "t::new")
        result = _run(project, "status")

        assert result.exit_code == 0
        assert "Remediation Plan" in result.output
        assert "t::new" in result.output
