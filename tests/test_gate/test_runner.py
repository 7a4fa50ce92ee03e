"""Tests for external command execution."""

from __future__ import annotations

import sys
import threading
import time
from pathlib import Path

import pytest

from gatekeep.core.errors import GateTimeout, ToolUnavailable
from gatekeep.gate.runner import DIAGNOSTIC_LINES, run_command


def _python(code: str, *args: str) -> list[str]:
    return [sys.executable, "-c", code, *args]


class TestRunCommand:
    def test_captures_output(self, tmp_path: Path):
        output = run_command(_python("print('hello')"), cwd=tmp_path)

        assert output.returncode == 0
        assert output.stdout.strip() == "hello"
        assert output.text == output.stdout
        assert output.report is None

    def test_non_zero_exit_is_returned(self):
        output = run_command(_python("import sys; sys.stderr.write('bad'); sys.exit(3)"))

        assert output.returncode == 3
        assert output.diagnostics() == "bad"

    def test_runs_in_cwd(self, tmp_path: Path):
        (tmp_path / "marker.txt").write_text("here")
        output = run_command(_python("print(open('marker.txt').read())"), cwd=tmp_path)

        assert output.stdout.strip() == "here"

    def test_missing_executable(self):
        with pytest.raises(ToolUnavailable) as exc_info:
            run_command(["gatekeep-no-such-linter-xyz", "--check"])
        assert exc_info.value.tool == "gatekeep-no-such-linter-xyz"

    def test_missing_relative_executable(self, tmp_path: Path):
        with pytest.raises(ToolUnavailable):
            run_command(["./bin/lint"], cwd=tmp_path)

    def test_empty_command(self):
        with pytest.raises(ToolUnavailable):
            run_command([])

    def test_timeout_kills_process(self):
        started = time.monotonic()
        with pytest.raises(GateTimeout) as exc_info:
            run_command(_python("import time; time.sleep(30)"), timeout=0.5)

        assert time.monotonic() - started < 10
        assert exc_info.value.timeout == 0.5
        assert not exc_info.value.cancelled

    def test_cancel_before_start(self):
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(GateTimeout) as exc_info:
            run_command(_python("print('never')"), cancel=cancel)
        assert exc_info.value.cancelled

    def test_cancel_while_running(self):
        cancel = threading.Event()
        timer = threading.Timer(0.3, cancel.set)
        timer.start()
        try:
            with pytest.raises(GateTimeout) as exc_info:
                run_command(_python("import time; time.sleep(30)"), cancel=cancel)
        finally:
            timer.cancel()
        assert exc_info.value.cancelled

    def test_report_placeholder(self):
        code = "import sys; open(sys.argv[1], 'w').write('[]')"
        output = run_command(_python(code, "{report}"))

        assert output.report == "[]"
        assert output.text == "[]"
        report_path = Path(output.argv[-1])
        assert report_path.name.startswith("gatekeep-")
        assert not report_path.exists()

    def test_diagnostics_keep_the_tail(self):
        code = "import sys\nfor i in range(50): print(i, file=sys.stderr)"
        output = run_command(_python(code))
        lines = output.diagnostics().splitlines()

        assert len(lines) == DIAGNOSTIC_LINES
        assert lines[-1] == "49"

    def test_extra_env(self):
        output = run_command(
            _python("import os; print(os.environ['GATEKEEP_PROBE'])"),
            env={"GATEKEEP_PROBE": "yes"},
        )
        assert output.stdout.strip() == "yes"
