"""Tests for gatekeep.toml loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from gatekeep.core.config import (
    SESSION_ENV,
    GatekeepConfig,
    ensure_gitignore,
    get_state_dir,
    load_config,
    resolve_session_id,
)
from gatekeep.core.errors import ConfigError


class TestLoadConfig:
    def test_defaults_when_no_config_file(self, tmp_path: Path):
        """Without a gatekeep.toml, load_config should return defaults."""
        config = load_config(tmp_path)

        assert isinstance(config, GatekeepConfig)
        assert config.analysis.command[0] == "ruff"
        assert config.analysis.format == "json"
        assert config.tests.command[0] == "pytest"
        assert config.tests.format == "pytest"
        assert config.categorize.default_tier == 3
        assert "unused-*" in config.categorize.tiers[1]
        assert config.session.default_id == "default"
        assert config.session.encrypt is False

    def test_loads_tool_sections(self, tmp_path: Path):
        toml_content = """\
[analysis]
command = "flake8 --format=default"
format = "text"
timeout = 60

[tests]
command = ["python", "-m", "pytest", "--junitxml={report}"]
format = "junit"
category_args = ["-k", "{category}"]
"""
        (tmp_path / "gatekeep.toml").write_text(toml_content)
        config = load_config(tmp_path)

        assert config.analysis.command == ["flake8", "--format=default"]
        assert config.analysis.format == "text"
        assert config.analysis.timeout == 60
        assert config.tests.command == ["python", "-m", "pytest", "--junitxml={report}"]
        assert config.tests.format == "junit"
        assert config.tests.category_args == ["-k", "{category}"]

    def test_bad_command_raises(self, tmp_path: Path):
        (tmp_path / "gatekeep.toml").write_text("[analysis]\ncommand = 5\n")
        with pytest.raises(ConfigError):
            load_config(tmp_path)

    def test_extra_tier_rules_come_first(self, tmp_path: Path):
        toml_content = """\
[tiers]
1 = ["shadowed-import"]
3 = ["todo-left"]
default = 2
"""
        (tmp_path / "gatekeep.toml").write_text(toml_content)
        config = load_config(tmp_path)

        assert config.categorize.tiers[1][0] == "shadowed-import"
        assert "unused-*" in config.categorize.tiers[1]
        assert config.categorize.tiers[3][0] == "todo-left"
        assert config.categorize.default_tier == 2

    def test_replace_drops_builtin_tiers(self, tmp_path: Path):
        toml_content = """\
[tiers]
replace = true
2 = ["E501"]
"""
        (tmp_path / "gatekeep.toml").write_text(toml_content)
        config = load_config(tmp_path)

        assert config.categorize.tiers == {1: [], 2: ["E501"], 3: []}

    def test_invalid_tier_number(self, tmp_path: Path):
        (tmp_path / "gatekeep.toml").write_text('[tiers]\n4 = ["x"]\n')
        with pytest.raises(ConfigError):
            load_config(tmp_path)

    def test_invalid_default_tier(self, tmp_path: Path):
        (tmp_path / "gatekeep.toml").write_text('[tiers]\ndefault = "high"\n')
        with pytest.raises(ConfigError):
            load_config(tmp_path)

    def test_broken_toml(self, tmp_path: Path):
        (tmp_path / "gatekeep.toml").write_text("[tiers\n")
        with pytest.raises(ConfigError):
            load_config(tmp_path)

    def test_classes_and_session(self, tmp_path: Path):
        toml_content = """\
[classes]
dead-code = ["F401", "unused-*"]

[session]
default = "cleanup"
encrypt = true
max_runs = 50
"""
        (tmp_path / "gatekeep.toml").write_text(toml_content)
        config = load_config(tmp_path)

        assert config.categorize.classes == {"dead-code": ["F401", "unused-*"]}
        assert config.session.default_id == "cleanup"
        assert config.session.encrypt is True
        assert config.session.max_runs == 50


class TestSessionId:
    def test_explicit_wins(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv(SESSION_ENV, "from-env")
        assert resolve_session_id("explicit", GatekeepConfig()) == "explicit"

    def test_env_before_config(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv(SESSION_ENV, "from-env")
        assert resolve_session_id(None, GatekeepConfig()) == "from-env"

    def test_config_default(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv(SESSION_ENV, raising=False)
        assert resolve_session_id(None, GatekeepConfig()) == "default"


class TestStateDir:
    def test_creates_state_dir(self, tmp_path: Path):
        state_dir = get_state_dir(tmp_path)
        assert state_dir == tmp_path / ".gatekeep"
        assert state_dir.is_dir()

    def test_gitignore_created(self, tmp_path: Path):
        ensure_gitignore(tmp_path)
        assert (tmp_path / ".gitignore").read_text() == ".gatekeep/\n"

    def test_gitignore_appended_once(self, tmp_path: Path):
        (tmp_path / ".gitignore").write_text("__pycache__/")
        ensure_gitignore(tmp_path)
        ensure_gitignore(tmp_path)
        assert (tmp_path / ".gitignore").read_text() == "__pycache__/\n.gatekeep/\n"
