"""Configuration management for gatekeep (gatekeep.toml parsing + defaults)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from gatekeep.core.errors import ConfigError

try:
    import tomllib
except ImportError:
    try:
        import tomli as tomllib  # type: ignore[no-redef]
    except ImportError:
        tomllib = None  # type: ignore[assignment]


CONFIG_FILE = "gatekeep.toml"
STATE_DIR = ".gatekeep"
SESSION_ENV = "GATEKEEP_SESSION"

# Tier 1: structural / dead code.  Tier 2: style and debug output.
# Tier 3: incomplete logic.  Entries may be fnmatch patterns.
DEFAULT_TIERS: dict[int, list[str]] = {
    1: [
        "unused-*",
        "dead-code",
        "unreachable-code",
        "redefined-while-unused",
        "F401",
        "F811",
        "F841",
        "W0611",
        "W0612",
        "W0613",
    ],
    2: [
        "debug-output",
        "debug-statement",
        "print-statement",
        "trailing-whitespace",
        "line-too-long",
        "T201",
        "T203",
        "T100",
        "E501",
        "W291",
        "C0301",
    ],
    3: [
        "missing-error-handling",
        "unresolved-control-flow",
        "bare-except",
        "broad-except",
        "inconsistent-return-statements",
        "E722",
        "BLE001",
        "W0702",
        "W0718",
        "R1710",
    ],
}


@dataclass
class AnalysisConfig:
    command: list[str] = field(
        default_factory=lambda: ["ruff", "check", "--output-format=json"]
    )
    format: str = "json"
    timeout: float = 300.0


@dataclass
class TestsConfig:
    __test__ = False

    command: list[str] = field(
        default_factory=lambda: ["pytest", "-q", "-rA", "-p", "no:cacheprovider"]
    )
    format: str = "pytest"
    timeout: float = 900.0
    category_args: list[str] = field(default_factory=lambda: ["-m", "{category}"])
    ok_returncodes: list[int] = field(default_factory=lambda: [0, 1])


@dataclass
class TierConfig:
    tiers: dict[int, list[str]] = field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_TIERS.items()}
    )
    default_tier: int = 3
    classes: dict[str, list[str]] = field(default_factory=dict)


@dataclass
class SessionConfig:
    default_id: str = "default"
    encrypt: bool = False
    max_runs: int = 200


@dataclass
class GatekeepConfig:
    """Complete gatekeep configuration."""

    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    tests: TestsConfig = field(default_factory=TestsConfig)
    categorize: TierConfig = field(default_factory=TierConfig)
    session: SessionConfig = field(default_factory=SessionConfig)


def _tier_number(key: str, value: object) -> int:
    try:
        tier = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise ConfigError(f"[tiers] {key}: '{value}' is not a tier number") from None
    if tier not in (1, 2, 3):
        raise ConfigError(f"[tiers] {key}: tier must be 1, 2 or 3, got {tier}")
    return tier


def _command(section: str, value: object) -> list[str]:
    if isinstance(value, str):
        return value.split()
    if isinstance(value, list) and value and all(isinstance(v, str) for v in value):
        return list(value)
    raise ConfigError(f"[{section}] command must be a string or a list of strings")


def load_config(project_path: Path | None = None) -> GatekeepConfig:
    """Load configuration from gatekeep.toml if present, otherwise return defaults."""
    config = GatekeepConfig()

    if project_path is None:
        project_path = Path.cwd()

    config_file = project_path / CONFIG_FILE
    if not config_file.exists():
        return config

    if tomllib is None:
        return config

    with open(config_file, "rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"{config_file}: {exc}") from exc

    if "analysis" in data:
        a = data["analysis"]
        if "command" in a:
            config.analysis.command = _command("analysis", a["command"])
        for attr in ("format", "timeout"):
            if attr in a:
                setattr(config.analysis, attr, a[attr])

    if "tests" in data:
        t = data["tests"]
        if "command" in t:
            config.tests.command = _command("tests", t["command"])
        for attr in ("format", "timeout", "category_args", "ok_returncodes"):
            if attr in t:
                setattr(config.tests, attr, t[attr])

    if "tiers" in data:
        tiers = data["tiers"]
        if tiers.get("replace", False):
            config.categorize.tiers = {1: [], 2: [], 3: []}
        for key, value in tiers.items():
            if key == "replace":
                continue
            if key == "default":
                config.categorize.default_tier = _tier_number(key, value)
                continue
            tier = _tier_number(key, key)
            # Extra rules are checked before the built-in table.
            config.categorize.tiers[tier] = list(value) + config.categorize.tiers[tier]

    if "classes" in data:
        config.categorize.classes = {
            name: list(rules) for name, rules in data["classes"].items()
        }

    if "session" in data:
        s = data["session"]
        if "default" in s:
            config.session.default_id = s["default"]
        for attr in ("encrypt", "max_runs"):
            if attr in s:
                setattr(config.session, attr, s[attr])

    return config


def resolve_session_id(explicit: str | None, config: GatekeepConfig) -> str:
    """Pick the session id: explicit flag, then $GATEKEEP_SESSION, then config."""
    if explicit:
        return explicit
    return os.environ.get(SESSION_ENV, "").strip() or config.session.default_id


def get_state_dir(project_path: Path | None = None) -> Path:
    """Get or create the .gatekeep directory."""
    if project_path is None:
        project_path = Path.cwd()
    state_dir = project_path / STATE_DIR
    state_dir.mkdir(exist_ok=True)
    return state_dir


def ensure_gitignore(project_path: Path | None = None) -> None:
    """Add .gatekeep/ to .gitignore if not already present."""
    if project_path is None:
        project_path = Path.cwd()
    gitignore = project_path / ".gitignore"
    entry = f"{STATE_DIR}/"

    if gitignore.exists():
        content = gitignore.read_text()
        if entry in content:
            return
        if not content.endswith("\n"):
            content += "\n"
        content += f"{entry}\n"
        gitignore.write_text(content)
    else:
        gitignore.write_text(f"{entry}\n")
