"""Rich terminal formatting for gatekeep output."""

from __future__ import annotations

import logging
from datetime import datetime

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel

from gatekeep.core.errors import (
    GateError,
    ProtocolViolation,
    VerificationFailure,
)
from gatekeep.core.models import (
    CategoryStatus,
    CycleSnapshot,
    CycleState,
    Finding,
    GateResult,
    GateStatus,
    PlanSnapshot,
    Severity,
)

console = Console()
error_console = Console(stderr=True)


STATUS_STYLES = {
    CategoryStatus.PENDING: "dim",
    CategoryStatus.IN_PROGRESS: "cyan",
    CategoryStatus.DONE: "green",
    CategoryStatus.BLOCKED: "red",
    CategoryStatus.ABANDONED: "yellow",
}

STATE_STYLES = {
    CycleState.RED: "red",
    CycleState.GREEN: "green",
    CycleState.REFACTOR: "cyan",
    CycleState.CLOSED: "dim",
}

GATE_STYLES = {
    GateStatus.CLEAN: "green",
    GateStatus.UNCHANGED: "yellow",
    GateStatus.REGRESSED: "red",
    GateStatus.FAILED_TO_RUN: "red",
}

SEVERITY_ICONS = {
    Severity.ERROR: "[red]●[/red]",
    Severity.WARNING: "[yellow]●[/yellow]",
}


def configure_logging(verbose: bool) -> None:
    """Route gatekeep's loggers to stderr through rich."""
    handler = RichHandler(console=error_console, show_path=False, show_time=False)
    root = logging.getLogger("gatekeep")
    root.handlers[:] = [handler]
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)


def format_finding(finding: Finding) -> str:
    icon = SEVERITY_ICONS.get(finding.severity, "●")
    rule = finding.rule_id or "-"
    location = f"  [dim]{finding.location}[/dim]" if finding.location else ""
    return f"    {icon} {rule}  {finding.message}{location}"


def print_plan(snapshot: PlanSnapshot, findings: dict[str, Finding] | None = None) -> None:
    """Print the remediation plan, one line per category."""
    if not snapshot.categories:
        console.print("\n  No remediation plan. Run `gatekeep analyze` first.\n")
        return

    lines = [""]
    for view in snapshot.categories:
        style = STATUS_STYLES.get(view.status, "")
        lines.append(
            f"  [{style}]{view.status.value:<12}[/{style}] tier {view.risk_tier}  "
            f"[bold]{view.name}[/bold]  ({len(view.finding_ids)} findings)"
        )
        if view.reason:
            lines.append(f"               [dim]{view.reason}[/dim]")
        if findings and view.status is CategoryStatus.IN_PROGRESS:
            for fid in view.finding_ids:
                if fid in findings:
                    lines.append(format_finding(findings[fid]))
    lines.append("")

    halted = snapshot.halted
    if halted is not None:
        lines.append(f"  [red]Halted on {halted.name}.[/red] Run `gatekeep retry` or `gatekeep abandon {halted.name}`.")
    elif snapshot.finished:
        lines.append("  [green]Plan finished.[/green]")
    else:
        lines.append("  Next: [bold]gatekeep advance[/bold]")

    console.print(Panel(
        "\n".join(lines),
        title=f"[bold]Remediation Plan[/bold]  {snapshot.scope}",
        border_style="red" if halted else "green" if snapshot.finished else "cyan",
        padding=(0, 1),
    ))


def print_cycle(snapshot: CycleSnapshot) -> None:
    """Print every test case and its TDD state."""
    if not snapshot.test_cases:
        console.print("\n  No test cases yet. Start one with `gatekeep cycle begin <TEST_ID>`.\n")
        return

    lines = [""]
    for view in snapshot.test_cases:
        style = STATE_STYLES.get(view.state, "")
        red = " [dim](red confirmed)[/dim]" if view.red_confirmed and view.state is CycleState.RED else ""
        lines.append(f"  [{style}]{view.state.value.upper():<9}[/{style}] {view.test_id}{red}")
        if view.description:
            lines.append(f"            [dim]{view.description}[/dim]")
        if view.violation:
            lines.append(f"            [red]{view.violation}[/red]")
    lines.append("")

    console.print(Panel(
        "\n".join(lines),
        title="[bold]TDD Cycle[/bold]",
        border_style="cyan",
        padding=(0, 1),
    ))


def print_gate_result(result: GateResult) -> None:
    style = GATE_STYLES.get(result.status, "")
    summary = f"  {result.kind.value:<8} {result.scope}  [{style}]{result.status.value}[/{style}]"
    if result.findings or result.delta is not None:
        summary += f"  {len(result.findings)} findings"
        if result.delta is not None:
            summary += f" ({result.delta:+d})"
    if result.passed or result.failed:
        summary += f"  {len(result.passed)} passed, {len(result.failed)} failed"
    summary += f"  [dim]{result.duration:.1f}s[/dim]"
    console.print(summary)
    for test_id in result.newly_failing:
        console.print(f"    [red]✗ {test_id}[/red] [dim](passed before)[/dim]")
    if result.detail:
        console.print(f"    [dim]{result.detail}[/dim]")


def print_error(exc: Exception) -> None:
    """Explain why an operation stopped."""
    if isinstance(exc, GateError):
        label = "[yellow]Gate unavailable[/yellow]"
    elif isinstance(exc, VerificationFailure):
        label = "[red]Verification failed[/red]"
    elif isinstance(exc, ProtocolViolation):
        label = "[red]Refused[/red]"
    else:
        label = "[red]Error[/red]"
    error_console.print(f"\n  {label}: {exc}")
    if isinstance(exc, VerificationFailure):
        for test_id in exc.failing:
            error_console.print(f"    [red]✗ {test_id}[/red]")
    error_console.print()


def print_sessions(sessions: list[tuple[str, datetime]], current: str) -> None:
    if not sessions:
        console.print("\n  No saved sessions.\n")
        return
    console.print("\n  [bold]Sessions[/bold]\n")
    for session_id, updated in sessions:
        marker = "*" if session_id == current else " "
        console.print(f"  {marker} {session_id:<24} [dim]{updated:%Y-%m-%d %H:%M}[/dim]")
    console.print()
