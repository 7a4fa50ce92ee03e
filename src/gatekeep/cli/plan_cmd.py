"""gatekeep analyze / plan / advance / retry / abandon commands."""

from __future__ import annotations

import click

from gatekeep.cli.common import CliState, open_session
from gatekeep.core.models import GateKind, Scope
from gatekeep.core.output import console, format_finding, print_gate_result, print_plan


@click.command()
@click.argument("paths", nargs=-1)
@click.option("--force", is_flag=True, help="Replace a plan that still has work in progress")
@click.pass_obj
def analyze(state: CliState, paths: tuple[str, ...], force: bool):
    """Run the analysis tool and build a fresh remediation plan.

    PATHS narrow the analysis to a file set; default is the whole project.
    """
    scope = Scope.files(*paths) if paths else Scope.all()
    with open_session(state) as session:
        sequencer = session.sequencer
        plan = sequencer.analyze(scope, timeout=state.timeout, force=force)
        latest = session.gate.last_result(GateKind.ANALYSIS, scope)
        if latest is not None:
            print_gate_result(latest)
        print_plan(sequencer.snapshot(), plan.findings)


@click.command()
@click.option("--findings", "show_findings", is_flag=True, help="List findings of every category")
@click.pass_obj
def plan(state: CliState, show_findings: bool):
    """Show the current remediation plan."""
    with open_session(state, save=False) as session:
        snapshot = session.sequencer.snapshot()
        current = session.sequencer.plan
        print_plan(snapshot, current.findings if current else None)
        if show_findings and current is not None:
            for step in current.steps:
                console.print(f"\n  [bold]{step.name}[/bold]")
                for finding in current.findings_of(step):
                    console.print(format_finding(finding))
            console.print()


@click.command()
@click.pass_obj
def advance(state: CliState):
    """Verify the category in progress, or start the next one."""
    with open_session(state) as session:
        sequencer = session.sequencer
        outcome = sequencer.advance_plan(timeout=state.timeout)

        if outcome.analysis is not None:
            print_gate_result(outcome.analysis)
        if outcome.tests is not None:
            print_gate_result(outcome.tests)

        if outcome.remaining:
            console.print(f"\n  [yellow]{len(outcome.remaining)} finding(s) still open:[/yellow]")
            for finding in outcome.remaining:
                console.print(format_finding(finding))
        if outcome.introduced:
            console.print(f"\n  [yellow]{len(outcome.introduced)} new finding(s) appeared outside the plan.[/yellow]")
        if outcome.completed is not None:
            console.print(f"\n  [green]Done:[/green] {outcome.completed.name}")
        if outcome.started is not None:
            console.print(f"\n  [cyan]Now fixing:[/cyan] {outcome.started.name}")

        print_plan(sequencer.snapshot(), sequencer.plan.findings if sequencer.plan else None)


@click.command()
@click.pass_obj
def retry(state: CliState):
    """Put the blocked category back in progress."""
    with open_session(state) as session:
        step = session.sequencer.retry_blocked_category()
        console.print(f"\n  Retrying [bold]{step.name}[/bold] (attempt {step.attempts}).")
        console.print("  Apply a corrected fix, then run `gatekeep advance`.\n")


@click.command()
@click.argument("category")
@click.pass_obj
def abandon(state: CliState, category: str):
    """Give up on CATEGORY; the plan moves on without it."""
    with open_session(state) as session:
        step = session.sequencer.abandon_category(category)
        console.print(f"\n  Abandoned [bold]{step.name}[/bold] ({step.reason}).\n")
