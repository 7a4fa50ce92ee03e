"""gatekeep cycle -- drive one test through Red-Green-Refactor."""

from __future__ import annotations

import click

from gatekeep.cli.common import CliState, open_session
from gatekeep.core.models import CycleRun
from gatekeep.core.output import console, print_cycle


def _print_run(run: CycleRun) -> None:
    console.print(
        f"  {run.phase.value.upper()} run for {run.test_id}: "
        f"{len(run.passed)} passed, {len(run.failed)} failed"
    )


@click.group()
def cycle():
    """Red-Green-Refactor for one test at a time."""


@cycle.command()
@click.argument("test_id")
@click.option("--description", "-d", default="", help="What the test is about")
@click.pass_obj
def begin(state: CliState, test_id: str, description: str):
    """Register TEST_ID and put it in RED."""
    with open_session(state) as session:
        session.cycle.begin_red_phase(test_id, description)
        console.print(f"\n  [red]RED[/red] {test_id}")
        console.print("  Write the failing test, then run `gatekeep cycle red`.\n")


@cycle.command()
@click.argument("test_id")
@click.pass_obj
def red(state: CliState, test_id: str):
    """Run TEST_ID and confirm that it fails."""
    with open_session(state) as session:
        run = session.cycle.confirm_red(test_id, timeout=state.timeout)
        _print_run(run)
        console.print("  [red]Failure observed.[/red] Implement, then run `gatekeep cycle green`.\n")


@cycle.command()
@click.argument("test_id")
@click.pass_obj
def green(state: CliState, test_id: str):
    """Run the full suite and accept TEST_ID as passing."""
    with open_session(state) as session:
        run = session.cycle.confirm_green(test_id, timeout=state.timeout)
        _print_run(run)
        console.print("  [green]GREEN.[/green] Refactor, then run `gatekeep cycle refactor`.\n")


@cycle.command()
@click.argument("test_id")
@click.pass_obj
def refactor(state: CliState, test_id: str):
    """Verify a refactoring step against the full suite."""
    with open_session(state) as session:
        run = session.cycle.enter_refactor(test_id, timeout=state.timeout)
        _print_run(run)
        passes = session.cycle.get(test_id).refactor_passes
        console.print(f"  [cyan]Suite clean[/cyan] after {passes} refactor step(s).\n")


@cycle.command()
@click.argument("test_id")
@click.pass_obj
def close(state: CliState, test_id: str):
    """Close TEST_ID's cycle."""
    with open_session(state) as session:
        session.cycle.close_cycle(test_id)
        console.print(f"\n  Closed {test_id}.\n")


@cycle.command("status")
@click.pass_obj
def cycle_status(state: CliState):
    """Show every test case and its state."""
    with open_session(state, save=False) as session:
        print_cycle(session.cycle.snapshot())
