"""Click CLI entry point for gatekeep."""

from __future__ import annotations

from pathlib import Path

import click

from gatekeep._version import __version__
from gatekeep.cli.common import CliState
from gatekeep.core.output import configure_logging


@click.group()
@click.version_option(version=__version__, prog_name="gatekeep")
@click.option(
    "--project", "-p",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    help="Project root (default: current dir)",
)
@click.option("--session", "-s", "session_id", default=None, help="Session id (default: $GATEKEEP_SESSION or 'default')")
@click.option("--timeout", type=float, default=None, help="Override the tool timeout in seconds")
@click.option("--verbose", "-v", is_flag=True, help="Log gate invocations and transitions")
@click.pass_context
def cli(ctx: click.Context, project: Path, session_id: str | None, timeout: float | None, verbose: bool):
    """gatekeep - state-gated remediation and TDD cycles.

    Fix lint findings one risk tier at a time with a regression gate after
    every batch, and drive tests through Red-Green-Refactor.
    """
    configure_logging(verbose)
    ctx.obj = CliState(project_path=project.resolve(), session_id=session_id, timeout=timeout)


# Import and register subcommands
from gatekeep.cli.plan_cmd import abandon, advance, analyze, plan, retry  # noqa: E402
from gatekeep.cli.cycle_cmd import cycle  # noqa: E402
from gatekeep.cli.status_cmd import sessions, status  # noqa: E402

cli.add_command(analyze)
cli.add_command(plan)
cli.add_command(advance)
cli.add_command(retry)
cli.add_command(abandon)
cli.add_command(cycle)
cli.add_command(status)
cli.add_command(sessions)


if __name__ == "__main__":
    cli()
