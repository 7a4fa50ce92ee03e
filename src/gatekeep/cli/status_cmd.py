"""gatekeep status / sessions commands."""

from __future__ import annotations

import click

from gatekeep.cli.common import CliState, open_session
from gatekeep.core.config import load_config, resolve_session_id
from gatekeep.core.output import print_cycle, print_plan, print_sessions
from gatekeep.session.store import SessionStore


@click.command()
@click.pass_obj
def status(state: CliState):
    """Show the remediation plan and the TDD cycle of the current session."""
    with open_session(state, save=False) as session:
        current = session.sequencer.plan
        print_plan(session.sequencer.snapshot(), current.findings if current else None)
        print_cycle(session.cycle.snapshot())


@click.command()
@click.option("--delete", "to_delete", default=None, help="Delete the named session")
@click.pass_obj
def sessions(state: CliState, to_delete: str | None):
    """List saved sessions."""
    config = load_config(state.project_path)
    store = SessionStore(state.project_path, encrypt=config.session.encrypt)
    if to_delete is not None:
        if not store.delete(to_delete):
            raise click.ClickException(f"No session named '{to_delete}'")
        click.echo(f"Deleted session {to_delete}")
    print_sessions(store.list_sessions(), resolve_session_id(state.session_id, config))
