"""Shared plumbing for gatekeep commands: session loading and exit codes."""

from __future__ import annotations

import sys
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from gatekeep.core.config import STATE_DIR, ensure_gitignore, get_state_dir
from gatekeep.core.errors import GateError, GatekeepError
from gatekeep.core.output import console, print_error
from gatekeep.session.session import Session

EXIT_REFUSED = 1
EXIT_GATE = 2


@dataclass
class CliState:
    project_path: Path
    session_id: str | None = None
    timeout: float | None = None


def _first_run(project_path: Path) -> None:
    if (project_path / STATE_DIR).exists():
        return
    get_state_dir(project_path)
    ensure_gitignore(project_path)
    console.print(f"  [dim]Created {STATE_DIR}/ and added it to .gitignore.[/dim]")


@contextmanager
def open_session(state: CliState, save: bool = True) -> Iterator[Session]:
    """Yield the current session, save it afterwards and map failures to exit codes.

    Verification failures and refused transitions exit 1, gate failures
    exit 2.  The session is saved even when an operation fails, keeping
    a blocked category or a refactor violation for the next command.
    """
    _first_run(state.project_path)
    try:
        session = Session.open(state.project_path, state.session_id)
    except (GatekeepError, ValueError) as exc:
        print_error(exc)
        sys.exit(EXIT_REFUSED)

    try:
        yield session
    except GatekeepError as exc:
        if save:
            session.save()
        print_error(exc)
        sys.exit(EXIT_GATE if isinstance(exc, GateError) else EXIT_REFUSED)
    else:
        if save:
            session.save()
