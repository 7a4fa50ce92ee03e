"""Single-owner guard for the orchestrating state machines."""

from __future__ import annotations

import threading

from gatekeep.core.errors import ConcurrentAccess


class SingleOwner:
    """Bind an object's mutations to one worker thread.

    A plan or a cycle has exactly one active unit of work, so instead of
    locking we refuse mutations from any thread other than the owner.
    Ownership moves only through an explicit :meth:`adopt`.
    """

    _owner_ident: int | None = None
    _owner_name: str = ""

    def _bind_owner(self) -> None:
        current = threading.current_thread()
        self._owner_ident = current.ident
        self._owner_name = current.name

    def adopt(self) -> None:
        """Hand ownership to the calling thread."""
        self._bind_owner()

    def _check_owner(self, operation: str) -> None:
        if self._owner_ident is None:
            self._bind_owner()
            return
        if threading.get_ident() != self._owner_ident:
            raise ConcurrentAccess(
                f"{operation}: this session is owned by worker '{self._owner_name}'"
            )
