"""Session -- one gate, one remediation plan and one TDD cycle under an id."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from gatekeep.core.config import GatekeepConfig, load_config, resolve_session_id
from gatekeep.core.models import RemediationPlan
from gatekeep.gate.verification import VerificationGate
from gatekeep.remediation.categorizer import TierTable
from gatekeep.remediation.sequencer import RemediationSequencer
from gatekeep.session.store import SessionStore
from gatekeep.tdd.cycle import TDDCycle

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


class Session:
    """Bundles the orchestrators that share one Verification Gate.

    A session belongs to the worker that opened it.  Independent sessions
    share nothing and can be driven from parallel workers.
    """

    def __init__(
        self,
        session_id: str,
        gate: VerificationGate,
        sequencer: RemediationSequencer,
        cycle: TDDCycle,
        store: SessionStore | None = None,
    ) -> None:
        self.session_id = session_id
        self.gate = gate
        self.sequencer = sequencer
        self.cycle = cycle
        self.store = store

    @classmethod
    def open(
        cls,
        project_path: Path | None = None,
        session_id: str | None = None,
        config: GatekeepConfig | None = None,
        gate: VerificationGate | None = None,
        store: SessionStore | None = None,
    ) -> Session:
        """Resume *session_id* from the store, or start it empty."""
        project_path = (project_path or Path.cwd()).resolve()
        config = config or load_config(project_path)
        session_id = resolve_session_id(session_id, config)
        gate = gate or VerificationGate.from_config(config, project_path)
        store = store or SessionStore(project_path, encrypt=config.session.encrypt)

        session = cls(
            session_id,
            gate,
            RemediationSequencer(gate, TierTable.from_config(config.categorize)),
            TDDCycle(gate, max_runs=config.session.max_runs),
            store,
        )
        snapshot = store.load(session_id)
        if snapshot is not None:
            session.restore(snapshot)
            logger.debug("Resumed session %s", session_id)
        return session

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": SNAPSHOT_VERSION,
            "session_id": self.session_id,
            "updated_at": datetime.now().isoformat(),
            "plan": self.sequencer.to_dict(),
            "cycle": self.cycle.to_dict(),
            "gate": self.gate.to_dict(),
        }

    def restore(self, snapshot: dict[str, Any]) -> None:
        version = snapshot.get("version", SNAPSHOT_VERSION)
        if version != SNAPSHOT_VERSION:
            raise ValueError(f"Unsupported session snapshot version {version}")
        plan = snapshot.get("plan")
        self.sequencer = RemediationSequencer(
            self.gate,
            self.sequencer.table,
            RemediationPlan.from_dict(plan) if plan else None,
        )
        self.cycle.restore(snapshot.get("cycle", {}))
        self.gate.restore(snapshot.get("gate", {}))

    def save(self) -> None:
        if self.store is None:
            raise ValueError("This session has no store to save to")
        self.store.save(self.session_id, self.to_dict())
