"""SQLite storage for session snapshots.

The database lives at ``{project_root}/.gatekeep/sessions.db``.  Each row
holds one session's JSON snapshot (plan, cycle and gate state), optionally
Fernet-encrypted, keyed by session id.  Saving a session replaces its
previous snapshot.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Any

from gatekeep.core.config import get_state_dir, load_config
from gatekeep.core.crypto import SnapshotCipher

logger = logging.getLogger(__name__)

DB_FILE = "sessions.db"

_SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS sessions (
    id          TEXT PRIMARY KEY,
    payload     BLOB NOT NULL,
    encrypted   INTEGER NOT NULL DEFAULT 0,
    updated_at  TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_sessions_updated ON sessions(updated_at);
"""


class SessionStore:
    """Thread-safe store of session snapshots.

    Usage::

        store = SessionStore(project_root)
        store.save("default", session.to_dict())
        data = store.load("default")
    """

    def __init__(self, project_path: Path | None = None, encrypt: bool | None = None) -> None:
        self._state_dir = get_state_dir(project_path)
        self._db_path = self._state_dir / DB_FILE

        if encrypt is None:
            encrypt = load_config(project_path).session.encrypt
        self._encrypt = encrypt
        self._cipher = SnapshotCipher(self._state_dir)

        self._lock = threading.Lock()
        self._init_db()

    # ------------------------------------------------------------------
    # Database bootstrap
    # ------------------------------------------------------------------

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.executescript(_SCHEMA_SQL)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=10)
        conn.execute("PRAGMA journal_mode=WAL")
        conn.row_factory = sqlite3.Row
        return conn

    # ------------------------------------------------------------------
    # Payload encoding
    # ------------------------------------------------------------------

    def _encode(self, snapshot: dict[str, Any]) -> bytes:
        raw = json.dumps(snapshot, sort_keys=True).encode("utf-8")
        if self._encrypt:
            return self._cipher.encrypt(raw)
        return raw

    def _decode(self, blob: bytes, encrypted: bool) -> dict[str, Any]:
        raw = self._cipher.decrypt(blob) if encrypted else blob
        return json.loads(raw.decode("utf-8"))

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def save(self, session_id: str, snapshot: dict[str, Any]) -> None:
        """Persist *snapshot* as the current state of *session_id*."""
        payload = self._encode(snapshot)
        with self._lock, self._connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO sessions (id, payload, encrypted, updated_at) "
                "VALUES (?, ?, ?, ?)",
                (session_id, payload, 1 if self._encrypt else 0, datetime.now().isoformat()),
            )
        logger.debug("Saved session %s (%d bytes)", session_id, len(payload))

    def load(self, session_id: str) -> dict[str, Any] | None:
        """Return the stored snapshot for *session_id*, or None."""
        with self._lock, self._connect() as conn:
            row = conn.execute(
                "SELECT payload, encrypted FROM sessions WHERE id = ?",
                (session_id,),
            ).fetchone()
        if row is None:
            return None
        return self._decode(row["payload"], bool(row["encrypted"]))

    def list_sessions(self) -> list[tuple[str, datetime]]:
        """(session id, last update) pairs, most recently updated first."""
        with self._lock, self._connect() as conn:
            rows = conn.execute(
                "SELECT id, updated_at FROM sessions ORDER BY updated_at DESC"
            ).fetchall()
        return [(row["id"], datetime.fromisoformat(row["updated_at"])) for row in rows]

    def delete(self, session_id: str) -> bool:
        """Delete a session.  Returns ``True`` if a row was removed."""
        with self._lock, self._connect() as conn:
            cur = conn.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
            return cur.rowcount > 0
