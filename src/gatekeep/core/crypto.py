"""Fernet encryption for stored session snapshots."""

from __future__ import annotations

from pathlib import Path

from cryptography.fernet import Fernet, InvalidToken

KEY_FILE = "session.key"


class SnapshotCipher:
    """Encrypts snapshot payloads with a per-project key.

    The key lives next to the session database and is created with
    owner-only permissions on first use.
    """

    def __init__(self, state_dir: Path) -> None:
        self.key_path = state_dir / KEY_FILE
        self._fernet: Fernet | None = None

    def _get_fernet(self) -> Fernet:
        if self._fernet is None:
            if self.key_path.exists():
                key = self.key_path.read_bytes().strip()
            else:
                key = Fernet.generate_key()
                self.key_path.parent.mkdir(parents=True, exist_ok=True)
                self.key_path.write_bytes(key)
                self.key_path.chmod(0o600)
            self._fernet = Fernet(key)
        return self._fernet

    def encrypt(self, data: bytes) -> bytes:
        return self._get_fernet().encrypt(data)

    def decrypt(self, token: bytes) -> bytes:
        try:
            return self._get_fernet().decrypt(token)
        except InvalidToken as exc:
            raise ValueError(
                f"snapshot cannot be decrypted with {self.key_path}"
            ) from exc
