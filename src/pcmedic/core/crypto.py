"""Fernet encryption for audit payloads at rest."""

from __future__ import annotations

from pathlib import Path

from cryptography.fernet import Fernet, InvalidToken

from pcmedic.core.errors import LedgerError

_KEY_FILENAME = "ledger.key"


def load_or_create_key(state_dir: Path) -> bytes:
    """Return the machine-local ledger key, generating it on first use."""
    key_file = state_dir / _KEY_FILENAME
    if key_file.exists():
        return key_file.read_bytes().strip()

    key = Fernet.generate_key()
    state_dir.mkdir(parents=True, exist_ok=True)
    key_file.write_bytes(key)
    key_file.chmod(0o600)
    return key


class PayloadCipher:
    """Seals ledger payloads.

    Rows remember whether they were encrypted, so toggling ``encrypt`` in
    the config never makes older rows unreadable. The key is only loaded
    when it is actually needed.
    """

    def __init__(self, state_dir: Path, enabled: bool = False):
        self.enabled = enabled
        self._state_dir = state_dir
        self._fernet: Fernet | None = None

    def seal(self, data: str) -> tuple[bytes, bool]:
        raw = data.encode("utf-8")
        if not self.enabled:
            return raw, False
        return self._get_fernet().encrypt(raw), True

    def open(self, blob: bytes, encrypted: bool) -> str:
        if not encrypted:
            return bytes(blob).decode("utf-8")
        try:
            return self._get_fernet().decrypt(bytes(blob)).decode("utf-8")
        except InvalidToken as e:
            raise LedgerError("Audit payload could not be decrypted (wrong key?)") from e

    def _get_fernet(self) -> Fernet:
        if self._fernet is None:
            self._fernet = Fernet(load_or_create_key(self._state_dir))
        return self._fernet
