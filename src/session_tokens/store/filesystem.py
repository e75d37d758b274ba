"""FilesystemStore — Store implementation persisted under a directory.

Layout under *base_dir*::

    secret.key     32 random bytes used as the HMAC key (mode 0600)
    store.json     {"sessions": {token: hash}, "values": {token: value}}

``store.json`` is rewritten atomically (write to a temporary file, then
rename) after every mutation, so a crash never leaves a half-written
document behind. The whole document is held in memory; this backend is meant
for operator tooling and small deployments, not for high write volumes.
"""
from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path

from session_tokens.store.base import Store
from session_tokens.store.hashing import SECRET_BYTES, OwnershipHasher

logger = logging.getLogger(__name__)

_SECRET_FILE = "secret.key"
_DATA_FILE = "store.json"


class FilesystemStore(Store):
    """JSON-document Store rooted at *base_dir*.

    Parameters
    ----------
    base_dir:
        Directory holding the secret and the data document. Created if it
        does not exist.
    """

    def __init__(self, base_dir: Path) -> None:
        self._base_dir = Path(base_dir)
        self._base_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._hasher = OwnershipHasher(self._load_or_create_secret())
        self._sessions: dict[str, str] = {}
        self._values: dict[str, str] = {}
        self._load()

    # ------------------------------------------------------------------
    # Store interface
    # ------------------------------------------------------------------

    def set_session_key_value(self, session_token: str, ownership_key: str) -> str:
        hash_value = self._hasher.hash(ownership_key)
        with self._lock:
            self._sessions[session_token] = hash_value
            self._flush()
        return hash_value

    def del_session_key_value(self, session_token: str) -> bool:
        with self._lock:
            existed = self._sessions.pop(session_token, None) is not None
            if existed:
                self._flush()
            return existed

    def set_key_value(self, token: str, value: str) -> None:
        with self._lock:
            self._values[token] = value
            self._flush()

    def get_key_value(self, token: str) -> str | None:
        with self._lock:
            return self._values.get(token)

    def del_key_value(self, token: str) -> None:
        with self._lock:
            if self._values.pop(token, None) is not None:
                self._flush()

    def check_hash(self, hash_value: str, ownership_key: str) -> bool:
        return self._hasher.verify(hash_value, ownership_key)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def list_tokens(self) -> list[str]:
        """Return the sorted list of tokens that have a stored value."""
        with self._lock:
            return sorted(self._values)

    def list_sessions(self) -> list[str]:
        """Return the sorted list of session tokens with a stored binding."""
        with self._lock:
            return sorted(self._sessions)

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _load_or_create_secret(self) -> bytes:
        secret_path = self._base_dir / _SECRET_FILE
        if secret_path.exists():
            return secret_path.read_bytes()
        secret = os.urandom(SECRET_BYTES)
        secret_path.write_bytes(secret)
        secret_path.chmod(0o600)
        logger.info("Created new store secret at %s", secret_path)
        return secret

    def _load(self) -> None:
        data_path = self._base_dir / _DATA_FILE
        if not data_path.exists():
            return
        data: dict[str, dict[str, str]] = json.loads(data_path.read_text(encoding="utf-8"))
        self._sessions = {str(k): str(v) for k, v in (data.get("sessions") or {}).items()}
        self._values = {str(k): str(v) for k, v in (data.get("values") or {}).items()}
        logger.debug(
            "Loaded %d session(s) and %d value(s) from %s",
            len(self._sessions),
            len(self._values),
            data_path,
        )

    def _flush(self) -> None:
        data_path = self._base_dir / _DATA_FILE
        tmp_path = data_path.with_suffix(".json.tmp")
        document = {"sessions": self._sessions, "values": self._values}
        tmp_path.write_text(json.dumps(document, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp_path, data_path)
