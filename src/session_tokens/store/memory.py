"""InMemoryStore — process-local Store implementation.

Suitable for tests and single-process deployments. Values survive a
registry being discarded and rebuilt over the same store instance, which is
how a restart is simulated in tests.
"""
from __future__ import annotations

import threading

from session_tokens.store.base import Store
from session_tokens.store.hashing import OwnershipHasher


class InMemoryStore(Store):
    """Thread-safe dictionary-backed Store.

    Parameters
    ----------
    hasher:
        Hasher used for session verification hashes. A fresh one with a
        random secret is created when omitted.
    """

    def __init__(self, hasher: OwnershipHasher | None = None) -> None:
        self._hasher = hasher if hasher is not None else OwnershipHasher()
        self._sessions: dict[str, str] = {}
        self._values: dict[str, str] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Store interface
    # ------------------------------------------------------------------

    def set_session_key_value(self, session_token: str, ownership_key: str) -> str:
        hash_value = self._hasher.hash(ownership_key)
        with self._lock:
            self._sessions[session_token] = hash_value
        return hash_value

    def del_session_key_value(self, session_token: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_token, None) is not None

    def set_key_value(self, token: str, value: str) -> None:
        with self._lock:
            self._values[token] = value

    def get_key_value(self, token: str) -> str | None:
        with self._lock:
            return self._values.get(token)

    def del_key_value(self, token: str) -> None:
        with self._lock:
            self._values.pop(token, None)

    def check_hash(self, hash_value: str, ownership_key: str) -> bool:
        return self._hasher.verify(hash_value, ownership_key)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def has_session(self, session_token: str) -> bool:
        """Return True if a session record exists for *session_token*."""
        with self._lock:
            return session_token in self._sessions

    def __len__(self) -> int:
        """Return the number of stored token values."""
        with self._lock:
            return len(self._values)

    def __contains__(self, token: object) -> bool:
        with self._lock:
            return token in self._values
