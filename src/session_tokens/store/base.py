"""Store — the durable backend contract used by the session token registry.

The registry keeps its indices in memory and writes through to a Store for
anything that must outlive the process. A Store holds two kinds of records:

- session records, keyed by session token, from which the Store derives an
  opaque verification hash of the ownership key;
- transition token values, keyed by transition token.

Verifying a presented ownership key against a hash is the Store's job, never
the registry's. Implementations may be in-memory, on disk, or remote.
"""
from __future__ import annotations

from abc import ABC, abstractmethod


class Store(ABC):
    """Abstract base class for registry storage backends."""

    @abstractmethod
    def set_session_key_value(self, session_token: str, ownership_key: str) -> str:
        """Persist a session binding and return its verification hash.

        Parameters
        ----------
        session_token:
            The session being registered.
        ownership_key:
            The owner of the session.

        Returns
        -------
        str
            An opaque hash later passed to :meth:`check_hash`.
        """

    @abstractmethod
    def del_session_key_value(self, session_token: str) -> bool:
        """Remove a session binding.

        Returns
        -------
        bool
            True if a binding existed and was removed.
        """

    @abstractmethod
    def set_key_value(self, token: str, value: str) -> None:
        """Persist the string payload of a token, replacing any previous one."""

    @abstractmethod
    def get_key_value(self, token: str) -> str | None:
        """Return the stored payload for *token*, or None if there is none."""

    @abstractmethod
    def del_key_value(self, token: str) -> None:
        """Remove the payload for *token*. Unknown tokens are ignored."""

    @abstractmethod
    def check_hash(self, hash_value: str, ownership_key: str) -> bool:
        """Return True if *ownership_key* is the key *hash_value* was issued for.

        Implementations must compare in constant time with respect to the key.
        """
