"""Storage backends for the session token registry.

:class:`Store` is the contract; :class:`InMemoryStore` and
:class:`FilesystemStore` are reference implementations. A network-backed
store (Redis, SQL) implements the same five operations and is passed to the
registry in their place.
"""
from __future__ import annotations

from session_tokens.store.base import Store
from session_tokens.store.filesystem import FilesystemStore
from session_tokens.store.hashing import OwnershipHasher
from session_tokens.store.memory import InMemoryStore

__all__ = [
    "FilesystemStore",
    "InMemoryStore",
    "OwnershipHasher",
    "Store",
]
