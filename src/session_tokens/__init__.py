"""session-tokens — a registry of sessions, owners and transferable capability tokens.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import session_tokens
>>> session_tokens.__version__
'0.1.0'

Quick start
-----------
::

    from session_tokens import (
        # Registry
        SessionTokenRegistry, RegistryConfig,
        # Tokens
        TokenFactory, Token, TokenKind, SESSION_PREFIX,
        # Stores
        Store, InMemoryStore, FilesystemStore,
        # Errors
        PreconditionFailedError, StoreError,
    )
"""
from __future__ import annotations

__version__: str = "0.1.0"

# ------------------------------------------------------------------
# Tokens
# ------------------------------------------------------------------
from session_tokens.tokens.factory import SESSION_PREFIX, Token, TokenFactory, TokenKind
from session_tokens.tokens.value import Raw, Structured, TokenValue, serialize_value

# ------------------------------------------------------------------
# Stores
# ------------------------------------------------------------------
from session_tokens.store.base import Store
from session_tokens.store.filesystem import FilesystemStore
from session_tokens.store.hashing import OwnershipHasher
from session_tokens.store.memory import InMemoryStore

# ------------------------------------------------------------------
# Registry
# ------------------------------------------------------------------
from session_tokens.audit import AuditEvent, RegistryAuditLogger
from session_tokens.config import RegistryConfig
from session_tokens.registry.tables import SessionTokenRegistry

# ------------------------------------------------------------------
# Errors
# ------------------------------------------------------------------
from session_tokens.errors import (
    DetachNotAllowedError,
    NoActiveSessionError,
    OwnerSessionExistsError,
    PreconditionFailedError,
    SessionExistsError,
    SessionTokenError,
    StoreError,
    TokenAlreadyHeldError,
    TokenKindMismatchError,
    TokenNotCarriedError,
    TokenNotOrphanedError,
    UnknownReceiverSessionError,
    UnknownYielderSessionError,
)

__all__ = [
    # version
    "__version__",
    # tokens
    "Raw",
    "SESSION_PREFIX",
    "Structured",
    "Token",
    "TokenFactory",
    "TokenKind",
    "TokenValue",
    "serialize_value",
    # stores
    "FilesystemStore",
    "InMemoryStore",
    "OwnershipHasher",
    "Store",
    # registry
    "AuditEvent",
    "RegistryAuditLogger",
    "RegistryConfig",
    "SessionTokenRegistry",
    # errors
    "DetachNotAllowedError",
    "NoActiveSessionError",
    "OwnerSessionExistsError",
    "PreconditionFailedError",
    "SessionExistsError",
    "SessionTokenError",
    "StoreError",
    "TokenAlreadyHeldError",
    "TokenKindMismatchError",
    "TokenNotCarriedError",
    "TokenNotOrphanedError",
    "UnknownReceiverSessionError",
    "UnknownYielderSessionError",
]
