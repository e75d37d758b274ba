"""Session token registry.

Provides :class:`SessionTokenRegistry`, which owns every session and token
index, plus the timing records and background sweeper it uses.

Quick start
-----------
::

    from session_tokens.registry import SessionTokenRegistry
    from session_tokens.store import InMemoryStore

    registry = SessionTokenRegistry(InMemoryStore())
    session = registry.create_token("session-")
    registry.add_session(session, "owner-1")
    assert registry.active_session(session, "owner-1") is True
"""
from __future__ import annotations

from session_tokens.registry.sweeper import SessionSweeper
from session_tokens.registry.tables import SessionTokenRegistry, TokenLike
from session_tokens.registry.timing import (
    SessionTimingInfo,
    SessionTokenSets,
    TokenTimingInfo,
    TransferableTokenInfo,
)

__all__ = [
    "SessionSweeper",
    "SessionTimingInfo",
    "SessionTokenRegistry",
    "SessionTokenSets",
    "TokenLike",
    "TokenTimingInfo",
    "TransferableTokenInfo",
]
