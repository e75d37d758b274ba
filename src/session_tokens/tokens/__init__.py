"""Token identifiers and payload values."""
from __future__ import annotations

from session_tokens.tokens.factory import SESSION_PREFIX, Token, TokenFactory, TokenKind
from session_tokens.tokens.value import Raw, Structured, TokenValue, as_token_value, serialize_value

__all__ = [
    "Raw",
    "SESSION_PREFIX",
    "Structured",
    "Token",
    "TokenFactory",
    "TokenKind",
    "TokenValue",
    "as_token_value",
    "serialize_value",
]
