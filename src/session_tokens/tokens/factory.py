"""TokenFactory — generation and classification of opaque token identifiers.

Identifiers are version-4 UUIDs drawn from the operating system's CSPRNG
(``uuid.uuid4`` reads ``os.urandom``), giving about 122 bits of entropy. A
prefix may be prepended; the reserved :data:`SESSION_PREFIX` marks the
resulting token as a session token. The kind is fixed at creation time and
carried on the :class:`Token` itself.

Example
-------
::

    factory = TokenFactory()
    session = factory.create_token(SESSION_PREFIX)
    transition = factory.create_token("transition-")
    assert session.kind is TokenKind.SESSION
    assert transition.kind is TokenKind.TRANSITION
"""
from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

SESSION_PREFIX: str = "session-"


class TokenKind(str, Enum):
    """Kind of a token, assigned once by the factory."""

    SESSION = "session"
    TRANSITION = "transition"


@dataclass(frozen=True)
class Token:
    """An opaque token identifier tagged with its kind.

    Parameters
    ----------
    value:
        The token string handed to clients and used as a Store key.
    kind:
        Whether this token identifies a session or a transition capability.
    """

    value: str
    kind: TokenKind

    def __str__(self) -> str:
        return self.value

    @property
    def is_session(self) -> bool:
        return self.kind is TokenKind.SESSION


def _uuid4_hex() -> str:
    return str(uuid.uuid4())


class TokenFactory:
    """Creates unique, unguessable token identifiers.

    Parameters
    ----------
    generator:
        Zero-argument callable returning a fresh unique string. Defaults to a
        random UUID4. Inject a deterministic generator in tests.
    """

    def __init__(self, generator: Callable[[], str] | None = None) -> None:
        self._generator = generator if generator is not None else _uuid4_hex

    def create_token(self, prefix: str | None = None) -> Token:
        """Create a new token, optionally prefixed.

        Parameters
        ----------
        prefix:
            Application-specific prefix. :data:`SESSION_PREFIX` yields a
            session token; anything else (or nothing) yields a transition
            token.

        Returns
        -------
        Token
        """
        kind = TokenKind.SESSION if prefix == SESSION_PREFIX else TokenKind.TRANSITION
        return Token(value=f"{prefix or ''}{self._generator()}", kind=kind)

    def create_session_token(self) -> Token:
        """Shorthand for ``create_token(SESSION_PREFIX)``."""
        return self.create_token(SESSION_PREFIX)
