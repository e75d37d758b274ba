"""Exceptions raised by the session token registry.

Lookups of unknown sessions or tokens never raise; they return ``None``.
Exceptions are reserved for operations attempted against a session or token
that is not in the required state, and for failures of the backing Store.
"""
from __future__ import annotations


class SessionTokenError(Exception):
    """Base class for all session-token errors."""


# ---------------------------------------------------------------------------
# Precondition failures
# ---------------------------------------------------------------------------


class PreconditionFailedError(SessionTokenError, ValueError):
    """Raised when an operation targets a session or token in the wrong state."""


class NoActiveSessionError(PreconditionFailedError):
    """Raised when a token is attached for an owner without an active session."""

    def __init__(self, ownership_key: str) -> None:
        self.ownership_key = ownership_key
        super().__init__(f"Owner {ownership_key!r} has no active session")


class SessionExistsError(PreconditionFailedError):
    """Raised when a session token is registered twice."""

    def __init__(self, session_token: str) -> None:
        self.session_token = session_token
        super().__init__(
            f"Session {session_token!r} is already registered. "
            "Destroy it before registering it again."
        )


class OwnerSessionExistsError(PreconditionFailedError):
    """Raised when an owner that already holds a session opens another one."""

    def __init__(self, ownership_key: str, session_token: str) -> None:
        self.ownership_key = ownership_key
        self.session_token = session_token
        super().__init__(
            f"Owner {ownership_key!r} already holds session {session_token!r}"
        )


class UnknownYielderSessionError(PreconditionFailedError):
    """Raised when the yielding owner of a transfer has no active session."""

    def __init__(self, token: str, yielder_key: str) -> None:
        self.token = token
        self.yielder_key = yielder_key
        super().__init__(
            f"Cannot transfer {token!r}: yielder {yielder_key!r} has no active session"
        )


class TokenNotCarriedError(PreconditionFailedError):
    """Raised when a transfer names a token the yielder does not carry."""

    def __init__(self, token: str, yielder_key: str) -> None:
        self.token = token
        self.yielder_key = yielder_key
        super().__init__(
            f"Cannot transfer {token!r}: it is not carried by the session of {yielder_key!r}"
        )


class UnknownReceiverSessionError(PreconditionFailedError):
    """Raised when the receiving owner of a transfer has no active session."""

    def __init__(self, token: str, receiver_key: str) -> None:
        self.token = token
        self.receiver_key = receiver_key
        super().__init__(
            f"Cannot transfer {token!r}: receiver {receiver_key!r} has no active session"
        )


class TokenNotOrphanedError(PreconditionFailedError):
    """Raised when adopting a token that is not in the unassigned set."""

    def __init__(self, token: str) -> None:
        self.token = token
        super().__init__(f"Token {token!r} is not an unassigned token")


class DetachNotAllowedError(PreconditionFailedError):
    """Raised when detaching a session that was never allowed to detach."""

    def __init__(self, session_token: str) -> None:
        self.session_token = session_token
        super().__init__(
            f"Session {session_token!r} does not allow detachment. "
            "Call allow_session_detach() first."
        )


class TokenAlreadyHeldError(PreconditionFailedError):
    """Raised when attaching a token that another session holds, or that is bounded.

    Bounded tokens never move, and a carried token only changes session
    through :meth:`~session_tokens.registry.SessionTokenRegistry.transfer_token`.
    """

    def __init__(self, token: str, session_token: str, bounded: bool) -> None:
        self.token = token
        self.session_token = session_token
        self.bounded = bounded
        held_as = "bounded" if bounded else "carried"
        super().__init__(f"Token {token!r} is already {held_as} by session {session_token!r}")


class TokenKindMismatchError(PreconditionFailedError):
    """Raised when a token of one kind is used where the other kind is required."""

    def __init__(self, token: str, expected: str, actual: str) -> None:
        self.token = token
        self.expected = expected
        self.actual = actual
        super().__init__(f"Token {token!r} is a {actual} token; expected a {expected} token")


# ---------------------------------------------------------------------------
# Store failures
# ---------------------------------------------------------------------------


class StoreError(SessionTokenError):
    """Raised when the backing Store fails or is unreachable.

    Parameters
    ----------
    operation:
        Name of the Store method that failed.
    reason:
        Human-readable description of the failure.
    """

    def __init__(self, operation: str, reason: str = "") -> None:
        self.operation = operation
        self.reason = reason
        message = f"Store operation {operation!r} failed"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
