"""SessionTokenRegistry — the in-memory ledger of sessions and their tokens.

The registry tracks which session belongs to which owner and which
transition tokens each session holds, either *bounded* (fixed to the
session, destroyed with it) or *carried* (transferable to another owner).
Every index lives in this one class so the cross-references are updated
together under one lock.

Durability and ownership-key verification are delegated to a
:class:`~session_tokens.store.base.Store`. Writes go through to the Store
before the local indices change; reads of token values are served from a
local cache that is filled lazily from the Store.

Quick start
-----------
::

    from session_tokens import InMemoryStore, SessionTokenRegistry, SESSION_PREFIX

    registry = SessionTokenRegistry(InMemoryStore())
    session = registry.create_token(SESSION_PREFIX)
    registry.add_session(session, "alice")

    ticket = registry.create_token("ticket-")
    registry.add_transferable_token(ticket, {"seat": "12A"}, "alice")

    registry.add_session(registry.create_token(SESSION_PREFIX), "bob")
    registry.transfer_token(ticket, "alice", "bob")
    assert registry.from_token(ticket) == "bob"
"""
from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable
from typing import Any, Optional, Union

from session_tokens.audit import RegistryAuditLogger
from session_tokens.config import RegistryConfig
from session_tokens.errors import (
    DetachNotAllowedError,
    NoActiveSessionError,
    OwnerSessionExistsError,
    SessionExistsError,
    StoreError,
    TokenAlreadyHeldError,
    TokenKindMismatchError,
    TokenNotCarriedError,
    TokenNotOrphanedError,
    UnknownReceiverSessionError,
    UnknownYielderSessionError,
)
from session_tokens.registry.sweeper import SessionSweeper
from session_tokens.registry.timing import (
    SessionTimingInfo,
    SessionTokenSets,
    TokenTimingInfo,
    TransferableTokenInfo,
)
from session_tokens.store.base import Store
from session_tokens.tokens.factory import Token, TokenFactory, TokenKind
from session_tokens.tokens.value import serialize_value

logger = logging.getLogger(__name__)

TokenLike = Union[Token, str]


def _key(token: TokenLike) -> str:
    return token.value if isinstance(token, Token) else token


class SessionTokenRegistry:
    """Registry of sessions, their owners and their transition tokens.

    Thread-safe. Every operation, reads included, runs under one lock, and
    Store calls are made inside that critical section so each operation is
    atomic with respect to every other.

    Parameters
    ----------
    store:
        Durable backend for session hashes and token values.
    token_factory:
        Source of new token identifiers. Defaults to random UUID4 tokens.
    config:
        Timeouts and sweep cadence. Defaults to :class:`RegistryConfig()`.
    audit_logger:
        Optional audit trail receiving lifecycle events.
    """

    def __init__(
        self,
        store: Store,
        token_factory: TokenFactory | None = None,
        config: RegistryConfig | None = None,
        audit_logger: RegistryAuditLogger | None = None,
    ) -> None:
        self._store = store
        self._factory = token_factory if token_factory is not None else TokenFactory()
        self._config = config if config is not None else RegistryConfig()
        self._audit = audit_logger
        self._lock = threading.Lock()

        # sessions
        self._session_to_owner: dict[str, str] = {}
        self._owner_to_session: dict[str, str] = {}
        self._session_hashes: dict[str, str] = {}
        self._session_tokens: dict[str, SessionTokenSets] = {}
        self._session_timing: dict[str, SessionTimingInfo] = {}
        self._detached_sessions: set[str] = set()

        # transition tokens
        self._token_to_owner: dict[str, str] = {}
        self._token_to_session: dict[str, str] = {}
        self._token_values: dict[str, str] = {}
        self._token_timing: dict[str, TokenTimingInfo] = {}
        self._transferable: dict[str, TransferableTokenInfo] = {}
        self._orphaned: set[str] = set()

        # kind of every registered session and transition token
        self._kinds: dict[str, TokenKind] = {}

        self._general_session_timeout: float = self._config.session_timeout
        self._general_token_timeout: Optional[float] = self._config.token_timeout
        self._sweeper: SessionSweeper | None = None

    # ------------------------------------------------------------------
    # Token creation
    # ------------------------------------------------------------------

    def create_token(self, prefix: str | None = None) -> Token:
        """Create a fresh token through the configured factory."""
        return self._factory.create_token(prefix)

    def set_token_factory(self, token_factory: TokenFactory | None) -> None:
        """Replace the token factory; None restores the default one."""
        self._factory = token_factory if token_factory is not None else TokenFactory()

    def token_kind(self, token: TokenLike) -> TokenKind | None:
        """Return the kind recorded when *token* was registered, or None if unknown."""
        with self._lock:
            return self._kinds.get(_key(token))

    # ------------------------------------------------------------------
    # Transition tokens
    # ------------------------------------------------------------------

    def add_token(self, token: TokenLike, value: object) -> None:
        """Store *value* for *token* in the Store and the local cache.

        Structured values are serialized to JSON first. This only records
        the value; session membership is handled by the attach operations.

        Raises
        ------
        TokenKindMismatchError
            If *token* is a session token.
        StoreError
            If the Store write fails. The cache is left unchanged.
        """
        stored = serialize_value(value)
        with self._lock:
            key = self._checked_key_locked(token, TokenKind.TRANSITION)
            self._add_token_locked(key, stored)

    def transition_token_is_active(self, token: TokenLike) -> str | None:
        """Return the stored value of *token*, or None if it is unknown.

        A cache miss falls back to the Store; a Store hit fills the cache.
        """
        key = _key(token)
        if not key:
            return None
        with self._lock:
            if self._kinds.get(key) is TokenKind.SESSION:
                return None
            cached = self._token_values.get(key)
            if cached is not None:
                return cached
            stored = self._call_store("get_key_value", key)
            if stored is None:
                return None
            logger.debug("Token %s loaded from store into cache", key)
            self._cache_token_locked(key, stored)
            return stored

    def destroy_token(self, token: TokenLike) -> None:
        """Remove *token* from the Store and every local index.

        Idempotent: destroying an unknown or already destroyed token does
        nothing locally, and the Store delete is repeated harmlessly. A
        value present only in the Store (e.g. after a restart) is deleted.

        Raises
        ------
        TokenKindMismatchError
            If *token* is a registered session token.
        """
        with self._lock:
            key = self._checked_key_locked(token, TokenKind.TRANSITION)
            destroyed = self._destroy_token_locked(key)
        if destroyed:
            self._audit_event("token_destroyed", token=key)

    def from_token(self, token: TokenLike) -> str | None:
        """Return the ownership key of *token*, or None if it has no owner.

        Works for transition tokens and for session tokens.
        """
        key = _key(token)
        with self._lock:
            owner = self._token_to_owner.get(key)
            if owner is None:
                owner = self._session_to_owner.get(key)
            return owner

    def session_of(self, token: TokenLike) -> str | None:
        """Return the session token currently holding *token*, or None."""
        with self._lock:
            return self._token_to_session.get(_key(token))

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def add_session(
        self,
        session_token: TokenLike,
        ownership_key: str,
        transition_token: TokenLike | None = None,
        value: object = None,
        shared: bool = False,
    ) -> str | None:
        """Register a new session for *ownership_key*.

        Parameters
        ----------
        session_token:
            The token identifying the session.
        ownership_key:
            The owner of the session. An owner holds at most one session.
        transition_token:
            Optional token bounded to the session, from which the session
            can be recovered. It is seeded with *value*.
        value:
            Payload for *transition_token*. Defaults to the ownership key.
        shared:
            Publish the session's timing record to the Store so cooperating
            processes can :meth:`reload_session_info` it.

        Returns
        -------
        str or None
            The verification hash when *shared* is set, otherwise None.

        Raises
        ------
        SessionExistsError
            If *session_token* is already registered.
        OwnerSessionExistsError
            If *ownership_key* already holds another session.
        TokenKindMismatchError
            If *session_token* or *transition_token* has the wrong kind.
        TokenAlreadyHeldError
            If *transition_token* is held by another session.
        StoreError
            If a Store write fails. Records already written are rolled back
            and the local indices are left unchanged.
        """
        seed = serialize_value(ownership_key if value is None else value)
        with self._lock:
            session = self._checked_key_locked(session_token, TokenKind.SESSION)
            if session in self._session_to_owner:
                raise SessionExistsError(session)
            existing = self._owner_to_session.get(ownership_key)
            if existing is not None:
                raise OwnerSessionExistsError(ownership_key, existing)
            bounded = None
            if transition_token is not None:
                bounded = self._checked_key_locked(transition_token, TokenKind.TRANSITION)
                self._check_attachable_locked(bounded, session, carried=False)

            timing = SessionTimingInfo.with_timeout(self._general_session_timeout)
            timing.shared = shared
            hash_value = self._call_store("set_session_key_value", session, ownership_key)
            try:
                if shared:
                    self._publish_session_timing_locked(session, timing)
                if bounded is not None:
                    self._call_store("set_key_value", bounded, seed)
            except StoreError:
                self._rollback_session_locked(session, shared)
                raise

            # every Store record is in place; only local edits remain
            self._install_session_locked(session, ownership_key, hash_value, timing)
            if bounded is not None:
                self._attach_locked(bounded, seed, ownership_key, session, carried=False, persist=False)

        logger.info("Session %s added (shared=%s)", session, shared)
        self._audit_event("session_added", session=session)
        return hash_value if shared else None

    def active_session(self, session_token: TokenLike, ownership_key: str) -> bool | None:
        """Check *ownership_key* against the session's stored hash.

        Returns
        -------
        bool or None
            None if the session is unknown; otherwise the Store's verdict.
        """
        session = _key(session_token)
        with self._lock:
            hash_value = self._session_hashes.get(session)
            if hash_value is None:
                return None
            return bool(self._call_store("check_hash", hash_value, ownership_key))

    def has_session(self, session_token: TokenLike) -> bool:
        with self._lock:
            return _key(session_token) in self._session_to_owner

    def session_for_owner(self, ownership_key: str) -> str | None:
        """Return the session token held by *ownership_key*, or None."""
        with self._lock:
            return self._owner_to_session.get(ownership_key)

    def destroy_session(self, session_token: TokenLike) -> None:
        """Remove a session and everything keyed by it.

        Bounded tokens are destroyed. Carried tokens lose their session and
        owner and become unassigned tokens (see :meth:`list_unassigned_tokens`).
        Unknown sessions are ignored.
        """
        session = _key(session_token)
        with self._lock:
            destroyed = self._destroy_session_locked(session)
        if destroyed:
            self._audit_event("session_destroyed", session=session)

    def add_session_bounded_token(self, token: TokenLike, value: object, ownership_key: str) -> None:
        """Attach an additional bounded token to the owner's active session.

        Raises
        ------
        NoActiveSessionError
            If *ownership_key* has no active session.
        TokenAlreadyHeldError
            If *token* is held by another session, or carried by this one.
        TokenKindMismatchError
            If *token* is a session token.
        """
        stored = serialize_value(value)
        with self._lock:
            key = self._checked_key_locked(token, TokenKind.TRANSITION)
            session = self._owner_to_session.get(ownership_key)
            if session is None:
                raise NoActiveSessionError(ownership_key)
            self._check_attachable_locked(key, session, carried=False)
            self._attach_locked(key, stored, ownership_key, session, carried=False)
        logger.debug("Bounded token %s attached to session %s", key, session)

    def list_bounded_tokens(self, session_token: TokenLike) -> list[str]:
        """Return the sorted bounded tokens of a session (empty if unknown)."""
        with self._lock:
            sets = self._session_tokens.get(_key(session_token))
            return sorted(sets.bounded) if sets else []

    def reload_session_info(self, session_token: TokenLike, ownership_key: str, hash_value: str) -> bool:
        """Adopt a shared session published by another process.

        The presented *hash_value* must verify against *ownership_key* and
        the Store must hold the session's timing record.

        Returns
        -------
        bool
            True if the session is now registered locally.

        Raises
        ------
        OwnerSessionExistsError
            If the owner already holds a different local session.
        """
        session = _key(session_token)
        with self._lock:
            if session in self._session_to_owner:
                return self._session_to_owner[session] == ownership_key and bool(
                    self._call_store("check_hash", self._session_hashes[session], ownership_key)
                )
            existing = self._owner_to_session.get(ownership_key)
            if existing is not None:
                raise OwnerSessionExistsError(ownership_key, existing)
            if not self._call_store("check_hash", hash_value, ownership_key):
                return False
            data = self._call_store("get_key_value", session)
            if data is None:
                return False
            try:
                stored_info = json.loads(data)
            except json.JSONDecodeError:
                logger.warning("Shared record for session %s is not valid JSON", session)
                return False
            if not isinstance(stored_info, dict):
                return False

            timing = SessionTimingInfo.with_timeout(self._general_session_timeout)
            timing.update_from(stored_info)
            timing.shared = True
            self._install_session_locked(session, ownership_key, hash_value, timing)

        logger.info("Shared session %s reloaded", session)
        return True

    # ------------------------------------------------------------------
    # Transfer
    # ------------------------------------------------------------------

    def add_transferable_token(self, token: TokenLike, value: object, ownership_key: str) -> None:
        """Put *token* in the carried set of the owner's active session.

        Raises
        ------
        NoActiveSessionError
            If *ownership_key* has no active session.
        TokenAlreadyHeldError
            If *token* is held by another session, or bounded to this one.
            Use :meth:`transfer_token` to move a carried token.
        TokenKindMismatchError
            If *token* is a session token.
        """
        stored = serialize_value(value)
        with self._lock:
            key = self._checked_key_locked(token, TokenKind.TRANSITION)
            session = self._owner_to_session.get(ownership_key)
            if session is None:
                raise NoActiveSessionError(ownership_key)
            self._check_attachable_locked(key, session, carried=True)
            self._attach_locked(key, stored, ownership_key, session, carried=True)
        logger.debug("Transferable token %s attached to session %s", key, session)

    def transfer_token(self, token: TokenLike, yielder_key: str, receiver_key: str) -> None:
        """Move a carried token from the yielder's session to the receiver's.

        The payload is preserved; timers and sale terms start afresh.
        Every precondition is checked before anything changes, so a failed
        transfer leaves the registry untouched.

        Raises
        ------
        UnknownYielderSessionError
            If *yielder_key* has no active session.
        TokenNotCarriedError
            If *token* is not in the carried set of the yielder's session.
        UnknownReceiverSessionError
            If *receiver_key* has no active session.
        """
        key = _key(token)
        with self._lock:
            yielder_session = self._owner_to_session.get(yielder_key)
            if yielder_session is None:
                logger.warning("Transfer of %s refused: yielder has no session", key)
                raise UnknownYielderSessionError(key, yielder_key)
            sets = self._session_tokens.get(yielder_session)
            if sets is None or key not in sets.carried:
                logger.warning("Transfer of %s refused: token is not carried by yielder", key)
                raise TokenNotCarriedError(key, yielder_key)
            receiver_session = self._owner_to_session.get(receiver_key)
            if receiver_session is None:
                logger.warning("Transfer of %s refused: receiver has no session", key)
                raise UnknownReceiverSessionError(key, receiver_key)

            payload = self._payload_locked(key)
            if payload is None:
                raise StoreError("get_key_value", f"no value stored for carried token {key!r}")
            self._destroy_token_locked(key)
            self._attach_locked(key, payload, receiver_key, receiver_session, carried=True)

        logger.info("Token %s transferred from session %s to %s", key, yielder_session, receiver_session)
        self._audit_event(
            "token_transferred", token=key, from_session=yielder_session, to_session=receiver_session
        )

    def adopt_token(self, token: TokenLike, receiver_key: str) -> None:
        """Move an unassigned token into the receiver's carried set.

        Raises
        ------
        TokenNotOrphanedError
            If *token* is not unassigned.
        UnknownReceiverSessionError
            If *receiver_key* has no active session.
        """
        key = _key(token)
        with self._lock:
            if key not in self._orphaned:
                raise TokenNotOrphanedError(key)
            receiver_session = self._owner_to_session.get(receiver_key)
            if receiver_session is None:
                raise UnknownReceiverSessionError(key, receiver_key)
            payload = self._payload_locked(key)
            if payload is None:
                raise StoreError("get_key_value", f"no value stored for unassigned token {key!r}")
            self._destroy_token_locked(key)
            self._attach_locked(key, payload, receiver_key, receiver_session, carried=True)

        logger.info("Unassigned token %s adopted by session %s", key, receiver_session)
        self._audit_event("token_adopted", token=key, to_session=receiver_session)

    def acquire_token(self, token: TokenLike, ownership_key: str) -> bool:
        """Take a token granted by another process into the owner's carried set.

        The token's value must be present in the Store (or the local cache).
        A token already held by a different local session is not taken; use
        :meth:`transfer_token` for that. Bounded tokens are never acquired,
        not even by their own session.

        Returns
        -------
        bool
            True if the token is now carried by the owner's session.

        Raises
        ------
        NoActiveSessionError
            If *ownership_key* has no active session.
        TokenKindMismatchError
            If *token* is a session token.
        """
        with self._lock:
            key = self._checked_key_locked(token, TokenKind.TRANSITION)
            session = self._owner_to_session.get(ownership_key)
            if session is None:
                raise NoActiveSessionError(ownership_key)
            holder = self._token_to_session.get(key)
            if holder is not None and (holder != session or key in self._session_tokens[holder].bounded):
                return False
            payload = self._payload_locked(key)
            if payload is None:
                return False
            self._attach_locked(key, payload, ownership_key, session, carried=True)
        logger.debug("Token %s acquired by session %s", key, session)
        return True

    def token_is_transferable(self, token: TokenLike) -> bool:
        with self._lock:
            return _key(token) in self._transferable

    def list_transferable_tokens(self, session_token: TokenLike) -> list[str]:
        """Return the sorted carried tokens of a session (empty if unknown)."""
        with self._lock:
            sets = self._session_tokens.get(_key(session_token))
            return sorted(sets.carried) if sets else []

    def list_unassigned_tokens(self) -> list[str]:
        """Return carried tokens whose session was destroyed, sorted."""
        with self._lock:
            return sorted(self._orphaned)

    # ------------------------------------------------------------------
    # Sale terms
    # ------------------------------------------------------------------

    def set_token_sellable(self, token: TokenLike, price: float | None = None) -> bool:
        """Offer a transferable token, optionally at *price*.

        Returns False if the token is not transferable.
        """
        with self._lock:
            info = self._transferable.get(_key(token))
            if info is None or info.owner is None:
                return False
            if price is not None:
                info.price = float(price)
            info.sellable = True
            return True

    def unset_token_sellable(self, token: TokenLike) -> None:
        with self._lock:
            info = self._transferable.get(_key(token))
            if info is not None:
                info.sellable = False

    def list_sellable_tokens(self) -> list[str]:
        with self._lock:
            return sorted(t for t, info in self._transferable.items() if info.sellable)

    def map_sellable_tokens(self) -> dict[str, float]:
        """Return a mapping of sellable token to asking price."""
        with self._lock:
            return {t: info.price for t, info in sorted(self._transferable.items()) if info.sellable}

    # ------------------------------------------------------------------
    # Session timing
    # ------------------------------------------------------------------

    def set_general_session_timeout(self, timeout: float) -> None:
        """Set the timeout given to sessions added from now on."""
        if timeout <= 0:
            raise ValueError(f"Session timeout must be positive, got {timeout}")
        with self._lock:
            self._general_session_timeout = timeout

    def set_session_timeout(self, session_token: TokenLike, timeout: float) -> None:
        """Restart a session's countdown with *timeout* seconds."""
        if timeout <= 0:
            raise ValueError(f"Session timeout must be positive, got {timeout}")
        session = _key(session_token)
        with self._lock:
            timing = self._session_timing.get(session)
            if timing is None:
                return
            timing.reset(timeout)
            if timing.shared:
                self._publish_session_timing_locked(session, timing)

    def get_session_timeout(self, session_token: TokenLike) -> float | None:
        with self._lock:
            timing = self._session_timing.get(_key(session_token))
            return timing.time_allotted if timing else None

    def get_session_time_left(self, session_token: TokenLike) -> float | None:
        with self._lock:
            timing = self._session_timing.get(_key(session_token))
            return timing.time_left if timing else None

    def allow_session_detach(self, session_token: TokenLike) -> None:
        """Permit the session's owner to log out and return later."""
        with self._lock:
            timing = self._session_timing.get(_key(session_token))
            if timing is not None:
                timing.detachment_allowed = True

    def detach_session(self, session_token: TokenLike) -> bool:
        """Mark a session detached; it now counts down on the detached timeout.

        Returns False for unknown sessions.

        Raises
        ------
        DetachNotAllowedError
            If :meth:`allow_session_detach` was not called for the session.
        """
        session = _key(session_token)
        with self._lock:
            timing = self._session_timing.get(session)
            if timing is None:
                return False
            if not timing.detachment_allowed:
                raise DetachNotAllowedError(session)
            timing.is_detached = True
            timing.time_left_after_detachment = self._config.detached_session_timeout
            self._detached_sessions.add(session)
            if timing.shared:
                self._publish_session_timing_locked(session, timing)
        logger.info("Session %s detached", session)
        return True

    def attach_session(self, session_token: TokenLike) -> bool:
        """Return a detached session to normal operation. False if unknown."""
        session = _key(session_token)
        with self._lock:
            timing = self._session_timing.get(session)
            if timing is None:
                return False
            timing.is_detached = False
            self._detached_sessions.discard(session)
            if timing.shared:
                self._publish_session_timing_locked(session, timing)
        return True

    def list_detached_sessions(self) -> list[str]:
        with self._lock:
            return sorted(self._detached_sessions)

    # ------------------------------------------------------------------
    # Token timing
    # ------------------------------------------------------------------

    def set_general_token_timeout(self, timeout: float | None) -> None:
        """Set the timeout given to tokens added from now on (None = never)."""
        if timeout is not None and timeout <= 0:
            raise ValueError(f"Token timeout must be positive, got {timeout}")
        with self._lock:
            self._general_token_timeout = timeout

    def set_token_timeout(self, token: TokenLike, timeout: float | None) -> None:
        """Restart a token's countdown with *timeout* seconds (None = never)."""
        if timeout is not None and timeout <= 0:
            raise ValueError(f"Token timeout must be positive, got {timeout}")
        with self._lock:
            timing = self._token_timing.get(_key(token))
            if timing is not None:
                timing.reset(timeout)

    def get_token_timeout(self, token: TokenLike) -> float | None:
        with self._lock:
            timing = self._token_timing.get(_key(token))
            return timing.time_allotted if timing else None

    def get_token_time_left(self, token: TokenLike) -> float | None:
        with self._lock:
            timing = self._token_timing.get(_key(token))
            return timing.time_left if timing else None

    def set_disownment_token_timeout(self, token: TokenLike, timeout: float) -> bool:
        """Set how long a carried token survives once its session is gone.

        Only transferable tokens accept a disownment timeout; returns False
        for any other token. Without one, an unassigned token keeps its
        regular countdown.
        """
        if timeout <= 0:
            raise ValueError(f"Disownment timeout must be positive, got {timeout}")
        with self._lock:
            timing = self._token_timing.get(_key(token))
            if timing is None or not timing.detachment_allowed:
                return False
            timing.time_left_after_detachment = timeout
            return True

    # ------------------------------------------------------------------
    # Expiry
    # ------------------------------------------------------------------

    def decrement_timers(self, elapsed: float) -> tuple[list[str], list[str]]:
        """Count every timer down by *elapsed* seconds and destroy what expired.

        An expired session or token whose Store records cannot be deleted
        stays registered and is retried on the next call.

        Returns
        -------
        tuple[list[str], list[str]]
            The session tokens and transition tokens destroyed by this call.
        """
        with self._lock:
            expired_sessions = self._expire_locked(
                "session", self._session_timing, self._destroy_session_locked, elapsed
            )
            expired_tokens = self._expire_locked(
                "token", self._token_timing, self._destroy_token_locked, elapsed
            )
            for session, timing in self._session_timing.items():
                if timing.shared:
                    self._publish_session_timing_locked(session, timing)

        for session in expired_sessions:
            logger.warning("Session %s expired", session)
            self._audit_event("session_expired", session=session)
        for token in expired_tokens:
            logger.warning("Token %s expired", token)
            self._audit_event("token_expired", token=token)
        return expired_sessions, expired_tokens

    def start_sweeper(self) -> None:
        """Start the background thread that runs :meth:`decrement_timers`."""
        if self._sweeper is not None and self._sweeper.is_alive():
            return
        self._sweeper = SessionSweeper(self.decrement_timers, self._config.sweep_interval)
        self._sweeper.start()

    def shutdown(self) -> None:
        """Stop the background sweeper, if running."""
        if self._sweeper is not None:
            self._sweeper.stop()
            self._sweeper = None

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def session_count(self) -> int:
        with self._lock:
            return len(self._session_to_owner)

    def __len__(self) -> int:
        """Return the number of cached transition tokens."""
        with self._lock:
            return len(self._token_values)

    # ------------------------------------------------------------------
    # Internal helpers (caller holds self._lock)
    # ------------------------------------------------------------------

    def _call_store(self, operation: str, *args: object) -> Any:
        try:
            return getattr(self._store, operation)(*args)
        except StoreError:
            logger.error("Store operation %s failed", operation)
            raise
        except Exception as exc:
            logger.error("Store operation %s failed: %s", operation, exc)
            raise StoreError(operation, str(exc)) from exc


    def _checked_key_locked(self, token: TokenLike, expected: TokenKind) -> str:
        """Return the key of *token*, rejecting it if its kind is not *expected*.

        Both the kind carried by a :class:`Token` and the kind recorded at
        registration are checked; a plain string is only checked against
        the record.
        """
        key = _key(token)
        for actual in (token.kind if isinstance(token, Token) else None, self._kinds.get(key)):
            if actual is not None and actual is not expected:
                raise TokenKindMismatchError(key, expected.value, actual.value)
        return key

    def _check_attachable_locked(self, token: str, session: str, carried: bool) -> None:
        holder = self._token_to_session.get(token)
        if holder is None:
            return
        bounded = token in self._session_tokens[holder].bounded
        # a token may only be re-attached to its own session, in the same set
        if holder != session or bounded == carried:
            raise TokenAlreadyHeldError(token, holder, bounded)

    def _cache_token_locked(self, token: str, stored: str) -> None:
        self._token_values[token] = stored
        self._token_timing.setdefault(token, TokenTimingInfo.with_timeout(self._general_token_timeout))
        self._kinds.setdefault(token, TokenKind.TRANSITION)

    def _add_token_locked(self, token: str, stored: str) -> None:
        self._call_store("set_key_value", token, stored)
        self._cache_token_locked(token, stored)

    def _payload_locked(self, token: str) -> str | None:
        cached = self._token_values.get(token)
        if cached is not None:
            return cached
        return self._call_store("get_key_value", token)

    def _attach_locked(
        self, token: str, stored: str, owner: str, session: str, carried: bool, persist: bool = True
    ) -> None:
        if persist:
            self._add_token_locked(token, stored)
        else:
            self._cache_token_locked(token, stored)

        previous = self._token_to_session.get(token)
        if previous is not None:
            previous_sets = self._session_tokens.get(previous)
            if previous_sets is not None:
                previous_sets.discard(token)
        self._orphaned.discard(token)

        sets = self._session_tokens[session]
        if carried:
            sets.carried.add(token)
            self._transferable[token] = TransferableTokenInfo(owner=owner)
        else:
            sets.bounded.add(token)
            self._transferable.pop(token, None)
        self._token_timing[token].detachment_allowed = carried
        self._token_to_session[token] = session
        self._token_to_owner[token] = owner

    def _destroy_token_locked(self, token: str) -> bool:
        self._call_store("del_key_value", token)
        known = (
            token in self._token_to_session
            or token in self._token_values
            or token in self._orphaned
            or token in self._token_timing
        )
        if not known:
            return False

        session = self._token_to_session.pop(token, None)
        if session is not None:
            sets = self._session_tokens.get(session)
            if sets is not None:
                sets.discard(token)
        self._token_to_owner.pop(token, None)
        self._token_values.pop(token, None)
        self._token_timing.pop(token, None)
        self._transferable.pop(token, None)
        self._orphaned.discard(token)
        self._kinds.pop(token, None)
        logger.debug("Token %s destroyed", token)
        return True

    def _orphan_token_locked(self, token: str, session: str) -> None:
        self._token_to_session.pop(token, None)
        self._token_to_owner.pop(token, None)
        info = self._transferable.get(token)
        if info is not None:
            info.owner = None
            info.sellable = False
        timing = self._token_timing.get(token)
        if timing is not None and timing.detachment_allowed and timing.time_left_after_detachment > 0:
            timing.is_detached = True
        self._orphaned.add(token)
        self._audit_event("token_orphaned", token=token, from_session=session)

    def _install_session_locked(
        self, session: str, owner: str, hash_value: str, timing: SessionTimingInfo
    ) -> None:
        self._session_to_owner[session] = owner
        self._owner_to_session[owner] = session
        self._session_hashes[session] = hash_value
        self._session_tokens[session] = SessionTokenSets()
        self._session_timing[session] = timing
        self._kinds[session] = TokenKind.SESSION
        # a shared record read earlier as a token value is not a token
        self._token_values.pop(session, None)
        self._token_timing.pop(session, None)
        if timing.is_detached:
            self._detached_sessions.add(session)

    def _rollback_session_locked(self, session: str, shared: bool) -> None:
        try:
            if shared:
                self._call_store("del_key_value", session)
            self._call_store("del_session_key_value", session)
        except StoreError:
            logger.error("Rollback of session %s failed; its Store records may remain", session)

    def _destroy_session_locked(self, session: str) -> bool:
        owner = self._session_to_owner.get(session)
        if owner is None:
            return False

        # Store deletes come first; a failure leaves the session registered
        # with whatever bounded tokens remain, so a retry finishes the job.
        sets = self._session_tokens[session]
        for token in sorted(sets.bounded):
            self._destroy_token_locked(token)
        timing = self._session_timing.get(session)
        if timing is not None and timing.shared:
            self._call_store("del_key_value", session)
        self._call_store("del_session_key_value", session)

        del self._session_to_owner[session]
        if self._owner_to_session.get(owner) == session:
            del self._owner_to_session[owner]
        self._session_hashes.pop(session, None)
        self._session_timing.pop(session, None)
        self._session_tokens.pop(session, None)
        self._detached_sessions.discard(session)
        self._kinds.pop(session, None)
        for token in sorted(sets.carried):
            self._orphan_token_locked(token, session)
        logger.info("Session %s destroyed", session)
        return True

    def _expire_locked(
        self,
        label: str,
        timings: dict[str, Any],
        destroy: Callable[[str], bool],
        elapsed: float,
    ) -> list[str]:
        destroyed = []
        for key in sorted(k for k, timing in list(timings.items()) if timing.tick(elapsed)):
            try:
                destroy(key)
            except StoreError:
                logger.warning("Expired %s %s could not be destroyed; retrying on next sweep", label, key)
                continue
            destroyed.append(key)
        return destroyed

    def _publish_session_timing_locked(self, session: str, timing: SessionTimingInfo) -> None:
        self._call_store("set_key_value", session, json.dumps(timing.to_dict(), separators=(",", ":")))

    def _audit_event(self, event_type: str, **fields: str) -> None:
        if self._audit is not None:
            self._audit.record(event_type, **fields)
