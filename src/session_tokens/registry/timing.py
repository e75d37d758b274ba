"""Per-session and per-token bookkeeping records kept by the registry.

Timing records hold countdowns that the sweeper decrements. A countdown of
``None`` never expires. Detached records count down on
``time_left_after_detachment`` instead of ``time_left``.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Optional


@dataclass
class SessionTokenSets:
    """The transition tokens held by one session.

    ``bounded`` tokens die with the session. ``carried`` tokens are
    transferable and survive it as unassigned tokens. The two sets are
    always disjoint.
    """

    bounded: set[str] = field(default_factory=set)
    carried: set[str] = field(default_factory=set)

    def discard(self, token: str) -> None:
        self.bounded.discard(token)
        self.carried.discard(token)


@dataclass
class _Countdown:
    time_allotted: Optional[float] = None
    time_left: Optional[float] = None
    detachment_allowed: bool = False
    is_detached: bool = False
    time_left_after_detachment: float = 0.0

    def tick(self, elapsed: float) -> bool:
        """Count down by *elapsed* seconds. Return True when time has run out."""
        if self.is_detached:
            self.time_left_after_detachment -= elapsed
            return self.time_left_after_detachment <= 0
        if self.time_left is None:
            return False
        self.time_left -= elapsed
        return self.time_left <= 0

    def reset(self, timeout: Optional[float]) -> None:
        self.time_allotted = timeout
        self.time_left = timeout

    def to_dict(self) -> dict[str, object]:
        return asdict(self)

    def update_from(self, stored: dict[str, object]) -> None:
        """Overwrite known fields from a stored dictionary; unknown keys are ignored."""
        names = {f.name for f in fields(self)}
        for key, value in stored.items():
            if key in names:
                setattr(self, key, value)


@dataclass
class SessionTimingInfo(_Countdown):
    """Countdown for a session.

    ``shared`` sessions publish this record to the Store so that other
    processes can reload them.
    """

    shared: bool = False

    @classmethod
    def with_timeout(cls, timeout: float) -> "SessionTimingInfo":
        return cls(time_allotted=timeout, time_left=timeout)


@dataclass
class TokenTimingInfo(_Countdown):
    """Countdown for a transition token. Tokens never expire by default."""

    @classmethod
    def with_timeout(cls, timeout: Optional[float]) -> "TokenTimingInfo":
        return cls(time_allotted=timeout, time_left=timeout)


@dataclass
class TransferableTokenInfo:
    """Marks a token as transferable and records its sale terms.

    Parameters
    ----------
    owner:
        Ownership key of the current holder; None once the token is
        unassigned.
    sellable:
        Whether the holder has offered the token.
    price:
        Asking price; may be negative (the holder pays to hand it off).
    """

    owner: Optional[str]
    sellable: bool = False
    price: float = 0.0
