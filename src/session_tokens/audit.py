"""RegistryAuditLogger — lifecycle trail of sessions and transition tokens.

Each event names the session and/or token it concerns; transfers and
adoptions also name the sessions a token moved between. Events never carry
ownership keys or verification hashes, so the trail can be shipped to
operators without leaking credentials.

Events are appended as JSON lines to a file, or kept in memory when no file
is given.
"""
from __future__ import annotations

import datetime
import json
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

EVENT_TYPES = frozenset(
    {
        "session_added",
        "session_destroyed",
        "session_expired",
        "token_adopted",
        "token_destroyed",
        "token_expired",
        "token_orphaned",
        "token_transferred",
    }
)


@dataclass(frozen=True)
class AuditEvent:
    """One registry lifecycle event.

    Parameters
    ----------
    event_type:
        One of :data:`EVENT_TYPES`.
    session:
        The session the event is about, if any.
    token:
        The transition token the event is about, if any.
    from_session:
        Session a token left (transfers, orphaning).
    to_session:
        Session a token joined (transfers, adoption).
    """

    event_type: str
    session: Optional[str] = None
    token: Optional[str] = None
    from_session: Optional[str] = None
    to_session: Optional[str] = None
    timestamp: datetime.datetime = field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc)
    )

    def __post_init__(self) -> None:
        if self.event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown audit event type {self.event_type!r}")

    def to_dict(self) -> dict[str, object]:
        """Serialize to a dictionary, omitting fields that are not set."""
        record: dict[str, object] = {
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type,
        }
        for name in ("session", "token", "from_session", "to_session"):
            value = getattr(self, name)
            if value is not None:
                record[name] = value
        return record


class RegistryAuditLogger:
    """Append-only audit trail. Thread-safe.

    Parameters
    ----------
    log_path:
        JSONL file to append to, created with its parent directories if
        needed. If None, events are kept in memory.
    """

    def __init__(self, log_path: Path | None = None) -> None:
        self._log_path = log_path
        self._events: list[AuditEvent] = []
        self._lock = threading.Lock()

        if log_path is not None:
            log_path.parent.mkdir(parents=True, exist_ok=True)

    def record(
        self,
        event_type: str,
        *,
        session: str | None = None,
        token: str | None = None,
        from_session: str | None = None,
        to_session: str | None = None,
    ) -> AuditEvent:
        """Build an :class:`AuditEvent` and append it to the trail."""
        event = AuditEvent(
            event_type=event_type,
            session=session,
            token=token,
            from_session=from_session,
            to_session=to_session,
        )
        with self._lock:
            if self._log_path is not None:
                with self._log_path.open("a", encoding="utf-8") as fh:
                    fh.write(json.dumps(event.to_dict(), separators=(",", ":")) + "\n")
            else:
                self._events.append(event)
        return event

    def read_log(self, event_type: str | None = None, tail: int | None = None) -> list[dict[str, object]]:
        """Return recorded events, oldest first.

        Parameters
        ----------
        event_type:
            Only return events of this type.
        tail:
            Only return the last *tail* matching events. ``0`` returns none.
        """
        records = self._load()
        if event_type is not None:
            records = [r for r in records if r["event_type"] == event_type]
        if tail is not None:
            return records[-tail:] if tail > 0 else []
        return records

    def history(self, key: str) -> list[dict[str, object]]:
        """Return every event that names *key* as a session or token."""
        fields = ("session", "token", "from_session", "to_session")
        return [r for r in self._load() if any(r.get(name) == key for name in fields)]

    def _load(self) -> list[dict[str, object]]:
        with self._lock:
            if self._log_path is None:
                return [event.to_dict() for event in self._events]
            if not self._log_path.exists():
                return []
            lines = self._log_path.read_text(encoding="utf-8").splitlines()
        return [json.loads(line) for line in lines if line.strip()]
