"""Token payload values.

A transition token carries a string payload. Callers may hand the registry
either a raw string or a structured value; the registry always stores the
serialized string. :class:`Raw` and :class:`Structured` make the two cases
explicit, and :func:`serialize_value` accepts either wrapper or the plain
Python values they wrap.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class Raw:
    """A payload that is already a string and is stored verbatim."""

    text: str

    def serialize(self) -> str:
        return self.text


@dataclass(frozen=True)
class Structured:
    """A payload that is serialized to compact JSON before storage.

    ``data`` may be any JSON-compatible value, or an object exposing
    ``to_dict()`` (the convention used by the record types in this package).
    """

    data: Any

    def serialize(self) -> str:
        data = self.data
        to_dict = getattr(data, "to_dict", None)
        if callable(to_dict):
            data = to_dict()
        return json.dumps(data, sort_keys=True, separators=(",", ":"))


TokenValue = Union[Raw, Structured]


def as_token_value(value: object) -> TokenValue:
    """Wrap a plain Python value in the matching :data:`TokenValue` variant."""
    if isinstance(value, (Raw, Structured)):
        return value
    if isinstance(value, str):
        return Raw(value)
    return Structured(value)


def serialize_value(value: object) -> str:
    """Return the string form of *value* that the Store will hold.

    Raises
    ------
    TypeError
        If a structured value cannot be encoded as JSON.
    """
    return as_token_value(value).serialize()
