"""RegistryConfig — validated settings for the session token registry.

All durations are in seconds.

Example
-------
::

    config = RegistryConfig(session_timeout=900, token_timeout=120)
    registry = SessionTokenRegistry(InMemoryStore(), config=config)

or from a JSON file::

    config = RegistryConfig.from_file(Path("registry.json"))
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RegistryConfig(BaseModel):
    """Timeouts and sweep cadence for a registry instance."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    session_timeout: float = Field(default=3600.0, gt=0)
    token_timeout: Optional[float] = Field(default=None, gt=0)
    detached_session_timeout: float = Field(default=300.0, ge=0)
    sweep_interval: float = Field(default=0.5, gt=0)

    @classmethod
    def from_file(cls, path: Path) -> "RegistryConfig":
        """Load and validate a config from a JSON document.

        Raises
        ------
        pydantic.ValidationError
            If a field is missing a valid value or an unknown key is present.
        """
        data: dict[str, object] = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls.model_validate(data)
