"""Change notifications emitted by the scoped cache.

Observers (UI bindings, loggers, test spies) subscribe to the cache and
receive one :class:`ChangeEvent` per successful mutation.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, InstanceOf

from appstate.scope import ScopeKey


class EntryKind(StrEnum):
    STATE = "state"
    STORED = "stored"
    DEPENDENCY = "dependency"


class ChangeEvent(BaseModel):
    """A single cache mutation."""

    model_config = ConfigDict(frozen=True)

    key: InstanceOf[ScopeKey]
    kind: EntryKind | None = Field(
        default=None,
        description="Kind of the entry written; None for removals and clears.",
    )
    value: Any = None
    removed: bool = False
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
