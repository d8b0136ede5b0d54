"""Scope keys addressing entries of the scoped cache."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Final, Literal


class _Missing(enum.Enum):
    """Marker for "nothing stored", distinct from a stored ``None``."""

    MISSING = enum.auto()

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> Literal[False]:
        return False


MISSING: Final = _Missing.MISSING
"""Returned by lookups that found no usable value."""

Missing = Literal[_Missing.MISSING]


@dataclass(frozen=True, slots=True)
class ScopeKey:
    """Identity of a declared value.

    Two declarations share storage iff both fields are equal.
    """

    owner: str
    discriminator: str

    @property
    def storage_key(self) -> str:
        """String form handed to persistent stores."""
        return f"{self.owner}.{self.discriminator}"

    def __str__(self) -> str:
        return self.storage_key
