"""Field projections over state holding an optional composite value.

Given state of type ``Profile | None``::

    username = container.slice(Keys.profile, "username")
    username.value = "0xL"   # copies the profile, sets the field, writes it back

When the parent is absent, reads yield ``None`` and writes are discarded:
there is no safe way to build a ``Profile`` from one field.
"""

from __future__ import annotations

import copy
import dataclasses
import logging
import typing
from typing import Any, Generic, Protocol, TypeVar

from pydantic import BaseModel

from appstate._cache import ScopedCache
from appstate.declarations import allows_absence, strip_absence
from appstate.exceptions import DeclarationError
from appstate.scope import ScopeKey

_logger = logging.getLogger(__name__)

F = TypeVar("F")


class _ParentCell(Protocol):
    cache: ScopedCache

    @property
    def key(self) -> ScopeKey: ...

    @property
    def value_type(self) -> Any: ...

    def get(self) -> Any: ...

    def set(self, value: Any) -> None: ...


def _field_annotations(composite: Any) -> dict[str, Any] | None:
    """Field name to annotation, or ``None`` when the fields are unknown."""
    if isinstance(composite, type) and issubclass(composite, BaseModel):
        return {name: info.annotation for name, info in composite.model_fields.items()}
    try:
        hints = typing.get_type_hints(composite)
    except (NameError, TypeError):
        if not dataclasses.is_dataclass(composite):
            return None
        # Unresolvable forward references; the raw annotations still name the fields.
        _logger.debug("Cannot resolve type hints of %r; using raw annotations", composite, exc_info=True)
        return {f.name: f.type for f in dataclasses.fields(composite)}
    if dataclasses.is_dataclass(composite):
        return {f.name: hints.get(f.name, Any) for f in dataclasses.fields(composite)}
    return hints or None


def _field_allows_absence(annotation: Any) -> bool:
    if annotation is Any:
        return True
    if isinstance(annotation, str):
        return "None" in annotation or "Optional" in annotation
    return allows_absence(annotation)


def _copy_with(parent: Any, field: str, value: Any) -> Any:
    if isinstance(parent, BaseModel):
        return parent.model_copy(update={field: value}, deep=True)
    clone = copy.deepcopy(parent)
    if dataclasses.is_dataclass(clone):
        init_fields = {f.name for f in dataclasses.fields(clone) if f.init}
        if field in init_fields:
            return dataclasses.replace(clone, **{field: value})
        object.__setattr__(clone, field, value)
        return clone
    setattr(clone, field, value)
    return clone


class Constant(Generic[F]):
    """Read-only projection of one field."""

    def __init__(self, cell: _ParentCell, field: str) -> None:
        self.cell = cell
        self.field = field
        self.composite = strip_absence(cell.value_type)
        annotations = _field_annotations(self.composite)
        if annotations is not None and field not in annotations:
            raise DeclarationError(f"{getattr(self.composite, '__name__', self.composite)} has no field {field!r}")
        self.field_type = annotations[field] if annotations is not None else Any

    def get(self) -> F | None:
        parent = self.cell.get()
        if parent is None:
            return None
        return getattr(parent, self.field)

    @property
    def value(self) -> F | None:
        return self.get()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.cell.key}.{self.field})"


class Slice(Constant[F]):
    """Read/write projection of one field.

    Writes copy the parent, replace the field and store the copy through
    the parent cell inside one cache transaction.  Writing ``None`` is
    honoured only for optional fields; siblings are never touched.
    """

    def __init__(self, cell: _ParentCell, field: str) -> None:
        super().__init__(cell, field)
        self.field_allows_absence = _field_allows_absence(self.field_type)

    def set(self, value: F | None) -> None:
        with self.cell.cache.transaction():
            parent = self.cell.get()
            if parent is None:
                if value is not None:
                    _logger.debug("Discarding write to %r: parent is absent", self)
                return
            if value is None and not self.field_allows_absence:
                _logger.debug("Ignoring None for non-optional field %r", self)
                return
            self.cell.set(_copy_with(parent, self.field, value))

    @property
    def value(self) -> F | None:
        return self.get()

    @value.setter
    def value(self, value: F | None) -> None:
        self.set(value)
