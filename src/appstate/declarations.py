"""Declaration surface: named, typed accessors for state and dependencies.

Declarations are usually grouped as class attributes, which gives each of
them a stable scope key derived from the declaring class::

    class Keys:
        username = StateDeclaration(str, default="Leif")
        counter = StoredStateDeclaration(int | None, default=None, id="storedValue")
        networking = DependencyDeclaration(Networking, factory=lambda _: NetworkService())

The class ``Keys`` becomes the key's owner and the attribute name (or the
explicit ``id``) its discriminator.  Declarations living at module level
must pass ``owner=`` and ``id=`` themselves.
"""

from __future__ import annotations

import copy
import functools
import logging
import types
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, ClassVar, Generic, TypeVar, Union, get_args, get_origin

from pydantic import PydanticSchemaGenerationError, TypeAdapter

from appstate.events import EntryKind
from appstate.exceptions import DeclarationError
from appstate.scope import MISSING, ScopeKey

if TYPE_CHECKING:
    from appstate.container import Container

_logger = logging.getLogger(__name__)

T = TypeVar("T")


def allows_absence(value_type: Any) -> bool:
    """Return ``True`` when *value_type* declares ``None`` as its absence value."""
    if value_type is None or value_type is type(None):
        return True
    origin = get_origin(value_type)
    if origin is Union or origin is types.UnionType:
        return any(arg is type(None) for arg in get_args(value_type))
    return False


def strip_absence(value_type: Any) -> Any:
    """Return the non-``None`` part of an optional type.

    ``Profile | None`` becomes ``Profile``; a union with several members
    other than ``None`` is returned without its ``None`` member.
    """
    if not allows_absence(value_type):
        return value_type
    members = tuple(arg for arg in get_args(value_type) if arg is not type(None))
    if len(members) == 1:
        return members[0]
    return Union[members]  # noqa: UP007


class Declaration(Generic[T]):
    """Common key derivation for every declaration kind."""

    kind: ClassVar[EntryKind]

    def __init__(self, value_type: Any, *, id: str | None = None, owner: str | None = None) -> None:  # noqa: A002
        self.value_type = value_type
        self._id = id
        self._owner = owner
        self._attribute: str | None = None
        self._key: ScopeKey | None = None
        self._allows_absence = allows_absence(value_type)

    def __set_name__(self, owner: type, name: str) -> None:
        if self._owner is None:
            self._owner = f"{owner.__module__}.{owner.__qualname__}"
        self._attribute = name

    @property
    def key(self) -> ScopeKey:
        """The scope key; derived once and then reused."""
        if self._key is None:
            discriminator = self._id or self._attribute
            if self._owner is None or discriminator is None:
                raise DeclarationError(
                    f"{type(self).__name__}[{self.type_name}] is not bound to a scope; "
                    "assign it as a class attribute or pass owner= and id="
                )
            self._key = ScopeKey(owner=self._owner, discriminator=discriminator)
        return self._key

    @property
    def type_name(self) -> str:
        return getattr(self.value_type, "__name__", None) or repr(self.value_type)

    @property
    def allows_absence(self) -> bool:
        return self._allows_absence

    def is_absent(self, value: Any) -> bool:
        """Whether *value* is this type's absence representation."""
        return self._allows_absence and value is None

    def __repr__(self) -> str:
        try:
            where = str(self.key)
        except DeclarationError:
            where = "<unbound>"
        return f"{type(self).__name__}[{self.type_name}]({where})"


class _ValueDeclaration(Declaration[T]):
    def __init__(
        self,
        value_type: Any,
        *,
        default: Any = MISSING,
        default_factory: Callable[[], T] | None = None,
        id: str | None = None,  # noqa: A002
        owner: str | None = None,
    ) -> None:
        if (default is MISSING) == (default_factory is None):
            raise DeclarationError("exactly one of default= or default_factory= is required")
        super().__init__(value_type, id=id, owner=owner)
        self._default = default
        self._default_factory = default_factory

    def initial(self) -> T:
        """Produce a fresh initial value.

        Plain defaults are deep-copied so mutable defaults are never
        shared between cells.
        """
        if self._default_factory is not None:
            return self._default_factory()
        return copy.deepcopy(self._default)


class StateDeclaration(_ValueDeclaration[T]):
    """Transient state shared by every reader of the same scope."""

    kind = EntryKind.STATE


class StoredStateDeclaration(_ValueDeclaration[T]):
    """State written through to the container's persistent store."""

    kind = EntryKind.STORED

    @functools.cached_property
    def adapter(self) -> TypeAdapter[T] | None:
        """pydantic adapter used for the structured encoding, if the type has one."""
        try:
            return TypeAdapter(self.value_type)
        except PydanticSchemaGenerationError:
            _logger.debug("No structured encoding for %s", self.type_name, exc_info=True)
            return None


class DependencyDeclaration(Declaration[T]):
    """A lazily constructed, shared dependency.

    *factory* receives the resolving container so a dependency can be
    built from other dependencies.
    """

    kind = EntryKind.DEPENDENCY

    def __init__(
        self,
        value_type: Any,
        *,
        factory: Callable[[Container], T],
        id: str | None = None,  # noqa: A002
        owner: str | None = None,
    ) -> None:
        super().__init__(value_type, id=id, owner=owner)
        self.factory = factory
