"""State cells: transient and persisted views over one cache slot.

A cell never owns its value.  Once anything has been written for a key,
the scoped cache is the source of truth, so independently constructed
cells addressing the same key observe each other's writes.
"""

from __future__ import annotations

import logging
from typing import Any, Generic, TypeVar

from pydantic import ValidationError
from pydantic_core import PydanticSerializationError

from appstate._cache import ScopedCache
from appstate._redact import loggable
from appstate.config import AppStateConfig
from appstate.declarations import StateDeclaration, StoredStateDeclaration
from appstate.exceptions import StoreError
from appstate.overrides import OverrideStack
from appstate.scope import MISSING, ScopeKey
from appstate.stores import PersistentStore

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class _Cell(Generic[T]):
    """Shared plumbing of the state cells."""

    declaration: StateDeclaration[T] | StoredStateDeclaration[T]

    def __init__(self, cache: ScopedCache, *, config: AppStateConfig | None) -> None:
        self.cache = cache
        self._config = config or AppStateConfig()

    @property
    def key(self) -> ScopeKey:
        return self.declaration.key

    @property
    def value_type(self) -> Any:
        return self.declaration.value_type

    def get(self) -> T:
        raise NotImplementedError

    def set(self, value: T) -> None:
        raise NotImplementedError

    @property
    def value(self) -> T:
        return self.get()

    @value.setter
    def value(self, value: T) -> None:
        self.set(value)

    def _loggable(self, value: Any) -> Any:
        return loggable(value, enabled=self._config.log_values, max_string=self._config.max_logged_value)


class StateCell(_Cell[T]):
    """Read/write accessor for transient state.

    Reads return the cached value, falling back to the initial value
    captured when the cell was created.  Reads never populate the cache.
    """

    def __init__(
        self,
        cache: ScopedCache,
        declaration: StateDeclaration[T],
        *,
        config: AppStateConfig | None = None,
    ) -> None:
        super().__init__(cache, config=config)
        self.declaration = declaration
        self._value: T = declaration.initial()

    def get(self) -> T:
        cached = self.cache.get(self.key, self.value_type)
        if cached is MISSING:
            return self._value
        return cached

    def set(self, value: T) -> None:
        self._value = value
        self.cache.set(self.key, value, kind=self.declaration.kind, type_tag=self.value_type)
        _logger.debug("State %s set to %s", self.key, self._loggable(value))

    def __repr__(self) -> str:
        return f"State<{self.declaration.type_name}>({self._loggable(self.get())!r}) ({self.key})"


class PersistedStateCell(_Cell[T]):
    """State written through to a :class:`~appstate.stores.PersistentStore`.

    Read order is cache, then the durable store, then a freshly built
    initial value.  Writing the type's absence value (``None`` for
    optional types) removes the key from both cache and store.

    While an override is active for the key, writes stay in the cache
    and the store is left alone, so cancelling the override leaves no
    trace in durable storage.

    Encoding and store failures are logged and degrade to "absent"; they
    never reach the caller.
    """

    def __init__(
        self,
        cache: ScopedCache,
        declaration: StoredStateDeclaration[T],
        store: PersistentStore,
        *,
        config: AppStateConfig | None = None,
        overrides: OverrideStack | None = None,
    ) -> None:
        super().__init__(cache, config=config)
        self.declaration = declaration
        self.store = store
        self._overrides = overrides

    @property
    def storage_key(self) -> str:
        return self._config.storage_key(self.key.storage_key)

    def get(self) -> T:
        cached = self.cache.get(self.key, self.value_type)
        if cached is not MISSING:
            return cached

        stored = self._read_store()
        if stored is not MISSING:
            return stored

        return self.declaration.initial()

    def set(self, value: T) -> None:
        with self.cache.transaction() as cache:
            overridden = self._overrides is not None and self._overrides.is_active(self.key)
            if self.declaration.is_absent(value):
                cache.remove(self.key)
                if not overridden:
                    self._delete_store()
                _logger.debug("Stored state %s removed", self.key)
                return

            cache.set(self.key, value, kind=self.declaration.kind, type_tag=self.value_type)
            if not overridden:
                self._write_store(value)
        _logger.debug("Stored state %s set to %s", self.key, self._loggable(value))

    def reset(self) -> None:
        """Write the initial value again.

        If the initial value is absent, the key is removed from both the
        cache and the store.
        """
        self.set(self.declaration.initial())

    # ------------------------------------------------------------------
    # Durable store
    # ------------------------------------------------------------------

    def _read_store(self) -> Any:
        try:
            data = self.store.read(self.storage_key)
        except StoreError:
            _logger.warning("Reading %s from store failed", self.storage_key, exc_info=True)
            return MISSING
        if data is None:
            return MISSING
        return self._decode(data)

    def _write_store(self, value: T) -> None:
        data = self._encode(value)
        if data is None:
            _logger.warning("Value of %s is not encodable; kept in cache only", self.key)
            return
        try:
            self.store.write(self.storage_key, data)
        except StoreError:
            _logger.warning("Writing %s to store failed", self.storage_key, exc_info=True)

    def _delete_store(self) -> None:
        try:
            self.store.delete(self.storage_key)
        except StoreError:
            _logger.warning("Deleting %s from store failed", self.storage_key, exc_info=True)

    def _encode(self, value: T) -> bytes | None:
        adapter = self.declaration.adapter
        if adapter is not None:
            try:
                return adapter.dump_json(value, warnings=False)
            except PydanticSerializationError:
                _logger.debug("Structured encoding failed for %s", self.key, exc_info=True)
        if isinstance(value, (bytes, bytearray)):
            return bytes(value)
        if isinstance(value, str):
            return value.encode("utf-8")
        return None

    def _decode(self, data: bytes) -> Any:
        adapter = self.declaration.adapter
        if adapter is None:
            return MISSING
        try:
            return adapter.validate_json(data)
        except ValidationError:
            _logger.debug("Structured decode failed for %s; trying raw value", self.key)

        candidates: list[Any] = [data]
        try:
            candidates.append(data.decode("utf-8"))
        except UnicodeDecodeError:
            pass
        for raw in candidates:
            try:
                return adapter.validate_python(raw)
            except ValidationError:
                continue

        _logger.debug("Stored bytes for %s could not be decoded", self.key)
        return MISSING

    def __repr__(self) -> str:
        return f"StoredState<{self.declaration.type_name}>({self._loggable(self.get())!r}) ({self.key})"
