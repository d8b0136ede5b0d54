"""The container: one scoped cache plus the accessors built on it."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, TypeVar

from appstate._cache import ChangeCallback, ScopedCache
from appstate._redact import loggable
from appstate.config import AppStateConfig
from appstate.declarations import (
    Declaration,
    DependencyDeclaration,
    StateDeclaration,
    StoredStateDeclaration,
)
from appstate.dependency import ConstructionLocks, DependencyCell
from appstate.overrides import OverrideStack, OverrideToken
from appstate.slice import Constant, Slice
from appstate.state import PersistedStateCell, StateCell
from appstate.stores import FileStore, InMemoryStore, PersistentStore

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class Container:
    """Holds transient state, persisted state and dependencies.

    A container starts empty.  Production code usually keeps one
    long-lived instance; tests build one per test so nothing leaks.

    Usage::

        class Keys:
            username = StateDeclaration(str, default="Leif")

        container = Container()
        container.state(Keys.username).value = "0xL"
        assert container.state(Keys.username).value == "0xL"
    """

    def __init__(
        self,
        *,
        store: PersistentStore | None = None,
        config: AppStateConfig | None = None,
    ) -> None:
        self.config = config or AppStateConfig()
        if store is None:
            store = FileStore(self.config.store_dir) if self.config.store_dir else InMemoryStore()
        self.store = store
        self.cache = ScopedCache()
        self.overrides = OverrideStack(self.cache)
        self._construction_locks = ConstructionLocks()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def state(self, declaration: StateDeclaration[T]) -> StateCell[T]:
        return StateCell(self.cache, declaration, config=self.config)

    def stored_state(self, declaration: StoredStateDeclaration[T]) -> PersistedStateCell[T]:
        return PersistedStateCell(
            self.cache,
            declaration,
            self.store,
            config=self.config,
            overrides=self.overrides,
        )

    def dependency_cell(self, declaration: DependencyDeclaration[T]) -> DependencyCell[T]:
        return DependencyCell(
            self.cache,
            self.overrides,
            self._construction_locks,
            declaration,
            build=lambda: declaration.factory(self),
        )

    def dependency(self, declaration: DependencyDeclaration[T]) -> T:
        """Resolve a dependency to its shared instance."""
        return self.dependency_cell(declaration).resolve()

    def slice(
        self,
        declaration: StateDeclaration[Any] | StoredStateDeclaration[Any],
        field: str,
    ) -> Slice[Any]:
        return Slice(self._cell(declaration), field)

    def constant(
        self,
        declaration: StateDeclaration[Any] | StoredStateDeclaration[Any],
        field: str,
    ) -> Constant[Any]:
        return Constant(self._cell(declaration), field)

    def _cell(
        self,
        declaration: StateDeclaration[Any] | StoredStateDeclaration[Any],
    ) -> StateCell[Any] | PersistedStateCell[Any]:
        if isinstance(declaration, StoredStateDeclaration):
            return self.stored_state(declaration)
        return self.state(declaration)

    # ------------------------------------------------------------------
    # Overrides
    # ------------------------------------------------------------------

    def override(self, declaration: Declaration[T], value: T) -> OverrideToken:
        """Substitute *value* for a declaration until the token is cancelled.

        Works for dependencies and for (stored) state; stored state is
        overridden in the cache only, the persistent store is untouched.
        """
        _logger.debug(
            "Overriding %s with %s",
            declaration.key,
            loggable(value, enabled=self.config.log_values, max_string=self.config.max_logged_value),
        )
        return self.overrides.push(
            declaration.key,
            value,
            kind=declaration.kind,
            type_tag=declaration.value_type,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def remove_stored_state(self, declaration: StoredStateDeclaration[Any]) -> None:
        """Reset stored state to its initial value (removing it if absent)."""
        self.stored_state(declaration).reset()

    def reset(self) -> None:
        """Drop every cached value and override.  The persistent store is kept."""
        self.overrides.clear()
        self.cache.clear()
        _logger.debug("Container reset")

    def subscribe(self, callback: ChangeCallback) -> Callable[[], None]:
        """Receive a :class:`~appstate.events.ChangeEvent` after each cache change."""
        return self.cache.subscribe(callback)

    def describe(self) -> str:
        lines = [f"{type(self).__name__} ({len(self.cache)} entries)"]
        for entry in sorted(self.cache.entries(), key=lambda e: e.key.storage_key):
            shown = loggable(entry.value, enabled=self.config.log_values, max_string=self.config.max_logged_value)
            lines.append(f"\t{entry.kind.value} {entry.key}: {shown!r}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(entries={len(self.cache)}, store={type(self.store).__name__})"
