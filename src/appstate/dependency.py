"""Lazily constructed shared dependencies."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any, Generic, TypeVar

from appstate._cache import CacheEntry, ScopedCache
from appstate.declarations import DependencyDeclaration
from appstate.overrides import OverrideStack
from appstate.scope import MISSING, ScopeKey

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class ConstructionLocks:
    """One lock per key serializing first-time construction.

    Construction runs outside the cache lock so a factory may resolve
    other dependencies or spawn threads that read the cache.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._locks: dict[ScopeKey, threading.RLock] = {}

    def for_key(self, key: ScopeKey) -> threading.RLock:
        with self._lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock


class DependencyCell(Generic[T]):
    """Resolves one dependency declaration.

    Resolution order: active override, previously resolved instance,
    then the factory, which runs at most once per key until the cache is
    cleared.
    """

    def __init__(
        self,
        cache: ScopedCache,
        overrides: OverrideStack,
        locks: ConstructionLocks,
        declaration: DependencyDeclaration[T],
        build: Callable[[], T],
    ) -> None:
        self.cache = cache
        self.declaration = declaration
        self._overrides = overrides
        self._locks = locks
        self._build = build

    @property
    def key(self) -> ScopeKey:
        return self.declaration.key

    def _lookup(self) -> Any:
        with self.cache.transaction() as cache:
            override = self._overrides.top(self.key)
            if override is not None:
                return override.value
            return cache.get(self.key, self.declaration.value_type)

    def resolve(self) -> T:
        found = self._lookup()
        if found is not MISSING:
            return found

        with self._locks.for_key(self.key):
            found = self._lookup()
            if found is not MISSING:
                return found

            _logger.debug("Constructing dependency %s", self.key)
            instance = self._build()
            entry = CacheEntry(
                key=self.key,
                kind=self.declaration.kind,
                type_tag=self.declaration.value_type,
                value=instance,
            )
            with self.cache.transaction() as cache:
                override = self._overrides.top(self.key)
                if override is None:
                    cache.put_entry(entry)
                    return instance
                # Pushed while the factory ran; keep the instance under it.
                self._overrides.place_beneath(self.key, entry)
                return override.value

    @property
    def value(self) -> T:
        return self.resolve()

    def __repr__(self) -> str:
        state = "resolved" if self.key in self.cache else "unresolved"
        return f"Dependency<{self.declaration.type_name}>({state}) ({self.key})"
