"""Process-wide heterogeneous cache keyed by scope."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from appstate.events import ChangeEvent, EntryKind
from appstate.scope import MISSING, ScopeKey

_logger = logging.getLogger(__name__)

ChangeCallback = Callable[[ChangeEvent], None]


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """The single live value stored under a scope key."""

    key: ScopeKey
    kind: EntryKind
    type_tag: Any
    value: Any


class ScopedCache:
    """Thread-safe mapping from :class:`ScopeKey` to typed entries.

    Every operation runs under one re-entrant lock.  Callers that need a
    read-modify-write sequence (slices, overrides) hold the same lock via
    :meth:`transaction`.  Change events are never delivered while the lock
    is held: changes made inside a transaction are queued and delivered
    after the outermost transaction releases it.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._entries: dict[ScopeKey, CacheEntry] = {}
        self._subscribers: list[ChangeCallback] = []
        # Transaction nesting of the thread owning the lock.
        self._depth = 0
        self._pending: list[ChangeEvent] = []

    @contextmanager
    def transaction(self) -> Iterator[ScopedCache]:
        """Hold the cache lock across several operations."""
        events: list[ChangeEvent] = []
        try:
            with self._lock:
                self._depth += 1
                try:
                    yield self
                finally:
                    self._depth -= 1
                    if self._depth == 0:
                        events, self._pending = self._pending, []
        finally:
            self._deliver(events)

    def get(self, key: ScopeKey, expected_type: Any) -> Any:
        """Return the value stored under *key*, or ``MISSING``.

        An entry whose type tag differs from *expected_type* is treated
        as absent so the caller falls back to its initial value.
        """
        with self._lock:
            entry = self._entries.get(key)
        if entry is None:
            return MISSING
        if entry.type_tag != expected_type:
            _logger.debug(
                "Type mismatch for %s: stored %r, expected %r",
                key,
                entry.type_tag,
                expected_type,
            )
            return MISSING
        return entry.value

    def get_entry(self, key: ScopeKey) -> CacheEntry | None:
        with self._lock:
            return self._entries.get(key)

    def set(self, key: ScopeKey, value: Any, *, kind: EntryKind, type_tag: Any) -> CacheEntry:
        entry = CacheEntry(key=key, kind=kind, type_tag=type_tag, value=value)
        self.put_entry(entry)
        return entry

    def put_entry(self, entry: CacheEntry) -> None:
        """Store a previously captured entry as-is."""
        with self._lock:
            self._entries[entry.key] = entry
            events = self._record(ChangeEvent(key=entry.key, kind=entry.kind, value=entry.value))
        self._deliver(events)

    def remove(self, key: ScopeKey) -> bool:
        """Drop the entry under *key*.  Returns whether one existed."""
        with self._lock:
            existed = self._entries.pop(key, None) is not None
            events = self._record(ChangeEvent(key=key, removed=True)) if existed else []
        self._deliver(events)
        return existed

    def clear(self) -> None:
        with self._lock:
            keys = list(self._entries)
            self._entries.clear()
            events = self._record(*(ChangeEvent(key=key, removed=True) for key in keys))
        self._deliver(events)

    def keys(self) -> list[ScopeKey]:
        with self._lock:
            return list(self._entries)

    def entries(self) -> list[CacheEntry]:
        with self._lock:
            return list(self._entries.values())

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # ------------------------------------------------------------------
    # Notification sink
    # ------------------------------------------------------------------

    def subscribe(self, callback: ChangeCallback) -> Callable[[], None]:
        """Register *callback* for change events; returns an unsubscribe function."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _record(self, *events: ChangeEvent) -> list[ChangeEvent]:
        """Queue *events* inside a transaction, else hand them back for delivery.

        Must be called with the lock held.
        """
        if self._depth:
            self._pending.extend(events)
            return []
        return list(events)

    def _deliver(self, events: list[ChangeEvent]) -> None:
        if not events:
            return
        with self._lock:
            subscribers = list(self._subscribers)
        for event in events:
            for callback in subscribers:
                try:
                    callback(event)
                except Exception:
                    _logger.debug("Change callback failed for %s", event.key, exc_info=True)
