"""Reversible substitution of cached values.

An override writes its value into the cache slot of a key and remembers
the entry it replaced.  Overrides on one key form a stack; cancelling a
token restores exactly what that push replaced, even when the token is
not on top of the stack::

    with container.override(Keys.networking, MockNetworking()):
        ...
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from appstate._cache import CacheEntry, ScopedCache
from appstate.events import EntryKind
from appstate.exceptions import InvalidOverrideCancelError
from appstate.scope import ScopeKey

_logger = logging.getLogger(__name__)


class OverrideToken:
    """Handle for one override push.  Single use."""

    def __init__(self, stack: OverrideStack, key: ScopeKey) -> None:
        self._stack = stack
        self.key = key
        self.cancelled = False

    def cancel(self) -> None:
        """Undo this push.

        Raises
        ------
        InvalidOverrideCancelError
            If the token was already cancelled.
        """
        self._stack.cancel(self)

    def __enter__(self) -> OverrideToken:
        return self

    def __exit__(self, *exc: Any) -> None:
        if not self.cancelled:
            self.cancel()

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "active"
        return f"OverrideToken({self.key}, {state})"


@dataclass(eq=False, slots=True)
class _Frame:
    entry: CacheEntry
    previous: CacheEntry | None
    token: OverrideToken


class OverrideStack:
    """Per-key stacks of override frames sharing the cache's lock."""

    def __init__(self, cache: ScopedCache) -> None:
        self._cache = cache
        self._frames: dict[ScopeKey, list[_Frame]] = {}

    def push(self, key: ScopeKey, value: Any, *, kind: EntryKind, type_tag: Any) -> OverrideToken:
        with self._cache.transaction() as cache:
            token = OverrideToken(self, key)
            entry = CacheEntry(key=key, kind=kind, type_tag=type_tag, value=value)
            frame = _Frame(entry=entry, previous=cache.get_entry(key), token=token)
            self._frames.setdefault(key, []).append(frame)
            cache.put_entry(entry)
            _logger.debug("Override pushed for %s (depth=%d)", key, len(self._frames[key]))
        return token

    def cancel(self, token: OverrideToken) -> None:
        with self._cache.transaction() as cache:
            if token.cancelled:
                raise InvalidOverrideCancelError(f"Override for {token.key} was already cancelled", key=token.key)
            frames = self._frames.get(token.key, [])
            index = next((i for i, frame in enumerate(frames) if frame.token is token), None)
            if index is None:
                raise InvalidOverrideCancelError(f"Unknown override token for {token.key}", key=token.key)

            frame = frames.pop(index)
            if index == len(frames):
                # Was the top frame: its value is the one currently resolvable.
                if frame.previous is None:
                    cache.remove(token.key)
                else:
                    cache.put_entry(frame.previous)
            else:
                frames[index].previous = frame.previous

            if not frames:
                del self._frames[token.key]
            token.cancelled = True
            _logger.debug("Override cancelled for %s (remaining=%d)", token.key, len(frames))

    def top(self, key: ScopeKey) -> CacheEntry | None:
        """The active override entry for *key*, if any."""
        with self._cache.transaction():
            frames = self._frames.get(key)
            return frames[-1].entry if frames else None

    def is_active(self, key: ScopeKey) -> bool:
        return self.top(key) is not None

    def depth(self, key: ScopeKey) -> int:
        with self._cache.transaction():
            return len(self._frames.get(key, ()))

    def place_beneath(self, key: ScopeKey, entry: CacheEntry) -> bool:
        """Record *entry* as what the bottom override replaced.

        Used when a value was produced while an override was being pushed
        and the bottom frame captured nothing.  Returns whether the entry
        was placed.
        """
        with self._cache.transaction():
            frames = self._frames.get(key)
            if not frames or frames[0].previous is not None:
                return False
            frames[0].previous = entry
            return True

    def clear(self) -> None:
        """Forget every frame without touching the cache."""
        with self._cache.transaction():
            for frames in self._frames.values():
                for frame in frames:
                    frame.token.cancelled = True
            self._frames.clear()
