"""Durable key/value stores backing persisted state.

The container only needs three synchronous operations from a store (see
:class:`PersistentStore`).  Async-only backends are adapted through
:class:`BlockingStoreBridge`.
"""

from __future__ import annotations

import asyncio
import logging
import os
import threading
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, Protocol, TypeVar
from urllib.parse import quote

from appstate.exceptions import StoreError

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class PersistentStore(Protocol):
    """Structural store interface consumed by persisted state.

    ``read`` returns ``None`` when nothing is stored under *key*.
    Implementations signal I/O failures with :class:`StoreError`.
    """

    def read(self, key: str) -> bytes | None: ...

    def write(self, key: str, data: bytes) -> None: ...

    def delete(self, key: str) -> None: ...


class AsyncPersistentStore(Protocol):
    async def read(self, key: str) -> bytes | None: ...

    async def write(self, key: str, data: bytes) -> None: ...

    async def delete(self, key: str) -> None: ...


class InMemoryStore:
    """Thread-safe dict-backed store.  The default, and what tests use."""

    def __init__(self, initial: dict[str, bytes] | None = None) -> None:
        self._lock = threading.Lock()
        self._data: dict[str, bytes] = dict(initial or {})

    def read(self, key: str) -> bytes | None:
        with self._lock:
            return self._data.get(key)

    def write(self, key: str, data: bytes) -> None:
        with self._lock:
            self._data[key] = bytes(data)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._data

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


class FileStore:
    """One file per key inside *directory*.

    Keys are percent-encoded into file names.  Writes go through a
    temporary file and :func:`os.replace` so readers never see a partial
    value.
    """

    _SUFFIX = ".bin"

    def __init__(self, directory: str | os.PathLike[str]) -> None:
        self._directory = Path(directory)
        self._lock = threading.Lock()
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreError(f"Cannot create store directory {self._directory}: {exc}") from exc

    @property
    def directory(self) -> Path:
        return self._directory

    def _path(self, key: str) -> Path:
        return self._directory / f"{quote(key, safe='')}{self._SUFFIX}"

    def read(self, key: str) -> bytes | None:
        path = self._path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StoreError(f"Cannot read {path}: {exc}", key=key) from exc

    def write(self, key: str, data: bytes) -> None:
        path = self._path(key)
        tmp = path.with_name(f"{path.name}.tmp")
        with self._lock:
            try:
                tmp.write_bytes(data)
                os.replace(tmp, path)
            except OSError as exc:
                raise StoreError(f"Cannot write {path}: {exc}", key=key) from exc

    def delete(self, key: str) -> None:
        path = self._path(key)
        with self._lock:
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                raise StoreError(f"Cannot delete {path}: {exc}", key=key) from exc


class BlockingStoreBridge:
    """Expose an :class:`AsyncPersistentStore` through the blocking interface.

    Coroutines run on a private event loop in a daemon thread; each call
    blocks the caller until the coroutine finishes or *timeout* seconds
    pass, whichever comes first.  Persisted writes run while the cache
    lock is held, so the timeout bounds how long a slow backend can stall
    other cache users.  Pass ``timeout=None`` to wait indefinitely.
    Must not be called from the bridge's own loop.

    Usage::

        with BlockingStoreBridge(redis_store) as store:
            container = Container(store=store)
    """

    DEFAULT_TIMEOUT = 10.0

    def __init__(self, store: AsyncPersistentStore, *, timeout: float | None = DEFAULT_TIMEOUT) -> None:
        self._store = store
        self._timeout = timeout
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._loop.run_forever,
            name="appstate-store-bridge",
            daemon=True,
        )
        self._thread.start()

    @property
    def timeout(self) -> float | None:
        return self._timeout

    @property
    def is_running(self) -> bool:
        return self._loop.is_running()

    def _run(self, operation: Callable[..., Awaitable[T]], key: str, *args: Any) -> T:
        if self._loop.is_closed():
            raise StoreError("Store bridge is closed", key=key)

        async def _call() -> T:
            return await operation(key, *args)

        future = asyncio.run_coroutine_threadsafe(_call(), self._loop)
        try:
            return future.result(self._timeout)
        except TimeoutError as exc:
            future.cancel()
            raise StoreError(f"Store operation timed out for {key}", key=key) from exc
        except StoreError:
            raise
        except Exception as exc:
            raise StoreError(f"Store operation failed for {key}: {exc}", key=key) from exc

    def read(self, key: str) -> bytes | None:
        return self._run(self._store.read, key)

    def write(self, key: str, data: bytes) -> None:
        self._run(self._store.write, key, data)

    def delete(self, key: str) -> None:
        self._run(self._store.delete, key)

    def close(self) -> None:
        if self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join()
        self._loop.close()
        _logger.debug("Store bridge closed")

    def __enter__(self) -> BlockingStoreBridge:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
