from __future__ import annotations

import asyncio

import pytest

from appstate import BlockingStoreBridge, Container, FileStore, InMemoryStore, StoreError, StoredStateDeclaration


class Keys:
    counter = StoredStateDeclaration(int | None, default=None)


class _AsyncDictStore:
    def __init__(self) -> None:
        self.data: dict[str, bytes] = {}
        self.loops: set[asyncio.AbstractEventLoop] = set()

    async def read(self, key: str) -> bytes | None:
        self.loops.add(asyncio.get_running_loop())
        await asyncio.sleep(0)
        return self.data.get(key)

    async def write(self, key: str, data: bytes) -> None:
        await asyncio.sleep(0)
        self.data[key] = data

    async def delete(self, key: str) -> None:
        await asyncio.sleep(0)
        self.data.pop(key, None)


class _FailingAsyncStore:
    async def read(self, key: str) -> bytes | None:
        raise ConnectionError("backend unavailable")

    async def write(self, key: str, data: bytes) -> None:
        raise ConnectionError("backend unavailable")

    async def delete(self, key: str) -> None:
        raise ConnectionError("backend unavailable")


class _SlowAsyncStore(_AsyncDictStore):
    async def read(self, key: str) -> bytes | None:
        await asyncio.sleep(1.0)
        return None


def test_in_memory_store() -> None:
    store = InMemoryStore({"seed": b"1"})
    assert store.read("seed") == b"1"
    assert store.read("missing") is None

    store.write("a", b"2")
    store.delete("seed")
    store.delete("never-there")

    assert store.keys() == ["a"]
    assert len(store) == 1


def test_file_store_round_trip(tmp_path) -> None:
    store = FileStore(tmp_path / "nested" / "dir")

    assert store.read("app.Keys.counter") is None
    store.write("app.Keys.counter", b"42")
    assert store.read("app.Keys.counter") == b"42"

    store.write("app.Keys.counter", b"43")
    assert store.read("app.Keys.counter") == b"43"

    store.delete("app.Keys.counter")
    store.delete("app.Keys.counter")
    assert store.read("app.Keys.counter") is None


def test_file_store_keys_are_filesystem_safe(tmp_path) -> None:
    store = FileStore(tmp_path)
    store.write("../escape/attempt", b"x")

    assert store.read("../escape/attempt") == b"x"
    assert [p.parent for p in tmp_path.iterdir()] == [tmp_path]
    assert not (tmp_path.parent / "escape").exists()


def test_file_store_wraps_os_errors(tmp_path) -> None:
    blocker = tmp_path / "file"
    blocker.write_bytes(b"")
    with pytest.raises(StoreError):
        FileStore(blocker / "sub")


def test_bridge_runs_async_store() -> None:
    backend = _AsyncDictStore()
    with BlockingStoreBridge(backend) as store:
        assert store.read("k") is None
        store.write("k", b"v")
        assert store.read("k") == b"v"
        store.delete("k")
        assert store.read("k") is None


def test_bridge_backs_container() -> None:
    backend = _AsyncDictStore()
    with BlockingStoreBridge(backend) as store:
        Container(store=store).stored_state(Keys.counter).set(5)
        assert Container(store=store).stored_state(Keys.counter).get() == 5

        Container(store=store).stored_state(Keys.counter).set(None)
        assert backend.data == {}


def test_bridge_wraps_backend_errors() -> None:
    with BlockingStoreBridge(_FailingAsyncStore()) as store:
        with pytest.raises(StoreError):
            store.read("k")

        container = Container(store=store)
        container.stored_state(Keys.counter).set(1)
        assert container.stored_state(Keys.counter).get() == 1


def test_bridge_timeout() -> None:
    with BlockingStoreBridge(_SlowAsyncStore(), timeout=0.05) as store:
        with pytest.raises(StoreError, match="timed out"):
            store.read("k")


def test_bridge_rejects_calls_after_close() -> None:
    store = BlockingStoreBridge(_AsyncDictStore())
    store.close()
    store.close()

    with pytest.raises(StoreError):
        store.read("k")


def test_bridge_timeout_is_finite_by_default() -> None:
    with BlockingStoreBridge(_AsyncDictStore()) as store:
        assert store.timeout == BlockingStoreBridge.DEFAULT_TIMEOUT
        assert store.timeout is not None and store.timeout > 0

    with BlockingStoreBridge(_AsyncDictStore(), timeout=None) as store:
        assert store.timeout is None
