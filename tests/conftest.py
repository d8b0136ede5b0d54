from __future__ import annotations

import pytest

from appstate import Container, InMemoryStore


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def container(store: InMemoryStore) -> Container:
    return Container(store=store)
