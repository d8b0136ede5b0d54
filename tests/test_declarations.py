from __future__ import annotations

from typing import Optional

import pytest

from appstate import DeclarationError, DependencyDeclaration, ScopeKey, StateDeclaration, StoredStateDeclaration
from appstate.declarations import allows_absence, strip_absence


class Keys:
    username = StateDeclaration(str, default="Leif")
    stored_value = StoredStateDeclaration(int | None, default=None, id="storedValue")
    networking = DependencyDeclaration(object, factory=lambda _: object())


def test_key_inferred_from_declaring_class() -> None:
    assert Keys.username.key == ScopeKey(owner=f"{__name__}.Keys", discriminator="username")
    assert Keys.networking.key.discriminator == "networking"


def test_explicit_id_wins_over_attribute_name() -> None:
    assert Keys.stored_value.key.discriminator == "storedValue"
    assert Keys.stored_value.key.storage_key == f"{__name__}.Keys.storedValue"


def test_key_is_stable() -> None:
    assert Keys.username.key is Keys.username.key


def test_module_level_declaration_needs_owner_and_id() -> None:
    unbound = StateDeclaration(int, default=0)
    with pytest.raises(DeclarationError):
        _ = unbound.key

    bound = StateDeclaration(int, default=0, owner="app", id="counter")
    assert bound.key == ScopeKey(owner="app", discriminator="counter")


def test_same_owner_and_discriminator_collide() -> None:
    a = StateDeclaration(int, default=0, owner="app", id="shared")
    b = StateDeclaration(int, default=1, owner="app", id="shared")
    assert a.key == b.key
    assert hash(a.key) == hash(b.key)


def test_exactly_one_default_required() -> None:
    with pytest.raises(DeclarationError):
        StateDeclaration(int)
    with pytest.raises(DeclarationError):
        StateDeclaration(int, default=0, default_factory=lambda: 1)


def test_mutable_default_is_not_shared() -> None:
    decl = StateDeclaration(list[str], default=["a"], owner="app", id="items")
    first = decl.initial()
    first.append("b")
    assert decl.initial() == ["a"]


@pytest.mark.parametrize(
    ("value_type", "expected"),
    [
        (int, False),
        (int | None, True),
        (Optional[str], True),  # noqa: UP007
        (list[int], False),
        (type(None), True),
    ],
)
def test_allows_absence(value_type: object, expected: bool) -> None:
    assert allows_absence(value_type) is expected


def test_strip_absence() -> None:
    assert strip_absence(int | None) is int
    assert strip_absence(int) is int


def test_is_absent_only_for_optional_types() -> None:
    assert Keys.stored_value.is_absent(None)
    assert not Keys.stored_value.is_absent(0)
    assert not Keys.username.is_absent(None)
