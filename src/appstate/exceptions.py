"""Custom exception hierarchy for appstate."""

from __future__ import annotations


class AppStateError(Exception):
    """Base exception for all appstate errors."""


class AppStateConfigError(AppStateError):
    """Invalid or missing configuration."""


class DeclarationError(AppStateError):
    """A state or dependency declaration cannot be resolved to a scope key.

    Raised when a declaration is used before it was bound to an owner,
    either by assigning it as a class attribute or by passing ``owner=``
    and ``id=`` explicitly.
    """


class InvalidOverrideCancelError(AppStateError):
    """An override token was cancelled twice or is unknown to the stack.

    This indicates a test/setup bug.  The override stacks of every other
    key are left untouched.
    """

    def __init__(self, message: str, *, key: object = None) -> None:
        self.key = key
        super().__init__(message)


class StoreError(AppStateError):
    """A persistent store could not read, write or delete a key."""

    def __init__(self, message: str, *, key: str = "") -> None:
        self.key = key
        super().__init__(message)
