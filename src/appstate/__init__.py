"""appstate - Scoped state, persisted state and dependencies in one container."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("appstate")
except PackageNotFoundError:
    __version__ = "0+local"
from appstate._cache import CacheEntry, ScopedCache
from appstate.config import AppStateConfig
from appstate.container import Container
from appstate.declarations import (
    Declaration,
    DependencyDeclaration,
    StateDeclaration,
    StoredStateDeclaration,
)
from appstate.dependency import DependencyCell
from appstate.events import ChangeEvent, EntryKind
from appstate.exceptions import (
    AppStateConfigError,
    AppStateError,
    DeclarationError,
    InvalidOverrideCancelError,
    StoreError,
)
from appstate.overrides import OverrideStack, OverrideToken
from appstate.scope import MISSING, ScopeKey
from appstate.slice import Constant, Slice
from appstate.state import PersistedStateCell, StateCell
from appstate.stores import (
    AsyncPersistentStore,
    BlockingStoreBridge,
    FileStore,
    InMemoryStore,
    PersistentStore,
)

__all__ = [
    "__version__",
    "MISSING",
    "AppStateConfig",
    "AppStateConfigError",
    "AppStateError",
    "AsyncPersistentStore",
    "BlockingStoreBridge",
    "CacheEntry",
    "ChangeEvent",
    "Constant",
    "Container",
    "Declaration",
    "DeclarationError",
    "DependencyCell",
    "DependencyDeclaration",
    "EntryKind",
    "FileStore",
    "InMemoryStore",
    "InvalidOverrideCancelError",
    "OverrideStack",
    "OverrideToken",
    "PersistedStateCell",
    "PersistentStore",
    "ScopeKey",
    "ScopedCache",
    "Slice",
    "StateCell",
    "StateDeclaration",
    "StoreError",
    "StoredStateDeclaration",
]
