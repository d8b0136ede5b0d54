"""Container configuration for appstate."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from appstate.exceptions import AppStateConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_int(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError as exc:
        raise AppStateConfigError(f"{name} must be an integer, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class AppStateConfig:
    """Container configuration.

    Parameters
    ----------
    store_dir : str or None
        Directory for the default :class:`~appstate.stores.FileStore`.
        When ``None`` the container persists into an in-memory store,
        which is what tests want.
    key_prefix : str
        Prefix prepended to every storage key handed to the persistent
        store.  Lets several applications share one store.
    log_values : bool
        Include (redacted) state values in DEBUG logs.  Off by default
        so user data does not end up in log files.
    max_logged_value : int
        Strings longer than this are truncated in DEBUG logs.
    """

    store_dir: str | None = None
    key_prefix: str = ""
    log_values: bool = False
    max_logged_value: int = 512

    def __post_init__(self) -> None:
        if self.max_logged_value <= 0:
            raise AppStateConfigError("max_logged_value must be positive")

    def storage_key(self, key: str) -> str:
        """Apply :attr:`key_prefix` to a scope's storage key."""
        if not self.key_prefix:
            return key
        return f"{self.key_prefix}{key}"

    @classmethod
    def from_env(cls, **overrides: Any) -> AppStateConfig:
        """Create configuration from environment variables.

        Reads ``APPSTATE_STORE_DIR``, ``APPSTATE_KEY_PREFIX``,
        ``APPSTATE_LOG_VALUES`` and ``APPSTATE_MAX_LOGGED_VALUE``.
        Explicit keyword arguments override environment values.

        Raises
        ------
        AppStateConfigError
            If a numeric variable cannot be parsed.
        """
        env = os.environ

        config_kwargs: dict[str, Any] = {}
        store_dir = env.get("APPSTATE_STORE_DIR")
        if store_dir:
            config_kwargs["store_dir"] = store_dir

        prefix = env.get("APPSTATE_KEY_PREFIX")
        if prefix is not None:
            config_kwargs["key_prefix"] = prefix

        if "log_values" not in overrides:
            config_kwargs["log_values"] = _env_bool(env.get("APPSTATE_LOG_VALUES"), False)

        max_env = env.get("APPSTATE_MAX_LOGGED_VALUE")
        if max_env is not None and "max_logged_value" not in overrides:
            config_kwargs["max_logged_value"] = _env_int("APPSTATE_MAX_LOGGED_VALUE", max_env)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
