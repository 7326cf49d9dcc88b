"""Reconciliation defaults for the refresh and full-sync paths."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Final, Literal, cast

from .env import env_int
from .errors import ConfigurationError

DEFAULT_REFRESH_TIMEOUT_MS: Final[int] = 200
DEFAULT_REFRESH_MAX_CONCURRENCY: Final[int] = 8
DEFAULT_SYNC_BATCH_SIZE: Final[int] = 100

type IsolationSetting = Literal["serializable", "best-effort"]
_ISOLATION_SETTINGS: Final[frozenset[str]] = frozenset({"serializable", "best-effort"})


@dataclass(frozen=True, slots=True)
class SyncConfig:
    refresh_timeout_ms: int = DEFAULT_REFRESH_TIMEOUT_MS
    refresh_max_concurrency: int = DEFAULT_REFRESH_MAX_CONCURRENCY
    batch_size: int = DEFAULT_SYNC_BATCH_SIZE
    isolation: IsolationSetting = "serializable"

    @property
    def refresh_timeout_seconds(self) -> float:
        return self.refresh_timeout_ms / 1000


def get_sync_config() -> SyncConfig:
    isolation = (os.getenv("SYNC_ISOLATION") or "serializable").strip().lower()
    if isolation not in _ISOLATION_SETTINGS:
        allowed = ", ".join(sorted(_ISOLATION_SETTINGS))
        raise ConfigurationError(f"SYNC_ISOLATION must be one of {allowed}, got {isolation!r}")
    return SyncConfig(
        refresh_timeout_ms=env_int("REFRESH_TIMEOUT_MS", DEFAULT_REFRESH_TIMEOUT_MS, minimum=1),
        refresh_max_concurrency=env_int(
            "REFRESH_MAX_CONCURRENCY", DEFAULT_REFRESH_MAX_CONCURRENCY, minimum=1
        ),
        batch_size=env_int("SYNC_BATCH_SIZE", DEFAULT_SYNC_BATCH_SIZE, minimum=1),
        isolation=cast("IsolationSetting", isolation),
    )
