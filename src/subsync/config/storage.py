"""Where the subscription store lives and how to connect to it."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import env_int

APP_DIR_NAME: Final[str] = "subsync"
DEFAULT_DB_FILENAME: Final[str] = "subsync.db"
DEFAULT_DB_BUSY_TIMEOUT_MS: Final[int] = 5_000


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path
    database_filename: str = DEFAULT_DB_FILENAME

    def resolve_data_dir(self) -> Path:
        return self.data_dir.expanduser().resolve()

    def database_path(self, *, ensure: bool = True) -> Path:
        data_dir = self.resolve_data_dir()
        if ensure:
            data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir / self.database_filename

    def database_uri(self) -> str:
        return f"sqlite+pysqlite:///{self.database_path()}"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    """Connection settings for the store.

    ``busy_timeout_ms`` bounds how long a write waits on a locked SQLite
    database before failing as a concurrent write.
    """

    uri: str
    busy_timeout_ms: int = DEFAULT_DB_BUSY_TIMEOUT_MS
    echo: bool = False

    @property
    def is_sqlite(self) -> bool:
        return self.uri.startswith("sqlite")

    def engine_options(self) -> dict[str, object]:
        options: dict[str, object] = {"future": True, "echo": self.echo}
        if self.is_sqlite:
            options["connect_args"] = {"timeout": self.busy_timeout_ms / 1000}
        return options


def _default_data_dir() -> Path:
    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA")
        base_path = Path(base) if base else (Path.home() / "AppData" / "Local")
    else:
        base = os.getenv("XDG_DATA_HOME")
        base_path = Path(base) if base else (Path.home() / ".local" / "share")
    return (base_path / APP_DIR_NAME).expanduser().resolve()


def get_storage_config() -> StorageConfig:
    env_dir = os.getenv("SUBSYNC_DATA_DIR")
    return StorageConfig(data_dir=Path(env_dir) if env_dir else _default_data_dir())


def get_database_config(
    *, uri: str | None = None, storage: StorageConfig | None = None
) -> DatabaseConfig:
    uri = uri or os.getenv("DATABASE_URI") or (storage or get_storage_config()).database_uri()
    return DatabaseConfig(
        uri=uri,
        busy_timeout_ms=env_int("DATABASE_BUSY_TIMEOUT_MS", DEFAULT_DB_BUSY_TIMEOUT_MS, minimum=1),
        echo=(os.getenv("DATABASE_ECHO") or "").strip().lower() in {"1", "true", "yes"},
    )


def get_database_uri() -> str:
    return get_database_config().uri
