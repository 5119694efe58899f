"""Where the contact store and the feed cache live."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final

from .env import env_float, optional_env_var

APP_DIR_NAME: Final[str] = "attributor"
DEFAULT_DB_FILENAME: Final[str] = "attributor.db"
HTTP_CACHE_FILENAME: Final[str] = "feed_cache.db"
# Per-source sync workers write concurrently; SQLite waits this long for the write lock.
DEFAULT_SQLITE_BUSY_TIMEOUT: Final[float] = 30.0


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path

    def file(self, filename: str) -> Path:
        """Path of ``filename`` inside the data directory, creating the directory."""

        data_dir = self.data_dir.expanduser().resolve()
        data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir / filename


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str
    echo: bool = False
    busy_timeout_seconds: float = DEFAULT_SQLITE_BUSY_TIMEOUT

    def engine_options(self) -> dict[str, Any]:
        """Keyword arguments for ``create_engine``."""

        options: dict[str, Any] = {"echo": self.echo}
        if self.uri.startswith("sqlite"):
            options["connect_args"] = {
                "timeout": self.busy_timeout_seconds,
                "check_same_thread": False,
            }
        return options


def _default_data_dir() -> Path:
    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA")
        base_path = Path(base) if base else (Path.home() / "AppData" / "Local")
    else:
        base = os.getenv("XDG_DATA_HOME")
        base_path = Path(base) if base else (Path.home() / ".local" / "share")
    return base_path / APP_DIR_NAME


def get_storage_config() -> StorageConfig:
    env_dir = optional_env_var("ATTRIBUTOR_DATA_DIR")
    return StorageConfig(data_dir=Path(env_dir) if env_dir else _default_data_dir())


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    """``DATABASE_URI`` when set, otherwise a SQLite file in the data directory."""

    uri = optional_env_var("DATABASE_URI")
    if uri is None:
        uri = f"sqlite+pysqlite:///{(storage or get_storage_config()).file(DEFAULT_DB_FILENAME)}"
    echo = (optional_env_var("ATTRIBUTOR_SQL_ECHO") or "").lower() in {"1", "true", "yes"}
    return DatabaseConfig(
        uri=uri,
        echo=echo,
        busy_timeout_seconds=env_float(
            "ATTRIBUTOR_SQLITE_BUSY_TIMEOUT", DEFAULT_SQLITE_BUSY_TIMEOUT
        ),
    )


def get_database_uri() -> str:
    return get_database_config().uri


def get_http_cache_path() -> Path:
    return get_storage_config().file(HTTP_CACHE_FILENAME)
