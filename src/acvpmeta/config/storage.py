"""Locations of the identifier database and the HTTP cache."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import optional_env_var

APP_DIR_NAME: Final[str] = "acvpmeta"
IDENTIFIER_DB: Final[str] = "identifiers.db"
HTTP_CACHE_DB: Final[str] = "http_cache.db"


def _platform_data_home() -> Path:
    if os.name == "nt":
        return Path(os.getenv("LOCALAPPDATA") or Path.home() / "AppData" / "Local")
    return Path(os.getenv("XDG_DATA_HOME") or Path.home() / ".local" / "share")


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """Directory holding all local state; it is created on first use."""

    data_dir: Path

    def file(self, name: str) -> Path:
        directory = self.data_dir.expanduser().resolve()
        directory.mkdir(parents=True, exist_ok=True)
        return directory / name

    def database_path(self) -> Path:
        return self.file(IDENTIFIER_DB)

    def http_cache_path(self) -> Path:
        return self.file(HTTP_CACHE_DB)


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str


def get_storage_config() -> StorageConfig:
    override = optional_env_var("ACVPMETA_DATA_DIR")
    if override:
        return StorageConfig(data_dir=Path(override))
    return StorageConfig(data_dir=_platform_data_home() / APP_DIR_NAME)


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    """``ACVPMETA_DATABASE_URI`` wins; otherwise a SQLite file in the data directory."""

    uri = optional_env_var("ACVPMETA_DATABASE_URI")
    if uri is None:
        path = (storage or get_storage_config()).database_path()
        uri = f"sqlite+pysqlite:///{path}"
    return DatabaseConfig(uri=uri)
