from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import pytest

from acvpmeta.config import (
    ConfigurationError,
    MissingConfigurationError,
    ReconcileOptions,
    StorageConfig,
    get_database_config,
    get_server_config,
    level_for_verbosity,
)
from acvpmeta.domain.types import EntityKind

if TYPE_CHECKING:
    from pathlib import Path


def test_server_url_is_required() -> None:
    with pytest.raises(MissingConfigurationError, match="ACVP_SERVER_URL"):
        get_server_config()


def test_server_url_must_be_http(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ACVP_SERVER_URL", "ftp://demo.example")

    with pytest.raises(ConfigurationError, match="http"):
        get_server_config()


def test_server_config_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ACVP_SERVER_URL", "https://demo.example/")

    config = get_server_config()

    assert config.api_root == "https://demo.example/acvp/v1"
    assert config.protocol_version == "1.0"
    assert not config.resilience.cache.enabled
    assert "POST" not in config.resilience.retry.methods
    assert config.resilience.headers == {"Accept": "application/json"}


def test_access_token_becomes_bearer_header(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ACVP_SERVER_URL", "https://demo.example")
    monkeypatch.setenv("ACVP_ACCESS_TOKEN", "secret-jwt")
    monkeypatch.setenv("ACVP_PROTOCOL_VERSION", "1.1")

    config = get_server_config()

    assert config.resilience.headers["Authorization"] == "Bearer secret-jwt"
    assert config.protocol_version == "1.1"


def test_sqlite_cache_lives_in_data_dir(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("ACVP_SERVER_URL", "https://demo.example")
    monkeypatch.setenv("ACVP_HTTP_CACHE", "SQLite")

    config = get_server_config(storage=StorageConfig(data_dir=tmp_path))

    cache = config.resilience.cache
    assert cache.enabled
    assert cache.backend == "sqlite"
    assert cache.sqlite_path == str(tmp_path.resolve() / "http_cache.db")
    assert cache.ttl_seconds == 24 * 60 * 60


def test_cache_ttl_comes_from_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("ACVP_SERVER_URL", "https://demo.example")
    monkeypatch.setenv("ACVP_HTTP_CACHE", "sqlite")
    monkeypatch.setenv("ACVP_HTTP_CACHE_TTL", "300")

    config = get_server_config(storage=StorageConfig(data_dir=tmp_path))

    assert config.resilience.cache.ttl_seconds == 300.0


@pytest.mark.parametrize("ttl", ["soon", "0", "-5"])
def test_invalid_cache_ttl_is_rejected(monkeypatch: pytest.MonkeyPatch, ttl: str) -> None:
    monkeypatch.setenv("ACVP_SERVER_URL", "https://demo.example")
    monkeypatch.setenv("ACVP_HTTP_CACHE", "sqlite")
    monkeypatch.setenv("ACVP_HTTP_CACHE_TTL", ttl)

    with pytest.raises(ConfigurationError, match="ACVP_HTTP_CACHE_TTL"):
        get_server_config()


@pytest.mark.parametrize("backend", ["redis", "memory"])
def test_invalid_cache_choice_is_rejected(monkeypatch: pytest.MonkeyPatch, backend: str) -> None:
    monkeypatch.setenv("ACVP_SERVER_URL", "https://demo.example")
    monkeypatch.setenv("ACVP_HTTP_CACHE", backend)

    with pytest.raises(ConfigurationError, match="ACVP_HTTP_CACHE"):
        get_server_config()


def test_database_uri_prefers_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    assert get_database_config().uri == "sqlite+pysqlite:///:memory:"

    monkeypatch.delenv("ACVPMETA_DATABASE_URI")
    uri = get_database_config(storage=StorageConfig(data_dir=tmp_path / "data")).uri

    assert uri == f"sqlite+pysqlite:///{tmp_path.resolve() / 'data' / 'identifiers.db'}"
    assert (tmp_path / "data").is_dir()


def test_reconcile_options_flags() -> None:
    options = ReconcileOptions(delete=frozenset({EntityKind.OE}))

    assert options.wants_delete(EntityKind.OE)
    assert not options.wants_delete(EntityKind.PROCESSOR)
    assert not options.wants_update(EntityKind.OE)


def test_reconcile_options_need_a_worker() -> None:
    with pytest.raises(ValueError, match="workers"):
        ReconcileOptions(workers=0)


@pytest.mark.parametrize(
    ("verbosity", "level"),
    [(-1, logging.WARNING), (0, logging.INFO), (1, logging.DEBUG), (3, logging.DEBUG)],
)
def test_level_for_verbosity(verbosity: int, level: int) -> None:
    assert level_for_verbosity(verbosity) == level
