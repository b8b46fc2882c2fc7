"""Validation server connection settings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Final, cast

from .env import env_choice, optional_env_var, require_env_vars
from .errors import ConfigurationError
from .http_resilience import CACHE_BACKENDS, CacheConfig, RateLimit, ResilienceConfig
from .storage import StorageConfig, get_storage_config

if TYPE_CHECKING:
    from .http_resilience import CacheBackend

DEFAULT_PROTOCOL_VERSION: Final[str] = "1.0"
DEFAULT_API_PREFIX: Final[str] = "acvp/v1"
SERVER_TIMEOUT_SECONDS: Final[float] = 60.0
DEFAULT_CACHE_TTL_SECONDS: Final[float] = 24 * 60 * 60.0


@dataclass(frozen=True, slots=True)
class ServerConfig:
    """Where the validation server lives and how we talk to it."""

    base_url: str
    resilience: ResilienceConfig
    protocol_version: str = DEFAULT_PROTOCOL_VERSION
    api_prefix: str = DEFAULT_API_PREFIX

    @property
    def api_root(self) -> str:
        return f"{self.base_url.rstrip('/')}/{self.api_prefix.strip('/')}"


def _cache_ttl() -> float:
    raw = optional_env_var("ACVP_HTTP_CACHE_TTL")
    if raw is None:
        return DEFAULT_CACHE_TTL_SECONDS
    try:
        ttl = float(raw)
    except ValueError:
        message = f"ACVP_HTTP_CACHE_TTL must be a number of seconds: {raw}"
        raise ConfigurationError(message) from None
    if ttl <= 0:
        raise ConfigurationError(f"ACVP_HTTP_CACHE_TTL must be positive: {raw}")
    return ttl


def _cache_config(backend: CacheBackend, storage: StorageConfig | None) -> CacheConfig:
    if backend != "sqlite":
        return CacheConfig(backend=backend)
    path = (storage or get_storage_config()).http_cache_path()
    return CacheConfig(backend=backend, sqlite_path=str(path), ttl_seconds=_cache_ttl())


def get_server_config(*, storage: StorageConfig | None = None) -> ServerConfig:
    values = require_env_vars(("ACVP_SERVER_URL",))
    base_url = values["ACVP_SERVER_URL"].strip()
    if not base_url.startswith(("http://", "https://")):
        raise ConfigurationError(f"ACVP_SERVER_URL must be an http(s) URL: {base_url}")

    headers = {"Accept": "application/json"}
    token = optional_env_var("ACVP_ACCESS_TOKEN")
    if token:
        headers["Authorization"] = f"Bearer {token}"

    backend = cast("CacheBackend", env_choice("ACVP_HTTP_CACHE", CACHE_BACKENDS, default="off"))
    resilience = ResilienceConfig(
        name="acvp",
        base_url=base_url,
        timeout_seconds=SERVER_TIMEOUT_SECONDS,
        ratelimit=RateLimit(max_calls=5),
        cache=_cache_config(backend, storage),
        headers=headers,
    )

    return ServerConfig(
        base_url=base_url,
        resilience=resilience,
        protocol_version=optional_env_var("ACVP_PROTOCOL_VERSION", DEFAULT_PROTOCOL_VERSION)
        or DEFAULT_PROTOCOL_VERSION,
    )
