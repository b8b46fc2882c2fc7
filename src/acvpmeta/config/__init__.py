"""Application configuration helpers."""

from __future__ import annotations

from .env import env_choice, optional_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging, level_for_verbosity
from .reconcile import ReconcileOptions
from .server import ServerConfig, get_server_config
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "CacheConfig",
    "ConfigurationError",
    "DatabaseConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ReconcileOptions",
    "ResilienceConfig",
    "RetryPolicy",
    "ServerConfig",
    "StorageConfig",
    "configure_logging",
    "env_choice",
    "get_database_config",
    "get_server_config",
    "get_storage_config",
    "level_for_verbosity",
    "optional_env_var",
    "require_env_vars",
]
