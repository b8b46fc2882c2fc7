"""Transport settings shared by the resilient HTTP client."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from collections.abc import Mapping

ShouldCacheHook = Callable[[object], bool]

type CacheBackend = Literal["off", "sqlite"]

CACHE_BACKENDS: tuple[CacheBackend, ...] = ("off", "sqlite")


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """Retries for failed reads.

    Every submission opens a new request on the server, so POST, PUT and
    DELETE are never repeated by the transport.
    """

    total: int = 4
    backoff_factor: float = 0.5
    max_backoff_wait: float = 60.0
    methods: frozenset[str] = frozenset({"GET", "HEAD", "OPTIONS"})
    statuses: frozenset[int] = frozenset({429, 500, 502, 503, 504})


@dataclass(slots=True, frozen=True)
class RateLimit:
    max_calls: int
    per_seconds: float = 1.0


@dataclass(slots=True, frozen=True)
class CacheConfig:
    backend: CacheBackend = "off"
    sqlite_path: str | None = None
    ttl_seconds: float | None = None
    should_cache: ShouldCacheHook | None = None

    @property
    def enabled(self) -> bool:
        return self.backend != "off"


@dataclass(slots=True, frozen=True)
class ResilienceConfig:
    name: str
    base_url: str | None = None
    timeout_seconds: float = 30.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    ratelimit: RateLimit | None = None
    cache: CacheConfig = field(default_factory=CacheConfig)
    headers: Mapping[str, str] = field(default_factory=dict)
