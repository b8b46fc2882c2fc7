"""Async HTTP client with retries, rate limiting and an optional response cache."""

from __future__ import annotations

import json
import threading
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from aiolimiter import AsyncLimiter
from hishel import AsyncSqliteStorage, FilterPolicy
from hishel import Response as HishelCacheResponse
from hishel._policies import BaseFilter
from hishel.httpx import AsyncCacheClient
from httpx_retries import Retry, RetryTransport

from acvpmeta.config.storage import get_storage_config

if TYPE_CHECKING:
    from collections.abc import Mapping
    from types import TracebackType

    from acvpmeta.config.http_resilience import (
        CacheConfig,
        RateLimit,
        ResilienceConfig,
        RetryPolicy,
        ShouldCacheHook,
    )

log = getLogger(__name__)


def build_retry(policy: RetryPolicy) -> Retry:
    return Retry(
        total=policy.total,
        backoff_factor=policy.backoff_factor,
        max_backoff_wait=policy.max_backoff_wait,
        allowed_methods=sorted(policy.methods),
        status_forcelist=sorted(policy.statuses),
    )


class SharedLimiter:
    """One ``AsyncLimiter`` budget for many short-lived event loops.

    Callers in different threads take turns; only the caller holding the turn
    touches the limiter, and it waits on its own loop.
    """

    def __init__(self, ratelimit: RateLimit) -> None:
        self.ratelimit = ratelimit
        self._limiter = AsyncLimiter(ratelimit.max_calls, ratelimit.per_seconds)
        self._turn = threading.Lock()

    async def acquire(self) -> None:
        with self._turn:
            await self._limiter.acquire()


def build_limiter(ratelimit: RateLimit | None) -> SharedLimiter | None:
    if ratelimit is None:
        return None
    return SharedLimiter(ratelimit)


class ResilientClient:
    """``httpx.AsyncClient`` behind a retrying transport and an optional limiter.

    Use as an async context manager; an instance belongs to one event loop.
    Pass ``limiter`` to share a budget with other clients.
    """

    def __init__(self, config: ResilienceConfig, *, limiter: SharedLimiter | None = None) -> None:
        self.config = config
        self._limiter = limiter or build_limiter(config.ratelimit)
        self._client = _build_client(config)

    async def __aenter__(self) -> ResilientClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        url: str,
        *,
        content: bytes | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        if self._limiter is not None:
            await self._limiter.acquire()
        return await self._client.request(method, url, content=content, headers=headers)

    async def get(self, url: str) -> httpx.Response:
        return await self.request("GET", url)


def _build_client(config: ResilienceConfig) -> httpx.AsyncClient:
    transport = RetryTransport(retry=build_retry(config.retry))
    common = {
        "base_url": config.base_url or "",
        "timeout": config.timeout_seconds,
        "headers": dict(config.headers),
        "transport": transport,
    }
    cache = config.cache
    if not cache.enabled:
        return httpx.AsyncClient(**common)  # type: ignore[arg-type]

    log.debug("HTTP cache for %s: %s", config.name, cache.backend)
    return AsyncCacheClient(
        **common,  # type: ignore[arg-type]
        storage=_cache_storage(cache),
        policy=_cache_policy(cache),
    )


def _cache_storage(cache: CacheConfig) -> AsyncSqliteStorage:
    path = cache.sqlite_path or str(get_storage_config().http_cache_path())
    return AsyncSqliteStorage(database_path=path, default_ttl=cache.ttl_seconds)


def _cache_policy(cache: CacheConfig) -> FilterPolicy | None:
    if cache.should_cache is None:
        return None
    return FilterPolicy(response_filters=[_PayloadFilter(cache.should_cache)])


class _PayloadFilter(BaseFilter[HishelCacheResponse]):
    """Let a predicate over the decoded JSON body decide whether to cache."""

    def __init__(self, predicate: ShouldCacheHook) -> None:
        self._predicate = predicate

    def needs_body(self) -> bool:
        return True

    def apply(self, item: HishelCacheResponse, body: bytes | None) -> bool:  # noqa: ARG002
        if body is None:
            return True
        try:
            payload = json.loads(body)
        except (UnicodeDecodeError, json.JSONDecodeError):
            return False
        return bool(self._predicate(payload))
