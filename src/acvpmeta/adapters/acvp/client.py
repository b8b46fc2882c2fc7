"""HTTP client for the validation server's metadata collections."""

from __future__ import annotations

import asyncio
import dataclasses
from logging import getLogger
from typing import TYPE_CHECKING, Final
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from acvpmeta.adapters.http_resilience import ResilientClient, build_limiter
from acvpmeta.domain.envelope import encode_request, split_version, strip_version
from acvpmeta.domain.errors import MalformedError, NotFoundError, TransientError
from acvpmeta.domain.identifiers import id_from_url
from acvpmeta.domain.ports.remote import RequestTicket
from acvpmeta.domain.types import HttpVerb, RequestState, Resource, SearchControl

from .schema import ErrorResponse, RequestStatusPayload, SearchPage

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Mapping

    from acvpmeta.config import ResilienceConfig, ServerConfig
    from acvpmeta.domain.ports.remote import SearchCallback

log = getLogger(__name__)

DEFAULT_PAGE_SIZE: Final[int] = 20
_SUBMIT_VERBS: Final[frozenset[HttpVerb]] = frozenset(
    {HttpVerb.POST, HttpVerb.PUT, HttpVerb.DELETE}
)
_DECIDED_STATES: Final[frozenset[str]] = frozenset({RequestState.APPROVED, RequestState.REJECTED})


class AcvpAPIError(TransientError):
    """Raised when the server answers a request with an error status."""


def _should_cache_payload(payload: object) -> bool:
    # Only decided requests never change again; records and searches go stale.
    try:
        data = split_version(payload)
    except MalformedError:
        return False
    status = data.get("status")
    return isinstance(status, str) and status in _DECIDED_STATES


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


class AcvpClient:
    def __init__(
        self,
        *,
        config: ServerConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self.config = config
        resilience = config.resilience
        if resilience.cache.enabled:
            cache = dataclasses.replace(resilience.cache, should_cache=_should_cache_payload)
            resilience = dataclasses.replace(resilience, cache=cache)
        self._limiter = build_limiter(resilience.ratelimit)
        # The limiter outlives the per-call clients, so they get none of their own.
        self._resilience = dataclasses.replace(resilience, ratelimit=None)
        self._client_factory = client_factory or _default_client_factory
        self.page_size = page_size

    # --- urls -------------------------------------------------------------

    def path_for(self, resource: Resource, entity_id: int | None = None) -> str:
        path = f"/{self.config.api_prefix.strip('/')}/{resource}"
        if entity_id is not None:
            path = f"{path}/{entity_id}"
        return path

    def url_for(self, resource: Resource, entity_id: int | None = None) -> str:
        url = f"{self.config.api_root}/{resource}"
        if entity_id is not None:
            url = f"{url}/{entity_id}"
        return url

    @staticmethod
    def search_query(text: str) -> str:
        return f"name[0]=contains:{quote(text, safe='')}"

    # --- reads ------------------------------------------------------------

    def fetch(self, resource: Resource, entity_id: int) -> bytes:
        return asyncio.run(self._get_async(self.url_for(resource, entity_id)))

    def iter_search(self, resource: Resource, text: str) -> Iterator[dict[str, object]]:
        """Yield matching records page by page.

        Each page is fetched in its own event loop so that consumers may call
        back into the client between items.
        """

        offset = 0
        while True:
            page = self._fetch_page(resource, text, offset)
            if not page.data:
                return
            yield from page.data
            if not page.has_more:
                return
            offset += len(page.data)

    def search(self, resource: Resource, text: str, callback: SearchCallback) -> bool:
        for item in self.iter_search(resource, text):
            if callback(item) is SearchControl.STOP:
                return True
        return False

    def request_status(self, request_id: int) -> RequestTicket:
        raw = self.fetch(Resource.REQUESTS, request_id)
        _, data = strip_version(raw)
        return self._ticket(data)

    def _fetch_page(self, resource: Resource, text: str, offset: int) -> SearchPage:
        query = f"{self.search_query(text)}&offset={offset}&limit={self.page_size}"
        raw = asyncio.run(self._get_async(f"{self.url_for(resource)}?{query}"))
        _, data = strip_version(raw)
        try:
            return SearchPage.model_validate(data)
        except ValidationError as exc:
            raise MalformedError(f"Unexpected search page from {resource}: {exc}") from exc

    async def _get_async(self, url: str) -> bytes:
        async with self._client_factory(self._resilience) as client:
            await self._throttle()
            try:
                response = await client.get(url)
            except httpx.HTTPError as exc:
                raise TransientError(f"GET {url} failed: {exc}") from exc
            if response.status_code == httpx.codes.NOT_FOUND:
                raise NotFoundError(f"GET {url}: not found")
            _raise_for_status(response)
            return response.content

    # --- writes -----------------------------------------------------------

    def submit(
        self,
        verb: HttpVerb,
        resource: Resource,
        entity_id: int | None,
        payload: Mapping[str, object] | None,
    ) -> RequestTicket:
        if verb not in _SUBMIT_VERBS:
            raise ValueError(f"Cannot submit with {verb}")
        if verb is not HttpVerb.POST and entity_id is None:
            raise ValueError(f"{verb} needs an entity id")
        url = self.url_for(resource, None if verb is HttpVerb.POST else entity_id)
        content = None
        if payload is not None:
            content = encode_request(payload, version=self.config.protocol_version)
        raw = asyncio.run(self._submit_async(verb, url, content))
        _, data = strip_version(raw)
        return self._ticket(data)

    async def _submit_async(self, verb: HttpVerb, url: str, content: bytes | None) -> bytes:
        headers = {"Content-Type": "application/json"} if content is not None else None
        async with self._client_factory(self._resilience) as client:
            await self._throttle()
            try:
                response = await client.request(str(verb), url, content=content, headers=headers)
            except httpx.HTTPError as exc:
                raise TransientError(f"{verb} {url} failed: {exc}") from exc
            _raise_for_status(response)
            log.debug("%s %s -> %s", verb, url, response.status_code)
            return response.content

    # --- helpers ----------------------------------------------------------

    async def _throttle(self) -> None:
        if self._limiter is not None:
            await self._limiter.acquire()

    @staticmethod
    def _ticket(data: Mapping[str, object]) -> RequestTicket:
        try:
            payload = RequestStatusPayload.model_validate(data)
        except ValidationError as exc:
            raise MalformedError(f"Unexpected request status payload: {exc}") from exc
        approved_id = None
        if payload.status is RequestState.APPROVED and payload.approved_url:
            approved_id = id_from_url(payload.approved_url)
        return RequestTicket(
            request_id=id_from_url(payload.url),
            state=payload.status,
            approved_id=approved_id,
        )


def _raise_for_status(response: httpx.Response) -> None:
    try:
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        message = f"{response.request.method} {response.request.url}: HTTP {response.status_code}"
        detail = _error_detail(response)
        if detail:
            message = f"{message}: {detail}"
        log.error(message)
        raise AcvpAPIError(message, status_code=response.status_code) from exc


def _error_detail(response: httpx.Response) -> str | None:
    try:
        _, data = strip_version(response.content)
        return ErrorResponse.model_validate(data).error
    except (MalformedError, ValidationError):
        return None
