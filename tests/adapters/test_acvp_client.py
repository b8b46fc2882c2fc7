from __future__ import annotations

import json
import time
from collections.abc import Callable, Sequence  # noqa: TC003
from typing import TYPE_CHECKING

import httpx
import pytest

from acvpmeta.adapters.acvp import AcvpAPIError, AcvpClient
from acvpmeta.adapters.acvp.client import _should_cache_payload  # type: ignore[reportPrivateUsage]
from acvpmeta.adapters.http_resilience import ResilientClient
from acvpmeta.config import CacheConfig, RateLimit, ResilienceConfig, ServerConfig
from acvpmeta.domain.errors import NotFoundError, TransientError
from acvpmeta.domain.ports.remote import RequestTicket
from acvpmeta.domain.types import HttpVerb, RequestState, Resource, SearchControl
from tests.helpers.reconciliation import envelope

if TYPE_CHECKING:
    from pathlib import Path

BASE_URL = "https://demo.acvts.example"


def _make_client(
    handler: Callable[[httpx.Request], httpx.Response],
    *,
    page_size: int = 20,
    resilience: ResilienceConfig | None = None,
    built: list[ResilienceConfig] | None = None,
) -> AcvpClient:
    async def async_handler(request: httpx.Request) -> httpx.Response:
        return handler(request)

    def factory(config: ResilienceConfig) -> ResilientClient:
        if built is not None:
            built.append(config)
        client = ResilientClient(config)
        client._client = httpx.AsyncClient(transport=httpx.MockTransport(async_handler))  # noqa: SLF001  # type: ignore[reportPrivateUsage]
        return client

    config = ServerConfig(
        base_url=BASE_URL,
        resilience=resilience or ResilienceConfig(name="acvp-test"),
    )
    return AcvpClient(config=config, client_factory=factory, page_size=page_size)


def _recording(
    responses: Sequence[httpx.Response],
) -> tuple[list[httpx.Request], Callable[[httpx.Request], httpx.Response]]:
    seen: list[httpx.Request] = []
    pending = list(responses)

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return pending.pop(0)

    return seen, handler


def test_fetch_returns_raw_body() -> None:
    body = envelope({"url": "/acvp/v1/dependencies/5", "type": "processor"})
    seen, handler = _recording([httpx.Response(200, content=body)])

    raw = _make_client(handler).fetch(Resource.DEPENDENCIES, 5)

    assert raw == body
    assert str(seen[0].url) == f"{BASE_URL}/acvp/v1/dependencies/5"
    assert seen[0].method == "GET"


def test_fetch_missing_record_raises_not_found() -> None:
    _, handler = _recording([httpx.Response(404)])

    with pytest.raises(NotFoundError):
        _make_client(handler).fetch(Resource.OES, 9)


def test_server_error_carries_status_and_detail() -> None:
    body = json.dumps({"error": "database unavailable"}).encode()
    _, handler = _recording([httpx.Response(503, content=body)])

    with pytest.raises(AcvpAPIError) as excinfo:
        _make_client(handler).fetch(Resource.OES, 9)

    assert excinfo.value.status_code == 503
    assert "database unavailable" in str(excinfo.value)


def test_network_failure_is_transient() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransientError):
        _make_client(handler).fetch(Resource.OES, 9)


def test_search_walks_all_pages() -> None:
    first = envelope(
        {
            "totalCount": 3,
            "incomplete": True,
            "links": {"next": "/acvp/v1/oes?offset=2"},
            "data": [{"name": "Linux 5.4 a"}, {"name": "Linux 5.4 b"}],
        }
    )
    second = envelope({"totalCount": 3, "incomplete": False, "data": [{"name": "Linux 5.4 c"}]})
    seen, handler = _recording(
        [httpx.Response(200, content=first), httpx.Response(200, content=second)]
    )
    names: list[object] = []

    def collect(item: object) -> SearchControl:
        names.append(item["name"])  # type: ignore[index]
        return SearchControl.CONTINUE

    stopped = _make_client(handler, page_size=2).search(Resource.OES, "Linux 5.4", collect)

    assert stopped is False
    assert names == ["Linux 5.4 a", "Linux 5.4 b", "Linux 5.4 c"]
    assert [request.url.params["offset"] for request in seen] == ["0", "2"]
    assert seen[0].url.params["name[0]"] == "contains:Linux 5.4"
    assert seen[0].url.params["limit"] == "2"


def test_search_stops_when_callback_says_so() -> None:
    page = envelope(
        {"incomplete": True, "links": {"next": "/next"}, "data": [{"name": "a"}, {"name": "b"}]}
    )
    seen, handler = _recording([httpx.Response(200, content=page)])

    stopped = _make_client(handler).search(
        Resource.DEPENDENCIES, "a", lambda _item: SearchControl.STOP
    )

    assert stopped is True
    assert len(seen) == 1


def test_search_query_escapes_text() -> None:
    assert AcvpClient.search_query("Linux 5.4 & co") == "name[0]=contains:Linux%205.4%20%26%20co"


def test_submit_wraps_payload_in_envelope() -> None:
    answer = envelope({"url": "/acvp/v1/requests/77", "status": "initial"})
    seen, handler = _recording([httpx.Response(200, content=answer)])

    ticket = _make_client(handler).submit(
        HttpVerb.POST, Resource.DEPENDENCIES, None, {"type": "software", "name": "Linux"}
    )

    assert ticket == RequestTicket(77, RequestState.INITIAL)
    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == f"{BASE_URL}/acvp/v1/dependencies"
    assert json.loads(request.content) == [
        {"acvVersion": "1.0"},
        {"type": "software", "name": "Linux"},
    ]


def test_submit_update_reports_approved_record() -> None:
    answer = envelope(
        {
            "url": "/acvp/v1/requests/78",
            "status": "approved",
            "approvedUrl": "/acvp/v1/oes/12",
        }
    )
    seen, handler = _recording([httpx.Response(200, content=answer)])

    ticket = _make_client(handler).submit(HttpVerb.PUT, Resource.OES, 12, {"name": "x"})

    assert ticket == RequestTicket(78, RequestState.APPROVED, approved_id=12)
    assert str(seen[0].url) == f"{BASE_URL}/acvp/v1/oes/12"


def test_delete_sends_no_body() -> None:
    answer = envelope({"url": "/acvp/v1/requests/79", "status": "processing"})
    seen, handler = _recording([httpx.Response(200, content=answer)])

    ticket = _make_client(handler).submit(HttpVerb.DELETE, Resource.OES, 12, None)

    assert ticket.state is RequestState.PROCESSING
    assert seen[0].method == "DELETE"
    assert seen[0].content == b""


def test_submit_rejects_invalid_calls() -> None:
    client = _make_client(lambda _request: httpx.Response(500))

    with pytest.raises(ValueError, match="needs an entity id"):
        client.submit(HttpVerb.PUT, Resource.OES, None, {"name": "x"})
    with pytest.raises(ValueError, match="Cannot submit"):
        client.submit(HttpVerb.GET, Resource.OES, 1, None)


def test_request_status_reads_request_collection() -> None:
    answer = envelope({"url": "/acvp/v1/requests/80", "status": "rejected"})
    seen, handler = _recording([httpx.Response(200, content=answer)])

    ticket = _make_client(handler).request_status(80)

    assert ticket == RequestTicket(80, RequestState.REJECTED)
    assert str(seen[0].url) == f"{BASE_URL}/acvp/v1/requests/80"


def test_only_decided_requests_are_cached() -> None:
    assert _should_cache_payload([{"acvVersion": "1.0"}, {"status": "approved"}]) is True
    assert _should_cache_payload([{"acvVersion": "1.0"}, {"status": "rejected"}]) is True
    assert _should_cache_payload([{"acvVersion": "1.0"}, {"status": "initial"}]) is False
    assert _should_cache_payload([{"acvVersion": "1.0"}, {"status": "processing"}]) is False
    assert _should_cache_payload("not an envelope") is False


def test_records_and_search_pages_are_never_cached() -> None:
    record = {"url": "/acvp/v1/oes/40", "name": "Linux 5.4 on Intel Skylake"}
    page = {"totalCount": 1, "incomplete": False, "data": [record]}

    assert _should_cache_payload([{"acvVersion": "1.0"}, record]) is False
    assert _should_cache_payload([{"acvVersion": "1.0"}, page]) is False


def test_cached_client_installs_payload_filter(tmp_path: Path) -> None:
    cache = CacheConfig(backend="sqlite", sqlite_path=str(tmp_path / "cache.db"), ttl_seconds=60)
    built: list[ResilienceConfig] = []
    _, handler = _recording([httpx.Response(200, content=envelope({"url": "/x/1"}))])

    _make_client(
        handler, resilience=ResilienceConfig(name="cached", cache=cache), built=built
    ).fetch(Resource.OES, 1)

    assert built[0].cache.should_cache is _should_cache_payload
    assert built[0].cache.ttl_seconds == 60


def test_rate_limit_spans_separate_calls() -> None:
    body = envelope({"url": "/acvp/v1/oes/1", "name": "x"})
    _, handler = _recording([httpx.Response(200, content=body) for _ in range(3)])
    limited = ResilienceConfig(name="limited", ratelimit=RateLimit(max_calls=1, per_seconds=0.4))
    built: list[ResilienceConfig] = []
    client = _make_client(handler, resilience=limited, built=built)

    started = time.monotonic()
    for _ in range(3):
        client.fetch(Resource.OES, 1)

    assert time.monotonic() - started >= 0.7
    assert len(built) == 3
    assert all(config.ratelimit is None for config in built)
