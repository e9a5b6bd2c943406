"""
Tests for ApiClient using httpx.MockTransport.
"""

import httpx
import pytest
import pytest_asyncio

from tripcache.services.client import ApiClient
from tripcache.services.errors import (
    ClientError,
    NetworkError,
    RateLimitError,
    RequestTimeoutError,
    ServiceUnavailableError,
)
from tripcache.services.orchestrator import RequestOptions

PLACES_URL = "https://maps.example.com/place/textsearch/json"


class MockProvider:
    """Replays queued responses and records requests."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest_asyncio.fixture
async def make_client(orchestrator):
    clients: list[ApiClient] = []

    def factory(provider: MockProvider) -> ApiClient:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(provider))
        client = ApiClient(orchestrator, http_client=http_client)
        clients.append(client)
        return client

    yield factory
    for client in clients:
        await client._http_client.aclose()


class TestApiClient:
    """Test ApiClient."""

    @pytest.mark.asyncio
    async def test_get_is_cached(self, make_client):
        provider = MockProvider(httpx.Response(200, json={"results": [{"name": "Belem"}]}))
        client = make_client(provider)

        first = await client.get_json("places", PLACES_URL, params={"query": "museums"})
        second = await client.get_json("places", PLACES_URL, params={"query": "museums"})

        assert first == second == {"results": [{"name": "Belem"}]}
        assert len(provider.requests) == 1
        assert provider.requests[0].url.params["query"] == "museums"

    @pytest.mark.asyncio
    async def test_different_params_are_different_entries(self, make_client):
        provider = MockProvider(httpx.Response(200, json={"ok": True}))
        client = make_client(provider)

        await client.get_json("places", PLACES_URL, params={"query": "museums"})
        await client.get_json("places", PLACES_URL, params={"query": "parks"})

        assert len(provider.requests) == 2

    @pytest.mark.asyncio
    async def test_post_body_is_part_of_key(self, make_client):
        provider = MockProvider(httpx.Response(200, json={"choices": []}))
        client = make_client(provider)
        url = "https://llm.example.com/v1/chat/completions"

        await client.post_json("places", url, {"prompt": "3 days in Rome"})
        await client.post_json("places", url, {"prompt": "3 days in Rome"})
        await client.post_json("places", url, {"prompt": "3 days in Paris"})

        assert len(provider.requests) == 2
        assert provider.requests[0].method == "POST"

    @pytest.mark.asyncio
    async def test_rate_limit_is_retried_with_retry_after(self, make_client, sleep):
        provider = MockProvider(
            httpx.Response(429, headers={"Retry-After": "3"}),
            httpx.Response(200, json={"ok": True}),
        )
        client = make_client(provider)

        assert await client.get_json("places", PLACES_URL) == {"ok": True}
        assert len(provider.requests) == 2
        assert sleep.delays == [3.0]

    @pytest.mark.asyncio
    async def test_unavailable_exhausts_retries(self, make_client, sleep):
        provider = MockProvider(httpx.Response(503))
        client = make_client(provider)

        with pytest.raises(ServiceUnavailableError) as exc_info:
            await client.get_json("places", PLACES_URL)

        assert exc_info.value.status == 503
        assert len(provider.requests) == 4
        assert sleep.delays == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self, make_client, sleep):
        provider = MockProvider(httpx.Response(404, text="no such place"))
        client = make_client(provider)

        with pytest.raises(ClientError) as exc_info:
            await client.get_json("places", PLACES_URL)

        assert exc_info.value.status == 404
        assert len(provider.requests) == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_invalid_json_is_client_error(self, make_client):
        provider = MockProvider(httpx.Response(200, text="<html>oops</html>"))
        client = make_client(provider)

        with pytest.raises(ClientError):
            await client.get_json("places", PLACES_URL)
        assert len(provider.requests) == 1

    @pytest.mark.asyncio
    async def test_timeouts_and_network_errors(self, make_client):
        timeout = MockProvider(httpx.ReadTimeout("slow"))
        with pytest.raises(RequestTimeoutError):
            await make_client(timeout).get_json(
                "places", PLACES_URL, options=RequestOptions(use_cache=False)
            )
        assert len(timeout.requests) == 4

        refused = MockProvider(httpx.ConnectError("refused"))
        with pytest.raises(NetworkError):
            await make_client(refused).get_json(
                "reviews", PLACES_URL, options=RequestOptions(use_cache=False)
            )

    @pytest.mark.asyncio
    async def test_explicit_cache_key(self, make_client, registry):
        provider = MockProvider(httpx.Response(200, json={"ok": True}))
        client = make_client(provider)

        await client.get_json("places", PLACES_URL, cache_key="lisbon-museums")

        assert await registry.get("places", "lisbon-museums") == {"ok": True}

    @pytest.mark.asyncio
    async def test_rate_limit_error_carries_retry_after(self, make_client):
        provider = MockProvider(httpx.Response(429, headers={"Retry-After": "2"}))
        client = make_client(provider)

        with pytest.raises(RateLimitError) as exc_info:
            await client.get_json("places", PLACES_URL)
        assert exc_info.value.retry_after == 2.0
