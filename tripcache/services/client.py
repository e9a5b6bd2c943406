"""
ApiClient - JSON over HTTP through the request orchestrator.

Turns a provider GET/POST into a zero-argument fetch that raises classified
errors, keys it deterministically and sends it through
RequestOrchestrator.request(), so provider services get caching,
deduplication and retries without re-implementing them.
"""

from typing import Any

import httpx
from loguru import logger

from tripcache.services.errors import (
    ClientError,
    NetworkError,
    RateLimitError,
    RequestTimeoutError,
    ServiceError,
    ServiceUnavailableError,
)
from tripcache.services.classifier import UNAVAILABLE_STATUSES
from tripcache.services.orchestrator import RequestOptions, RequestOrchestrator


class ApiClient:
    """
    HTTP JSON client backed by the orchestrator.

    Usage:
        client = ApiClient(orchestrator)

        places = await client.get_json(
            "google-maps-api",
            "https://maps.example.com/place/textsearch/json",
            params={"query": "museums in Lisbon"},
        )
    """

    def __init__(
        self,
        orchestrator: RequestOrchestrator,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._orchestrator = orchestrator
        self._timeout = timeout
        self._headers = headers or {}
        self._http_client = http_client
        self._owns_client = http_client is None

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
            )
        return self._http_client

    async def get_json(
        self,
        namespace: str,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        cache_key: str | None = None,
        options: RequestOptions | None = None,
    ) -> Any:
        """
        Cached GET returning parsed JSON.

        Args:
            namespace: Registered namespace
            url: Full URL to request
            params: Query parameters (part of the cache key)
            headers: Additional headers (not part of the cache key)
            cache_key: Explicit cache key instead of one derived from url/params
            options: Request options
        """
        key = cache_key or self._orchestrator.make_key(f"GET {url}", params)

        async def fetch() -> Any:
            return await self._execute_request(
                "GET", url, namespace, params=params, headers=headers
            )

        return await self._orchestrator.request(namespace, key, fetch, options)

    async def post_json(
        self,
        namespace: str,
        url: str,
        json_data: dict[str, Any],
        headers: dict[str, str] | None = None,
        cache_key: str | None = None,
        options: RequestOptions | None = None,
    ) -> Any:
        """
        Cached POST returning parsed JSON; the body is part of the cache key.

        Used for completion-style providers where identical prompts should
        share a result.
        """
        key = cache_key or self._orchestrator.make_key(
            f"POST {url}", {"body": json_data}
        )

        async def fetch() -> Any:
            return await self._execute_request(
                "POST", url, namespace, json_data=json_data, headers=headers
            )

        return await self._orchestrator.request(namespace, key, fetch, options)

    async def _execute_request(
        self,
        method: str,
        url: str,
        namespace: str,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """Execute the actual HTTP request, mapping failures to our errors."""
        client = await self._get_http_client()
        req_headers = {**self._headers, **(headers or {})}

        try:
            response = await client.request(
                method=method,
                url=url,
                params=params,
                headers=req_headers,
                json=json_data,
                timeout=self._timeout,
            )
            response.raise_for_status()

        except httpx.TimeoutException as e:
            raise RequestTimeoutError(namespace, self._timeout) from e

        except httpx.HTTPStatusError as e:
            raise self._status_error(e.response, namespace) from e

        except httpx.RequestError as e:
            raise NetworkError(
                f"Network error: {type(e).__name__}: {e}", namespace=namespace
            ) from e

        try:
            return response.json()
        except ValueError as e:
            raise ClientError(
                f"Invalid JSON from {url}: {e}",
                namespace=namespace,
                status=response.status_code,
            ) from e

    @staticmethod
    def _status_error(response: httpx.Response, namespace: str) -> ServiceError:
        status = response.status_code
        if status == 429:
            return RateLimitError(namespace, _retry_after(response))
        if status in UNAVAILABLE_STATUSES:
            return ServiceUnavailableError(
                f"HTTP {status}: service unavailable",
                namespace=namespace,
                status=status,
            )
        message = f"HTTP {status}: {response.text[:200]}"
        if 400 <= status < 500:
            return ClientError(message, namespace=namespace, status=status)
        return ServiceError(message, namespace=namespace)

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None
        logger.debug("ApiClient closed")

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def _retry_after(response: httpx.Response) -> float | None:
    """Retry-After header in seconds, when given as a number."""
    value = response.headers.get("retry-after")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None
