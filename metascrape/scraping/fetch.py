"""Network access with a single mirror fallback.

`NetworkTool` is the transport collaborator: an async `get(url, headers)`
that returns an `httpx.Response` and raises `NetworkError` on transport
failures or non-2xx statuses. `HttpxNetworkTool` is the default
implementation. `fetch_with_fallback` adds exactly one retry against the
request's mirror host; timeouts and low-level retries stay in the tool.
"""

import logging
from typing import Mapping, Optional, Protocol, runtime_checkable

import httpx

from metascrape.scraping.exceptions import NetworkError
from metascrape.scraping.models import ScraperRequest


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 20.0
USER_AGENT = "metascrape/0.1 (bibliographic metadata enrichment)"


@runtime_checkable
class NetworkTool(Protocol):
    async def get(self, url: str, headers: Optional[Mapping[str, str]] = None) -> Optional[httpx.Response]:
        ...


class HttpxNetworkTool:
    """httpx-backed transport.

    Usable as an async context manager; otherwise call `aclose()` when done.
    A client may be injected (tests pass one built on `httpx.MockTransport`).
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        user_agent: str = USER_AGENT,
    ):
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": user_agent},
        )

    async def get(self, url: str, headers: Optional[Mapping[str, str]] = None) -> httpx.Response:
        try:
            response = await self.client.get(url, headers=dict(headers or {}))
            response.raise_for_status()
        except (httpx.TimeoutException, httpx.RequestError, httpx.HTTPStatusError) as e:
            raise NetworkError.from_transport_error(url, e) from e
        return response

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "HttpxNetworkTool":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


def mirror_url(url: str, mirror_host: str) -> str:
    """Same URL with the host replaced; scheme, path and query are kept."""
    return str(httpx.URL(url).copy_with(host=mirror_host))


def _is_empty_response(response: Optional[httpx.Response]) -> bool:
    return response is None or not response.content


async def fetch_with_fallback(request: ScraperRequest, network: NetworkTool) -> httpx.Response:
    """Fetch `request.url`, retrying once against `request.mirror_host`.

    Args:
        request: Request built by a scraper's pre_process
        network: Transport collaborator

    Returns:
        Non-empty response from the primary or the mirror host

    Raises:
        NetworkError: The primary failed and there is no mirror, or the
            mirror failed as well (the mirror's error is raised unchanged)
    """
    try:
        response = await network.get(request.url, request.headers)
        primary_error: Optional[NetworkError] = None
    except NetworkError as e:
        response = None
        primary_error = e

    if not _is_empty_response(response):
        return response

    if not request.mirror_host:
        if primary_error is not None:
            raise primary_error
        raise NetworkError.from_empty_response(request.url)

    alternative = mirror_url(request.url, request.mirror_host)
    logger.debug(
        "fetch.mirror",
        extra={"extra_data": {"url": request.url, "mirror": alternative, "error": str(primary_error or "empty")}},
    )

    response = await network.get(alternative, request.headers)
    if _is_empty_response(response):
        raise NetworkError.from_empty_response(alternative)
    return response
