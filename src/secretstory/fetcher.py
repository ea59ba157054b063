"""Network access for the cache controller.

The fetcher never inspects status codes: a 404 or 500 is a valid network
response and is handed back as-is. Only transport failures (DNS, refused
connection, timeouts, unsupported schemes) raise, as
``SecretStoryError(NETWORK_UNAVAILABLE)``, which is what the controller treats
as being offline.
"""

from __future__ import annotations

import httpx
import structlog

from secretstory.errors import ErrorCode, SecretStoryError
from secretstory.models.fetch import InterceptedRequest

log = structlog.get_logger()

USER_AGENT = "secretstory-offline/0.1"

# Hop-by-hop headers the page may carry but the client must set itself.
_SKIPPED_REQUEST_HEADERS = frozenset({"host", "content-length", "connection"})


def build_http_client(timeout_seconds: float = 10.0) -> httpx.AsyncClient:
    """Shared client used for both asset fetches and backend calls."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout_seconds),
        follow_redirects=True,
        headers={"User-Agent": USER_AGENT},
    )


class Fetcher:
    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def fetch(self, request: InterceptedRequest) -> httpx.Response:
        """Send ``request`` over the network and return the full response."""
        headers = {
            key: value
            for key, value in request.headers.items()
            if key.lower() not in _SKIPPED_REQUEST_HEADERS
        }
        try:
            return await self._client.request(
                request.method,
                request.url,
                headers=headers,
                content=request.body,
            )
        except httpx.HTTPError as exc:
            log.info("network_unavailable", url=request.url, error=str(exc))
            raise SecretStoryError(
                code=ErrorCode.NETWORK_UNAVAILABLE,
                message=f"Network request failed for {request.url}: {exc}",
                suggestion="Check the connection and try again.",
                recoverable=True,
            ) from exc

    async def get(self, url: str) -> httpx.Response:
        return await self.fetch(InterceptedRequest(url=url))
