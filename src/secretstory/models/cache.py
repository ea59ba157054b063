from __future__ import annotations

from datetime import datetime

import httpx
from pydantic import BaseModel


class CachedResponse(BaseModel):
    """A stored response inside one cache generation, keyed by method + URL."""

    cache_name: str
    method: str
    url: str
    status: int
    headers: list[tuple[str, str]] = []
    body: bytes = b""
    stored_at: datetime

    def as_response(self) -> httpx.Response:
        return httpx.Response(
            self.status,
            headers=self.headers,
            content=self.body,
            request=httpx.Request(self.method, self.url),
        )
