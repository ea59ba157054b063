from __future__ import annotations

from typing import Literal
from urllib.parse import urlsplit

from pydantic import BaseModel, field_validator

RequestMode = Literal["navigate", "cors", "no-cors", "same-origin"]
RequestDestination = Literal[
    "", "document", "image", "script", "style", "manifest", "font", "audio", "video", "worker"
]


class InterceptedRequest(BaseModel):
    """An outgoing request as seen by the cache controller."""

    method: str = "GET"
    url: str
    mode: RequestMode = "no-cors"
    destination: RequestDestination = ""
    headers: dict[str, str] = {}
    body: bytes | None = None

    @field_validator("method")
    @classmethod
    def normalize_method(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        v = v.strip()
        parts = urlsplit(v)
        if not parts.scheme:
            raise ValueError(f"url must be absolute: {v!r}")
        return v

    @property
    def scheme(self) -> str:
        return urlsplit(self.url).scheme

    @property
    def host(self) -> str:
        return urlsplit(self.url).hostname or ""

    @property
    def path(self) -> str:
        return urlsplit(self.url).path or "/"
