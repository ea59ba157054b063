"""Routed paths of the web app.

The app uses hash routing, so both ``/to/alice`` and ``/#/to/alice`` resolve
to the same view. Each send view is backed by a ``SendFlow`` preset.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum
from urllib.parse import parse_qs, unquote, urlsplit

from secretstory.messaging import PUBLIC_VIEW, SEND_PAGE, SHARE_VIEW, Presentation


class View(StrEnum):
    HOME = "home"
    SEND = "send"
    SHARE = "share"
    PUBLIC = "public"
    NOT_FOUND = "not_found"


PRESENTATIONS: dict[View, Presentation] = {
    View.SEND: SEND_PAGE,
    View.SHARE: SHARE_VIEW,
    View.PUBLIC: PUBLIC_VIEW,
}

_SEND_RE = re.compile(r"^/send/([^/]+)/?$")
_PUBLIC_RE = re.compile(r"^/to/([^/]+)/?$")


@dataclass(frozen=True)
class RouteMatch:
    view: View
    username: str | None = None

    @property
    def presentation(self) -> Presentation | None:
        return PRESENTATIONS.get(self.view)


def resolve_route(location: str) -> RouteMatch:
    """Map a path (optionally with query string or hash route) to a view."""
    parts = urlsplit(location)
    if parts.fragment.startswith("/"):
        parts = urlsplit(parts.fragment)
    path = parts.path or "/"

    if path == "/":
        return RouteMatch(View.HOME)
    if path.rstrip("/") == "/share":
        values = parse_qs(parts.query).get("to")
        return RouteMatch(View.SHARE, values[0] if values else None)
    if match := _SEND_RE.match(path):
        return RouteMatch(View.SEND, unquote(match.group(1)))
    if match := _PUBLIC_RE.match(path):
        return RouteMatch(View.PUBLIC, unquote(match.group(1)))
    return RouteMatch(View.NOT_FOUND)
