"""Offline cache lifecycle controller.

A controller moves through ``PARSED -> INSTALLING -> INSTALLED -> ACTIVATING
-> ACTIVE``. Install precaches the application shell into the static
generation, activate deletes every generation that is not current, and once
active every outgoing request goes through ``handle_fetch``:

1. bypass: backend host, API paths, non-GET methods and browser-extension
   schemes go straight to the network, the cache is neither read nor written;
2. navigation: extensionless page loads are answered with the cached shell,
   then the network, then an offline HTML placeholder;
3. everything else: cache, then network (200 responses are stored), then a
   fallback icon for images or a 408 text response.

Two controllers exist and are mutually exclusive: ``CacheController`` (full
offline support) and ``PassthroughController`` (installs and claims clients
but never touches the cache). ``build_controller`` picks one from settings.

Cache failures are absorbed by ``CacheStorage``; only a network failure
produces a placeholder response.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Protocol
from urllib.parse import urljoin

import httpx
import structlog

from secretstory.errors import SecretStoryError
from secretstory.models.push import Notification, PushPayload

if TYPE_CHECKING:
    from secretstory.cache import CacheStorage
    from secretstory.config import Settings
    from secretstory.fetcher import Fetcher
    from secretstory.models.fetch import InterceptedRequest

log = structlog.get_logger()

SKIP_WAITING = "SKIP_WAITING"

EXTENSION_SCHEMES = frozenset(
    {"chrome-extension", "moz-extension", "safari-extension", "safari-web-extension"}
)

OFFLINE_TEXT = "Ressource non disponible hors ligne"

_OFFLINE_HTML_TEMPLATE = """<!DOCTYPE html>
<html lang="fr">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>{name} - Hors ligne</title>
</head>
<body style="font-family: sans-serif; text-align: center; padding: 48px 16px;">
  <h1>{name}</h1>
  <p><strong>Application hors ligne</strong></p>
  <p>Vérifie ta connexion internet puis réessaie.</p>
</body>
</html>
"""


class WorkerState(StrEnum):
    PARSED = "parsed"
    INSTALLING = "installing"
    INSTALLED = "installed"
    ACTIVATING = "activating"
    ACTIVE = "active"


class WindowClient(Protocol):
    url: str

    async def focus(self) -> None: ...


class WorkerHost(Protocol):
    """What the controller needs from the environment hosting it."""

    async def skip_waiting(self) -> None: ...

    async def claim_clients(self) -> None: ...

    async def window_clients(self) -> list[WindowClient]: ...

    async def open_window(self, url: str) -> None: ...

    async def show_notification(self, notification: Notification) -> None: ...


@dataclass
class LocalWindow:
    url: str
    focused: bool = False

    async def focus(self) -> None:
        self.focused = True


@dataclass
class LocalHost:
    """In-process host: records lifecycle calls and keeps windows in memory."""

    windows: list[LocalWindow] = field(default_factory=list)
    notifications: list[Notification] = field(default_factory=list)
    waiting_skipped: bool = False
    clients_claimed: bool = False

    async def skip_waiting(self) -> None:
        self.waiting_skipped = True

    async def claim_clients(self) -> None:
        self.clients_claimed = True

    async def window_clients(self) -> list[WindowClient]:
        return list(self.windows)

    async def open_window(self, url: str) -> None:
        window = LocalWindow(url=url, focused=True)
        self.windows.append(window)
        log.info("window_opened", url=url)

    async def show_notification(self, notification: Notification) -> None:
        self.notifications.append(notification)
        log.info("notification_shown", title=notification.title, url=notification.url)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _offline_html(app_name: str) -> httpx.Response:
    return httpx.Response(
        200,
        headers={"Content-Type": "text/html; charset=utf-8"},
        content=_OFFLINE_HTML_TEMPLATE.format(name=app_name).encode("utf-8"),
    )


def _offline_text() -> httpx.Response:
    return httpx.Response(
        408,
        headers={"Content-Type": "text/plain; charset=utf-8"},
        content=OFFLINE_TEXT.encode("utf-8"),
    )


class _BaseController:
    """Lifecycle transitions and control messages shared by both variants."""

    def __init__(self, settings: Settings, fetcher: Fetcher, host: WorkerHost) -> None:
        self._settings = settings
        self._fetcher = fetcher
        self._host = host
        self.state = WorkerState.PARSED

    @property
    def origin(self) -> str:
        return self._settings.app.origin

    def absolute(self, path: str) -> str:
        return urljoin(self.origin + "/", path)

    async def handle_message(self, data: object) -> bool:
        """Handle a control message. Returns True when it was recognised."""
        kind = data.get("type") if isinstance(data, dict) else data
        if kind == SKIP_WAITING:
            log.info("skip_waiting_requested")
            await self._host.skip_waiting()
            return True
        log.debug("control_message_ignored", message=repr(data))
        return False


class CacheController(_BaseController):
    """Full offline controller backed by a ``CacheStorage``."""

    def __init__(
        self,
        settings: Settings,
        storage: CacheStorage,
        fetcher: Fetcher,
        host: WorkerHost,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        super().__init__(settings, fetcher, host)
        self._storage = storage
        self._clock = clock
        offline = settings.offline
        self.static_cache = offline.static_cache_name
        self.runtime_cache = offline.runtime_cache_name

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def install(self) -> list[str]:
        """Precache the shell manifest. Returns the URLs that were stored.

        A failed asset is logged and skipped; install always completes.
        """
        self.state = WorkerState.INSTALLING
        stored: list[str] = []
        if await self._storage.open(self.static_cache, created_at=self._clock()):
            urls = [self.absolute(path) for path in self._settings.offline.precache]
            results = await asyncio.gather(*(self._precache_one(url) for url in urls))
            stored = [url for url, ok in zip(urls, results, strict=True) if ok]
        else:
            log.warning("precache_failed", cache_name=self.static_cache, reason="open failed")

        log.info(
            "install_complete",
            cache_name=self.static_cache,
            stored=len(stored),
            expected=len(self._settings.offline.precache),
        )
        await self._host.skip_waiting()
        self.state = WorkerState.INSTALLED
        return stored

    async def _precache_one(self, url: str) -> bool:
        try:
            response = await self._fetcher.get(url)
        except SecretStoryError as exc:
            log.warning("precache_failed", url=url, error=exc.message)
            return False
        if response.status_code != 200:
            log.warning("precache_failed", url=url, status=response.status_code)
            return False
        return await self._storage.put(
            self.static_cache, "GET", url, response, stored_at=self._clock()
        )

    async def activate(self) -> list[str]:
        """Delete superseded generations and take control of open clients.

        Returns the names of the deleted generations.
        """
        self.state = WorkerState.ACTIVATING
        current = {self.static_cache, self.runtime_cache}
        deleted: list[str] = []
        for name in await self._storage.keys():
            if name in current:
                continue
            if await self._storage.delete(name):
                log.info("generation_deleted", cache_name=name)
                deleted.append(name)
        await self._host.claim_clients()
        self.state = WorkerState.ACTIVE
        log.info("activate_complete", deleted=len(deleted))
        return deleted

    # ------------------------------------------------------------------
    # Fetch interception
    # ------------------------------------------------------------------

    def should_bypass(self, request: InterceptedRequest) -> bool:
        offline = self._settings.offline
        return (
            request.method != "GET"
            or request.scheme in EXTENSION_SCHEMES
            or offline.backend_host_marker in request.host
            or offline.api_path_marker in request.path
        )

    @staticmethod
    def is_app_navigation(request: InterceptedRequest) -> bool:
        return request.mode == "navigate" and not PurePosixPath(request.path).suffix

    async def handle_fetch(self, request: InterceptedRequest) -> httpx.Response:
        if self.state is not WorkerState.ACTIVE or self.should_bypass(request):
            log.debug("fetch_bypassed", method=request.method, url=request.url)
            return await self._fetcher.fetch(request)
        if self.is_app_navigation(request):
            return await self._handle_navigation(request)
        return await self._handle_static(request)

    def _shell_urls(self) -> list[str]:
        """Keys the shell may live under: the canonical path, then the precached root."""
        urls = [self.absolute(self._settings.offline.shell_path), self.absolute("/")]
        return list(dict.fromkeys(urls))

    async def _handle_navigation(self, request: InterceptedRequest) -> httpx.Response:
        shell_urls = self._shell_urls()
        for shell_url in shell_urls:
            cached = await self._storage.match_any("GET", shell_url)
            if cached is not None:
                log.debug("cache_hit", url=shell_url, navigation=request.url)
                return cached.as_response()

        try:
            response = await self._fetcher.fetch(request)
        except SecretStoryError:
            log.info("offline_fallback", kind="navigation", url=request.url)
            return _offline_html(self._settings.app.name)

        if response.status_code == 200:
            await self._storage.put(
                self.static_cache, "GET", shell_urls[0], response, stored_at=self._clock()
            )
        return response

    async def _handle_static(self, request: InterceptedRequest) -> httpx.Response:
        cached = await self._storage.match_any(request.method, request.url)
        if cached is not None:
            log.debug("cache_hit", url=request.url)
            return cached.as_response()

        try:
            response = await self._fetcher.fetch(request)
        except SecretStoryError:
            return await self._static_fallback(request)

        if response.status_code == 200:
            await self._storage.put(
                self.runtime_cache, request.method, request.url, response, stored_at=self._clock()
            )
        return response

    async def _static_fallback(self, request: InterceptedRequest) -> httpx.Response:
        if request.destination == "image":
            icon_url = self.absolute(self._settings.offline.fallback_icon)
            icon = await self._storage.match_any("GET", icon_url)
            if icon is not None:
                log.info("offline_fallback", kind="image", url=request.url)
                return icon.as_response()
        log.info("offline_fallback", kind="unavailable", url=request.url)
        return _offline_text()

    # ------------------------------------------------------------------
    # Push notifications
    # ------------------------------------------------------------------

    async def handle_push(self, payload: PushPayload | dict | None) -> Notification:
        if not isinstance(payload, PushPayload):
            payload = PushPayload.model_validate(payload or {})
        notification = Notification.from_payload(payload)
        await self._host.show_notification(notification)
        return notification

    async def handle_notification_click(self, notification: Notification) -> None:
        """Focus a window already showing the target, otherwise open one."""
        target = self.absolute(notification.url)
        for client in await self._host.window_clients():
            if client.url == target:
                await client.focus()
                return
        await self._host.open_window(target)


class PassthroughController(_BaseController):
    """Disabled variant: lifecycle only, every request goes to the network."""

    async def install(self) -> list[str]:
        self.state = WorkerState.INSTALLING
        log.info("offline_cache_disabled")
        await self._host.skip_waiting()
        self.state = WorkerState.INSTALLED
        return []

    async def activate(self) -> list[str]:
        self.state = WorkerState.ACTIVATING
        await self._host.claim_clients()
        self.state = WorkerState.ACTIVE
        return []

    async def handle_fetch(self, request: InterceptedRequest) -> httpx.Response:
        return await self._fetcher.fetch(request)

    async def handle_push(self, payload: PushPayload | dict | None) -> None:
        return None

    async def handle_notification_click(self, notification: Notification) -> None:
        return None


def build_controller(
    settings: Settings,
    storage: CacheStorage,
    fetcher: Fetcher,
    host: WorkerHost,
    clock: Callable[[], datetime] = _utcnow,
) -> CacheController | PassthroughController:
    if settings.offline.mode == "disabled":
        return PassthroughController(settings, fetcher, host)
    return CacheController(settings, storage, fetcher, host, clock=clock)
