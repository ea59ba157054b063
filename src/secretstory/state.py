"""Application state wiring: one database connection and one HTTP client."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import aiosqlite
import structlog

from secretstory.backend import BackendClient
from secretstory.cache import CacheStorage
from secretstory.fetcher import Fetcher, build_http_client
from secretstory.worker import LocalHost, build_controller

if TYPE_CHECKING:
    import httpx

    from secretstory.config import Settings
    from secretstory.worker import CacheController, PassthroughController

log = structlog.get_logger()


@dataclass
class AppState:
    settings: Settings
    http_client: httpx.AsyncClient
    storage: CacheStorage
    fetcher: Fetcher
    backend: BackendClient
    host: LocalHost
    controller: CacheController | PassthroughController


@asynccontextmanager
async def open_app_state(settings: Settings) -> AsyncIterator[AppState]:
    db_path = Path(settings.offline.db_path).expanduser()
    db_path.parent.mkdir(parents=True, exist_ok=True)

    async with aiosqlite.connect(db_path) as db:
        storage = CacheStorage(db)
        await storage.init_db()
        async with build_http_client(settings.backend.timeout_seconds) as client:
            fetcher = Fetcher(client)
            host = LocalHost()
            state = AppState(
                settings=settings,
                http_client=client,
                storage=storage,
                fetcher=fetcher,
                backend=BackendClient(client, settings.backend),
                host=host,
                controller=build_controller(settings, storage, fetcher, host),
            )
            log.debug("app_state_ready", db_path=str(db_path), mode=settings.offline.mode)
            yield state
