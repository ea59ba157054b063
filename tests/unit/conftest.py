"""Unit-specific fixtures (no I/O beyond in-memory SQLite)."""

from __future__ import annotations

import aiosqlite
import httpx
import pytest

from secretstory.cache import CacheStorage


@pytest.fixture()
async def storage():
    """In-memory SQLite cache storage for unit tests."""
    async with aiosqlite.connect(":memory:") as db:
        s = CacheStorage(db)
        await s.init_db()
        yield s


@pytest.fixture()
async def http_client():
    async with httpx.AsyncClient() as client:
        yield client
