"""SQLite-backed cache storage organised in named generations.

Mirrors the browser cache-storage contract: a generation is opened by name,
responses are stored per (method, url) inside it, and a generation is only
ever removed as a whole.

All operations catch ``aiosqlite.Error`` internally and degrade gracefully:
reads return ``None`` or an empty list (treated as a miss by callers), writes
and deletes log the failure and return ``False``. Infrastructure errors never
cross the CacheStorage boundary, so a broken cache never prevents a page from
receiving its network response.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import aiosqlite
import structlog

from secretstory.models.cache import CachedResponse

if TYPE_CHECKING:
    import httpx

log = structlog.get_logger()

_CREATE_GENERATION_TABLE = """
CREATE TABLE IF NOT EXISTS cache_generation (
    name        TEXT PRIMARY KEY,
    created_at  TEXT NOT NULL
)
"""

_CREATE_ENTRY_TABLE = """
CREATE TABLE IF NOT EXISTS cache_entry (
    cache_name  TEXT NOT NULL REFERENCES cache_generation(name) ON DELETE CASCADE,
    method      TEXT NOT NULL,
    url         TEXT NOT NULL,
    status      INTEGER NOT NULL,
    headers     TEXT NOT NULL DEFAULT '[]',
    body        BLOB NOT NULL,
    stored_at   TEXT NOT NULL,
    PRIMARY KEY (cache_name, method, url)
)
"""

_CREATE_ENTRY_INDEX = "CREATE INDEX IF NOT EXISTS idx_entry_url ON cache_entry(method, url)"

# httpx has already decoded the body, so these no longer describe what we store.
_DROPPED_HEADERS = frozenset({"content-encoding", "content-length", "transfer-encoding"})

_ENTRY_COLUMNS = "e.cache_name, e.method, e.url, e.status, e.headers, e.body, e.stored_at"


def _row_to_entry(row: aiosqlite.Row | tuple) -> CachedResponse:
    return CachedResponse(
        cache_name=row[0],
        method=row[1],
        url=row[2],
        status=row[3],
        headers=[tuple(pair) for pair in json.loads(row[4])],
        body=row[5],
        stored_at=datetime.fromisoformat(row[6]),
    )


class CacheStorage:
    """Generation-scoped response store."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def init_db(self) -> None:
        """Create tables and set WAL mode. Called once at startup."""
        await self._db.execute("PRAGMA journal_mode = WAL")
        await self._db.execute("PRAGMA foreign_keys = ON")
        await self._db.execute(_CREATE_GENERATION_TABLE)
        await self._db.execute(_CREATE_ENTRY_TABLE)
        await self._db.execute(_CREATE_ENTRY_INDEX)
        await self._db.commit()

    # ------------------------------------------------------------------
    # Generations
    # ------------------------------------------------------------------

    async def open(self, name: str, created_at: datetime | None = None) -> bool:
        """Create the generation if it does not exist yet."""
        try:
            await self._db.execute(
                "INSERT OR IGNORE INTO cache_generation (name, created_at) VALUES (?, ?)",
                (name, (created_at or datetime.now(UTC)).isoformat()),
            )
            await self._db.commit()
            return True
        except aiosqlite.Error:
            log.warning("cache_open_error", cache_name=name, exc_info=True)
            return False

    async def keys(self) -> list[str]:
        """Names of all generations, oldest first."""
        try:
            cursor = await self._db.execute(
                "SELECT name FROM cache_generation ORDER BY created_at, rowid"
            )
            rows = await cursor.fetchall()
            return [row[0] for row in rows]
        except aiosqlite.Error:
            log.warning("cache_read_error", key="generations", exc_info=True)
            return []

    async def has(self, name: str) -> bool:
        try:
            cursor = await self._db.execute(
                "SELECT 1 FROM cache_generation WHERE name = ?", (name,)
            )
            return await cursor.fetchone() is not None
        except aiosqlite.Error:
            log.warning("cache_read_error", key=f"generation:{name}", exc_info=True)
            return False

    async def delete(self, name: str) -> bool:
        """Drop a generation and every entry in it."""
        try:
            await self._db.execute("DELETE FROM cache_entry WHERE cache_name = ?", (name,))
            cursor = await self._db.execute(
                "DELETE FROM cache_generation WHERE name = ?", (name,)
            )
            deleted = cursor.rowcount > 0
            await self._db.commit()
            return deleted
        except aiosqlite.Error:
            log.warning("cache_delete_error", cache_name=name, exc_info=True)
            return False

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    async def match(self, name: str, method: str, url: str) -> CachedResponse | None:
        """Look up one key inside a single generation."""
        try:
            cursor = await self._db.execute(
                f"SELECT {_ENTRY_COLUMNS} FROM cache_entry e "
                "WHERE e.cache_name = ? AND e.method = ? AND e.url = ?",
                (name, method, url),
            )
            row = await cursor.fetchone()
            return _row_to_entry(row) if row is not None else None
        except aiosqlite.Error:
            log.warning("cache_read_error", key=f"{name}:{method} {url}", exc_info=True)
            return None

    async def match_any(self, method: str, url: str) -> CachedResponse | None:
        """Look up a key across every generation, oldest generation first."""
        try:
            cursor = await self._db.execute(
                f"SELECT {_ENTRY_COLUMNS} FROM cache_entry e "
                "JOIN cache_generation g ON g.name = e.cache_name "
                "WHERE e.method = ? AND e.url = ? "
                "ORDER BY g.created_at, g.rowid LIMIT 1",
                (method, url),
            )
            row = await cursor.fetchone()
            return _row_to_entry(row) if row is not None else None
        except aiosqlite.Error:
            log.warning("cache_read_error", key=f"{method} {url}", exc_info=True)
            return None

    async def put(
        self,
        name: str,
        method: str,
        url: str,
        response: httpx.Response,
        stored_at: datetime | None = None,
    ) -> bool:
        """Store ``response`` under (method, url), replacing any previous copy."""
        try:
            stored_at = stored_at or datetime.now(UTC)
            headers = [
                [key, value]
                for key, value in response.headers.items()
                if key.lower() not in _DROPPED_HEADERS
            ]
            await self._db.execute(
                "INSERT OR IGNORE INTO cache_generation (name, created_at) VALUES (?, ?)",
                (name, stored_at.isoformat()),
            )
            await self._db.execute(
                "INSERT OR REPLACE INTO cache_entry "
                "(cache_name, method, url, status, headers, body, stored_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    name,
                    method,
                    url,
                    response.status_code,
                    json.dumps(headers),
                    response.content,
                    stored_at.isoformat(),
                ),
            )
            await self._db.commit()
            return True
        except aiosqlite.Error:
            log.warning("cache_write_error", key=f"{name}:{method} {url}", exc_info=True)
            return False

    async def entries(self, name: str) -> list[CachedResponse]:
        try:
            cursor = await self._db.execute(
                f"SELECT {_ENTRY_COLUMNS} FROM cache_entry e WHERE e.cache_name = ? ORDER BY e.url",
                (name,),
            )
            rows = await cursor.fetchall()
            return [_row_to_entry(row) for row in rows]
        except aiosqlite.Error:
            log.warning("cache_read_error", key=f"entries:{name}", exc_info=True)
            return []
