"""
Shared SQLite connection for the moderation store.

The engine keeps one aiosqlite connection open for its whole run. Player
history, tickets, settings and prompts all go through it, so pragmas are set
once and every repository sees the same committed state.

Writes
------
SQLite allows a single writer. ``transaction()`` holds an asyncio semaphore
for the duration of a write, commits when the block exits cleanly and rolls
back when it raises. One punishment append or one ticket update is therefore
all-or-nothing, and concurrent applications queue instead of hitting
``database is locked``.

Usage
-----
    connection = ConnectionManager()
    await connection.open(DB_PATH)

    async with connection.read() as conn:
        cursor = await conn.execute("SELECT ...")

    async with connection.transaction() as conn:
        await conn.execute("INSERT ...")

    await connection.close()
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from modl.util.logger import get_logger

logger = get_logger("database_connection")

# Applied on every open
_PRAGMAS = [
    "PRAGMA journal_mode = WAL",
    "PRAGMA foreign_keys = ON",
    "PRAGMA synchronous = NORMAL",
    "PRAGMA cache_size = -65536",
    "PRAGMA temp_store = MEMORY",
    "PRAGMA busy_timeout = 5000",
]


class ConnectionManager:
    """Owns the store's aiosqlite connection and serializes its writers."""

    def __init__(self) -> None:
        self._conn: aiosqlite.Connection | None = None
        self._writer = asyncio.Semaphore(1)
        self._path: Path | None = None

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def path(self) -> Path | None:
        return self._path

    async def open(self, path: Path) -> None:
        """Connect to ``path`` (creating its directory) and apply the pragmas."""
        if self._conn is not None:
            logger.warning("[DB CONNECTION] Already connected to %s; open() ignored", self._path)
            return

        path.parent.mkdir(parents=True, exist_ok=True)
        self._path = path
        self._conn = await aiosqlite.connect(path)
        self._conn.row_factory = aiosqlite.Row

        for pragma in _PRAGMAS:
            await self._conn.execute(pragma)
        await self._conn.commit()
        logger.info("[DB CONNECTION] Connected to %s", path)

    async def close(self) -> None:
        """Checkpoint the WAL into the main file, then disconnect."""
        if self._conn is None:
            return

        try:
            await self._conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
            await self._conn.commit()
        except Exception:
            logger.exception("[DB CONNECTION] Checkpoint before close failed for %s", self._path)
        finally:
            await self._conn.close()
            self._conn = None
            logger.info("[DB CONNECTION] Disconnected from %s", self._path)

    @property
    def connection(self) -> aiosqlite.Connection:
        """
        The open connection.

        Raises:
            RuntimeError: before ``open()`` or after ``close()``.
        """
        if self._conn is None:
            raise RuntimeError("Database connection is not open; call ConnectionManager.open() first.")
        return self._conn

    @asynccontextmanager
    async def read(self) -> AsyncIterator[aiosqlite.Connection]:
        """Yield the connection for queries; readers never wait on writers."""
        yield self.connection

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Yield the connection for one atomic write.

        Raises:
            RuntimeError: when the connection is not open.
        """
        conn = self.connection
        async with self._writer:
            try:
                yield conn
                await conn.commit()
            except Exception:
                await conn.rollback()
                raise
