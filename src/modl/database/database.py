"""
Database initialization for the moderation engine.

The Database class opens the shared connection, creates the schema and
seeds the default settings document (punishment catalog, status thresholds,
AI moderation settings) the first time a store is used.

Lifecycle:
    1. ``await database.initialize()`` at startup
    2. Repositories go through ``database.connection``
    3. ``await database.shutdown()`` at exit
"""

from __future__ import annotations

from pathlib import Path

from modl.database.db_connection import ConnectionManager
from modl.database.db_schema import SchemaManager
from modl.database.seed_data import DEFAULT_SETTINGS
from modl.repositories.settings_repo import settings_repo
from modl.util.logger import get_logger

logger = get_logger("database")


class Database:
    """Coordinates connection lifecycle, schema creation and default seeding."""

    def __init__(self, db_path: Path, connection: ConnectionManager | None = None) -> None:
        self.db_path = db_path
        self.connection = connection or ConnectionManager()
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self, seed_defaults: bool = True) -> bool:
        """
        Open the connection, create the schema and seed defaults.

        Returns:
            True if initialization succeeded, False otherwise
        """
        if self._initialized:
            logger.debug("[DATABASE] Already initialized, skipping")
            return True

        try:
            await self.connection.open(self.db_path)
            await SchemaManager.initialize_schema(self.connection.connection)
            if seed_defaults:
                async with self.connection.transaction() as conn:
                    inserted = await settings_repo.seed_defaults(conn, DEFAULT_SETTINGS)
                if inserted:
                    logger.info("[DATABASE] Seeded %d default settings entries", inserted)
        except Exception as exc:
            logger.error("[DATABASE] Database initialization failed: %s", exc)
            await self.connection.close()
            return False

        self._initialized = True
        logger.info("[DATABASE] Database initialized at %s", self.db_path)
        return True

    async def shutdown(self) -> None:
        await self.connection.close()
        self._initialized = False
