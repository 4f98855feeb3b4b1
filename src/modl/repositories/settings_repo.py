"""
Key/value settings document storage.

Each key holds one JSON value (the punishment catalog, status thresholds,
AI moderation settings, ...), matching the panel's single settings document.
"""

from __future__ import annotations

import json
from typing import Any, Dict

import aiosqlite

from modl.datatypes.punishment_datatypes import to_millis, utcnow
from modl.util.logger import get_logger

logger = get_logger("settings_repo")


class SettingsRepo:
    """Low-level CRUD for the ``settings`` table."""

    @staticmethod
    async def get(conn: aiosqlite.Connection, key: str) -> Any | None:
        """Decoded value for ``key``; None when missing or unreadable."""
        cursor = await conn.execute("SELECT value FROM settings WHERE key = ?", (key,))
        row = await cursor.fetchone()
        if row is None:
            return None
        try:
            return json.loads(row["value"])
        except json.JSONDecodeError:
            logger.error("[SETTINGS REPO] Stored value for %s is not valid JSON", key)
            return None

    @staticmethod
    async def set(conn: aiosqlite.Connection, key: str, value: Any) -> None:
        await conn.execute(
            """
            INSERT INTO settings (key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
            """,
            (key, json.dumps(value), to_millis(utcnow())),
        )

    @staticmethod
    async def seed_defaults(conn: aiosqlite.Connection, defaults: Dict[str, Any]) -> int:
        """Insert every missing key; existing values are left alone. Returns rows inserted."""
        inserted = 0
        now = to_millis(utcnow())
        for key, value in defaults.items():
            cursor = await conn.execute(
                "INSERT OR IGNORE INTO settings (key, value, updated_at) VALUES (?, ?, ?)",
                (key, json.dumps(value), now),
            )
            inserted += cursor.rowcount
        return inserted


# Module-level singleton
settings_repo = SettingsRepo()
