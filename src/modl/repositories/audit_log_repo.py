"""Persistent audit trail of staff and automated moderation actions."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List

import aiosqlite

from modl.datatypes.punishment_datatypes import from_millis, to_millis, utcnow
from modl.errors import LoggingError


@dataclass
class AuditLogRecord:
    """A single row from the ``audit_logs`` table."""
    created_at: datetime
    description: str
    level: str
    source: str


class AuditLogRepo:
    """Low-level CRUD for the ``audit_logs`` table."""

    @staticmethod
    async def insert(
        conn: aiosqlite.Connection,
        description: str,
        level: str = "info",
        source: str = "system",
    ) -> None:
        """
        Raises:
            LoggingError: when the row cannot be written.
        """
        try:
            await conn.execute(
                "INSERT INTO audit_logs (created_at, description, level, source) VALUES (?, ?, ?, ?)",
                (to_millis(utcnow()), description, level, source),
            )
        except aiosqlite.Error as exc:
            raise LoggingError(f"Audit log write failed: {exc}") from exc

    @staticmethod
    async def recent(conn: aiosqlite.Connection, limit: int = 50) -> List[AuditLogRecord]:
        cursor = await conn.execute(
            "SELECT created_at, description, level, source FROM audit_logs ORDER BY id DESC LIMIT ?",
            (limit,),
        )
        return [
            AuditLogRecord(
                created_at=from_millis(row["created_at"]),
                description=row["description"],
                level=row["level"],
                source=row["source"],
            )
            for row in await cursor.fetchall()
        ]


# Module-level singleton
audit_log_repo = AuditLogRepo()
