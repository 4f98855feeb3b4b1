"""Persistent per-strictness-level system prompt overrides."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List

import aiosqlite

from modl.datatypes.punishment_datatypes import from_millis, to_millis, utcnow


@dataclass
class SystemPromptRecord:
    """A single row from the ``system_prompts`` table."""
    strictness_level: str
    prompt: str
    is_active: bool
    created_at: datetime
    updated_at: datetime


class SystemPromptRepo:
    """Low-level CRUD for the ``system_prompts`` table."""

    @staticmethod
    async def get_active(conn: aiosqlite.Connection, strictness_level: str) -> str | None:
        cursor = await conn.execute(
            "SELECT prompt FROM system_prompts WHERE strictness_level = ? AND is_active = 1",
            (strictness_level,),
        )
        row = await cursor.fetchone()
        return row["prompt"] if row else None

    @staticmethod
    async def upsert(conn: aiosqlite.Connection, strictness_level: str, prompt: str, is_active: bool = True) -> None:
        now = to_millis(utcnow())
        await conn.execute(
            """
            INSERT INTO system_prompts (strictness_level, prompt, is_active, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(strictness_level) DO UPDATE SET
                prompt     = excluded.prompt,
                is_active  = excluded.is_active,
                updated_at = excluded.updated_at
            """,
            (strictness_level, prompt, int(is_active), now, now),
        )

    @staticmethod
    async def insert_if_missing(conn: aiosqlite.Connection, strictness_level: str, prompt: str) -> bool:
        now = to_millis(utcnow())
        cursor = await conn.execute(
            """
            INSERT OR IGNORE INTO system_prompts (strictness_level, prompt, is_active, created_at, updated_at)
            VALUES (?, ?, 1, ?, ?)
            """,
            (strictness_level, prompt, now, now),
        )
        return cursor.rowcount == 1

    @staticmethod
    async def delete(conn: aiosqlite.Connection, strictness_level: str) -> None:
        await conn.execute("DELETE FROM system_prompts WHERE strictness_level = ?", (strictness_level,))

    @staticmethod
    async def list_all(conn: aiosqlite.Connection) -> List[SystemPromptRecord]:
        cursor = await conn.execute(
            "SELECT strictness_level, prompt, is_active, created_at, updated_at "
            "FROM system_prompts ORDER BY strictness_level"
        )
        return [
            SystemPromptRecord(
                strictness_level=row["strictness_level"],
                prompt=row["prompt"],
                is_active=bool(row["is_active"]),
                created_at=from_millis(row["created_at"]),
                updated_at=from_millis(row["updated_at"]),
            )
            for row in await cursor.fetchall()
        ]


# Module-level singleton
system_prompt_repo = SystemPromptRepo()
