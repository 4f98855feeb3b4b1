"""
Persistent storage for players and their punishment history.

The history is append-only: ``append_punishment`` and
``append_modification`` each issue exactly one INSERT, so concurrent
writers never overwrite each other's entries or any other player field.
"""

from __future__ import annotations

import json
import re
from collections import defaultdict
from typing import Dict, List

import aiosqlite

from modl.datatypes.punishment_datatypes import (
    Modification,
    Player,
    Punishment,
    PunishmentData,
    UsernameRecord,
    from_millis,
    to_millis,
    utcnow,
)
from modl.util.logger import get_logger

logger = get_logger("player_repo")

UUID_PATTERN = re.compile(r"^[0-9a-f]{8}-?[0-9a-f]{4}-?[0-9a-f]{4}-?[0-9a-f]{4}-?[0-9a-f]{12}$", re.IGNORECASE)


def looks_like_uuid(identifier: str) -> bool:
    """True for 36-character hyphenated or 32-character bare hex UUIDs."""
    return bool(UUID_PATTERN.match(identifier.strip()))


def normalize_uuid(identifier: str) -> str:
    """Lower-case hyphenated form of a UUID-shaped identifier."""
    bare = identifier.strip().replace("-", "").lower()
    if len(bare) != 32:
        return identifier.strip().lower()
    return f"{bare[:8]}-{bare[8:12]}-{bare[12:16]}-{bare[16:20]}-{bare[20:]}"


class PlayerRepo:
    """Low-level reads and appends for ``players`` and the punishment tables."""

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    async def create_player(
        conn: aiosqlite.Connection,
        uuid: str,
        usernames: List[str] | None = None,
    ) -> str:
        """Insert a player (no-op if present) and record any new usernames. Returns the stored UUID."""
        uuid = normalize_uuid(uuid)
        now = to_millis(utcnow())
        await conn.execute(
            "INSERT OR IGNORE INTO players (uuid, pending_notifications, created_at) VALUES (?, '[]', ?)",
            (uuid, now),
        )
        for offset, username in enumerate(usernames or []):
            await conn.execute(
                "INSERT OR IGNORE INTO player_usernames (player_uuid, username, first_seen) VALUES (?, ?, ?)",
                (uuid, username, now + offset),
            )
        return uuid

    @staticmethod
    async def append_punishment(
        conn: aiosqlite.Connection,
        player_uuid: str,
        punishment: Punishment,
    ) -> None:
        """Append one punishment to a player's history with a single INSERT."""
        await conn.execute(
            """
            INSERT INTO punishments
                (id, player_uuid, type_ordinal, issuer_name, issued_at, started_at, data, attached_ticket_ids)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                punishment.id,
                player_uuid,
                punishment.type_ordinal,
                punishment.issuer_name,
                to_millis(punishment.issued_at),
                to_millis(punishment.started_at),
                json.dumps(punishment.data.to_dict()),
                json.dumps(list(punishment.attached_ticket_ids)),
            ),
        )

    @staticmethod
    async def append_modification(
        conn: aiosqlite.Connection,
        punishment_id: str,
        modification: Modification,
    ) -> None:
        """Append one modification to a punishment with a single INSERT."""
        await conn.execute(
            """
            INSERT INTO punishment_modifications
                (punishment_id, type, issuer_name, issued_at, effective_duration, reason)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                punishment_id,
                modification.type,
                modification.issuer_name,
                to_millis(modification.issued_at),
                modification.effective_duration,
                modification.reason,
            ),
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    async def find_by_uuid(conn: aiosqlite.Connection, uuid: str) -> Player | None:
        """Primary-key lookup."""
        cursor = await conn.execute(
            "SELECT uuid, pending_notifications FROM players WHERE uuid = ?",
            (normalize_uuid(uuid),),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return await PlayerRepo._hydrate(conn, row["uuid"], row["pending_notifications"])

    @staticmethod
    async def find_by_username(conn: aiosqlite.Connection, username: str) -> Player | None:
        """Case-insensitive match against every username the player has used."""
        cursor = await conn.execute(
            """
            SELECT p.uuid, p.pending_notifications
            FROM player_usernames u JOIN players p ON p.uuid = u.player_uuid
            WHERE u.username = ? COLLATE NOCASE
            ORDER BY u.first_seen DESC
            LIMIT 1
            """,
            (username.strip(),),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return await PlayerRepo._hydrate(conn, row["uuid"], row["pending_notifications"])

    @staticmethod
    async def find(conn: aiosqlite.Connection, identifier: str) -> Player | None:
        """Resolve a UUID-shaped identifier by UUID, anything else by username."""
        if looks_like_uuid(identifier):
            return await PlayerRepo.find_by_uuid(conn, identifier)
        return await PlayerRepo.find_by_username(conn, identifier)

    @staticmethod
    async def punishment_owner(conn: aiosqlite.Connection, punishment_id: str) -> str | None:
        """UUID of the player owning ``punishment_id``, or None."""
        cursor = await conn.execute("SELECT player_uuid FROM punishments WHERE id = ?", (punishment_id,))
        row = await cursor.fetchone()
        return row["player_uuid"] if row else None

    @staticmethod
    async def _hydrate(conn: aiosqlite.Connection, uuid: str, raw_notifications: str) -> Player:
        cursor = await conn.execute(
            "SELECT username, first_seen FROM player_usernames WHERE player_uuid = ? ORDER BY first_seen",
            (uuid,),
        )
        usernames = [
            UsernameRecord(username=row["username"], first_seen=from_millis(row["first_seen"]))
            for row in await cursor.fetchall()
        ]

        cursor = await conn.execute(
            """
            SELECT m.punishment_id, m.type, m.issuer_name, m.issued_at, m.effective_duration, m.reason
            FROM punishment_modifications m JOIN punishments p ON p.id = m.punishment_id
            WHERE p.player_uuid = ?
            ORDER BY m.issued_at, m.seq
            """,
            (uuid,),
        )
        modifications: Dict[str, List[Modification]] = defaultdict(list)
        for row in await cursor.fetchall():
            modifications[row["punishment_id"]].append(
                Modification(
                    type=row["type"],
                    issuer_name=row["issuer_name"],
                    issued_at=from_millis(row["issued_at"]),
                    effective_duration=row["effective_duration"],
                    reason=row["reason"],
                )
            )

        cursor = await conn.execute(
            """
            SELECT id, type_ordinal, issuer_name, issued_at, started_at, data, attached_ticket_ids
            FROM punishments WHERE player_uuid = ? ORDER BY seq
            """,
            (uuid,),
        )
        punishments = [
            Punishment(
                id=row["id"],
                type_ordinal=row["type_ordinal"],
                issuer_name=row["issuer_name"],
                issued_at=from_millis(row["issued_at"]),
                started_at=from_millis(row["started_at"]),
                data=PunishmentData.from_dict(json.loads(row["data"] or "{}")),
                modifications=modifications.get(row["id"], []),
                attached_ticket_ids=json.loads(row["attached_ticket_ids"] or "[]"),
            )
            for row in await cursor.fetchall()
        ]

        try:
            notifications = json.loads(raw_notifications or "[]")
        except json.JSONDecodeError:
            logger.warning("[PLAYER REPO] Corrupt pending_notifications for %s", uuid)
            notifications = []

        return Player(uuid=uuid, usernames=usernames, punishments=punishments, pending_notifications=notifications)


# Module-level singleton
player_repo = PlayerRepo()
