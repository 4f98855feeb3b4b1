"""
Persistent storage for the ticket fields the moderation pipeline touches.

Ticket CRUD belongs to the panel; this repo only inserts tickets for tests
and tooling, reads them, claims them for analysis and writes the
``aiAnalysis`` entry of their data document.
"""

from __future__ import annotations

import json
from typing import Iterable, List

import aiosqlite

from modl.datatypes.moderation_datatypes import AIAnalysisResult, AnalysisState, Ticket
from modl.datatypes.punishment_datatypes import to_millis, utcnow

# States from which a ticket may be (re)claimed for analysis
CLAIMABLE_STATES = (AnalysisState.CREATED.value,)


def _row_to_ticket(row: aiosqlite.Row) -> Ticket:
    state = row["analysis_state"]
    return Ticket(
        id=row["id"],
        category=row["category"],
        type=row["type"],
        reported_player=row["reported_player"],
        reported_player_uuid=row["reported_player_uuid"],
        chat_messages=json.loads(row["chat_messages"] or "[]"),
        data=json.loads(row["data"] or "{}"),
        analysis_state=AnalysisState(state) if state else None,
    )


class TicketRepo:
    """Low-level reads and targeted updates for the ``tickets`` table."""

    @staticmethod
    async def insert(conn: aiosqlite.Connection, ticket: Ticket) -> None:
        now = to_millis(utcnow())
        await conn.execute(
            """
            INSERT INTO tickets
                (id, category, type, reported_player, reported_player_uuid,
                 chat_messages, data, analysis_state, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                ticket.id,
                ticket.category,
                ticket.type,
                ticket.reported_player,
                ticket.reported_player_uuid,
                json.dumps(list(ticket.chat_messages)),
                json.dumps(ticket.data),
                ticket.analysis_state.value if ticket.analysis_state else None,
                now,
                now,
            ),
        )

    @staticmethod
    async def get(conn: aiosqlite.Connection, ticket_id: str) -> Ticket | None:
        cursor = await conn.execute("SELECT * FROM tickets WHERE id = ?", (ticket_id,))
        row = await cursor.fetchone()
        return _row_to_ticket(row) if row else None

    @staticmethod
    async def list_by_state(conn: aiosqlite.Connection, states: Iterable[AnalysisState]) -> List[Ticket]:
        values = [state.value for state in states]
        if not values:
            return []
        placeholders = ", ".join("?" for _ in values)
        cursor = await conn.execute(
            f"SELECT * FROM tickets WHERE analysis_state IN ({placeholders}) ORDER BY created_at",
            values,
        )
        return [_row_to_ticket(row) for row in await cursor.fetchall()]

    @staticmethod
    async def claim_for_analysis(conn: aiosqlite.Connection, ticket_id: str) -> bool:
        """
        Atomically move an unclaimed ticket to ``analysis_queued``.

        Returns False when the ticket is missing or another submission has
        already claimed it, which is what keeps re-submitted tickets from
        being analysed (and punished) twice.
        """
        placeholders = ", ".join("?" for _ in CLAIMABLE_STATES)
        cursor = await conn.execute(
            f"""
            UPDATE tickets SET analysis_state = ?, updated_at = ?
            WHERE id = ? AND (analysis_state IS NULL OR analysis_state IN ({placeholders}))
            """,
            (AnalysisState.ANALYSIS_QUEUED.value, to_millis(utcnow()), ticket_id, *CLAIMABLE_STATES),
        )
        return cursor.rowcount == 1

    @staticmethod
    async def set_state(conn: aiosqlite.Connection, ticket_id: str, state: AnalysisState) -> None:
        await conn.execute(
            "UPDATE tickets SET analysis_state = ?, updated_at = ? WHERE id = ?",
            (state.value, to_millis(utcnow()), ticket_id),
        )

    @staticmethod
    async def store_ai_analysis(conn: aiosqlite.Connection, ticket_id: str, result: AIAnalysisResult) -> bool:
        """Write ``data.aiAnalysis`` and the analysis state without touching other ticket fields."""
        cursor = await conn.execute(
            """
            UPDATE tickets
            SET data = json_set(COALESCE(data, '{}'), '$.aiAnalysis', json(?)),
                analysis_state = ?,
                updated_at = ?
            WHERE id = ?
            """,
            (json.dumps(result.to_dict()), result.state.value, to_millis(utcnow()), ticket_id),
        )
        return cursor.rowcount == 1


# Module-level singleton
ticket_repo = TicketRepo()
