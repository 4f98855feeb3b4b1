"""Tests for database initialization, settings storage and ticket persistence."""

from pathlib import Path

import pytest

from modl.configuration.settings_provider import DatabaseSettingsProvider
from modl.database.database import Database
from modl.database.db_connection import ConnectionManager
from modl.database.seed_data import (
    AI_MODERATION_SETTINGS_KEY,
    DEFAULT_PUNISHMENT_TYPES,
    DEFAULT_SETTINGS,
    PUNISHMENT_TYPES_KEY,
    STATUS_THRESHOLDS_KEY,
)
from modl.datatypes.moderation_datatypes import AIAnalysisResult, AnalysisState, StrictnessLevel, Ticket
from modl.repositories.settings_repo import settings_repo
from modl.repositories.ticket_repo import ticket_repo


class TestDatabase:
    @pytest.mark.asyncio
    async def test_initialize_seeds_defaults(self, tmp_path: Path):
        db = Database(tmp_path / "nested" / "modl.db")
        assert not db.initialized
        assert await db.initialize()
        assert db.initialized
        assert (tmp_path / "nested" / "modl.db").exists()

        async with db.connection.read() as conn:
            assert await settings_repo.get(conn, PUNISHMENT_TYPES_KEY) == DEFAULT_PUNISHMENT_TYPES
        assert await db.initialize()
        await db.shutdown()
        assert not db.initialized

    @pytest.mark.asyncio
    async def test_existing_settings_survive_restart(self, tmp_path: Path):
        path = tmp_path / "modl.db"
        db = Database(path)
        await db.initialize()
        async with db.connection.transaction() as conn:
            await settings_repo.set(conn, STATUS_THRESHOLDS_KEY, {"social": {"medium": 1, "habitual": 2}})
        await db.shutdown()

        reopened = Database(path)
        await reopened.initialize()
        async with reopened.connection.transaction() as conn:
            assert await settings_repo.seed_defaults(conn, DEFAULT_SETTINGS) == 0
        thresholds = await DatabaseSettingsProvider(reopened.connection).get_status_thresholds()
        assert thresholds.social.habitual == 2
        await reopened.shutdown()

    @pytest.mark.asyncio
    async def test_initialize_failure_returns_false(self, tmp_path: Path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("file", encoding="utf-8")
        db = Database(blocker / "modl.db")
        assert await db.initialize() is False
        assert not db.initialized
        assert not db.connection.is_open


class TestDatabaseSettingsProvider:
    @pytest.mark.asyncio
    async def test_reads_seeded_settings(self, connection):
        provider = DatabaseSettingsProvider(connection)
        catalog = await provider.get_punishment_types()
        ai_settings = await provider.get_ai_moderation_settings()

        assert len(catalog) == len(DEFAULT_PUNISHMENT_TYPES)
        assert ai_settings.strictness_level is StrictnessLevel.STANDARD
        assert sorted(ai_settings.ai_punishment_configs) == [8, 9, 10]

    @pytest.mark.asyncio
    async def test_missing_catalog_is_empty(self, connection):
        async with connection.transaction() as conn:
            await conn.execute("DELETE FROM settings WHERE key = ?", (PUNISHMENT_TYPES_KEY,))
        assert await DatabaseSettingsProvider(connection).get_punishment_types() == []

    @pytest.mark.asyncio
    async def test_corrupt_ai_settings_fall_back_to_defaults(self, connection):
        async with connection.transaction() as conn:
            await conn.execute("UPDATE settings SET value = '{oops' WHERE key = ?", (AI_MODERATION_SETTINGS_KEY,))
        settings = await DatabaseSettingsProvider(connection).get_ai_moderation_settings()
        assert settings.enable_automated_actions is True
        assert 8 in settings.ai_punishment_configs


class TestTicketRepo:
    @pytest.mark.asyncio
    async def test_claim_is_exclusive(self, connection):
        async with connection.transaction() as conn:
            await ticket_repo.insert(conn, Ticket(id="T-1", category="chat"))
            assert await ticket_repo.claim_for_analysis(conn, "T-1") is True
            assert await ticket_repo.claim_for_analysis(conn, "T-1") is False
            assert await ticket_repo.claim_for_analysis(conn, "MISSING") is False

        async with connection.read() as conn:
            assert (await ticket_repo.get(conn, "T-1")).analysis_state is AnalysisState.ANALYSIS_QUEUED

    @pytest.mark.asyncio
    async def test_created_state_is_claimable(self, connection):
        async with connection.transaction() as conn:
            await ticket_repo.insert(conn, Ticket(id="T-2", analysis_state=AnalysisState.CREATED))
            assert await ticket_repo.claim_for_analysis(conn, "T-2") is True

    @pytest.mark.asyncio
    async def test_store_analysis_keeps_other_data(self, connection):
        async with connection.transaction() as conn:
            await ticket_repo.insert(conn, Ticket(id="T-3", data={"subject": "Chat report", "priority": 2}))
            stored = await ticket_repo.store_ai_analysis(
                conn, "T-3", AIAnalysisResult(analysis="Fine", suggested_action=None)
            )
            assert stored is True
            assert await ticket_repo.store_ai_analysis(
                conn, "MISSING", AIAnalysisResult(analysis="x", suggested_action=None)
            ) is False

        async with connection.read() as conn:
            ticket = await ticket_repo.get(conn, "T-3")
        assert ticket.data["subject"] == "Chat report"
        assert ticket.data["priority"] == 2
        assert ticket.ai_analysis.analysis == "Fine"
        assert ticket.analysis_state is AnalysisState.SUGGESTED_ONLY

    @pytest.mark.asyncio
    async def test_list_by_state(self, connection):
        async with connection.transaction() as conn:
            await ticket_repo.insert(conn, Ticket(id="A", analysis_state=AnalysisState.ANALYZING))
            await ticket_repo.insert(conn, Ticket(id="B", analysis_state=AnalysisState.AUTO_APPLIED))
            await ticket_repo.insert(conn, Ticket(id="C"))
        async with connection.read() as conn:
            pending = await ticket_repo.list_by_state(conn, [AnalysisState.ANALYSIS_QUEUED, AnalysisState.ANALYZING])
            assert await ticket_repo.list_by_state(conn, []) == []
        assert [ticket.id for ticket in pending] == ["A"]


class TestConnectionManager:
    @pytest.mark.asyncio
    async def test_failed_transaction_rolls_back(self, connection):
        with pytest.raises(RuntimeError):
            async with connection.transaction() as conn:
                await ticket_repo.insert(conn, Ticket(id="ROLLBACK"))
                raise RuntimeError("abort")

        async with connection.read() as conn:
            assert await ticket_repo.get(conn, "ROLLBACK") is None

    @pytest.mark.asyncio
    async def test_use_before_open_raises(self):
        manager = ConnectionManager()
        assert not manager.is_open
        with pytest.raises(RuntimeError):
            async with manager.read():
                pass

    @pytest.mark.asyncio
    async def test_second_open_is_ignored(self, tmp_path: Path):
        manager = ConnectionManager()
        await manager.open(tmp_path / "one.db")
        await manager.open(tmp_path / "two.db")
        assert manager.path == tmp_path / "one.db"
        await manager.close()
        assert not manager.is_open
