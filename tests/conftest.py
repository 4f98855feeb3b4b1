"""
Pytest configuration and fixtures for modl tests.
"""

import sys
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from modl.configuration.settings_provider import StaticSettingsProvider  # noqa: E402
from modl.database.database import Database  # noqa: E402
from modl.moderation.punishment_service import PunishmentService  # noqa: E402
from modl.repositories.player_repo import player_repo  # noqa: E402

PLAYER_UUID = "0f8fad5b-d9cb-469f-a165-70867728950e"
PLAYER_NAME = "Griefer42"


@pytest_asyncio.fixture
async def database(tmp_path: Path):
    """Initialized database in a temporary directory."""
    db = Database(tmp_path / "modl-test.db")
    assert await db.initialize()
    yield db
    await db.shutdown()


@pytest_asyncio.fixture
async def connection(database):
    return database.connection


@pytest_asyncio.fixture
async def player(connection):
    """A stored player with one username and no history."""
    async with connection.transaction() as conn:
        await player_repo.create_player(conn, PLAYER_UUID, [PLAYER_NAME])
    return PLAYER_UUID


@pytest.fixture
def settings_provider() -> StaticSettingsProvider:
    return StaticSettingsProvider()


@pytest.fixture
def punishment_service(connection, settings_provider) -> PunishmentService:
    return PunishmentService(connection, settings_provider)


def completion(content: str) -> SimpleNamespace:
    """Minimal stand-in for an OpenAI chat completion response."""
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


@pytest.fixture
def openai_client() -> MagicMock:
    """AsyncOpenAI double whose ``chat.completions.create`` is an AsyncMock."""
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=completion('{"analysis": "ok", "suggestedAction": null}'))
    return client
