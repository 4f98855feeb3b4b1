"""
Read-only access to the panel settings the engine depends on.

The classifier, resolver and orchestrator never query the settings document
themselves; they receive a :class:`SettingsProvider` and ask it for the
catalog, the status thresholds and the AI moderation settings.
"""

from __future__ import annotations

from typing import Any, List, Protocol, Sequence

from modl.database.db_connection import ConnectionManager
from modl.database.seed_data import (
    AI_MODERATION_SETTINGS_KEY,
    DEFAULT_AI_MODERATION_SETTINGS,
    DEFAULT_PUNISHMENT_TYPES,
    DEFAULT_STATUS_THRESHOLDS,
    PUNISHMENT_TYPES_KEY,
    STATUS_THRESHOLDS_KEY,
)
from modl.datatypes.moderation_datatypes import AIModerationSettings
from modl.datatypes.punishment_datatypes import PunishmentType, StatusThresholds
from modl.repositories.settings_repo import settings_repo
from modl.util.logger import get_logger

logger = get_logger("settings_provider")


class SettingsProvider(Protocol):
    """Narrow read-only view of the settings document."""

    async def get_punishment_types(self) -> List[PunishmentType]: ...

    async def get_status_thresholds(self) -> StatusThresholds: ...

    async def get_ai_moderation_settings(self) -> AIModerationSettings: ...


def parse_punishment_types(raw: Any) -> List[PunishmentType]:
    """Parse a stored catalog, skipping (and logging) malformed entries."""
    if not isinstance(raw, list):
        return []
    types: List[PunishmentType] = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        try:
            types.append(PunishmentType.from_dict(entry))
        except (TypeError, ValueError) as exc:
            logger.error("[SETTINGS] Skipping malformed punishment type %r: %s", entry.get("name"), exc)
    return types


class StaticSettingsProvider:
    """In-memory provider, for tooling and tests."""

    def __init__(
        self,
        punishment_types: Sequence[PunishmentType] | None = None,
        status_thresholds: StatusThresholds | None = None,
        ai_settings: AIModerationSettings | None = None,
    ) -> None:
        self.punishment_types = list(
            punishment_types if punishment_types is not None else parse_punishment_types(DEFAULT_PUNISHMENT_TYPES)
        )
        self.status_thresholds = status_thresholds or StatusThresholds()
        self.ai_settings = ai_settings or AIModerationSettings.from_dict(DEFAULT_AI_MODERATION_SETTINGS)

    async def get_punishment_types(self) -> List[PunishmentType]:
        return list(self.punishment_types)

    async def get_status_thresholds(self) -> StatusThresholds:
        return self.status_thresholds

    async def get_ai_moderation_settings(self) -> AIModerationSettings:
        return self.ai_settings


class DatabaseSettingsProvider:
    """
    Provider backed by the ``settings`` table.

    Missing thresholds or AI settings fall back to the seeded defaults; a
    missing catalog is returned as empty so that lookups fail closed.
    """

    def __init__(self, connection: ConnectionManager) -> None:
        self._connection = connection

    async def _read(self, key: str) -> Any | None:
        async with self._connection.read() as conn:
            return await settings_repo.get(conn, key)

    async def get_punishment_types(self) -> List[PunishmentType]:
        raw = await self._read(PUNISHMENT_TYPES_KEY)
        if raw is None:
            logger.warning("[SETTINGS] No punishment catalog stored")
        return parse_punishment_types(raw)

    async def get_status_thresholds(self) -> StatusThresholds:
        raw = await self._read(STATUS_THRESHOLDS_KEY)
        return StatusThresholds.from_dict(raw if isinstance(raw, dict) else DEFAULT_STATUS_THRESHOLDS)

    async def get_ai_moderation_settings(self) -> AIModerationSettings:
        raw = await self._read(AI_MODERATION_SETTINGS_KEY)
        if not isinstance(raw, dict):
            return AIModerationSettings.from_dict(DEFAULT_AI_MODERATION_SETTINGS)
        return AIModerationSettings.from_dict(raw)
