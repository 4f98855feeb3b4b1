"""
Punishment application.

``PunishmentService.apply_punishment`` is the single entry point used both by
staff tooling and by the automated moderation pipeline. It resolves the
player, classifies their standing, resolves duration and points, and appends
exactly one punishment to the player's history with a single INSERT.

Failures are reported through :class:`ApplyPunishmentResult`; nothing is
written when the player or the punishment type cannot be found.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from typing import Iterable

from modl.configuration.settings_provider import SettingsProvider
from modl.database.db_connection import ConnectionManager
from modl.datatypes.moderation_datatypes import ApplyPunishmentResult
from modl.datatypes.punishment_datatypes import (
    Modification,
    MultiSeverityDurations,
    Player,
    PlayerStatus,
    Punishment,
    PunishmentData,
    Severity,
    utcnow,
)
from modl.errors import (
    LoggingError,
    NotFoundError,
    PersistenceError,
    PlayerNotFound,
    PunishmentNotFound,
)
from modl.moderation import duration_resolver, status_classifier
from modl.moderation.duration_resolver import TypeLookup
from modl.repositories.audit_log_repo import audit_log_repo
from modl.repositories.player_repo import player_repo
from modl.util.logger import get_logger

logger = get_logger("punishment_service")

AI_ISSUER_NAME = "AI Moderation System"
DEFAULT_IMMEDIATE_ORDINALS = (1, 2)


def generate_punishment_id() -> str:
    """8-character upper-case punishment token."""
    return uuid.uuid4().hex[:8].upper()


class PunishmentService:
    """Applies and amends punishments in a player's append-only history."""

    def __init__(
        self,
        connection: ConnectionManager,
        settings: SettingsProvider,
        ai_issuer_name: str = AI_ISSUER_NAME,
        immediate_ordinals: Iterable[int] = DEFAULT_IMMEDIATE_ORDINALS,
    ) -> None:
        self.connection = connection
        self.settings = settings
        self.ai_issuer_name = ai_issuer_name
        self.immediate_ordinals = frozenset(int(ordinal) for ordinal in immediate_ordinals)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _find_player(self, identifier: str) -> Player:
        if not identifier or not str(identifier).strip():
            raise PlayerNotFound("Player identifier is empty")
        async with self.connection.read() as conn:
            player = await player_repo.find(conn, str(identifier))
        if player is None:
            raise PlayerNotFound(f"Player {identifier!r} not found")
        return player

    async def get_player_status(self, player_identifier: str, now: datetime | None = None) -> PlayerStatus:
        """
        Current Gameplay/Social standing of a player.

        Raises:
            PlayerNotFound: when the identifier matches no player.
        """
        player = await self._find_player(player_identifier)
        catalog = await self.settings.get_punishment_types()
        thresholds = await self.settings.get_status_thresholds()
        return status_classifier.classify(player.punishments, catalog, thresholds, now)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def apply_punishment(
        self,
        player_identifier: str,
        punishment_type_key: int,
        severity: Severity | str | None,
        reason: str,
        origin_ticket_id: str | None,
        issuer_name: str = AI_ISSUER_NAME,
        *,
        lookup: TypeLookup = TypeLookup.ORDINAL,
        automated: bool | None = None,
    ) -> ApplyPunishmentResult:
        """
        Apply a punishment to a player.

        Args:
            player_identifier: UUID (hyphenated or bare) or any username the player has used.
            punishment_type_key: Catalog ordinal, or catalog id when ``lookup`` is ``TypeLookup.ID``.
            severity: Requested severity; single-severity types ignore it.
            reason: Free-text reason stored with the punishment.
            origin_ticket_id: Ticket the punishment is attached to, if any.
            issuer_name: Staff member or system issuing the punishment.
            lookup: Which catalog field ``punishment_type_key`` refers to.
            automated: Overrides the automated flag derived from ``issuer_name``.

        Returns:
            ApplyPunishmentResult with the new punishment id on success.
        """
        try:
            player = await self._find_player(player_identifier)
            catalog = await self.settings.get_punishment_types()
            punishment_type = duration_resolver.find_punishment_type(catalog, punishment_type_key, lookup)
            thresholds = await self.settings.get_status_thresholds()
        except NotFoundError as exc:
            logger.warning("[PUNISHMENT] Not applying punishment: %s", exc)
            return ApplyPunishmentResult.failed(str(exc), "not_found")
        except Exception as exc:
            logger.error("[PUNISHMENT] Could not load player or settings for %s: %s", player_identifier, exc)
            return ApplyPunishmentResult.failed(f"Failed to load punishment context: {exc}", "persistence")

        parsed_severity = severity if isinstance(severity, Severity) else Severity.parse(severity)
        if (
            parsed_severity is None
            and severity is not None
            and isinstance(punishment_type.shape, MultiSeverityDurations)
        ):
            logger.warning("[PUNISHMENT] Rejecting unknown severity %r for %s", severity, punishment_type.name)
            return ApplyPunishmentResult.failed(f"Unknown severity {severity!r}", "invalid_input")

        status = status_classifier.classify(player.punishments, catalog, thresholds)
        offense_level = status_classifier.offense_level_for(status, punishment_type.category)
        resolved = duration_resolver.resolve(punishment_type, parsed_severity, offense_level)

        is_ai = issuer_name == self.ai_issuer_name
        flagged = is_ai if automated is None else automated
        now = utcnow()
        punishment = Punishment(
            id=generate_punishment_id(),
            type_ordinal=punishment_type.ordinal,
            issuer_name=issuer_name,
            issued_at=now,
            started_at=now if punishment_type.ordinal in self.immediate_ordinals else None,
            data=PunishmentData(
                reason=reason,
                duration_ms=resolved.duration_ms,
                expires_at=None if resolved.is_permanent else now + timedelta(milliseconds=resolved.duration_ms),
                severity=parsed_severity,
                automated=flagged,
                ai_generated=flagged,
                kind=resolved.kind,
                points=resolved.points,
            ),
            attached_ticket_ids=[origin_ticket_id] if origin_ticket_id else [],
        )

        try:
            async with self.connection.transaction() as conn:
                await player_repo.append_punishment(conn, player.uuid, punishment)
        except Exception as exc:
            logger.error("[PUNISHMENT] Failed to persist punishment for %s: %s", player.uuid, exc)
            return ApplyPunishmentResult.failed(f"Failed to persist punishment: {exc}", "persistence")

        logger.info(
            "[PUNISHMENT] %s applied %s (%s, %s level, %s) to %s",
            issuer_name, punishment.id, punishment_type.name, offense_level, resolved.kind, player.uuid,
        )

        severity_label = str(parsed_severity) if parsed_severity else "n/a"
        await self._audit(
            f"{issuer_name} applied punishment ID {punishment.id} ({punishment_type.name}, "
            f"Severity: {severity_label}) to player {player_identifier} ({player.uuid}) "
            f"for ticket {origin_ticket_id or 'n/a'}. Reason: {reason}",
            source="ai-moderation" if is_ai else "player-api",
        )
        return ApplyPunishmentResult.ok(punishment.id)

    async def add_modification(
        self,
        player_uuid: str,
        punishment_id: str,
        modification_type: str,
        issuer_name: str,
        effective_duration: int | None = None,
        reason: str | None = None,
    ) -> Modification:
        """
        Append a modification (pardon, duration change, ...) to a punishment.

        Raises:
            PlayerNotFound: when the player does not exist.
            PunishmentNotFound: when the punishment is not in that player's history.
            PersistenceError: when the append fails.
        """
        player = await self._find_player(player_uuid)
        async with self.connection.read() as conn:
            owner = await player_repo.punishment_owner(conn, punishment_id)
        if owner != player.uuid:
            raise PunishmentNotFound(f"Punishment {punishment_id} not found for player {player.uuid}")

        modification = Modification(
            type=modification_type,
            issuer_name=issuer_name,
            effective_duration=effective_duration,
            reason=reason,
        )
        try:
            async with self.connection.transaction() as conn:
                await player_repo.append_modification(conn, punishment_id, modification)
        except Exception as exc:
            raise PersistenceError(f"Failed to modify punishment {punishment_id}: {exc}") from exc

        logger.info("[PUNISHMENT] %s added %s to punishment %s", issuer_name, modification_type, punishment_id)
        await self._audit(
            f"{issuer_name} added {modification_type} to punishment ID {punishment_id} "
            f"of player {player.uuid}. Reason: {reason or 'n/a'}",
            source="ai-moderation" if issuer_name == self.ai_issuer_name else "player-api",
        )
        return modification

    async def _audit(self, description: str, source: str) -> None:
        """Best-effort audit entry; failures are logged and dropped."""
        try:
            async with self.connection.transaction() as conn:
                await audit_log_repo.insert(conn, description, level="moderation", source=source)
        except LoggingError as exc:
            logger.warning("[PUNISHMENT] Audit log entry dropped: %s", exc)
        except Exception as exc:
            logger.warning("[PUNISHMENT] Audit log transaction failed: %s", exc)
