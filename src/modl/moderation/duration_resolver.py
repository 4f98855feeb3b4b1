"""
Duration, kind and points resolution for a punishment type.

The two duration shapes are handled by an exhaustive match. Missing cells
fall back to the ``first`` offense level of the same track; when no entry
exists at all (Kick, a missing severity row) the punishment is permanent
with the kind implied by the type.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Sequence

from modl.datatypes.punishment_datatypes import (
    PERMANENT_DURATION,
    DurationEntry,
    MultiSeverityDurations,
    OffenseLevel,
    PunishmentType,
    ResolvedPunishment,
    Severity,
    SingleSeverityDurations,
)
from modl.errors import PunishmentTypeNotFound
from modl.moderation.status_classifier import points_for
from modl.util.logger import get_logger

logger = get_logger("duration_resolver")


class TypeLookup(Enum):
    """Which catalog field a punishment type key refers to."""

    ORDINAL = "ordinal"
    ID = "id"

    def __str__(self) -> str:
        return self.value


def find_punishment_type(
    catalog: Sequence[PunishmentType],
    key: int,
    by: TypeLookup = TypeLookup.ORDINAL,
) -> PunishmentType:
    """
    Look a type up by ordinal (the storage key) or by catalog id.

    Ids and ordinals of the customizable types overlap, so only the field
    named by ``by`` is compared.

    Raises:
        PunishmentTypeNotFound: when no type matches.
    """
    try:
        value = int(key)
    except (TypeError, ValueError):
        raise PunishmentTypeNotFound(f"Punishment type {by} {key!r} not found") from None

    for punishment_type in catalog:
        if getattr(punishment_type, by.value) == value:
            return punishment_type
    raise PunishmentTypeNotFound(f"Punishment type {by} {key!r} not found")


def find_punishment_type_by_id(catalog: Sequence[PunishmentType], type_id: int) -> PunishmentType:
    """Look a type up by its catalog id only (the key used by the AI settings)."""
    return find_punishment_type(catalog, type_id, TypeLookup.ID)


def _pick(track: Dict[OffenseLevel, DurationEntry] | None, offense_level: OffenseLevel) -> DurationEntry | None:
    if not track:
        return None
    return track.get(offense_level) or track.get(OffenseLevel.FIRST)


def duration_entry_for(
    punishment_type: PunishmentType,
    severity: Severity | None,
    offense_level: OffenseLevel,
) -> DurationEntry | None:
    """The duration cell that applies, or None when the type defines none."""
    match punishment_type.shape:
        case SingleSeverityDurations(durations=track):
            return _pick(track, offense_level)
        case MultiSeverityDurations(durations=matrix):
            if severity is None:
                return None
            return _pick(matrix.get(severity), offense_level)
        case None:
            return None


def resolve(
    punishment_type: PunishmentType,
    severity: Severity | str | None,
    offense_level: OffenseLevel,
) -> ResolvedPunishment:
    """
    Resolve the concrete duration, kind and points for one punishment.

    Args:
        punishment_type: Catalog entry being applied.
        severity: Requested severity; ignored by single-severity types.
        offense_level: The player's offense level for the type's category.

    Returns:
        ResolvedPunishment; ``duration_ms`` is -1 for permanent punishments.
    """
    if not isinstance(severity, Severity):
        severity = Severity.parse(severity)

    entry = duration_entry_for(punishment_type, severity, offense_level)
    points = points_for(punishment_type, severity)

    if entry is None:
        logger.debug(
            "[RESOLVER] No duration entry for %s (severity=%s, level=%s); treating as permanent",
            punishment_type.name, severity, offense_level,
        )
        return ResolvedPunishment(duration_ms=PERMANENT_DURATION, kind=punishment_type.default_kind, points=points)

    return ResolvedPunishment(duration_ms=entry.to_milliseconds(), kind=entry.kind, points=points)
