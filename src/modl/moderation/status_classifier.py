"""
Offender tier classification.

A player's standing is computed per category (Gameplay, Social) from the
points of their *effectively active* punishments:

- a punishment carrying a ``MANUAL_PARDON`` or ``APPEAL_ACCEPT``
  modification is inactive;
- a ``MANUAL_DURATION_CHANGE`` replaces the effective duration (a value of
  zero or less makes it permanent);
- a finite punishment whose ``issued_at + duration`` lies in the past has
  expired.

Points always come from the current catalog entry of the punishment's type,
never from the copy stored on the punishment.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Iterable, Sequence

from modl.datatypes.punishment_datatypes import (
    DURATION_CHANGE_MODIFICATION,
    PARDON_MODIFICATIONS,
    PERMANENT_DURATION,
    CategoryThresholds,
    MultiSeverityDurations,
    OffenseLevel,
    OffenseTier,
    PlayerStatus,
    Punishment,
    PunishmentCategory,
    PunishmentType,
    Severity,
    SingleSeverityDurations,
    StatusThresholds,
    utcnow,
)
from modl.util.logger import get_logger

logger = get_logger("status_classifier")


@dataclass(frozen=True, slots=True)
class EffectiveState:
    """Outcome of replaying a punishment's modifications."""
    active: bool
    duration_ms: int
    expires_at: datetime | None


def effective_state(punishment: Punishment, now: datetime | None = None) -> EffectiveState:
    """Replay modifications in chronological order and decide whether ``punishment`` is active."""
    now = now or utcnow()
    duration = punishment.data.duration_ms
    pardoned = False

    for modification in sorted(punishment.modifications, key=lambda mod: mod.issued_at):
        if modification.type in PARDON_MODIFICATIONS:
            pardoned = True
        elif modification.type == DURATION_CHANGE_MODIFICATION and modification.effective_duration is not None:
            duration = modification.effective_duration if modification.effective_duration > 0 else PERMANENT_DURATION

    if pardoned:
        return EffectiveState(active=False, duration_ms=duration, expires_at=None)
    if duration is None or duration <= 0:
        return EffectiveState(active=True, duration_ms=PERMANENT_DURATION, expires_at=None)

    expires_at = punishment.issued_at + timedelta(milliseconds=duration)
    return EffectiveState(active=expires_at > now, duration_ms=duration, expires_at=expires_at)


def points_for(punishment_type: PunishmentType, severity: Severity | None) -> int:
    """Points a punishment of this type and severity is worth."""
    if punishment_type.custom_points is not None:
        return punishment_type.custom_points

    match punishment_type.shape:
        case SingleSeverityDurations(points=points):
            return points
        case MultiSeverityDurations(points=points):
            if severity is None:
                return 0
            return points.get(severity, 0)
        case None:
            return 0


def tier_for_points(points: int, thresholds: CategoryThresholds) -> OffenseTier:
    if points >= thresholds.habitual:
        return OffenseTier.HABITUAL
    if points >= thresholds.medium:
        return OffenseTier.MEDIUM
    return OffenseTier.LOW


def _index_by_ordinal(catalog: Iterable[PunishmentType]) -> Dict[int, PunishmentType]:
    return {punishment_type.ordinal: punishment_type for punishment_type in catalog}


def classify(
    punishments: Sequence[Punishment],
    catalog: Sequence[PunishmentType],
    thresholds: StatusThresholds,
    now: datetime | None = None,
) -> PlayerStatus:
    """
    Compute the Gameplay and Social tiers for a punishment history.

    Args:
        punishments: The player's full punishment history.
        catalog: Current punishment catalog, looked up by ordinal.
        thresholds: Medium/Habitual point thresholds per category.
        now: Reference time for expiry checks (defaults to the current UTC time).

    Returns:
        PlayerStatus with both tiers and the point totals behind them.
    """
    now = now or utcnow()
    by_ordinal = _index_by_ordinal(catalog)
    totals = {PunishmentCategory.GAMEPLAY: 0, PunishmentCategory.SOCIAL: 0}

    for punishment in punishments:
        punishment_type = by_ordinal.get(punishment.type_ordinal)
        if punishment_type is None:
            logger.debug("[CLASSIFIER] Ignoring punishment %s with unknown ordinal %s", punishment.id, punishment.type_ordinal)
            continue
        if punishment_type.category not in totals:
            continue
        if not effective_state(punishment, now).active:
            continue
        totals[punishment_type.category] += points_for(punishment_type, punishment.data.severity)

    gameplay_points = totals[PunishmentCategory.GAMEPLAY]
    social_points = totals[PunishmentCategory.SOCIAL]
    return PlayerStatus(
        gameplay=tier_for_points(gameplay_points, thresholds.gameplay),
        social=tier_for_points(social_points, thresholds.social),
        gameplay_points=gameplay_points,
        social_points=social_points,
    )


def relevant_tier(status: PlayerStatus, category: PunishmentCategory | str) -> OffenseTier:
    """Tier that applies to a new punishment of ``category``; the worse of both for anything else."""
    if not isinstance(category, PunishmentCategory):
        category = PunishmentCategory.parse(category)
    if category is PunishmentCategory.GAMEPLAY:
        return status.gameplay
    if category is PunishmentCategory.SOCIAL:
        return status.social
    return max(status.gameplay, status.social, key=lambda tier: tier.priority)


def offense_level_for(status: PlayerStatus, category: PunishmentCategory | str) -> OffenseLevel:
    return relevant_tier(status, category).offense_level
