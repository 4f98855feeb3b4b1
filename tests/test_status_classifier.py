"""Tests for status_classifier module."""

from datetime import datetime, timedelta, timezone

import pytest

from modl.configuration.settings_provider import parse_punishment_types
from modl.database.seed_data import DEFAULT_PUNISHMENT_TYPES
from modl.datatypes.punishment_datatypes import (
    CategoryThresholds,
    Modification,
    OffenseLevel,
    OffenseTier,
    PlayerStatus,
    Punishment,
    PunishmentCategory,
    PunishmentData,
    Severity,
    StatusThresholds,
)
from modl.moderation.status_classifier import (
    classify,
    effective_state,
    offense_level_for,
    relevant_tier,
    tier_for_points,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
DAY_MS = 86_400_000

# Ordinals from the default catalog
CHAT_ABUSE = 6      # Social, points 1/1/2
TARGETING = 8       # Social, points 4/6/10
GAME_ABUSE = 13     # Gameplay, points 2/4/6
CHEATING = 17       # Gameplay, points 4/7/10
KICK = 0            # Administrative


@pytest.fixture
def catalog():
    return parse_punishment_types(DEFAULT_PUNISHMENT_TYPES)


@pytest.fixture
def thresholds():
    return StatusThresholds()


def punishment(ordinal, severity="regular", duration_ms=-1, issued=NOW - timedelta(hours=1), modifications=None, pid="P"):
    return Punishment(
        id=pid,
        type_ordinal=ordinal,
        issuer_name="Staff",
        issued_at=issued,
        data=PunishmentData(reason="test", duration_ms=duration_ms, severity=Severity.parse(severity)),
        modifications=modifications or [],
    )


class TestClassify:
    def test_empty_history_is_low_low(self, catalog, thresholds):
        status = classify([], catalog, thresholds, NOW)
        assert status == PlayerStatus(OffenseTier.LOW, OffenseTier.LOW, 0, 0)

    def test_points_summed_per_category(self, catalog, thresholds):
        history = [
            punishment(CHAT_ABUSE, "severe"),  # social 2
            punishment(TARGETING, "low"),      # social 4
            punishment(GAME_ABUSE, "regular"), # gameplay 4
        ]
        status = classify(history, catalog, thresholds, NOW)
        assert status.social_points == 6
        assert status.gameplay_points == 4
        assert status.social is OffenseTier.MEDIUM
        assert status.gameplay is OffenseTier.LOW

    def test_habitual_at_threshold(self, catalog, thresholds):
        history = [punishment(CHEATING, "severe")]  # gameplay 10
        status = classify(history, catalog, thresholds, NOW)
        assert status.gameplay is OffenseTier.HABITUAL

    def test_administrative_and_unknown_ordinals_ignored(self, catalog, thresholds):
        history = [punishment(KICK), punishment(404, "severe")]
        status = classify(history, catalog, thresholds, NOW)
        assert status.gameplay_points == 0
        assert status.social_points == 0

    def test_stored_points_are_not_trusted(self, catalog, thresholds):
        record = punishment(CHAT_ABUSE, "low")
        record.data.points = 50
        assert classify([record], catalog, thresholds, NOW).social_points == 1

    def test_expired_punishment_excluded(self, catalog, thresholds):
        expired = punishment(TARGETING, "severe", duration_ms=DAY_MS, issued=NOW - timedelta(days=2))
        active = punishment(TARGETING, "low", duration_ms=7 * DAY_MS, issued=NOW - timedelta(days=2))
        status = classify([expired, active], catalog, thresholds, NOW)
        assert status.social_points == 4

    def test_pardoned_punishment_excluded(self, catalog, thresholds):
        pardoned = punishment(
            CHEATING, "severe",
            modifications=[Modification(type="MANUAL_PARDON", issuer_name="Admin", issued_at=NOW)],
        )
        appealed = punishment(
            GAME_ABUSE, "severe",
            modifications=[Modification(type="APPEAL_ACCEPT", issuer_name="Admin", issued_at=NOW)],
        )
        status = classify([pardoned, appealed], catalog, thresholds, NOW)
        assert status.gameplay_points == 0
        assert status.gameplay is OffenseTier.LOW


class TestMonotonicity:
    @pytest.mark.parametrize("thresholds", [CategoryThresholds(5, 10), CategoryThresholds(1, 2), CategoryThresholds(3, 3)])
    def test_tier_never_decreases_with_points(self, thresholds):
        tiers = [tier_for_points(points, thresholds).priority for points in range(0, 25)]
        assert tiers == sorted(tiers)

    def test_adding_active_punishment_never_lowers_tier(self, catalog, thresholds):
        history = []
        previous = classify(history, catalog, thresholds, NOW)
        for _ in range(6):
            history.append(punishment(GAME_ABUSE, "regular"))
            current = classify(history, catalog, thresholds, NOW)
            assert current.gameplay.priority >= previous.gameplay.priority
            previous = current
        assert previous.gameplay is OffenseTier.HABITUAL


class TestEffectiveState:
    def test_permanent_never_expires(self):
        state = effective_state(punishment(CHEATING, issued=NOW - timedelta(days=3650)), NOW)
        assert state.active
        assert state.expires_at is None

    def test_duration_change_extends(self):
        record = punishment(
            TARGETING, duration_ms=DAY_MS, issued=NOW - timedelta(days=2),
            modifications=[Modification(
                type="MANUAL_DURATION_CHANGE", issuer_name="Admin",
                issued_at=NOW - timedelta(days=1), effective_duration=5 * DAY_MS,
            )],
        )
        state = effective_state(record, NOW)
        assert state.active
        assert state.expires_at == NOW + timedelta(days=3)

    def test_duration_change_to_zero_is_permanent(self):
        record = punishment(
            TARGETING, duration_ms=DAY_MS, issued=NOW - timedelta(days=2),
            modifications=[Modification(type="MANUAL_DURATION_CHANGE", issuer_name="Admin", effective_duration=0)],
        )
        state = effective_state(record, NOW)
        assert state.active
        assert state.duration_ms == -1

    def test_modifications_applied_chronologically(self):
        later = Modification(
            type="MANUAL_DURATION_CHANGE", issuer_name="Admin",
            issued_at=NOW - timedelta(hours=1), effective_duration=DAY_MS,
        )
        earlier = Modification(
            type="MANUAL_DURATION_CHANGE", issuer_name="Admin",
            issued_at=NOW - timedelta(hours=5), effective_duration=30 * DAY_MS,
        )
        record = punishment(TARGETING, duration_ms=DAY_MS, issued=NOW - timedelta(days=3), modifications=[later, earlier])
        assert not effective_state(record, NOW).active

    def test_unrelated_modifications_ignored(self):
        record = punishment(
            TARGETING,
            modifications=[Modification(type="SET_ALT_BLOCKING_TRUE", issuer_name="Admin", issued_at=NOW)],
        )
        assert effective_state(record, NOW).active


class TestRelevantTier:
    @pytest.fixture
    def status(self):
        return PlayerStatus(gameplay=OffenseTier.MEDIUM, social=OffenseTier.HABITUAL)

    def test_own_category(self, status):
        assert relevant_tier(status, PunishmentCategory.GAMEPLAY) is OffenseTier.MEDIUM
        assert relevant_tier(status, "Social") is OffenseTier.HABITUAL

    def test_administrative_uses_worse_tier(self, status):
        assert relevant_tier(status, PunishmentCategory.ADMINISTRATIVE) is OffenseTier.HABITUAL
        assert relevant_tier(PlayerStatus(gameplay=OffenseTier.MEDIUM), "anything") is OffenseTier.MEDIUM

    def test_offense_level_mapping(self, status):
        assert offense_level_for(status, "Gameplay") is OffenseLevel.MEDIUM
        assert offense_level_for(status, "Social") is OffenseLevel.HABITUAL
        assert offense_level_for(PlayerStatus(), "Social") is OffenseLevel.FIRST
