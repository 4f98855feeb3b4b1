"""
Punishment catalog and offense history data structures.

The catalog is stored as JSON using the admin panel's camelCase field names;
``from_dict``/``to_dict`` translate between that document shape and the
typed objects used by the classifier and resolver.

A punishment type's durations come in one of two explicit shapes:

- :class:`MultiSeverityDurations`: a severity × offense-level matrix plus
  per-severity points.
- :class:`SingleSeverityDurations`: one offense-level track plus a single
  point value.

Types without any durations (Kick, administrative bans configured ad hoc)
carry ``shape=None``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Union


class PunishmentCategory(Enum):
    """Catalog category a punishment type belongs to."""

    GAMEPLAY = "Gameplay"
    SOCIAL = "Social"
    ADMINISTRATIVE = "Administrative"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: Any) -> "PunishmentCategory":
        """Case-insensitive lookup; anything unknown is treated as administrative."""
        text = str(value or "").strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        return cls.ADMINISTRATIVE


SEVERITY_ALIASES = {
    "low": "low",
    "lenient": "low",
    "regular": "regular",
    "medium": "regular",
    "severe": "severe",
    "aggravated": "severe",
    "high": "severe",
}


class Severity(Enum):
    """Severity axis of a multi-severity duration matrix."""

    LOW = "low"
    REGULAR = "regular"
    SEVERE = "severe"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: Any) -> "Severity | None":
        """Return the severity for ``value`` (aliases included) or None."""
        if isinstance(value, Severity):
            return value
        canonical = SEVERITY_ALIASES.get(str(value or "").strip().lower())
        return cls(canonical) if canonical else None


class OffenseLevel(Enum):
    """Offense-level axis of a duration track."""

    FIRST = "first"
    MEDIUM = "medium"
    HABITUAL = "habitual"

    def __str__(self) -> str:
        return self.value


class OffenseTier(Enum):
    """Offender classification per category, derived from active points."""

    LOW = "Low"
    MEDIUM = "Medium"
    HABITUAL = "Habitual"

    def __str__(self) -> str:
        return self.value

    @property
    def priority(self) -> int:
        return _TIER_PRIORITY[self]

    @property
    def offense_level(self) -> OffenseLevel:
        return _TIER_TO_OFFENSE_LEVEL[self]


_TIER_PRIORITY = {OffenseTier.LOW: 1, OffenseTier.MEDIUM: 2, OffenseTier.HABITUAL: 3}
_TIER_TO_OFFENSE_LEVEL = {
    OffenseTier.LOW: OffenseLevel.FIRST,
    OffenseTier.MEDIUM: OffenseLevel.MEDIUM,
    OffenseTier.HABITUAL: OffenseLevel.HABITUAL,
}


class PunishmentKind(Enum):
    """What a resolved duration entry does to the player."""

    MUTE = "mute"
    BAN = "ban"
    PERMANENT_MUTE = "permanent mute"
    PERMANENT_BAN = "permanent ban"

    def __str__(self) -> str:
        return self.value

    @property
    def is_permanent(self) -> bool:
        return self in (PunishmentKind.PERMANENT_MUTE, PunishmentKind.PERMANENT_BAN)

    @classmethod
    def parse(cls, value: Any, default: "PunishmentKind | None" = None) -> "PunishmentKind | None":
        text = str(value or "").strip().lower().replace("_", " ")
        for member in cls:
            if member.value == text:
                return member
        return default


class DurationUnit(Enum):
    """Units accepted in duration entries, with their length in milliseconds."""

    SECONDS = "seconds"
    MINUTES = "minutes"
    HOURS = "hours"
    DAYS = "days"
    WEEKS = "weeks"
    MONTHS = "months"

    def __str__(self) -> str:
        return self.value

    @property
    def milliseconds(self) -> int:
        return UNIT_MILLISECONDS[self]

    @classmethod
    def parse(cls, value: Any) -> "DurationUnit":
        text = str(value or "").strip().lower()
        if text and not text.endswith("s"):
            text += "s"
        try:
            return cls(text)
        except ValueError:
            raise ValueError(f"Unknown duration unit: {value!r}") from None


# Months follow the 30-day convention
UNIT_MILLISECONDS: Dict[DurationUnit, int] = {
    DurationUnit.SECONDS: 1_000,
    DurationUnit.MINUTES: 60_000,
    DurationUnit.HOURS: 3_600_000,
    DurationUnit.DAYS: 86_400_000,
    DurationUnit.WEEKS: 604_800_000,
    DurationUnit.MONTHS: 2_592_000_000,
}

PERMANENT_DURATION = -1


@dataclass(frozen=True, slots=True)
class DurationEntry:
    """A single ``{value, unit, kind}`` cell of a duration track."""

    value: float
    unit: DurationUnit
    kind: PunishmentKind

    def to_milliseconds(self) -> int:
        """Length in milliseconds, or ``-1`` for permanent kinds whatever the value."""
        if self.kind.is_permanent:
            return PERMANENT_DURATION
        return int(self.value * self.unit.milliseconds)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], default_kind: PunishmentKind) -> "DurationEntry":
        return cls(
            value=float(data.get("value", 0)),
            unit=DurationUnit.parse(data.get("unit", "days")),
            kind=PunishmentKind.parse(data.get("type"), default_kind) or default_kind,
        )

    def to_dict(self) -> Dict[str, Any]:
        value: float | int = int(self.value) if float(self.value).is_integer() else self.value
        return {"value": value, "unit": self.unit.value, "type": self.kind.value}


def _parse_track(raw: Any, default_kind: PunishmentKind) -> Dict[OffenseLevel, DurationEntry]:
    track: Dict[OffenseLevel, DurationEntry] = {}
    if not isinstance(raw, dict):
        return track
    for level in OffenseLevel:
        entry = raw.get(level.value)
        if isinstance(entry, dict):
            track[level] = DurationEntry.from_dict(entry, default_kind)
    return track


@dataclass(frozen=True, slots=True)
class MultiSeverityDurations:
    """Severity × offense-level duration matrix. Cells may be absent."""

    durations: Dict[Severity, Dict[OffenseLevel, DurationEntry]]
    points: Dict[Severity, int]


@dataclass(frozen=True, slots=True)
class SingleSeverityDurations:
    """One duration track indexed only by offense level."""

    durations: Dict[OffenseLevel, DurationEntry]
    points: int


DurationShape = Union[MultiSeverityDurations, SingleSeverityDurations, None]


@dataclass(frozen=True, slots=True)
class PunishmentType:
    """A catalog entry. Punishments reference it through ``ordinal``, not ``id``."""

    id: int
    ordinal: int
    name: str
    category: PunishmentCategory
    is_customizable: bool = False
    shape: DurationShape = None
    custom_points: int | None = None
    staff_description: str = ""
    player_description: str = ""

    @property
    def default_kind(self) -> PunishmentKind:
        """Kind used when a duration cell does not state one."""
        if self.category is PunishmentCategory.SOCIAL or "mute" in self.name.lower():
            return PunishmentKind.MUTE
        return PunishmentKind.BAN

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PunishmentType":
        ordinal = int(data.get("ordinal", data.get("id", 0)))
        category = PunishmentCategory.parse(data.get("category"))
        partial = cls(id=int(data.get("id", ordinal)), ordinal=ordinal, name=str(data.get("name", "")), category=category)
        default_kind = partial.default_kind

        shape: DurationShape = None
        if data.get("singleSeverityPunishment") and isinstance(data.get("singleSeverityDurations"), dict):
            shape = SingleSeverityDurations(
                durations=_parse_track(data["singleSeverityDurations"], default_kind),
                points=int(data.get("singleSeverityPoints") or 0),
            )
        elif isinstance(data.get("durations"), dict):
            raw_points = data.get("points") if isinstance(data.get("points"), dict) else {}
            shape = MultiSeverityDurations(
                durations={
                    severity: _parse_track(data["durations"].get(severity.value), default_kind)
                    for severity in Severity
                    if isinstance(data["durations"].get(severity.value), dict)
                },
                points={severity: int(raw_points.get(severity.value) or 0) for severity in Severity},
            )

        custom_points = data.get("customPoints")
        return cls(
            id=partial.id,
            ordinal=ordinal,
            name=partial.name,
            category=category,
            is_customizable=bool(data.get("isCustomizable", False)),
            shape=shape,
            custom_points=int(custom_points) if custom_points is not None else None,
            staff_description=str(data.get("staffDescription") or ""),
            player_description=str(data.get("playerDescription") or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "ordinal": self.ordinal,
            "name": self.name,
            "category": self.category.value,
            "isCustomizable": self.is_customizable,
        }
        if self.staff_description:
            payload["staffDescription"] = self.staff_description
        if self.player_description:
            payload["playerDescription"] = self.player_description
        if self.custom_points is not None:
            payload["customPoints"] = self.custom_points

        match self.shape:
            case SingleSeverityDurations(durations=durations, points=points):
                payload["singleSeverityPunishment"] = True
                payload["singleSeverityDurations"] = {level.value: entry.to_dict() for level, entry in durations.items()}
                payload["singleSeverityPoints"] = points
            case MultiSeverityDurations(durations=durations, points=points):
                payload["durations"] = {
                    severity.value: {level.value: entry.to_dict() for level, entry in track.items()}
                    for severity, track in durations.items()
                }
                payload["points"] = {severity.value: value for severity, value in points.items()}
            case None:
                pass
        return payload


# -------------------- Offense history --------------------

PARDON_MODIFICATIONS = frozenset({"MANUAL_PARDON", "APPEAL_ACCEPT"})
DURATION_CHANGE_MODIFICATION = "MANUAL_DURATION_CHANGE"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_millis(value: datetime | None) -> int | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


def from_millis(value: int | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)


@dataclass(slots=True)
class Modification:
    """An append-only amendment (pardon, duration change, ...) to a punishment."""

    type: str
    issuer_name: str
    issued_at: datetime = field(default_factory=utcnow)
    effective_duration: int | None = None
    reason: str | None = None


@dataclass(slots=True)
class PunishmentData:
    """Free-form punishment payload, stored as a JSON document."""

    reason: str = ""
    duration_ms: int = PERMANENT_DURATION
    expires_at: datetime | None = None
    severity: Severity | None = None
    automated: bool = False
    ai_generated: bool = False
    kind: PunishmentKind | None = None
    points: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reason": self.reason,
            "duration": self.duration_ms,
            "expires": to_millis(self.expires_at),
            "severity": self.severity.value if self.severity else None,
            "automated": self.automated,
            "aiGenerated": self.ai_generated,
            "kind": self.kind.value if self.kind else None,
            "points": self.points,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any] | None) -> "PunishmentData":
        data = data or {}
        duration = data.get("duration")
        return cls(
            reason=str(data.get("reason") or ""),
            duration_ms=int(duration) if duration is not None else PERMANENT_DURATION,
            expires_at=from_millis(data.get("expires")),
            severity=Severity.parse(data.get("severity")),
            automated=bool(data.get("automated", False)),
            ai_generated=bool(data.get("aiGenerated", False)),
            kind=PunishmentKind.parse(data.get("kind")),
            points=int(data.get("points") or 0),
        )


@dataclass(slots=True)
class Punishment:
    """A punishment instance owned by a player."""

    id: str
    type_ordinal: int
    issuer_name: str
    issued_at: datetime
    started_at: datetime | None = None
    data: PunishmentData = field(default_factory=PunishmentData)
    modifications: List[Modification] = field(default_factory=list)
    attached_ticket_ids: List[str] = field(default_factory=list)


@dataclass(slots=True)
class UsernameRecord:
    username: str
    first_seen: datetime = field(default_factory=utcnow)


@dataclass(slots=True)
class Player:
    """A player identity with its append-only punishment history."""

    uuid: str
    usernames: List[UsernameRecord] = field(default_factory=list)
    punishments: List[Punishment] = field(default_factory=list)
    pending_notifications: List[str] = field(default_factory=list)

    @property
    def latest_username(self) -> str | None:
        if not self.usernames:
            return None
        return max(self.usernames, key=lambda record: record.first_seen).username


# -------------------- Classification --------------------

@dataclass(frozen=True, slots=True)
class CategoryThresholds:
    medium: int
    habitual: int


@dataclass(frozen=True, slots=True)
class StatusThresholds:
    """Point thresholds for the Medium and Habitual tiers of each category."""

    gameplay: CategoryThresholds = CategoryThresholds(medium=5, habitual=10)
    social: CategoryThresholds = CategoryThresholds(medium=4, habitual=8)

    @classmethod
    def from_dict(cls, data: Dict[str, Any] | None) -> "StatusThresholds":
        defaults = cls()
        data = data or {}

        def _category(key: str, fallback: CategoryThresholds) -> CategoryThresholds:
            raw = data.get(key)
            if not isinstance(raw, dict):
                return fallback
            medium = raw.get("medium", raw.get("mediumPointThreshold", fallback.medium))
            habitual = raw.get("habitual", raw.get("habitualPointThreshold", fallback.habitual))
            return CategoryThresholds(medium=int(medium), habitual=int(habitual))

        return cls(
            gameplay=_category("gameplay", defaults.gameplay),
            social=_category("social", defaults.social),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "gameplay": {"medium": self.gameplay.medium, "habitual": self.gameplay.habitual},
            "social": {"medium": self.social.medium, "habitual": self.social.habitual},
        }


@dataclass(frozen=True, slots=True)
class PlayerStatus:
    """Per-category offender tiers and the active point totals behind them."""

    gameplay: OffenseTier = OffenseTier.LOW
    social: OffenseTier = OffenseTier.LOW
    gameplay_points: int = 0
    social_points: int = 0


@dataclass(frozen=True, slots=True)
class ResolvedPunishment:
    """Concrete duration, kind and points owed for one punishment."""

    duration_ms: int
    kind: PunishmentKind
    points: int

    @property
    def is_permanent(self) -> bool:
        return self.duration_ms == PERMANENT_DURATION
