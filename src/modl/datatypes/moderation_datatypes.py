"""
Data structures for the AI-assisted moderation pipeline.

Covers the chat transcript handed to the model, the typed suggestion parsed
back out of its reply, the per-ticket analysis record written for staff, and
the result object returned by punishment application.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List

from modl.datatypes.punishment_datatypes import PunishmentCategory, Severity, from_millis, to_millis, utcnow


class StrictnessLevel(Enum):
    """How eagerly the model is instructed to recommend action."""

    LENIENT = "lenient"
    STANDARD = "standard"
    STRICT = "strict"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: Any) -> "StrictnessLevel":
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return cls.STANDARD


class AnalysisState(Enum):
    """Lifecycle of a ticket's AI analysis."""

    CREATED = "created"
    ANALYSIS_QUEUED = "analysis_queued"
    ANALYZING = "analyzing"
    AUTO_APPLIED = "auto_applied"
    SUGGESTED_ONLY = "suggested_only"
    ANALYSIS_FAILED = "analysis_failed"

    def __str__(self) -> str:
        return self.value

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_ANALYSIS_STATES


TERMINAL_ANALYSIS_STATES = frozenset(
    {AnalysisState.AUTO_APPLIED, AnalysisState.SUGGESTED_ONLY, AnalysisState.ANALYSIS_FAILED}
)


@dataclass(frozen=True, slots=True)
class ChatMessage:
    """One line of a reported chat transcript."""

    username: str
    message: str
    timestamp: str

    @classmethod
    def parse(cls, raw: Any) -> "ChatMessage | None":
        """Build a message from a dict or a JSON-encoded string; None when unusable."""
        if isinstance(raw, ChatMessage):
            return raw
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except json.JSONDecodeError:
                return None
        if not isinstance(raw, dict):
            return None
        username = raw.get("username")
        message = raw.get("message")
        if not username or message is None:
            return None
        return cls(username=str(username), message=str(message), timestamp=str(raw.get("timestamp") or ""))

    def to_dict(self) -> Dict[str, str]:
        return {"username": self.username, "message": self.message, "timestamp": self.timestamp}


@dataclass(frozen=True, slots=True)
class SuggestedAction:
    """The punishment the model recommends: a catalog type id and a severity."""

    punishment_type_id: int
    severity: Severity

    def to_dict(self) -> Dict[str, Any]:
        return {"punishmentTypeId": self.punishment_type_id, "severity": self.severity.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any] | None) -> "SuggestedAction | None":
        if not isinstance(data, dict):
            return None
        severity = Severity.parse(data.get("severity"))
        type_id = data.get("punishmentTypeId")
        if severity is None or type_id is None:
            return None
        return cls(punishment_type_id=int(type_id), severity=severity)


@dataclass(frozen=True, slots=True)
class ChatAnalysis:
    """Parsed reply of the generative-text service."""

    analysis: str
    suggested_action: SuggestedAction | None = None
    confidence: float = 0.0


@dataclass(slots=True)
class AIAnalysisResult:
    """The record stored on a ticket as ``data.aiAnalysis`` for staff review."""

    analysis: str
    suggested_action: SuggestedAction | None
    was_applied_automatically: bool = False
    created_at: datetime = field(default_factory=utcnow)
    state: AnalysisState = AnalysisState.SUGGESTED_ONLY
    confidence: float | None = None
    punishment_id: str | None = None
    notes: List[str] = field(default_factory=list)
    applied_by: str | None = None
    applied_at: datetime | None = None
    dismissed: bool = False
    dismissed_by: str | None = None
    dismissed_at: datetime | None = None
    dismissal_reason: str | None = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "analysis": self.analysis,
            "suggestedAction": self.suggested_action.to_dict() if self.suggested_action else None,
            "wasAppliedAutomatically": self.was_applied_automatically,
            "createdAt": to_millis(self.created_at),
            "state": self.state.value,
            "confidence": self.confidence,
            "punishmentId": self.punishment_id,
            "notes": list(self.notes),
            "appliedBy": self.applied_by,
            "appliedAt": to_millis(self.applied_at),
            "dismissed": self.dismissed,
            "dismissedBy": self.dismissed_by,
            "dismissedAt": to_millis(self.dismissed_at),
            "dismissalReason": self.dismissal_reason,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AIAnalysisResult":
        try:
            state = AnalysisState(data.get("state") or AnalysisState.SUGGESTED_ONLY.value)
        except ValueError:
            state = AnalysisState.SUGGESTED_ONLY
        return cls(
            analysis=str(data.get("analysis") or ""),
            suggested_action=SuggestedAction.from_dict(data.get("suggestedAction")),
            was_applied_automatically=bool(data.get("wasAppliedAutomatically", False)),
            created_at=from_millis(data.get("createdAt")) or utcnow(),
            state=state,
            confidence=data.get("confidence"),
            punishment_id=data.get("punishmentId"),
            notes=list(data.get("notes") or []),
            applied_by=data.get("appliedBy"),
            applied_at=from_millis(data.get("appliedAt")),
            dismissed=bool(data.get("dismissed", False)),
            dismissed_by=data.get("dismissedBy"),
            dismissed_at=from_millis(data.get("dismissedAt")),
            dismissal_reason=data.get("dismissalReason"),
        )


@dataclass(frozen=True, slots=True)
class AIPunishmentConfig:
    """Whether the model may pick a punishment type, and how it is described to it."""

    enabled: bool = False
    ai_description: str = ""


@dataclass(frozen=True, slots=True)
class AIModerationSettings:
    """Panel-wide switches for the automated moderation pipeline."""

    enable_automated_actions: bool = True
    strictness_level: StrictnessLevel = StrictnessLevel.STANDARD
    ai_punishment_configs: Dict[int, AIPunishmentConfig] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any] | None) -> "AIModerationSettings":
        data = data or {}
        configs: Dict[int, AIPunishmentConfig] = {}
        raw_configs = data.get("aiPunishmentConfigs")
        if isinstance(raw_configs, dict):
            for key, value in raw_configs.items():
                if not isinstance(value, dict):
                    continue
                try:
                    type_id = int(key)
                except (TypeError, ValueError):
                    continue
                configs[type_id] = AIPunishmentConfig(
                    enabled=value.get("enabled") is True,
                    ai_description=str(value.get("aiDescription") or ""),
                )
        return cls(
            enable_automated_actions=bool(data.get("enableAutomatedActions", True)),
            strictness_level=StrictnessLevel.parse(data.get("strictnessLevel")),
            ai_punishment_configs=configs,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enableAutomatedActions": self.enable_automated_actions,
            "strictnessLevel": self.strictness_level.value,
            "aiPunishmentConfigs": {
                str(type_id): {"enabled": config.enabled, "aiDescription": config.ai_description}
                for type_id, config in self.ai_punishment_configs.items()
            },
        }


@dataclass(frozen=True, slots=True)
class AIPunishmentOption:
    """A punishment type the model is currently allowed to choose."""

    id: int
    ordinal: int
    name: str
    category: PunishmentCategory
    ai_description: str

    def to_prompt_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category.value,
            "description": self.ai_description,
        }


@dataclass(slots=True)
class Ticket:
    """The subset of a support ticket the moderation pipeline reads and writes."""

    id: str
    category: str = ""
    type: str = ""
    reported_player: str | None = None
    reported_player_uuid: str | None = None
    chat_messages: List[Any] = field(default_factory=list)
    data: Dict[str, Any] = field(default_factory=dict)
    analysis_state: AnalysisState | None = None

    @property
    def ai_analysis(self) -> AIAnalysisResult | None:
        raw = self.data.get("aiAnalysis")
        return AIAnalysisResult.from_dict(raw) if isinstance(raw, dict) else None

    @property
    def player_identifier(self) -> str | None:
        """UUID when known, otherwise the reported username."""
        return self.reported_player_uuid or self.reported_player or None


@dataclass(frozen=True, slots=True)
class ApplyPunishmentResult:
    """Outcome of a punishment application request."""

    success: bool
    punishment_id: str | None = None
    error: str | None = None
    error_kind: str | None = None

    @classmethod
    def ok(cls, punishment_id: str) -> "ApplyPunishmentResult":
        return cls(success=True, punishment_id=punishment_id)

    @classmethod
    def failed(cls, error: str, error_kind: str) -> "ApplyPunishmentResult":
        return cls(success=False, error=error, error_kind=error_kind)
