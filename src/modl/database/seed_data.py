"""
Default settings documents written on first start.

The catalog mirrors what a freshly provisioned panel ships with: six fixed
administrative types (ordinals 0–5) followed by customizable Social and
Gameplay types. Catalog ids and ordinals deliberately differ for the
customizable types; punishments reference ordinals.
"""

from __future__ import annotations

from typing import Any, Dict, List, Tuple

from modl.datatypes.moderation_datatypes import AIModerationSettings
from modl.datatypes.punishment_datatypes import StatusThresholds

PUNISHMENT_TYPES_KEY = "punishmentTypes"
STATUS_THRESHOLDS_KEY = "statusThresholds"
AI_MODERATION_SETTINGS_KEY = "aiModerationSettings"

# (value, unit) per offense level, in first/medium/habitual order
Track = Tuple[Tuple[int, str], Tuple[int, str], Tuple[int, str]]


def _track(kind: str, track: Track) -> Dict[str, Any]:
    return {
        level: {"value": value, "unit": unit, "type": kind}
        for level, (value, unit) in zip(("first", "medium", "habitual"), track)
    }


def _multi_severity(
    type_id: int,
    ordinal: int,
    name: str,
    category: str,
    kind: str,
    low: Track,
    regular: Track,
    severe: Track,
    points: Tuple[int, int, int],
    description: str,
) -> Dict[str, Any]:
    return {
        "id": type_id,
        "ordinal": ordinal,
        "name": name,
        "category": category,
        "isCustomizable": True,
        "durations": {
            "low": _track(kind, low),
            "regular": _track(kind, regular),
            "severe": _track(kind, severe),
        },
        "points": dict(zip(("low", "regular", "severe"), points)),
        "staffDescription": description,
    }


def _administrative(type_id: int, name: str, description: str) -> Dict[str, Any]:
    return {
        "id": type_id,
        "ordinal": type_id,
        "name": name,
        "category": "Administrative",
        "isCustomizable": False,
        "staffDescription": description,
    }


D = "days"
H = "hours"

DEFAULT_PUNISHMENT_TYPES: List[Dict[str, Any]] = [
    _administrative(0, "Kick", "Immediately remove the player from the server."),
    _administrative(1, "Manual Mute", "Prevent the player from using chat for a specified duration."),
    _administrative(2, "Manual Ban", "Temporarily or permanently ban a player from the server."),
    _administrative(3, "Security Ban", "Ban for security violations, suspicious activity, or compromised accounts."),
    _administrative(4, "Linked Ban", "Ban applied due to association with another banned account."),
    _administrative(5, "Blacklist", "Permanent ban for the most severe violations."),
    _multi_severity(
        8, 6, "Chat Abuse", "Social", "mute",
        ((6, H), (1, D), (3, D)), ((1, D), (3, D), (7, D)), ((3, D), (7, D), (14, D)),
        (1, 1, 2), "Inappropriate language, excessive caps, or disruptive chat behavior.",
    ),
    _multi_severity(
        9, 7, "Anti Social", "Social", "mute",
        ((3, D), (7, D), (14, D)), ((7, D), (30, D), (90, D)), ((30, D), (90, D), (180, D)),
        (2, 3, 4), "Hostile, toxic, or antisocial behavior toward other players.",
    ),
    _multi_severity(
        10, 8, "Targeting", "Social", "ban",
        ((7, D), (14, D), (30, D)), ((30, D), (90, D), (180, D)), ((90, D), (180, D), (365, D)),
        (4, 6, 10), "Harassment, threats or doxxing aimed at a specific player.",
    ),
    _multi_severity(
        11, 9, "Bad Content", "Social", "ban",
        ((1, D), (7, D), (14, D)), ((7, D), (14, D), (30, D)), ((30, D), (60, D), (90, D)),
        (3, 4, 5), "Inappropriate builds, signs, books or other user-generated content.",
    ),
    _multi_severity(
        6, 10, "Bad Skin", "Social", "ban",
        ((24, H), (3, D), (7, D)), ((2, D), (4, D), (10, D)), ((3, D), (7, D), (14, D)),
        (1, 2, 3), "Offensive or inappropriate player skin.",
    ),
    _multi_severity(
        7, 11, "Bad Name", "Social", "ban",
        ((24, H), (3, D), (7, D)), ((2, D), (4, D), (10, D)), ((3, D), (7, D), (14, D)),
        (1, 2, 3), "Offensive or inappropriate username.",
    ),
    _multi_severity(
        12, 12, "Team Abuse", "Gameplay", "ban",
        ((24, H), (3, D), (7, D)), ((2, D), (4, D), (10, D)), ((4, D), (10, D), (30, D)),
        (1, 2, 3), "Intentionally harming teammates or disrupting team gameplay.",
    ),
    _multi_severity(
        13, 13, "Game Abuse", "Gameplay", "ban",
        ((24, H), (3, D), (7, D)), ((3, D), (7, D), (14, D)), ((7, D), (14, D), (30, D)),
        (2, 4, 6), "Exploiting game mechanics or other unfair gameplay.",
    ),
    _multi_severity(
        17, 14, "Systems Abuse", "Gameplay", "ban",
        ((3, D), (7, D), (14, D)), ((7, D), (14, D), (30, D)), ((14, D), (30, D), (60, D)),
        (3, 5, 7), "Exploiting server systems or the economy for personal gain.",
    ),
    _multi_severity(
        16, 15, "Account Abuse", "Gameplay", "ban",
        ((7, D), (14, D), (30, D)), ((14, D), (30, D), (60, D)), ((30, D), (60, D), (120, D)),
        (4, 6, 8), "Alt accounts for unfair advantage, account sharing or punishment evasion.",
    ),
    _multi_severity(
        15, 16, "Game Trading", "Gameplay", "ban",
        ((3, D), (7, D), (14, D)), ((7, D), (14, D), (30, D)), ((14, D), (30, D), (60, D)),
        (3, 5, 7), "Scamming or other violations of the trading rules.",
    ),
    _multi_severity(
        14, 17, "Cheating", "Gameplay", "ban",
        ((7, D), (14, D), (30, D)), ((14, D), (30, D), (60, D)), ((30, D), (60, D), (180, D)),
        (4, 7, 10), "Hacks, mods or other unauthorized software.",
    ),
]

DEFAULT_STATUS_THRESHOLDS: Dict[str, Any] = StatusThresholds().to_dict()

# Only chat-relevant Social types are offered to the model out of the box
DEFAULT_AI_MODERATION_SETTINGS: Dict[str, Any] = {
    **AIModerationSettings().to_dict(),
    "aiPunishmentConfigs": {
        "8": {"enabled": True, "aiDescription": "Inappropriate language, excessive caps, spam or disruptive chat messages."},
        "9": {"enabled": True, "aiDescription": "Hostile or toxic behavior, insults and bullying directed at the chat."},
        "10": {"enabled": True, "aiDescription": "Harassment, threats or doxxing aimed at a specific player."},
    },
}

DEFAULT_SETTINGS: Dict[str, Any] = {
    PUNISHMENT_TYPES_KEY: DEFAULT_PUNISHMENT_TYPES,
    STATUS_THRESHOLDS_KEY: DEFAULT_STATUS_THRESHOLDS,
    AI_MODERATION_SETTINGS_KEY: DEFAULT_AI_MODERATION_SETTINGS,
}
