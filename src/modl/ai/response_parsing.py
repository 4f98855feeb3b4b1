"""Utilities for parsing chat analysis replies.

The model is asked for a single JSON object::

    {"analysis": "...", "suggestedAction": {"punishmentTypeId": 8, "severity": "regular"} | null,
     "confidence": 0.9}

Replies are tolerated with Markdown code fences, prose around the object and a
missing ``confidence``. Parsing never raises: anything that cannot be read
yields a :class:`ChatAnalysis` with no suggested action and an analysis text
explaining why.
"""
from __future__ import annotations

import json
import re
from typing import Any

from jsonschema import Draft7Validator

from modl.datatypes.moderation_datatypes import ChatAnalysis, SuggestedAction
from modl.datatypes.punishment_datatypes import Severity
from modl.util.logger import get_logger

logger = get_logger("response_parsing")

DEFAULT_CONFIDENCE = 0.8

analysis_schema = {
    "type": "object",
    "properties": {
        "analysis": {"type": "string"},
        "suggestedAction": {
            "oneOf": [
                {"type": "null"},
                {
                    "type": "object",
                    "properties": {
                        "punishmentTypeId": {"type": "integer", "minimum": 0},
                        "severity": {"type": "string", "enum": [severity.value for severity in Severity]},
                    },
                    "required": ["punishmentTypeId", "severity"],
                },
            ]
        },
        "confidence": {"type": "number", "minimum": 0, "maximum": 1},
    },
    "required": ["analysis"],
}
"""JSON schema a chat analysis reply must satisfy."""

_analysis_validator = Draft7Validator(analysis_schema)

_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")


def _strip_code_fences(payload: str) -> str:
    """Drop a leading/trailing Markdown fence so the JSON can be parsed."""
    return _FENCE_PATTERN.sub("", payload.strip())


def _extract_json_object(raw: str) -> Any:
    """Return the outermost ``{...}`` object in ``raw`` or raise ``ValueError``."""
    cleaned = _strip_code_fences(raw)
    match = _OBJECT_PATTERN.search(cleaned)
    if match is None:
        raise ValueError("no JSON object found")
    try:
        return json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise ValueError(f"unable to decode JSON payload: {exc}") from None


def _unparseable(reason: str) -> ChatAnalysis:
    return ChatAnalysis(
        analysis=f"AI response could not be interpreted ({reason}); no action suggested.",
        suggested_action=None,
        confidence=0.0,
    )


def parse_analysis_response(assistant_response: str | None) -> ChatAnalysis:
    """
    Parse a model reply into a :class:`ChatAnalysis`.

    Args:
        assistant_response: Raw text returned by the chat completion.

    Returns:
        The parsed analysis; ``suggested_action`` is None when the model
        recommends nothing or the reply is malformed.
    """
    if not assistant_response or not assistant_response.strip():
        logger.warning("[PARSE] Empty response from model")
        return _unparseable("empty response")

    try:
        payload = _extract_json_object(assistant_response)
    except ValueError as exc:
        logger.error("[PARSE] %s | Response: %.200s", exc, assistant_response)
        return _unparseable(str(exc))

    errors = sorted(_analysis_validator.iter_errors(payload), key=lambda error: list(error.path))
    if errors:
        first = errors[0]
        location = "/".join(str(part) for part in first.path) or "<root>"
        logger.error("[PARSE] Schema validation failed at %s: %s", location, first.message)
        return _unparseable(f"invalid {location}")

    confidence = payload.get("confidence")
    return ChatAnalysis(
        analysis=payload["analysis"],
        suggested_action=SuggestedAction.from_dict(payload.get("suggestedAction")),
        confidence=float(confidence) if confidence is not None else DEFAULT_CONFIDENCE,
    )
