"""
System prompt assembly for chat analysis.

Each strictness level has a default prompt made of a shared base block
(rules to enforce, the required JSON reply shape, severity guidelines) and a
strictness-specific paragraph. Staff may override a level's prompt; the
override is stored in the ``system_prompts`` table and used while active.

The live list of AI-enabled punishment types is injected at the
``<|PUNISHMENT_TYPES_INJECT|>`` marker, or appended under an
``AVAILABLE PUNISHMENT TYPES`` heading when a custom prompt drops the marker.
"""

from __future__ import annotations

import json
from typing import Dict, List, Sequence

from modl.database.db_connection import ConnectionManager
from modl.datatypes.moderation_datatypes import AIModerationSettings, AIPunishmentOption, StrictnessLevel
from modl.datatypes.punishment_datatypes import PunishmentType
from modl.repositories.system_prompt_repo import SystemPromptRecord, system_prompt_repo
from modl.util.logger import get_logger

logger = get_logger("prompt_assembler")

PUNISHMENT_TYPES_MARKER = "<|PUNISHMENT_TYPES_INJECT|>"

RESPONSE_FORMAT = """{
  "analysis": "Brief explanation of what rule violations (if any) were found in the chat",
  "suggestedAction": {
    "punishmentTypeId": <punishment_type_id_number>,
    "severity": "low|regular|severe"
  } OR null if no action needed,
  "confidence": <number between 0 and 1>
}"""

BASE_PROMPT = f"""You are an AI moderator analyzing game server chat logs for rule violations. Analyze the provided chat transcript and determine if any moderation action is needed.

IMPORTANT RULES TO ENFORCE:
- Harassment, bullying, or toxic behavior toward other players
- Excessive profanity or inappropriate language
- Spam or flooding chat
- Advertising other servers
- Cheating accusations or discussions
- Threats or doxxing
- Inappropriate content (sexual, violent, etc.)
- Discrimination based on race, gender, religion, etc.

RESPONSE FORMAT:
You must respond with a valid JSON object in this exact format:
{RESPONSE_FORMAT}

PUNISHMENT SEVERITY GUIDELINES:
- "low": Minor infractions, first-time offenses, borderline cases
- "regular": Clear rule violations, repeat minor offenses
- "severe": Serious violations, multiple rule breaks, toxic behavior

AVAILABLE PUNISHMENT TYPES:
{PUNISHMENT_TYPES_MARKER}

Choose the most appropriate punishment type from the provided list based on the violation category and severity. Only use punishment type ids from that list."""

STRICTNESS_GUIDELINES: Dict[StrictnessLevel, str] = {
    StrictnessLevel.LENIENT: """LENIENT MODE - Additional Guidelines:
- Give players the benefit of the doubt when context is unclear
- Only suggest action for clear, obvious rule violations
- Prefer warnings and lighter punishments for first-time offenses
- Consider context and intent - friendly banter may not require action
- Be more forgiving of minor language issues
- Focus on patterns of behavior rather than isolated incidents

If there's any ambiguity about whether something violates rules, err on the side of no action.""",
    StrictnessLevel.STANDARD: """STANDARD MODE - Additional Guidelines:
- Apply consistent moderation based on clear rule violations
- Consider the severity and impact of violations on the community
- Balance player behavior with server standards
- Escalate punishment severity for repeat offenses when evident
- Take context into account but enforce rules fairly
- Focus on maintaining a positive gaming environment

Apply appropriate action when rules are clearly violated, using good judgment for edge cases.""",
    StrictnessLevel.STRICT: """STRICT MODE - Additional Guidelines:
- Enforce rules rigorously with zero tolerance for violations
- Take action on borderline cases that could negatively impact the community
- Prefer higher severity punishments to maintain server standards
- Consider even minor infractions as worthy of moderation action
- Prioritize community safety and positive environment over individual leniency
- Be proactive in preventing escalation of problematic behavior

When in doubt, err on the side of taking moderation action to maintain high community standards.""",
}


def default_prompt(strictness: StrictnessLevel | str) -> str:
    """Built-in prompt template for a strictness level."""
    level = strictness if isinstance(strictness, StrictnessLevel) else StrictnessLevel.parse(strictness)
    return f"{BASE_PROMPT}\n\n{STRICTNESS_GUIDELINES[level]}"


def ai_enabled_punishment_types(
    catalog: Sequence[PunishmentType],
    settings: AIModerationSettings,
) -> List[AIPunishmentOption]:
    """Catalog entries the model may choose, keyed by their ``id`` in the AI settings."""
    options: List[AIPunishmentOption] = []
    for punishment_type in catalog:
        config = settings.ai_punishment_configs.get(punishment_type.id)
        if config is None or not config.enabled:
            continue
        options.append(
            AIPunishmentOption(
                id=punishment_type.id,
                ordinal=punishment_type.ordinal,
                name=punishment_type.name,
                category=punishment_type.category,
                ai_description=config.ai_description or punishment_type.staff_description,
            )
        )
    return options


def inject_punishment_types(template: str, options: Sequence[AIPunishmentOption]) -> str:
    """Place the JSON list of ``options`` at the marker, or append it when the marker is absent."""
    payload = json.dumps([option.to_prompt_dict() for option in options], indent=2)
    if PUNISHMENT_TYPES_MARKER in template:
        return template.replace(PUNISHMENT_TYPES_MARKER, payload)
    return f"{template}\n\nAVAILABLE PUNISHMENT TYPES:\n{payload}"


class PromptAssembler:
    """Resolves the active prompt per strictness level and manages overrides."""

    def __init__(self, connection: ConnectionManager) -> None:
        self.connection = connection

    async def get_template(self, strictness: StrictnessLevel) -> str:
        """Active override for ``strictness``, falling back to the default on absence or storage failure."""
        try:
            async with self.connection.read() as conn:
                stored = await system_prompt_repo.get_active(conn, strictness.value)
        except Exception as exc:
            logger.error("[PROMPTS] Failed to load %s prompt, using default: %s", strictness, exc)
            return default_prompt(strictness)

        if not stored or not stored.strip():
            logger.debug("[PROMPTS] No active %s prompt stored, using default", strictness)
            return default_prompt(strictness)
        return stored

    async def get_prompt(
        self,
        strictness: StrictnessLevel | str,
        ai_enabled_types: Sequence[AIPunishmentOption],
    ) -> str:
        """
        Assemble the system prompt for one analysis.

        Args:
            strictness: Configured strictness level.
            ai_enabled_types: Punishment types the model may suggest.

        Returns:
            The prompt text with the punishment list injected.
        """
        level = strictness if isinstance(strictness, StrictnessLevel) else StrictnessLevel.parse(strictness)
        template = await self.get_template(level)
        return inject_punishment_types(template, ai_enabled_types)

    async def initialize_default_prompts(self) -> int:
        """Store the default prompt for every level that has none. Returns how many were created."""
        created = 0
        try:
            async with self.connection.transaction() as conn:
                for level in StrictnessLevel:
                    if await system_prompt_repo.insert_if_missing(conn, level.value, default_prompt(level)):
                        created += 1
                        logger.info("[PROMPTS] Created default prompt for %s level", level)
        except Exception as exc:
            logger.error("[PROMPTS] Error initializing default prompts: %s", exc)
            return 0
        return created

    async def list_prompts(self) -> List[SystemPromptRecord]:
        try:
            async with self.connection.read() as conn:
                return await system_prompt_repo.list_all(conn)
        except Exception as exc:
            logger.error("[PROMPTS] Error listing prompts: %s", exc)
            return []

    async def update_prompt(self, strictness: StrictnessLevel | str, prompt: str) -> bool:
        """Store an override for a level. Empty prompts are rejected."""
        level = strictness if isinstance(strictness, StrictnessLevel) else StrictnessLevel.parse(strictness)
        if not prompt or not prompt.strip():
            logger.warning("[PROMPTS] Refusing to store an empty %s prompt", level)
            return False
        try:
            async with self.connection.transaction() as conn:
                await system_prompt_repo.upsert(conn, level.value, prompt)
        except Exception as exc:
            logger.error("[PROMPTS] Error updating %s prompt: %s", level, exc)
            return False
        logger.info("[PROMPTS] Updated %s prompt", level)
        return True

    async def reset_prompt(self, strictness: StrictnessLevel | str) -> bool:
        """Restore a level's stored prompt to the built-in default."""
        level = strictness if isinstance(strictness, StrictnessLevel) else StrictnessLevel.parse(strictness)
        return await self.update_prompt(level, default_prompt(level))
