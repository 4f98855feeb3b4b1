"""
Automated moderation of reported chat.

``AIModerationService`` drives each chat-report ticket through its analysis
lifecycle::

    created -> analysis_queued -> analyzing -> auto_applied
                                             | suggested_only
                                             | analysis_failed

Ticket creation only claims the ticket and queues the work; the analysis
itself runs on :class:`AnalysisQueueService`. Whatever happens, the outcome is
written to the ticket as ``data.aiAnalysis`` for staff review.
"""

from __future__ import annotations

from typing import Iterable, List, Sequence

from modl.ai.chat_analysis_client import ChatAnalysisClient
from modl.ai.prompt_assembler import PromptAssembler, ai_enabled_punishment_types
from modl.configuration.settings_provider import SettingsProvider
from modl.database.db_connection import ConnectionManager
from modl.datatypes.moderation_datatypes import (
    AIAnalysisResult,
    AIPunishmentOption,
    AnalysisState,
    ApplyPunishmentResult,
    ChatMessage,
    Ticket,
)
from modl.datatypes.punishment_datatypes import utcnow
from modl.errors import ExternalServiceError, NotFoundError
from modl.moderation.duration_resolver import find_punishment_type_by_id
from modl.moderation.punishment_service import AI_ISSUER_NAME, PunishmentService
from modl.repositories.ticket_repo import ticket_repo
from modl.services.analysis_queue_service import AnalysisJob, AnalysisQueueService
from modl.util.logger import get_logger

logger = get_logger("moderation_orchestrator")

DEFAULT_CHAT_TICKET_CATEGORIES = ("chat", "player")
NO_ENABLED_TYPES_NOTE = "No punishment types are enabled for AI moderation; analysis skipped."


def parse_chat_messages(raw_messages: Iterable[object] | None) -> List[ChatMessage]:
    """Keep the entries that parse as chat messages (dicts or JSON strings)."""
    messages: List[ChatMessage] = []
    for raw in raw_messages or []:
        message = ChatMessage.parse(raw)
        if message is None:
            logger.debug("[AI MODERATION] Dropping unparseable chat message: %.80r", raw)
            continue
        messages.append(message)
    return messages


class AIModerationService:
    """Queues, runs and records AI analyses of chat-report tickets."""

    def __init__(
        self,
        connection: ConnectionManager,
        settings: SettingsProvider,
        punishment_service: PunishmentService,
        chat_client: ChatAnalysisClient,
        prompt_assembler: PromptAssembler,
        queue: AnalysisQueueService,
        chat_ticket_categories: Sequence[str] = DEFAULT_CHAT_TICKET_CATEGORIES,
        issuer_name: str = AI_ISSUER_NAME,
    ) -> None:
        self.connection = connection
        self.settings = settings
        self.punishment_service = punishment_service
        self.chat_client = chat_client
        self.prompt_assembler = prompt_assembler
        self.queue = queue
        self.chat_ticket_categories = frozenset(category.lower() for category in chat_ticket_categories)
        self.issuer_name = issuer_name

    # ------------------------------------------------------------------
    # Ticket intake
    # ------------------------------------------------------------------

    def is_chat_ticket(self, ticket: Ticket) -> bool:
        return (ticket.category or "").lower() in self.chat_ticket_categories or (
            (ticket.type or "").lower() in self.chat_ticket_categories
        )

    async def process_new_ticket(self, ticket: Ticket) -> AnalysisJob | None:
        """
        Queue AI analysis for a newly created ticket, without waiting for it.

        Only chat/player-report tickets with at least one readable chat
        message are analysed. The ticket is claimed atomically first, so a
        ticket submitted twice is analysed once.

        Returns:
            The queued job, or None when the ticket is not eligible or was
            already claimed.
        """
        if not self.is_chat_ticket(ticket):
            return None

        messages = parse_chat_messages(ticket.chat_messages)
        if not messages:
            logger.debug("[AI MODERATION] Ticket %s has no chat messages to analyze", ticket.id)
            return None

        try:
            async with self.connection.transaction() as conn:
                claimed = await ticket_repo.claim_for_analysis(conn, ticket.id)
        except Exception as exc:
            logger.error("[AI MODERATION] Could not claim ticket %s for analysis: %s", ticket.id, exc)
            return None

        if not claimed:
            logger.info("[AI MODERATION] Ticket %s is missing or already claimed; not queuing", ticket.id)
            return None

        return await self._enqueue(ticket, messages)

    async def recover_pending(self) -> List[AnalysisJob]:
        """Re-queue tickets left claimed but unfinished by a previous run."""
        try:
            async with self.connection.read() as conn:
                tickets = await ticket_repo.list_by_state(
                    conn, (AnalysisState.ANALYSIS_QUEUED, AnalysisState.ANALYZING)
                )
        except Exception as exc:
            logger.error("[AI MODERATION] Could not load pending analyses: %s", exc)
            return []

        jobs: List[AnalysisJob] = []
        for ticket in tickets:
            messages = parse_chat_messages(ticket.chat_messages)
            if not messages:
                continue
            jobs.append(await self._enqueue(ticket, messages))
        if jobs:
            logger.info("[AI MODERATION] Re-queued %d pending analyses", len(jobs))
        return jobs

    async def _enqueue(self, ticket: Ticket, messages: List[ChatMessage]) -> AnalysisJob:
        async def run() -> AnalysisState:
            result = await self.analyze_ticket(
                ticket.id,
                messages,
                player_id=ticket.player_identifier,
                player_name=ticket.reported_player,
            )
            return result.state

        job = self.queue.submit(ticket.id, run)
        if job.state is AnalysisState.ANALYSIS_FAILED:
            await self._store(
                ticket.id,
                AIAnalysisResult(
                    analysis="AI analysis could not be queued.",
                    suggested_action=None,
                    state=AnalysisState.ANALYSIS_FAILED,
                    notes=[job.error or "queue rejected the job"],
                ),
            )
        return job

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    async def analyze_ticket(
        self,
        ticket_id: str,
        messages: Sequence[ChatMessage],
        player_id: str | None = None,
        player_name: str | None = None,
    ) -> AIAnalysisResult:
        """
        Analyze a ticket's chat and, when allowed, apply the suggested punishment.

        Args:
            ticket_id: Ticket being analysed; the outcome is stored on it.
            messages: Parsed chat transcript.
            player_id: UUID or username used to apply a punishment.
            player_name: Username highlighted in the transcript.

        Returns:
            The stored analysis record. This method does not raise.
        """
        await self._set_state(ticket_id, AnalysisState.ANALYZING)
        try:
            result = await self._analyze(ticket_id, messages, player_id or player_name, player_name)
        except Exception as exc:
            logger.exception("[AI MODERATION] Unexpected error analyzing ticket %s", ticket_id)
            result = AIAnalysisResult(
                analysis="AI analysis failed.",
                suggested_action=None,
                state=AnalysisState.ANALYSIS_FAILED,
                notes=[str(exc)],
            )
        await self._store(ticket_id, result)
        logger.info("[AI MODERATION] Ticket %s analysis finished: %s", ticket_id, result.state)
        return result

    async def _analyze(
        self,
        ticket_id: str,
        messages: Sequence[ChatMessage],
        player_identifier: str | None,
        player_name: str | None,
    ) -> AIAnalysisResult:
        ai_settings = await self.settings.get_ai_moderation_settings()
        catalog = await self.settings.get_punishment_types()
        options = ai_enabled_punishment_types(catalog, ai_settings)
        if not options:
            logger.warning("[AI MODERATION] %s (ticket %s)", NO_ENABLED_TYPES_NOTE, ticket_id)
            return AIAnalysisResult(
                analysis=NO_ENABLED_TYPES_NOTE,
                suggested_action=None,
                state=AnalysisState.SUGGESTED_ONLY,
                notes=[NO_ENABLED_TYPES_NOTE],
            )

        prompt = await self.prompt_assembler.get_prompt(ai_settings.strictness_level, options)
        try:
            analysis = await self.chat_client.analyze_chat_messages(messages, prompt, player_name)
        except ExternalServiceError as exc:
            logger.error("[AI MODERATION] Chat analysis failed for ticket %s: %s", ticket_id, exc)
            return AIAnalysisResult(
                analysis="AI analysis failed.",
                suggested_action=None,
                state=AnalysisState.ANALYSIS_FAILED,
                notes=[str(exc)],
            )

        result = AIAnalysisResult(
            analysis=analysis.analysis,
            suggested_action=analysis.suggested_action,
            state=AnalysisState.SUGGESTED_ONLY,
            confidence=analysis.confidence,
        )
        suggestion = analysis.suggested_action
        if suggestion is None:
            return result

        option = self._enabled_option(options, suggestion.punishment_type_id)
        if option is None:
            result.notes.append(f"Suggested punishment type {suggestion.punishment_type_id} is not enabled for AI moderation")
            return result
        if not ai_settings.enable_automated_actions:
            result.notes.append("Automated actions are disabled; suggestion left for staff review")
            return result
        if not player_identifier:
            result.notes.append("No player identifier on the ticket; suggestion left for staff review")
            return result

        applied = await self.punishment_service.apply_punishment(
            player_identifier,
            option.ordinal,
            suggestion.severity,
            f"Automated AI moderation - {analysis.analysis}",
            ticket_id,
            self.issuer_name,
        )
        if not applied.success:
            logger.warning("[AI MODERATION] Auto-apply failed for ticket %s: %s", ticket_id, applied.error)
            result.notes.append(f"Automatic application failed: {applied.error}")
            return result

        result.state = AnalysisState.AUTO_APPLIED
        result.was_applied_automatically = True
        result.punishment_id = applied.punishment_id
        return result

    @staticmethod
    def _enabled_option(options: Sequence[AIPunishmentOption], type_id: int) -> AIPunishmentOption | None:
        return next((option for option in options if option.id == type_id), None)

    # ------------------------------------------------------------------
    # Staff review
    # ------------------------------------------------------------------

    async def apply_suggestion(self, ticket_id: str, staff_name: str) -> ApplyPunishmentResult:
        """Apply a ticket's stored suggestion on behalf of a staff member."""
        ticket = await self._get_ticket(ticket_id)
        if ticket is None:
            return ApplyPunishmentResult.failed(f"Ticket {ticket_id} not found", "not_found")

        analysis = ticket.ai_analysis
        if analysis is None or analysis.suggested_action is None:
            return ApplyPunishmentResult.failed("Ticket has no AI suggestion to apply", "invalid_state")
        if analysis.was_applied_automatically or analysis.applied_by:
            return ApplyPunishmentResult.failed("AI suggestion has already been applied", "invalid_state")
        if analysis.dismissed:
            return ApplyPunishmentResult.failed("AI suggestion has been dismissed", "invalid_state")

        player_identifier = ticket.player_identifier
        if not player_identifier:
            return ApplyPunishmentResult.failed("Ticket has no reported player", "not_found")

        catalog = await self.settings.get_punishment_types()
        try:
            punishment_type = find_punishment_type_by_id(catalog, analysis.suggested_action.punishment_type_id)
        except NotFoundError as exc:
            return ApplyPunishmentResult.failed(str(exc), "not_found")

        applied = await self.punishment_service.apply_punishment(
            player_identifier,
            punishment_type.ordinal,
            analysis.suggested_action.severity,
            f"AI-suggested moderation (applied by {staff_name}) - {analysis.analysis}",
            ticket_id,
            staff_name,
            automated=False,
        )
        if not applied.success:
            return applied

        analysis.applied_by = staff_name
        analysis.applied_at = utcnow()
        analysis.punishment_id = applied.punishment_id
        await self._store(ticket_id, analysis)
        logger.info("[AI MODERATION] %s applied AI suggestion on ticket %s", staff_name, ticket_id)
        return applied

    async def dismiss_suggestion(self, ticket_id: str, staff_name: str, reason: str | None = None) -> bool:
        """Mark a ticket's AI suggestion as dismissed. Returns False when there is nothing to dismiss."""
        ticket = await self._get_ticket(ticket_id)
        if ticket is None or ticket.ai_analysis is None:
            return False

        analysis = ticket.ai_analysis
        analysis.dismissed = True
        analysis.dismissed_by = staff_name
        analysis.dismissed_at = utcnow()
        analysis.dismissal_reason = reason or "No reason provided"
        stored = await self._store(ticket_id, analysis)
        if stored:
            logger.info("[AI MODERATION] %s dismissed AI suggestion on ticket %s", staff_name, ticket_id)
        return stored

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------

    async def _get_ticket(self, ticket_id: str) -> Ticket | None:
        async with self.connection.read() as conn:
            return await ticket_repo.get(conn, ticket_id)

    async def _set_state(self, ticket_id: str, state: AnalysisState) -> None:
        try:
            async with self.connection.transaction() as conn:
                await ticket_repo.set_state(conn, ticket_id, state)
        except Exception as exc:
            logger.error("[AI MODERATION] Could not set ticket %s to %s: %s", ticket_id, state, exc)

    async def _store(self, ticket_id: str, result: AIAnalysisResult) -> bool:
        try:
            async with self.connection.transaction() as conn:
                return await ticket_repo.store_ai_analysis(conn, ticket_id, result)
        except Exception as exc:
            logger.error("[AI MODERATION] Could not store analysis for ticket %s: %s", ticket_id, exc)
            return False
