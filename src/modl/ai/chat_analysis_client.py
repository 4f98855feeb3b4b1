"""
Client for the generative-text service used to analyze reported chat.

Talks to any OpenAI-compatible chat completions endpoint through
``AsyncOpenAI``. One analysis is one request: the assembled system prompt plus
a user message carrying the transcript. Each attempt is bounded by the
configured timeout and a failed attempt is retried with exponential backoff.

Only transport failures raise (:class:`ExternalServiceError`); whatever text
comes back is handed to :mod:`modl.ai.response_parsing`, which never raises.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, List, Sequence

from openai import AsyncOpenAI
from openai.types.chat import ChatCompletionMessageParam

from modl.ai import response_parsing
from modl.configuration.ai_settings import AISettings
from modl.datatypes.moderation_datatypes import ChatAnalysis, ChatMessage
from modl.errors import ExternalServiceError
from modl.util.logger import get_logger

logger = get_logger("chat_analysis_client")

NO_MESSAGES_TRANSCRIPT = "No chat messages provided."
CLOSING_INSTRUCTION = (
    "Please analyze the chat transcript and respond with a JSON object "
    "following the exact format specified in the system prompt."
)


def _parse_timestamp(raw: str) -> datetime | None:
    text = (raw or "").strip()
    if not text:
        return None
    try:
        if text.isdigit():
            return datetime.fromtimestamp(int(text) / 1000, tz=timezone.utc)
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except (ValueError, OverflowError):
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def format_transcript(messages: Sequence[ChatMessage], reported_player: str | None = None) -> str:
    """
    Render messages as ``[HH:MM:SS] name [REPORTED]: text`` lines, oldest first.

    Messages with unreadable timestamps keep their relative order after the
    dated ones.
    """
    if not messages:
        return NO_MESSAGES_TRANSCRIPT

    dated = [(index, message, _parse_timestamp(message.timestamp)) for index, message in enumerate(messages)]
    dated.sort(key=lambda item: (item[2] is None, item[2] or datetime.min.replace(tzinfo=timezone.utc), item[0]))

    reported = (reported_player or "").lower()
    lines: List[str] = []
    for _, message, when in dated:
        stamp = when.strftime("%H:%M:%S") if when else (message.timestamp or "--:--:--")
        marker = " [REPORTED]" if reported and message.username.lower() == reported else ""
        lines.append(f"[{stamp}] {message.username}{marker}: {message.message}")
    return "\n".join(lines)


def build_user_message(messages: Sequence[ChatMessage], reported_player: str | None = None) -> str:
    parts = [f"CHAT TRANSCRIPT TO ANALYZE:\n{format_transcript(messages, reported_player)}"]
    if reported_player:
        parts.append(f"REPORTED PLAYER: {reported_player}")
    parts.append(CLOSING_INSTRUCTION)
    return "\n\n".join(parts)


class ChatAnalysisClient:
    """
    Send chat transcripts to the configured model and parse its verdict.

    Args:
        ai_settings: Endpoint, model and sampling configuration.
        client: Pre-built ``AsyncOpenAI`` client; one is created from
            ``ai_settings`` on first use when omitted.
    """

    def __init__(self, ai_settings: AISettings, client: Any | None = None) -> None:
        self.ai_settings = ai_settings
        self._client = client
        self._model_name = ai_settings.model_name

    @property
    def client(self) -> Any:
        if self._client is None:
            api_key = self.ai_settings.api_key
            if not api_key:
                logger.warning(
                    "[AI CLIENT] %s is not set; sending requests without an API key",
                    self.ai_settings.api_key_env,
                )
            # Retries are handled here so the backoff and attempt count stay configurable
            self._client = AsyncOpenAI(
                api_key=api_key or "EMPTY",
                base_url=self.ai_settings.base_url,
                max_retries=0,
            )
            logger.info(
                "[AI CLIENT] Initialized with base_url=%s, model=%s",
                self.ai_settings.base_url,
                self._model_name,
            )
        return self._client

    async def _complete(self, messages: List[ChatCompletionMessageParam], max_tokens: int | None = None) -> str:
        """Run one chat completion with timeout and retries; return the reply text."""
        attempts = self.ai_settings.max_retries + 1
        timeout = self.ai_settings.request_timeout_seconds
        backoff = self.ai_settings.retry_backoff_seconds
        last_error: Exception | None = None

        for attempt in range(1, attempts + 1):
            try:
                response = await asyncio.wait_for(
                    self.client.chat.completions.create(
                        model=self._model_name,
                        messages=messages,
                        temperature=self.ai_settings.temperature,
                        top_p=self.ai_settings.top_p,
                        max_tokens=max_tokens or self.ai_settings.max_tokens,
                    ),
                    timeout=timeout,
                )
                return (response.choices[0].message.content or "").strip()
            except asyncio.TimeoutError:
                last_error = TimeoutError(f"request timed out after {timeout}s")
            except Exception as exc:
                last_error = exc

            logger.warning("[AI CLIENT] Attempt %d/%d failed: %s", attempt, attempts, last_error)
            if attempt < attempts:
                await asyncio.sleep(backoff * (2 ** (attempt - 1)))

        raise ExternalServiceError(f"Chat analysis request failed: {last_error}") from last_error

    async def analyze_chat_messages(
        self,
        messages: Sequence[ChatMessage],
        system_prompt: str,
        reported_player: str | None = None,
    ) -> ChatAnalysis:
        """
        Ask the model whether a chat transcript warrants moderation.

        Args:
            messages: Transcript lines, in any order.
            system_prompt: Fully assembled system prompt.
            reported_player: Username highlighted as ``[REPORTED]``.

        Returns:
            ChatAnalysis parsed from the reply.

        Raises:
            ExternalServiceError: when every attempt fails or times out.
        """
        request: List[ChatCompletionMessageParam] = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": build_user_message(messages, reported_player)},
        ]
        logger.debug("[AI CLIENT] Analyzing %d messages (reported=%s)", len(messages), reported_player)
        content = await self._complete(request)
        logger.debug("[AI CLIENT] Raw response: %s", content)
        return response_parsing.parse_analysis_response(content)

    async def test_connection(self) -> bool:
        """Cheap round trip; True when the model answers with 'OK'."""
        try:
            content = await self._complete(
                [{"role": "user", "content": "Test connection. Respond with 'OK'."}],
                max_tokens=5,
            )
        except ExternalServiceError as exc:
            logger.error("[AI CLIENT] Connection test failed: %s", exc)
            return False
        return "ok" in content.lower()
