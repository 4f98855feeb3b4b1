"""Tests for chat_analysis_client module."""

import asyncio
import json
from unittest.mock import AsyncMock, patch

import pytest

from modl.ai.chat_analysis_client import (
    NO_MESSAGES_TRANSCRIPT,
    ChatAnalysisClient,
    build_user_message,
    format_transcript,
)
from modl.configuration.ai_settings import AISettings
from modl.datatypes.moderation_datatypes import ChatMessage
from modl.errors import ExternalServiceError

from conftest import completion

MESSAGES = [
    ChatMessage(username="Bystander", message="stop it", timestamp="2026-03-01T12:00:05Z"),
    ChatMessage(username="Griefer42", message="you are trash", timestamp="2026-03-01T12:00:01Z"),
]


@pytest.fixture
def ai_settings():
    return AISettings({
        "model_name": "test-model",
        "request_timeout_seconds": 0.5,
        "max_retries": 1,
        "retry_backoff_seconds": 0,
    })


class TestTranscript:
    def test_sorted_and_reported_marked(self):
        transcript = format_transcript(MESSAGES, "griefer42")
        assert transcript.splitlines() == [
            "[12:00:01] Griefer42 [REPORTED]: you are trash",
            "[12:00:05] Bystander: stop it",
        ]

    def test_empty_transcript(self):
        assert format_transcript([]) == NO_MESSAGES_TRANSCRIPT

    def test_unparseable_timestamps_keep_order_after_dated(self):
        messages = [
            ChatMessage(username="A", message="one", timestamp="yesterday"),
            ChatMessage(username="B", message="two", timestamp="2026-03-01T08:00:00Z"),
            ChatMessage(username="C", message="three", timestamp=""),
        ]
        lines = format_transcript(messages).splitlines()
        assert [line.split("] ")[1].split(":")[0] for line in lines] == ["B", "A", "C"]

    def test_user_message_sections(self):
        text = build_user_message(MESSAGES, "Griefer42")
        assert "CHAT TRANSCRIPT TO ANALYZE:" in text
        assert "REPORTED PLAYER: Griefer42" in text
        assert "REPORTED PLAYER" not in build_user_message(MESSAGES)


class TestAnalyzeChatMessages:
    @pytest.mark.asyncio
    async def test_sends_system_prompt_and_parses_reply(self, ai_settings, openai_client):
        reply = {"analysis": "Insults", "suggestedAction": {"punishmentTypeId": 9, "severity": "regular"}, "confidence": 0.9}
        openai_client.chat.completions.create.return_value = completion(json.dumps(reply))
        client = ChatAnalysisClient(ai_settings, client=openai_client)

        result = await client.analyze_chat_messages(MESSAGES, "SYSTEM PROMPT", "Griefer42")

        assert result.suggested_action.punishment_type_id == 9
        kwargs = openai_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["messages"][0] == {"role": "system", "content": "SYSTEM PROMPT"}
        assert "[REPORTED]" in kwargs["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_retries_once_then_succeeds(self, ai_settings, openai_client):
        openai_client.chat.completions.create.side_effect = [
            RuntimeError("502 Bad Gateway"),
            completion('{"analysis": "fine", "suggestedAction": null}'),
        ]
        client = ChatAnalysisClient(ai_settings, client=openai_client)

        result = await client.analyze_chat_messages(MESSAGES, "prompt")

        assert result.analysis == "fine"
        assert openai_client.chat.completions.create.await_count == 2

    @pytest.mark.asyncio
    async def test_raises_after_retries_exhausted(self, ai_settings, openai_client):
        openai_client.chat.completions.create.side_effect = RuntimeError("connection refused")
        client = ChatAnalysisClient(ai_settings, client=openai_client)

        with pytest.raises(ExternalServiceError):
            await client.analyze_chat_messages(MESSAGES, "prompt")
        assert openai_client.chat.completions.create.await_count == 2

    @pytest.mark.asyncio
    async def test_timeout_is_a_service_failure(self, ai_settings, openai_client):
        async def hang(**kwargs):
            await asyncio.sleep(10)

        openai_client.chat.completions.create = AsyncMock(side_effect=hang)
        client = ChatAnalysisClient(AISettings({"request_timeout_seconds": 0.01, "max_retries": 0}), client=openai_client)

        with pytest.raises(ExternalServiceError):
            await client.analyze_chat_messages(MESSAGES, "prompt")

    @pytest.mark.asyncio
    async def test_backoff_between_attempts(self, openai_client):
        openai_client.chat.completions.create.side_effect = RuntimeError("boom")
        settings = AISettings({"max_retries": 2, "retry_backoff_seconds": 1.5})
        client = ChatAnalysisClient(settings, client=openai_client)

        with patch("modl.ai.chat_analysis_client.asyncio.sleep", new=AsyncMock()) as sleep:
            with pytest.raises(ExternalServiceError):
                await client.analyze_chat_messages(MESSAGES, "prompt")

        assert [call.args[0] for call in sleep.await_args_list] == [1.5, 3.0]

    @pytest.mark.asyncio
    async def test_garbage_reply_is_not_an_error(self, ai_settings, openai_client):
        openai_client.chat.completions.create.return_value = completion("As an AI I think they are fine.")
        client = ChatAnalysisClient(ai_settings, client=openai_client)

        result = await client.analyze_chat_messages(MESSAGES, "prompt")
        assert result.suggested_action is None


class TestConnection:
    @pytest.mark.asyncio
    async def test_ok_reply(self, ai_settings, openai_client):
        openai_client.chat.completions.create.return_value = completion("OK")
        assert await ChatAnalysisClient(ai_settings, client=openai_client).test_connection() is True

    @pytest.mark.asyncio
    async def test_failure_returns_false(self, ai_settings, openai_client):
        openai_client.chat.completions.create.side_effect = RuntimeError("down")
        assert await ChatAnalysisClient(ai_settings, client=openai_client).test_connection() is False
