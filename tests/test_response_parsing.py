"""Tests for response_parsing module."""

import json

import pytest

from modl.ai.response_parsing import DEFAULT_CONFIDENCE, parse_analysis_response
from modl.datatypes.punishment_datatypes import Severity


class TestParseAnalysisResponse:
    """Tests for parse_analysis_response function."""

    def test_plain_json(self):
        payload = {
            "analysis": "Repeated slurs toward another player.",
            "suggestedAction": {"punishmentTypeId": 9, "severity": "severe"},
            "confidence": 0.93,
        }
        result = parse_analysis_response(json.dumps(payload))
        assert result.analysis == "Repeated slurs toward another player."
        assert result.suggested_action.punishment_type_id == 9
        assert result.suggested_action.severity is Severity.SEVERE
        assert result.confidence == pytest.approx(0.93)

    def test_code_fence_and_missing_confidence(self):
        text = '```json\n{"analysis": "Spam", "suggestedAction": {"punishmentTypeId": 8, "severity": "low"}}\n```'
        result = parse_analysis_response(text)
        assert result.suggested_action.punishment_type_id == 8
        assert result.confidence == pytest.approx(DEFAULT_CONFIDENCE)

    def test_surrounding_prose(self):
        text = 'Here is my verdict:\n{"analysis": "Nothing wrong", "suggestedAction": null, "confidence": 0.7}\nThanks!'
        result = parse_analysis_response(text)
        assert result.analysis == "Nothing wrong"
        assert result.suggested_action is None
        assert result.confidence == pytest.approx(0.7)

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "   ",
            "I cannot help with that.",
            "{not json at all}",
            '{"suggestedAction": null}',
            '{"analysis": 42, "suggestedAction": null}',
            '{"analysis": "x", "suggestedAction": {"punishmentTypeId": 8, "severity": "extreme"}}',
            '{"analysis": "x", "suggestedAction": {"severity": "low"}}',
            '{"analysis": "x", "suggestedAction": {"punishmentTypeId": "eight", "severity": "low"}}',
        ],
    )
    def test_malformed_output_yields_no_suggestion(self, text):
        result = parse_analysis_response(text)
        assert result.suggested_action is None
        assert result.analysis
        assert result.confidence == 0.0

    def test_none_response(self):
        assert parse_analysis_response(None).suggested_action is None
