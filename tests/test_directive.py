"""Tests for colloquy/directive.py moderator parsing."""

import json
import logging

import pytest

from colloquy.directive import CONTINUE_PROMPT, FALLBACK_COMMENT, extract_directive, parse_moderator_response
from colloquy.errors import ModeratorParsingError


def test_strict_parse(discussion_registry):
    raw = json.dumps({
        "moderator_comment": "Good point.",
        "next_speaker": "explorer",
        "speaking_prompt": "What else could explain this?",
        "reasoning": "Need new angles.",
    })
    decision = parse_moderator_response(raw, discussion_registry, "decision_1")
    assert decision.next_speaker == "explorer"
    assert decision.speaking_prompt == "What else could explain this?"
    assert decision.moderator_comment == "Good point."
    assert decision.reasoning == "Need new angles."
    assert decision.parsing_error is None
    assert decision.context == "decision_1"


def test_moderator_response_key_used_as_comment(discussion_registry):
    raw = '{"moderator_response": "Interesting.", "next_speaker": "panel_3", "moderator_responds": true}'
    decision = parse_moderator_response(raw, discussion_registry, "decision_2")
    assert decision.moderator_comment == "Interesting."
    assert decision.next_speaker == "explorer"
    assert decision.moderator_responds is True


def test_moderator_responds_requires_json_true(discussion_registry):
    raw = '{"next_speaker": "analyst", "moderator_responds": "false"}'
    decision = parse_moderator_response(raw, discussion_registry, "decision_1")
    assert decision.moderator_responds is False


def test_oversized_alias_falls_back_to_default(discussion_registry):
    raw = '{"next_speaker": "panel_' + "2" * 5000 + '", "speaking_prompt": "Go on."}'
    decision = parse_moderator_response(raw, discussion_registry, "decision_1")
    assert "Invalid next_speaker" in decision.parsing_error
    assert decision.next_speaker == "analyst"

    decision = parse_moderator_response("go to panel_" + "1" * 5000, discussion_registry, "decision_2")
    assert decision.context == "decision_2_fallback"
    assert decision.next_speaker == "analyst"


def test_missing_speaking_prompt_gets_continuation(discussion_registry):
    decision = parse_moderator_response('{"next_speaker": "analyst"}', discussion_registry, "setup")
    assert decision.speaking_prompt == CONTINUE_PROMPT


def test_json_inside_prose(discussion_registry):
    raw = 'Sure! Here is my decision:\n{"next_speaker": "Challenger", "speaking_prompt": "Push back."}\nThanks.'
    decision = parse_moderator_response(raw, discussion_registry, "setup")
    assert decision.next_speaker == "challenger"
    assert decision.parsing_error is None


def test_fenced_json(discussion_registry):
    raw = 'Decision:\n```json\n{"next_speaker": "explorer", "speaking_prompt": "Go."}\n```\nDone {here}.'
    decision = parse_moderator_response(raw, discussion_registry, "setup")
    assert decision.next_speaker == "explorer"
    assert decision.parsing_error is None


def test_invalid_json_falls_back(discussion_registry, caplog):
    with caplog.at_level(logging.WARNING):
        decision = parse_moderator_response("{ invalid json content }", discussion_registry, "decision_1")
    assert decision.parsing_error
    assert decision.next_speaker == "analyst"
    assert decision.speaking_prompt == CONTINUE_PROMPT
    assert decision.moderator_comment == FALLBACK_COMMENT
    assert decision.context == "decision_1_fallback"
    assert decision.is_fallback
    assert "Failed to parse moderator JSON" in caplog.text


def test_fallback_keyword_scan(discussion_registry):
    decision = parse_moderator_response(
        "I think the Explorer should go next, then the challenger.", discussion_registry, "decision_3"
    )
    assert decision.next_speaker == "explorer"
    assert decision.is_fallback


def test_fallback_panel_alias_beats_keywords(discussion_registry):
    decision = parse_moderator_response(
        "The analyst made a point, so panel_1 should answer.", discussion_registry, "decision_1"
    )
    assert decision.next_speaker == "challenger"


def test_fallback_multiword_keywords(security_registry):
    decision = parse_moderator_response(
        "Let's hear from the Blue Team on this one.", security_registry, "decision_1"
    )
    assert decision.next_speaker == "defensive"


def test_fallback_default_when_nothing_matches(security_registry):
    decision = parse_moderator_response("No idea.", security_registry, "setup")
    assert decision.next_speaker == "defensive"


def test_missing_next_speaker_is_partial(discussion_registry):
    raw = '{"moderator_comment": "Let us hear from the explorer.", "speaking_prompt": "Go on."}'
    decision = parse_moderator_response(raw, discussion_registry, "decision_2")
    assert decision.parsing_error == "Missing next_speaker field"
    assert decision.next_speaker == "explorer"
    assert decision.moderator_comment == "Let us hear from the explorer."
    assert decision.speaking_prompt == "Go on."
    assert decision.context == "decision_2"
    assert not decision.is_fallback


def test_invalid_next_speaker_is_partial(discussion_registry):
    raw = '{"next_speaker": "panel_7", "speaking_prompt": "Go on."}'
    decision = parse_moderator_response(raw, discussion_registry, "decision_2")
    assert "Invalid next_speaker" in decision.parsing_error
    assert decision.next_speaker == "analyst"


@pytest.mark.parametrize("raw", [
    "",
    "   ",
    "null",
    "[1, 2, 3]",
    '"just a string"',
    "{",
    "}{",
    '{"next_speaker": 42}',
    '{"next_speaker": null, "speaking_prompt": ""}',
    "```json\n{broken\n```",
    None,
    "I pick the analy\u017ft next",
    "go to panel_" + "1" * 5000,
    '{"next_speaker": "panel_' + "1" * 5000 + '", "speaking_prompt": "Go on."}',
])
def test_never_raises_and_always_valid(discussion_registry, raw):
    decision = parse_moderator_response(raw, discussion_registry, "ctx")
    assert decision.next_speaker in discussion_registry
    assert decision.speaking_prompt.strip()
    assert decision.parsing_error


def test_extract_directive_raises_on_non_object():
    with pytest.raises(ModeratorParsingError, match="expected a JSON object"):
        extract_directive("[1, 2]")


def test_extract_directive_raises_on_empty():
    with pytest.raises(ModeratorParsingError, match="Empty"):
        extract_directive("  ")
