"""Completion classifier for interview output."""

import pytest

from conversation_router.completion import (
    classify_interview_output,
    extract_json_object,
    split_options,
)
from conversation_router.errors import CompletionParseError
from conversation_router.models import FlowStatus, PreferredChannel


class TestExtractJsonObject:
    def test_finds_object_inside_fenced_text(self):
        raw = 'Sure!\n```json\n{"isComplete": false}\n```'
        assert extract_json_object(raw) == {"isComplete": False}

    def test_rejects_arrays_and_garbage(self):
        assert extract_json_object("[1, 2]") is None
        assert extract_json_object("no json here") is None
        assert extract_json_object("") is None


class TestSplitOptions:
    def test_marker_is_removed(self):
        question, options = split_options(
            "What is your preferred channel? [OPTIONS: Chat, Email, Whatsapp]"
        )
        assert question == "What is your preferred channel?"
        assert options == ["Chat", "Email", "Whatsapp"]

    def test_plain_question_has_no_options(self):
        assert split_options("What is your name?") == ("What is your name?", [])


class TestClassifyInterviewOutput:
    def test_next_question(self):
        step = classify_interview_output(
            {"isComplete": False, "nextQuestion": "What is your name?"}
        )
        assert step.status is FlowStatus.AWAITING_INPUT
        assert step.question == "What is your name?"

    def test_explicit_options_win_over_marker(self):
        step = classify_interview_output(
            {
                "isComplete": False,
                "nextQuestion": "Pick one [OPTIONS: A, B]",
                "options": ["Yes", "No"],
            }
        )
        assert step.question == "Pick one"
        assert step.options == ["Yes", "No"]

    def test_complete_with_legacy_keys(self):
        step = classify_interview_output(
            '{"isComplete": true, "answeredStripe": true, "onboardingData": '
            '{"name": "Alice", "goal": "grow", "channel": "Whatsapp", "hasStripe": "yes"}}'
        )
        assert step.is_complete
        assert step.prerequisite_just_answered is True
        assert step.answers.channel is PreferredChannel.WHATSAPP
        assert step.answers.confirmed_prerequisite is True

    def test_complete_without_answers_fails(self):
        step = classify_interview_output({"isComplete": True})
        assert step.status is FlowStatus.FAILED

    def test_unfinished_without_question_fails(self):
        step = classify_interview_output({"isComplete": False, "nextQuestion": "  "})
        assert step.status is FlowStatus.FAILED

    def test_text_without_json_raises(self):
        with pytest.raises(CompletionParseError):
            classify_interview_output("All done, thanks!")
