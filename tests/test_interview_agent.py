"""Interview engines: scripted question plan and model-driven variant."""

import pytest

from conftest import ScriptedClient
from conversation_router.errors import CompletionParseError, InterviewEngineError
from conversation_router.history import HistoryLog, Speaker
from conversation_router.interview_agent import (
    QUESTION_PLAN,
    ModelInterviewEngine,
    OnboardingInterviewEngine,
    build_answers,
    prerequisite_answered_last,
    scan_history,
)
from conversation_router.models import FlowStatus, PreferredChannel


def _history(*turns):
    log = HistoryLog()
    for speaker, text in turns:
        log.append(speaker, text)
    return log.turns()


COMPLETED_HISTORY = (
    (Speaker.AGENT, "What is your name?"),
    (Speaker.USER, "Alice"),
    (Speaker.AGENT, "What is your goal for the 30 day free trial?"),
    (Speaker.USER, "grow my business"),
    (Speaker.AGENT, "What is your preferred channel of communication?"),
    (Speaker.ACTION, "Email"),
    (Speaker.AGENT, "Do you have a Stripe account?"),
    (Speaker.ACTION, "No"),
)


@pytest.fixture
def engine():
    return OnboardingInterviewEngine()


class TestScanHistory:
    def test_empty_history_starts_at_first_question(self):
        assert scan_history([]) == (0, {})

    def test_answers_before_question_are_ignored(self):
        index, answers = scan_history(_history((Speaker.USER, "Alice")))
        assert index == 0
        assert answers == {}

    def test_invalid_choice_leaves_question_open(self):
        history = _history(*COMPLETED_HISTORY[:5], (Speaker.USER, "Fax"))
        index, answers = scan_history(history)
        assert index == 2
        assert "channel" not in answers

    def test_flow_trigger_is_not_an_answer(self):
        history = _history(
            (Speaker.AGENT, "What is your name?"),
            (Speaker.ACTION, "START_ONBOARDING_INTERVIEW"),
        )
        assert scan_history(history) == (0, {})


class TestOnboardingInterviewEngine:
    @pytest.mark.asyncio
    async def test_first_question_has_no_options(self, engine):
        step = await engine.advance([])
        assert step.question == "What is your name?"
        assert step.options == []
        assert step.status is FlowStatus.AWAITING_INPUT

    @pytest.mark.asyncio
    async def test_channel_question_offers_three_choices(self, engine):
        step = await engine.advance(_history(*COMPLETED_HISTORY[:4]))
        assert step.question == QUESTION_PLAN[2].text
        assert step.options == ["Chat", "Email", "Whatsapp"]
        assert step.status is FlowStatus.AWAITING_CHOICE

    @pytest.mark.asyncio
    async def test_completion_flags_prerequisite_just_answered(self, engine):
        step = await engine.advance(_history(*COMPLETED_HISTORY))
        assert step.is_complete
        assert step.prerequisite_just_answered is True
        assert step.answers.name == "Alice"
        assert step.answers.channel is PreferredChannel.EMAIL
        assert step.answers.confirmed_prerequisite is False

    @pytest.mark.asyncio
    async def test_replayed_completion_does_not_flag_again(self, engine):
        history = _history(
            *COMPLETED_HISTORY,
            (Speaker.AGENT, "Onboarding complete! Here's the collected information:"),
        )
        step = await engine.advance(history)
        assert step.is_complete
        assert step.prerequisite_just_answered is False


class TestHelpers:
    def test_prerequisite_answered_last_requires_valid_answer(self):
        history = _history(
            (Speaker.AGENT, "Do you have a Stripe account?"),
            (Speaker.USER, "Maybe"),
        )
        assert prerequisite_answered_last(history) is False

    def test_task_listing_between_question_and_answer_still_counts(self):
        history = _history(
            *COMPLETED_HISTORY[:7],
            (Speaker.AGENT, "You have no pending tasks."),
            (Speaker.USER, "No"),
        )
        assert prerequisite_answered_last(history) is True

    def test_answer_to_earlier_question_does_not_count(self):
        history = _history(
            (Speaker.AGENT, "What is your preferred channel of communication?"),
            (Speaker.ACTION, "Yes"),
        )
        assert prerequisite_answered_last(history) is False

    def test_intervening_answer_breaks_the_pairing(self):
        history = _history(
            (Speaker.AGENT, "Do you have a Stripe account?"),
            (Speaker.USER, "Yes"),
            (Speaker.AGENT, "You have no pending tasks."),
            (Speaker.USER, "No"),
        )
        assert prerequisite_answered_last(history) is False

    @pytest.mark.asyncio
    async def test_completion_after_task_listing_flags_prerequisite(self, engine):
        history = _history(
            *COMPLETED_HISTORY[:7],
            (Speaker.AGENT, "Here are your current tasks:\n1. Say hi"),
            (Speaker.ACTION, "Yes"),
        )
        step = await engine.advance(history)
        assert step.is_complete
        assert step.prerequisite_just_answered is True

    def test_build_answers_rejects_bad_channel(self):
        with pytest.raises(InterviewEngineError):
            build_answers(
                {"name": "A", "goal": "B", "channel": "Fax", "prerequisite": "Yes"}
            )

    def test_build_answers_maps_yes_to_true(self):
        answers = build_answers(
            {"name": "A", "goal": "B", "channel": "Chat", "prerequisite": "Yes"}
        )
        assert answers.confirmed_prerequisite is True


class TestModelInterviewEngine:
    @pytest.mark.asyncio
    async def test_known_question_gets_plan_options(self):
        client = ScriptedClient(
            [
                {
                    "isComplete": False,
                    "nextQuestion": "Do you have a Stripe account? [OPTIONS: Yes, No]",
                }
            ]
        )
        step = await ModelInterviewEngine(client).advance(
            _history(*COMPLETED_HISTORY[:6])
        )
        assert step.question == "Do you have a Stripe account?"
        assert step.options == ["Yes", "No"]

    @pytest.mark.asyncio
    async def test_completion_flag_is_checked_against_history(self):
        client = ScriptedClient(
            [
                {
                    "isComplete": True,
                    "prerequisiteJustAnswered": True,
                    "answers": {
                        "name": "Alice",
                        "goal": "grow",
                        "channel": "Email",
                        "confirmedPrerequisite": False,
                    },
                }
            ]
        )
        history = _history(*COMPLETED_HISTORY, (Speaker.AGENT, "done"))
        step = await ModelInterviewEngine(client).advance(history)
        assert step.is_complete
        assert step.prerequisite_just_answered is False

    @pytest.mark.asyncio
    async def test_incomplete_answers_raise(self):
        client = ScriptedClient(
            [{"isComplete": True, "answers": {"name": "Alice"}}]
        )
        with pytest.raises(InterviewEngineError):
            await ModelInterviewEngine(client).advance(_history(*COMPLETED_HISTORY))

    @pytest.mark.asyncio
    async def test_non_json_output_raises_parse_error(self):
        client = ScriptedClient(["I think we are done."])
        with pytest.raises(CompletionParseError):
            await ModelInterviewEngine(client).advance([])
