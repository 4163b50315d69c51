"""Onboarding interview engines.

Both engines are functions of the conversation history: they keep no state
between calls, so re-running them on the same history yields the same step.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from .completion import classify_interview_output
from .config import AppSettings, InterviewMode
from .errors import InterviewEngineError
from .history import HistoryLog, Speaker, Turn
from .maf_client import CompletionClient, complete_prompt
from .models import FlowStatus, InterviewAnswers, InterviewStep, PreferredChannel
from .prompts import INTERVIEW_PROMPT
from .triggers import FLOW_TRIGGERS, NO, YES

logger = logging.getLogger(__name__)

ANSWERING_SPEAKERS = frozenset({Speaker.USER, Speaker.ACTION})


@dataclass(frozen=True, slots=True)
class InterviewQuestion:
    """One fixed interview question; ``choices`` restricts valid answers."""

    key: str
    text: str
    choices: Tuple[str, ...] = ()

    def accept(self, answer: str) -> Optional[str]:
        """Return the normalized answer, or ``None`` if it is not valid."""

        if answer in FLOW_TRIGGERS:
            return None
        if self.choices:
            return answer if answer in self.choices else None
        stripped = answer.strip()
        return stripped or None


QUESTION_PLAN: List[InterviewQuestion] = [
    InterviewQuestion(key="name", text="What is your name?"),
    InterviewQuestion(
        key="goal",
        text="What is your goal for the 30 day free trial?",
    ),
    InterviewQuestion(
        key="channel",
        text="What is your preferred channel of communication?",
        choices=tuple(channel.value for channel in PreferredChannel),
    ),
    InterviewQuestion(
        key="prerequisite",
        text="Do you have a Stripe account?",
        choices=(YES, NO),
    ),
]

PREREQUISITE_QUESTION = QUESTION_PLAN[-1]


class InterviewEngine(Protocol):
    async def advance(self, history: Sequence[Turn]) -> InterviewStep:
        ...


def scan_history(history: Sequence[Turn]) -> Tuple[int, Dict[str, str]]:
    """Walk the history and return (index of next question, valid answers).

    A question counts as asked when an agent turn carries its exact text.
    The first valid user/action turn after it answers it; invalid answers
    leave the question open. Turns after the last answer are ignored.
    """

    answers: Dict[str, str] = {}
    index = 0
    awaiting_answer = False
    for turn in history:
        if index >= len(QUESTION_PLAN):
            break
        question = QUESTION_PLAN[index]
        if turn.speaker is Speaker.AGENT:
            if turn.text == question.text:
                awaiting_answer = True
            continue
        if turn.speaker not in ANSWERING_SPEAKERS or not awaiting_answer:
            continue
        value = question.accept(turn.text)
        if value is None:
            continue
        answers[question.key] = value
        index += 1
        awaiting_answer = False
    return index, answers


_PLAN_TEXTS = frozenset(question.text for question in QUESTION_PLAN)


def prerequisite_answered_last(history: Sequence[Turn]) -> bool:
    """True when the latest turn validly answers the prerequisite question.

    Agent turns that are not plan questions (a task listing shown mid
    interview) may sit between the question and the answer. Any other
    user/action turn in between means the answer belongs to an earlier turn.
    """

    if not history:
        return False
    answered = history[-1]
    if answered.speaker not in ANSWERING_SPEAKERS:
        return False
    if PREREQUISITE_QUESTION.accept(answered.text) is None:
        return False
    for turn in reversed(history[:-1]):
        if turn.speaker in ANSWERING_SPEAKERS:
            return False
        if turn.speaker is Speaker.AGENT and turn.text in _PLAN_TEXTS:
            return turn.text == PREREQUISITE_QUESTION.text
    return False


def build_answers(values: Dict[str, str]) -> InterviewAnswers:
    """Convert raw answer strings into a validated :class:`InterviewAnswers`."""

    try:
        channel = PreferredChannel(values["channel"])
    except (KeyError, ValueError) as exc:
        raise InterviewEngineError(
            f"Invalid channel answer reached completion: {values.get('channel')!r}"
        ) from exc
    prerequisite_raw = values.get("prerequisite")
    if prerequisite_raw not in PREREQUISITE_QUESTION.choices:
        raise InterviewEngineError(
            f"Invalid prerequisite answer reached completion: {prerequisite_raw!r}"
        )
    answers = InterviewAnswers(
        name=values.get("name"),
        goal=values.get("goal"),
        channel=channel,
        confirmed_prerequisite=prerequisite_raw == YES,
    )
    if not answers.is_complete:
        raise InterviewEngineError(f"Incomplete interview answers: {answers}")
    return answers


class OnboardingInterviewEngine:
    """Asks the fixed question plan in order, driven purely by history."""

    async def advance(self, history: Sequence[Turn]) -> InterviewStep:
        index, values = scan_history(history)
        if index < len(QUESTION_PLAN):
            question = QUESTION_PLAN[index]
            logger.debug("Interview awaiting '%s'", question.key)
            return InterviewStep.ask(question.text, list(question.choices))
        answers = build_answers(values)
        just_answered = prerequisite_answered_last(history)
        logger.info(
            "Interview complete (prerequisite answered this turn: %s)",
            just_answered,
        )
        return InterviewStep.complete(answers, prerequisite_just_answered=just_answered)


class ModelInterviewEngine:
    """Lets the language model pick the next question, then checks its work.

    The model's decision is parsed by the completion classifier. Completed
    answers are re-validated against the question plan and the
    ``prerequisite_just_answered`` flag is only honoured when the history
    really ends with the prerequisite question and its answer.
    """

    def __init__(self, client: CompletionClient) -> None:
        self._client = client

    async def advance(self, history: Sequence[Turn]) -> InterviewStep:
        log = HistoryLog()
        for turn in history:
            log.append(turn.speaker, turn.text)
        prompt = INTERVIEW_PROMPT.render(
            history=log.render() or "(no messages yet)",
            questions=self._render_plan(),
        )
        raw = await complete_prompt(self._client, prompt, system=INTERVIEW_PROMPT.system)
        logger.debug("Interview model output: %s", raw)
        step = classify_interview_output(raw)
        if step.status is FlowStatus.FAILED:
            return step
        if step.is_complete:
            return self._verify_completion(step, history)
        for question in QUESTION_PLAN:
            if question.text == step.question:
                return InterviewStep.ask(question.text, list(question.choices))
        return step

    @staticmethod
    def _render_plan() -> str:
        lines: List[str] = []
        for position, question in enumerate(QUESTION_PLAN, start=1):
            if question.choices:
                constraint = "options: " + ", ".join(question.choices)
            else:
                constraint = "any non-empty answer"
            lines.append(f'{position}. "{question.text}" ({constraint})')
        return "\n".join(lines)

    @staticmethod
    def _verify_completion(
        step: InterviewStep,
        history: Sequence[Turn],
    ) -> InterviewStep:
        answers = step.answers
        if answers is None or not answers.is_complete:
            raise InterviewEngineError(
                f"Model reported completion with invalid answers: {answers}"
            )
        just_answered = step.prerequisite_just_answered and prerequisite_answered_last(
            history
        )
        return InterviewStep.complete(answers, prerequisite_just_answered=just_answered)


def build_interview_engine(
    settings: AppSettings,
    client: Optional[CompletionClient],
) -> InterviewEngine:
    """Pick the engine configured by ``ROUTER_INTERVIEW_MODE``."""

    if settings.interview_mode is InterviewMode.MODEL:
        if client is None:
            raise RuntimeError("The model interview engine needs a model client.")
        return ModelInterviewEngine(client)
    return OnboardingInterviewEngine()
