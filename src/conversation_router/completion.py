"""Classify raw interview output into a typed :class:`InterviewStep`.

Model output arrives as free text that should contain a JSON object. Older
prompts embed fixed choices as a trailing ``[OPTIONS: a, b]`` marker inside
the question; the marker is lifted into ``InterviewStep.options`` here and
never travels further.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Tuple, cast

from .errors import CompletionParseError
from .models import FlowStatus, InterviewAnswers, InterviewStep, PreferredChannel

logger = logging.getLogger(__name__)

OPTIONS_MARKER = re.compile(r"\s*\[OPTIONS:\s*(?P<options>[^\]]*)\]\s*$", re.IGNORECASE)

_ANSWER_KEYS = ("answers", "onboardingData", "onboarding_data")
_JUST_ANSWERED_KEYS = (
    "prerequisiteJustAnswered",
    "prerequisite_just_answered",
    "answeredStripe",
)
_PREREQUISITE_KEYS = ("confirmedPrerequisite", "confirmed_prerequisite", "hasStripe")


def extract_json_object(raw: str) -> Optional[Dict[str, Any]]:
    """Return the first top-level JSON object found in ``raw``, if any."""

    text = raw.strip()
    if not text:
        return None
    candidate = text
    if not candidate.startswith("{"):
        start = text.find("{")
        end = text.rfind("}")
        if start == -1 or end == -1 or end <= start:
            return None
        candidate = text[start:end + 1]
    try:
        payload = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, dict):
        return None
    return cast(Dict[str, Any], payload)


def split_options(question: str) -> Tuple[str, List[str]]:
    """Strip a trailing options marker, returning the bare question and choices."""

    match = OPTIONS_MARKER.search(question)
    if match is None:
        return question.strip(), []
    options = [
        option.strip()
        for option in match.group("options").split(",")
        if option.strip()
    ]
    return question[: match.start()].strip(), options


def _first_present(payload: Mapping[str, Any], keys: Tuple[str, ...]) -> Any:
    for key in keys:
        if key in payload and payload[key] is not None:
            return payload[key]
    return None


def _coerce_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"yes", "true"}:
            return True
        if lowered in {"no", "false"}:
            return False
    return None


def _coerce_channel(value: Any) -> Optional[PreferredChannel]:
    if isinstance(value, PreferredChannel):
        return value
    if isinstance(value, str):
        for candidate in PreferredChannel:
            if candidate.value == value.strip():
                return candidate
    return None


def parse_answers(raw: Any) -> Optional[InterviewAnswers]:
    """Build :class:`InterviewAnswers` from a mapping; ``None`` if not a mapping."""

    if not isinstance(raw, Mapping):
        return None
    name = raw.get("name")
    goal = raw.get("goal")
    return InterviewAnswers(
        name=str(name).strip() if name else None,
        goal=str(goal).strip() if goal else None,
        channel=_coerce_channel(raw.get("channel")),
        confirmed_prerequisite=_coerce_bool(_first_present(raw, _PREREQUISITE_KEYS)),
    )


def classify_interview_output(payload: str | Mapping[str, Any]) -> InterviewStep:
    """Decide whether the exchange is finished or needs another question.

    Contract violations (complete without answers, unfinished without a
    question) come back as a ``FAILED`` step so the caller can recover.
    """

    if isinstance(payload, str):
        data = extract_json_object(payload)
        if data is None:
            raise CompletionParseError(
                f"No JSON object found in interview output: {payload!r}"
            )
    else:
        data = dict(payload)

    is_complete = bool(_first_present(data, ("isComplete", "is_complete")))
    just_answered = bool(_first_present(data, _JUST_ANSWERED_KEYS))

    if is_complete:
        answers = parse_answers(_first_present(data, _ANSWER_KEYS))
        if answers is None:
            logger.error("Interview output marked complete without answers: %s", data)
            return InterviewStep(status=FlowStatus.FAILED)
        return InterviewStep.complete(answers, prerequisite_just_answered=just_answered)

    raw_question = _first_present(data, ("nextQuestion", "next_question", "question"))
    question_text = str(raw_question).strip() if raw_question is not None else ""
    if not question_text:
        logger.error("Interview output is unfinished but has no question: %s", data)
        return InterviewStep(status=FlowStatus.FAILED)

    question, options = split_options(question_text)
    explicit_options = data.get("options")
    if isinstance(explicit_options, list) and explicit_options:
        options = [str(option).strip() for option in explicit_options if str(option).strip()]
    return InterviewStep.ask(question, options)
