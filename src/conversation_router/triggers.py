"""Reserved input tokens emitted by UI buttons."""

from __future__ import annotations

from typing import List

from .models import ActionOption, PreferredChannel

RESET_TRIGGER = "RESET_CONVERSATION"
VIEW_TASKS_TRIGGER = "VIEW_TASKLIST"
INTERVIEW_TRIGGER = "START_ONBOARDING_INTERVIEW"
PLACEHOLDER_TRIGGER = "START_CREATE_PRODUCT"

FLOW_TRIGGERS = frozenset({INTERVIEW_TRIGGER, PLACEHOLDER_TRIGGER})
CONTROL_TRIGGERS = frozenset({RESET_TRIGGER, VIEW_TASKS_TRIGGER})

YES = "Yes"
NO = "No"
CHOICE_TOKENS = frozenset(
    {YES, NO}.union(channel.value for channel in PreferredChannel)
)

ACTION_TOKENS = FLOW_TRIGGERS | CONTROL_TRIGGERS | CHOICE_TOKENS

GREETING = "Hello! What would you like to work on today?"


def top_level_actions() -> List[ActionOption]:
    """Buttons offered whenever no flow is running."""

    return [
        ActionOption(label="Onboarding", trigger=INTERVIEW_TRIGGER),
        ActionOption(label="Create Product", trigger=PLACEHOLDER_TRIGGER),
    ]


def choice_actions(options: List[str]) -> List[ActionOption]:
    return [ActionOption(label=option, trigger=option) for option in options]
