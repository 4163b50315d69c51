"""Default responder: parse, triage and transform a free-text message.

Each stage is an independent model call with its own output schema. Stage
output that cannot be parsed or fails validation raises
:class:`StageFailure`; nothing malformed is passed downstream.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .completion import extract_json_object
from .errors import StageFailure
from .maf_client import CompletionClient, complete_prompt
from .models import Channel
from .prompts import (
    PARSE_PROMPT,
    PRAISE_PROMPT,
    PRAISE_WRAPPER,
    RESPOND_TO_USER_PROMPT,
    SUB_AGENT_PROMPTS_PROMPT,
    SUMMARIZE_ACTIONS_PROMPT,
    TRIAGE_PROMPT,
    StagePrompt,
)

logger = logging.getLogger(__name__)

SPAM_NOTICE = "This message appears to be spam and has been discarded."
TRANSFORM_FAILURE_NOTICE = "Sorry, the Praise Agent couldn't process the message correctly."

StageModelT = TypeVar("StageModelT", bound=BaseModel)


class ParsedMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    intent: str
    entities: Dict[str, Any] = Field(default_factory=dict)
    channel: Channel

    @field_validator("entities", mode="before")
    @classmethod
    def _entities_default(cls, value: Any) -> Any:
        # null or non-object entities mean "none found"
        return value if isinstance(value, dict) else {}

    @field_validator("channel", mode="before")
    @classmethod
    def _channel_lowercase(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value


class TriageResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sentiment: str
    is_spam: bool = Field(alias="isSpam")
    topic: str
    priority: str
    route_to_agent: str = Field(alias="routeToAgent")


class PraisedMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    praised_message: str = Field(alias="praisedMessage")


class ActionSummary(BaseModel):
    summary: str


class UserReply(BaseModel):
    response: str


class SubAgentPrompts(BaseModel):
    prompts: Dict[str, str]

    @field_validator("prompts")
    @classmethod
    def _prompts_not_empty(cls, value: Dict[str, str]) -> Dict[str, str]:
        if not value:
            raise ValueError("at least one sub-agent prompt is required")
        return value


@dataclass(slots=True)
class ResponderOutcome:
    """What the default pipeline produced for one message."""

    text: str
    spam: bool
    parsed: Optional[ParsedMessage] = None
    triage: Optional[TriageResult] = None


async def _run_stage(
    client: CompletionClient,
    stage: str,
    prompt: StagePrompt,
    schema: Type[StageModelT],
    **values: str,
) -> StageModelT:
    raw = await complete_prompt(client, prompt.render(**values), system=prompt.system)
    if not raw:
        raise StageFailure(stage, "model returned no output")
    data = extract_json_object(raw)
    if data is None:
        raise StageFailure(stage, f"output is not a JSON object: {raw!r}")
    try:
        result = schema.model_validate(data)
    except ValidationError as exc:
        raise StageFailure(stage, f"output failed validation: {exc}") from exc
    logger.debug("%s stage result: %s", stage, result)
    return result


async def parse_message(
    client: CompletionClient,
    message: str,
    channel: Channel,
) -> ParsedMessage:
    """Extract intent and entities from a message."""

    return await _run_stage(
        client,
        "parse",
        PARSE_PROMPT,
        ParsedMessage,
        message=message,
        channel=channel.value,
    )


async def triage_message(
    client: CompletionClient,
    message: str,
    channel: Channel,
) -> TriageResult:
    """Classify sentiment, spam, topic, priority and routing."""

    return await _run_stage(
        client,
        "triage",
        TRIAGE_PROMPT,
        TriageResult,
        message=message,
        channel=channel.value,
    )


async def praise_message(client: CompletionClient, message: str) -> PraisedMessage:
    """Wrap the message in enthusiastic praise."""

    return await _run_stage(
        client,
        "transform",
        PRAISE_PROMPT,
        PraisedMessage,
        message=message,
        wrapper=PRAISE_WRAPPER,
    )


async def summarize_agent_actions(client: CompletionClient, actions: str) -> ActionSummary:
    """Condense a log of sub-agent actions into a short summary."""

    return await _run_stage(
        client,
        "summarize",
        SUMMARIZE_ACTIONS_PROMPT,
        ActionSummary,
        actions=actions,
    )


async def respond_to_user(client: CompletionClient, summary: str) -> UserReply:
    return await _run_stage(
        client,
        "respond",
        RESPOND_TO_USER_PROMPT,
        UserReply,
        summary=summary,
    )


async def generate_sub_agent_prompts(
    client: CompletionClient,
    request: str,
    data: str,
    capabilities: str,
) -> SubAgentPrompts:
    """Draft one prompt per sub-agent for the given request."""

    return await _run_stage(
        client,
        "plan",
        SUB_AGENT_PROMPTS_PROMPT,
        SubAgentPrompts,
        request=request,
        data=data,
        capabilities=capabilities,
    )


@dataclass(slots=True)
class ActionReport:
    summary: str
    reply: str


class DefaultResponder:
    """Runs parse, triage and transform for messages outside any flow.

    The same client also backs the reporting stages: summarising what
    sub-agents did, turning that summary into a reply, and drafting
    per-sub-agent prompts.
    """

    def __init__(self, client: CompletionClient) -> None:
        self._client = client

    async def report_actions(self, actions: str) -> ActionReport:
        summary = await summarize_agent_actions(self._client, actions)
        reply = await respond_to_user(self._client, summary.summary)
        logger.info("Reported %d chars of agent actions", len(actions))
        return ActionReport(summary=summary.summary, reply=reply.response)

    async def plan_sub_agents(
        self,
        request: str,
        data: str,
        capabilities: str,
    ) -> Dict[str, str]:
        plan = await generate_sub_agent_prompts(self._client, request, data, capabilities)
        logger.info("Drafted prompts for sub-agents: %s", ", ".join(plan.prompts))
        return plan.prompts

    async def respond(self, message: str, channel: Channel) -> ResponderOutcome:
        parsed = await parse_message(self._client, message, channel)
        logger.info("Parsed intent '%s' from %s message", parsed.intent, channel.value)

        triage = await triage_message(self._client, message, channel)
        logger.info(
            "Triage: sentiment=%s spam=%s topic=%s priority=%s route=%s",
            triage.sentiment,
            triage.is_spam,
            triage.topic,
            triage.priority,
            triage.route_to_agent,
        )
        if triage.is_spam:
            return ResponderOutcome(text=SPAM_NOTICE, spam=True, parsed=parsed, triage=triage)

        try:
            praised = await praise_message(self._client, message)
        except StageFailure:
            logger.exception("Transform stage failed for message %r", message)
            return ResponderOutcome(
                text=TRANSFORM_FAILURE_NOTICE,
                spam=False,
                parsed=parsed,
                triage=triage,
            )
        return ResponderOutcome(
            text=praised.praised_message,
            spam=False,
            parsed=parsed,
            triage=triage,
        )
