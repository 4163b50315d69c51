"""Prompt scaffolding for the model-backed conversation stages."""

from __future__ import annotations

from dataclasses import dataclass
from string import Template

PRAISE_WRAPPER = "!!!THIS IS AMAZING!!!"


@dataclass(slots=True)
class StagePrompt:
    """A system instruction plus a user template for one model stage."""

    system: str
    template: Template

    def render(self, **values: str) -> str:
        return self.template.substitute(**values)


PARSE_PROMPT = StagePrompt(
    system="You parse user messages into structured intents.",
    template=Template(
        """
You are an AI assistant that parses user messages to understand their intent and extract key entities. The message was sent from channel $channel.

Message: $message

Identify the intent of the message and extract any relevant entities in a form that is easy for a computer to process.
Respond ONLY with JSON using this schema:{
  "intent": string,
  "entities": {string: any},
  "channel": "email" | "whatsapp" | "voice" | "chat"
}
Always include the channel. If no entities are found, return an empty object for "entities".
Do not include any text outside of the JSON object.""".strip()
    ),
)

TRIAGE_PROMPT = StagePrompt(
    system="You triage inbound messages for routing and prioritisation.",
    template=Template(
        """
You are an AI assistant that triages user messages to route them to the correct agent and prioritise work.

Analyse the message below and determine its sentiment, whether it is spam, its topic, its priority, and which agent it should be routed to.

Message: $message
Channel: $channel

Consider these agents:
- Customer Support
- Sales
- Technical Support

Respond ONLY with JSON using this schema:{
  "sentiment": "positive" | "negative" | "neutral",
  "isSpam": bool,
  "topic": "help" | "sales" | "support" | "other",
  "priority": "high" | "medium" | "low",
  "routeToAgent": "Customer Support" | "Sales" | "Technical Support"
}
Do not include any text outside of the JSON object.""".strip()
    ),
)

PRAISE_PROMPT = StagePrompt(
    system="You decorate messages exactly as instructed.",
    template=Template(
        """
Take the following message and add "$wrapper" exactly as written to the beginning and end of it. Do not add any other text or explanation.

Message: $message

Respond ONLY with JSON using this schema:{
  "praisedMessage": string
}""".strip()
    ),
)

INTERVIEW_PROMPT = StagePrompt(
    system="You are an onboarding interviewer that asks one question at a time.",
    template=Template(
        """
Conduct a short onboarding interview by asking questions ONE BY ONE, based on the conversation history.

Conversation history (most recent message last):
$history

Interview questions, in this exact order:
$questions

Rules:
1. A question counts as answered only when an agent message asked it and the next user or action message is a valid answer. Free-text questions accept any non-empty answer; questions with options accept only one of the listed options, matched exactly.
2. Ask the first unanswered question using its exact wording. For questions with options, list the options in the "options" field.
3. When every question has a valid answer, set "isComplete" to true, omit "nextQuestion", and fill "answers".
4. Set "prerequisiteJustAnswered" to true only if the latest user message answers the final question. Agent messages that are not interview questions, such as task listings, do not count as a new question.

Respond ONLY with JSON using this schema:{
  "nextQuestion": string | null,
  "options": [string],
  "isComplete": bool,
  "answers": {
    "name": string,
    "goal": string,
    "channel": "Chat" | "Email" | "Whatsapp",
    "confirmedPrerequisite": bool
  } | null,
  "prerequisiteJustAnswered": bool
}
Do not include any text outside of the JSON object.""".strip()
    ),
)

SUMMARIZE_ACTIONS_PROMPT = StagePrompt(
    system="You condense agent activity logs into short summaries.",
    template=Template(
        """
Summarise the following actions taken by sub-agents, including the data they retrieved and processed, into a concise and informative summary that is easy to understand.

Actions: $actions

Respond ONLY with JSON using this schema:{
  "summary": string
}""".strip()
    ),
)

RESPOND_TO_USER_PROMPT = StagePrompt(
    system="You are a helpful assistant writing to the end user.",
    template=Template(
        """
Write a friendly, human-sounding reply to the user based on this summary of the actions taken on their behalf.

Summary: $summary

Respond ONLY with JSON using this schema:{
  "response": string
}""".strip()
    ),
)

SUB_AGENT_PROMPTS_PROMPT = StagePrompt(
    system="You are an expert prompt engineer.",
    template=Template(
        """
Based on the user request, the available data and the sub-agent capabilities, write an optimised prompt for each sub-agent.

User request: $request
Available data: $data
Sub-agent capabilities: $capabilities

Respond ONLY with JSON using this schema:{
  "prompts": {"<sub-agent name>": string}
}
Do not include any text outside of the JSON object.""".strip()
    ),
)
