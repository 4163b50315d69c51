"""Shared fixtures: scripted model client and in-memory router wiring."""

from __future__ import annotations

import json
from typing import Any, Iterable, List, Sequence, Union

import pytest

from conversation_router.interview_agent import OnboardingInterviewEngine
from conversation_router.maf_client import ChatMessage
from conversation_router.responder import DefaultResponder
from conversation_router.router import FlowRouter
from conversation_router.session_store import InMemorySessionStore
from conversation_router.task_store import InMemoryTaskStore

Reply = Union[str, dict, Exception]


class ScriptedClient:
    """Fake completion client that replays queued replies in order."""

    def __init__(self, replies: Sequence[Reply] = ()) -> None:
        self.replies: List[Reply] = list(replies)
        self.calls: List[List[ChatMessage]] = []

    def queue(self, *replies: Reply) -> None:
        self.replies.extend(replies)

    async def complete(self, messages: Iterable[ChatMessage]) -> ChatMessage:
        self.calls.append(list(messages))
        if not self.replies:
            raise AssertionError("ScriptedClient ran out of replies")
        reply: Any = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, dict):
            reply = json.dumps(reply)
        return ChatMessage(role="assistant", content=reply)


def parsed_reply(channel: str = "chat") -> dict:
    return {"intent": "share_update", "entities": {}, "channel": channel}


def triage_reply(spam: bool = False) -> dict:
    return {
        "sentiment": "positive",
        "isSpam": spam,
        "topic": "general",
        "priority": "low",
        "routeToAgent": "praise",
    }


@pytest.fixture
def client() -> ScriptedClient:
    return ScriptedClient()


@pytest.fixture
def task_store() -> InMemoryTaskStore:
    return InMemoryTaskStore()


@pytest.fixture
def session_store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def router(client, task_store, session_store) -> FlowRouter:
    return FlowRouter(
        sessions=session_store,
        tasks=task_store,
        interview_engine=OnboardingInterviewEngine(),
        responder=DefaultResponder(client),
    )
