"""Model-completion boundary built on Microsoft Agent Framework chat clients.

Every model-backed stage (message parsing, triage, praise, the model-driven
interview) talks to the language model through :class:`MAFChatClient`. The
stages only depend on the :class:`CompletionClient` protocol so tests and
offline runs can substitute a fake client.
"""

from __future__ import annotations

from dataclasses import dataclass
from importlib import import_module
from typing import TYPE_CHECKING, Iterable, List, Optional, Protocol

from agent_framework import ChatMessage as MAFChatMessage, Role

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .config import ModelSettings


@dataclass(slots=True)
class ChatMessage:
    """Provider-neutral chat message."""

    role: str
    content: str


class CompletionClient(Protocol):
    """Anything able to turn a message list into a single reply."""

    async def complete(self, messages: Iterable[ChatMessage]) -> ChatMessage:
        ...


class MAFIntegrationError(RuntimeError):
    """Raised when the MAF client cannot be initialized."""


def _coerce_role(role: str) -> Role:
    try:
        return Role(role)
    except ValueError as exc:
        raise ValueError(f"Unsupported role for MAF chat message: {role}") from exc


class MAFChatClient:
    """Dispatches chat completion calls through the configured MAF provider."""

    def __init__(self, settings: "ModelSettings") -> None:
        self._settings = settings
        self._client = self._create_client(settings)

    @property
    def model(self) -> str:
        return self._settings.model

    @staticmethod
    def _create_client(settings: "ModelSettings"):
        provider = settings.provider.lower()
        try:
            if provider in {"azure-openai", "azure_openai", "azure"}:
                module = import_module("agent_framework.azure")
                client_cls = getattr(module, "AzureOpenAIChatClient")
                return client_cls(
                    api_key=settings.api_key,
                    deployment_name=settings.model,
                    endpoint=settings.endpoint,
                    api_version=settings.api_version,
                )
            if provider in {"openai", "oai"}:
                module = import_module("agent_framework.openai")
                client_cls = getattr(module, "OpenAIChatClient")
                return client_cls(
                    api_key=settings.api_key,
                    model_id=settings.model,
                    base_url=settings.endpoint,
                )
        except ModuleNotFoundError as exc:  # pragma: no cover - MAF runtime
            missing = exc.name or "a required dependency"
            raise MAFIntegrationError(
                f"Microsoft Agent Framework dependency '{missing}' is missing. "
                "Reinstall the project dependencies (e.g. `pip install -e .`)."
            ) from exc
        raise MAFIntegrationError(
            f"Unsupported MAF provider '{settings.provider}'."
        )

    @staticmethod
    def _merge_consecutive_roles(
        messages: Iterable[ChatMessage],
    ) -> List[ChatMessage]:
        """Combine adjacent messages that share a role.

        Conversation history routinely holds several user turns in a row
        (a typed answer followed by a button click), while the chat templates
        expect user and assistant roles to alternate.
        """

        merged: List[ChatMessage] = []
        for message in messages:
            if merged and merged[-1].role == message.role:
                previous = merged[-1]
                previous.content = f"{previous.content}\n\n{message.content}".strip()
                continue
            merged.append(ChatMessage(role=message.role, content=message.content))
        return merged

    async def complete(self, messages: Iterable[ChatMessage]) -> ChatMessage:
        """Execute a chat completion call through the underlying MAF client."""

        payload: List[MAFChatMessage] = [
            MAFChatMessage(role=_coerce_role(msg.role), text=msg.content)
            for msg in self._merge_consecutive_roles(messages)
        ]
        response = await self._client.get_response(messages=payload)
        return ChatMessage(role="assistant", content=response.text or "")


async def complete_prompt(
    client: CompletionClient,
    prompt: str,
    *,
    system: Optional[str] = None,
    history: Optional[Iterable[ChatMessage]] = None,
) -> str:
    """Send a single instruction (plus optional context) and return the text."""

    messages: List[ChatMessage] = []
    if system:
        messages.append(ChatMessage(role="system", content=system))
    if history:
        messages.extend(history)
    messages.append(ChatMessage(role="user", content=prompt))
    reply = await client.complete(messages)
    return reply.content.strip()
