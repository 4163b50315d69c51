"""Data model for conversation sessions, interviews and tasks."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from .history import HistoryLog, Speaker, Turn

__all__ = [
    "ActionOption",
    "Channel",
    "FlowName",
    "FlowStatus",
    "InterviewAnswers",
    "InterviewStep",
    "PreferredChannel",
    "Priority",
    "RouterResponse",
    "SessionState",
    "Speaker",
    "Task",
    "TaskDraft",
    "Turn",
]


class Channel(str, Enum):
    """Inbound channels a message can arrive from."""

    EMAIL = "email"
    WHATSAPP = "whatsapp"
    VOICE = "voice"
    CHAT = "chat"

    @classmethod
    def from_string(
        cls,
        channel: str | None,
        default: Optional["Channel"] = None,
    ) -> "Channel":
        """Normalize arbitrary user input into a valid channel."""
        if not channel:
            if default is None:
                raise ValueError("Channel is required.")
            return default
        normalized = channel.strip().lower()
        for candidate in cls:
            if candidate.value == normalized:
                return candidate
        if default is not None:
            return default
        raise ValueError(f"Unsupported channel: {channel}")


class FlowName(str, Enum):
    """Flows the router can hand a session over to."""

    NONE = "none"
    INTERVIEW = "interview"
    PLACEHOLDER = "placeholder"


class FlowStatus(str, Enum):
    """Explicit outcome of a turn, consumed by the UI instead of text sniffing."""

    AWAITING_INPUT = "awaiting_input"
    AWAITING_CHOICE = "awaiting_choice"
    COMPLETED = "completed"
    FAILED = "failed"
    INFO = "info"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class PreferredChannel(str, Enum):
    """Communication channels offered during the onboarding interview."""

    CHAT = "Chat"
    EMAIL = "Email"
    WHATSAPP = "Whatsapp"


@dataclass(frozen=True, slots=True)
class ActionOption:
    """A selectable button; ``trigger`` is fed back verbatim when clicked."""

    label: str
    trigger: str

    def to_dict(self) -> Dict[str, str]:
        return {"label": self.label, "trigger": self.trigger}


@dataclass(slots=True)
class SessionState:
    """Per-session conversation state owned by the flow router."""

    active_flow: FlowName = FlowName.NONE
    history: HistoryLog = field(default_factory=HistoryLog)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "active_flow": self.active_flow.value,
            "history": self.history.to_list(),
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "SessionState":
        flow_raw = payload.get("active_flow") or FlowName.NONE.value
        return cls(
            active_flow=FlowName(flow_raw),
            history=HistoryLog.from_list(payload.get("history") or []),
        )


@dataclass(slots=True)
class InterviewAnswers:
    """Answers collected by the onboarding interview, filled incrementally."""

    name: Optional[str] = None
    goal: Optional[str] = None
    channel: Optional[PreferredChannel] = None
    confirmed_prerequisite: Optional[bool] = None

    @property
    def is_complete(self) -> bool:
        return (
            bool(self.name)
            and bool(self.goal)
            and isinstance(self.channel, PreferredChannel)
            and isinstance(self.confirmed_prerequisite, bool)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "goal": self.goal,
            "channel": self.channel.value if self.channel else None,
            "confirmedPrerequisite": self.confirmed_prerequisite,
        }


def _empty_options() -> List[str]:
    return []


@dataclass(slots=True)
class InterviewStep:
    """Result of advancing the interview by one turn."""

    status: FlowStatus
    question: Optional[str] = None
    options: List[str] = field(default_factory=_empty_options)
    answers: Optional[InterviewAnswers] = None
    prerequisite_just_answered: bool = False

    @property
    def is_complete(self) -> bool:
        return self.status is FlowStatus.COMPLETED

    @classmethod
    def ask(cls, question: str, options: Optional[List[str]] = None) -> "InterviewStep":
        choices = list(options or [])
        status = FlowStatus.AWAITING_CHOICE if choices else FlowStatus.AWAITING_INPUT
        return cls(status=status, question=question, options=choices)

    @classmethod
    def complete(
        cls,
        answers: InterviewAnswers,
        *,
        prerequisite_just_answered: bool,
    ) -> "InterviewStep":
        return cls(
            status=FlowStatus.COMPLETED,
            answers=answers,
            prerequisite_just_answered=prerequisite_just_answered,
        )


@dataclass(slots=True)
class TaskDraft:
    """Task fields prepared before the store assigns an id."""

    description: str
    priority: Priority
    due_date: Optional[datetime] = None


@dataclass(slots=True)
class Task:
    """A user-visible action item."""

    id: str
    description: str
    priority: Priority
    due_date: Optional[datetime] = None
    completed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "priority": self.priority.value,
            "dueDate": self.due_date.isoformat() if self.due_date else None,
            "completed": self.completed,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Task":
        due_raw = payload.get("dueDate")
        return cls(
            id=str(payload["id"]),
            description=str(payload.get("description", "")),
            priority=Priority(payload.get("priority", Priority.MEDIUM.value)),
            due_date=datetime.fromisoformat(due_raw) if due_raw else None,
            completed=bool(payload.get("completed", False)),
        )


@dataclass(slots=True)
class RouterResponse:
    """Outbound reply: text plus optional buttons and an explicit status."""

    response_text: str
    actions: Optional[List[ActionOption]] = None
    status: FlowStatus = FlowStatus.COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "responseText": self.response_text,
            "status": self.status.value,
        }
        if self.actions:
            payload["actions"] = [action.to_dict() for action in self.actions]
        return payload
