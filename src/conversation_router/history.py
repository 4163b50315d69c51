"""Append-only conversation history for a single session."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List

from .maf_client import ChatMessage


class Speaker(str, Enum):
    """Who produced a turn."""

    USER = "user"
    AGENT = "agent"
    SYSTEM = "system"
    ACTION = "action"


_ROLE_BY_SPEAKER = {
    Speaker.USER: "user",
    Speaker.ACTION: "user",
    Speaker.AGENT: "assistant",
    Speaker.SYSTEM: "system",
}


@dataclass(frozen=True, slots=True)
class Turn:
    """One atomic entry in the conversation."""

    speaker: Speaker
    text: str

    def to_dict(self) -> Dict[str, str]:
        return {"speaker": self.speaker.value, "text": self.text}


def _empty_turns() -> List[Turn]:
    return []


@dataclass(slots=True)
class HistoryLog:
    """Ordered record of turns; only appended to or cleared wholesale."""

    _turns: List[Turn] = field(default_factory=_empty_turns)

    def append(self, speaker: Speaker, text: str) -> Turn:
        turn = Turn(speaker=Speaker(speaker), text=text)
        self._turns.append(turn)
        return turn

    def clear(self) -> None:
        self._turns.clear()

    def turns(self) -> List[Turn]:
        """Return a copy of the turns in conversational order."""

        return list(self._turns)

    def last(self, count: int = 1) -> List[Turn]:
        if count <= 0:
            return []
        return self._turns[-count:]

    def as_messages(self) -> List[ChatMessage]:
        """Flatten the history into chat messages for a model prompt."""

        return [
            ChatMessage(role=_ROLE_BY_SPEAKER[turn.speaker], content=turn.text)
            for turn in self._turns
        ]

    def render(self) -> str:
        return "\n".join(
            f"{turn.speaker.value}: {turn.text}" for turn in self._turns
        )

    def to_list(self) -> List[Dict[str, str]]:
        return [turn.to_dict() for turn in self._turns]

    @classmethod
    def from_list(cls, entries: List[Dict[str, Any]]) -> "HistoryLog":
        log = cls()
        for entry in entries:
            log.append(Speaker(entry["speaker"]), str(entry.get("text", "")))
        return log

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(list(self._turns))
