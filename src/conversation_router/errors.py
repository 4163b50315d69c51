"""Exception types shared by the conversation router components."""

from __future__ import annotations


class RouterError(RuntimeError):
    """Base class for errors raised inside the conversation router."""


class StageFailure(RouterError):
    """Raised when a model-backed stage returns no output or a malformed one."""

    def __init__(self, stage: str, detail: str) -> None:
        super().__init__(f"{stage} stage failed: {detail}")
        self.stage = stage
        self.detail = detail


class CompletionParseError(RouterError):
    """Raised when no JSON object can be recovered from model output."""


class InterviewEngineError(RouterError):
    """Raised when the interview engine reaches an inconsistent state."""
