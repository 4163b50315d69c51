"""Configuration helpers for the conversation router."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from importlib import import_module
from typing import Optional


class InterviewMode(str, Enum):
    """How the onboarding interview decides the next question."""

    SCRIPTED = "scripted"
    MODEL = "model"

    @classmethod
    def from_string(
        cls,
        mode: str | None,
        default: Optional["InterviewMode"] = None,
    ) -> "InterviewMode":
        if not mode:
            if default is None:
                raise ValueError("Interview mode is required.")
            return default
        normalized = mode.strip().lower()
        for candidate in cls:
            if candidate.value == normalized:
                return candidate
        raise ValueError(f"Unsupported interview mode: {mode}")


@dataclass(slots=True)
class ModelSettings:
    """Holds model-related configuration for the runtime."""

    provider: str
    model: str
    endpoint: Optional[str]
    api_key: str
    api_version: Optional[str]


@dataclass(slots=True)
class AppSettings:
    """Top-level application settings loaded from environment variables."""

    model: Optional[ModelSettings]
    redis_url: Optional[str]
    interview_mode: InterviewMode
    task_due_days: int
    otlp_endpoint: Optional[str] = None
    trace_sensitive_data: bool = False

    @classmethod
    def load(cls, *, require_model: bool = True) -> "AppSettings":
        """Load settings from the environment or .env file.

        With ``require_model=False`` missing model credentials are tolerated;
        the router then runs without the default responder and only the
        scripted interview, task list and reset flows are usable.
        """
        _ensure_dotenv()
        model_settings = _load_model_settings(require_model=require_model)

        redis_url = os.getenv("ROUTER_REDIS_URL")
        if redis_url is not None and not redis_url.strip():
            redis_url = None

        try:
            interview_mode = InterviewMode.from_string(
                os.getenv("ROUTER_INTERVIEW_MODE"),
                default=InterviewMode.SCRIPTED,
            )
        except ValueError as exc:
            raise RuntimeError(
                "ROUTER_INTERVIEW_MODE must be 'scripted' or 'model'"
            ) from exc
        if interview_mode is InterviewMode.MODEL and model_settings is None:
            raise RuntimeError(
                "ROUTER_INTERVIEW_MODE=model requires ROUTER_MODEL and "
                "ROUTER_MODEL_API_KEY."
            )

        due_days_raw = os.getenv("ROUTER_TASK_DUE_DAYS", "5")
        try:
            task_due_days = int(due_days_raw)
        except ValueError as exc:
            raise RuntimeError("ROUTER_TASK_DUE_DAYS must be an integer") from exc
        if task_due_days < 1:
            raise RuntimeError("ROUTER_TASK_DUE_DAYS must be at least 1")

        otlp_endpoint = (os.getenv("ROUTER_OTLP_ENDPOINT") or "").strip() or None
        trace_sensitive_data = os.getenv(
            "ROUTER_TRACING_CAPTURE_SENSITIVE", "false"
        ).strip().lower() in {"1", "true", "yes", "on"}

        return cls(
            model=model_settings,
            redis_url=redis_url,
            interview_mode=interview_mode,
            task_due_days=task_due_days,
            otlp_endpoint=otlp_endpoint,
            trace_sensitive_data=trace_sensitive_data,
        )


def _load_model_settings(*, require_model: bool) -> Optional[ModelSettings]:
    provider = os.getenv("ROUTER_MODEL_PROVIDER", "azure-openai")
    model = os.getenv("ROUTER_MODEL")
    api_key = os.getenv("ROUTER_MODEL_API_KEY")
    if not model or not api_key:
        if not require_model:
            return None
        if not model:
            raise RuntimeError("ROUTER_MODEL environment variable is required.")
        raise RuntimeError("ROUTER_MODEL_API_KEY environment variable is required.")
    return ModelSettings(
        provider=provider,
        model=model,
        endpoint=os.getenv("ROUTER_MODEL_ENDPOINT"),
        api_key=api_key,
        api_version=os.getenv("ROUTER_MODEL_API_VERSION"),
    )


def _ensure_dotenv() -> None:
    """Load dotenv variables and provide a helpful error if missing."""

    try:
        dotenv_module = import_module("dotenv")
    except ModuleNotFoundError as exc:  # pragma: no cover - optional dep
        raise RuntimeError(
            "python-dotenv is required. Install with `pip install "
            "python-dotenv`."
        ) from exc

    load_dotenv = getattr(dotenv_module, "load_dotenv")
    load_dotenv()
