"""FastAPI entrypoint that exposes the flow router to a chat front-end."""

from __future__ import annotations

import argparse
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import uvicorn
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .channels import (
    EmailMessage,
    Transcriber,
    TwilioMessage,
    normalize_email,
    normalize_voice,
    normalize_whatsapp,
    stub_transcriber,
)
from .config import AppSettings
from .errors import StageFailure
from .models import Channel, Priority
from .observability import initialize_tracing
from .responder import DefaultResponder
from .router import FlowRouter
from .session_store import DEFAULT_SESSION_ID
from .triggers import RESET_TRIGGER

logger = logging.getLogger(__name__)


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    channel: Channel = Channel.CHAT
    session_id: str = Field(default=DEFAULT_SESSION_ID, alias="sessionId")

    @field_validator("channel", mode="before")
    @classmethod
    def _channel_lowercase(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value


class TaskPatch(BaseModel):
    """Partial task update; only fields present in the body are applied."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    description: Optional[str] = None
    priority: Optional[Priority] = None
    due_date: Optional[datetime] = Field(default=None, alias="dueDate")
    completed: Optional[bool] = None


class EmailPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sender: str = Field(alias="from")
    recipient: str = Field(default="", alias="to")
    subject: str = ""
    body: str = ""
    session_id: Optional[str] = Field(default=None, alias="sessionId")

    def to_message(self) -> EmailMessage:
        return EmailMessage(
            sender=self.sender,
            recipient=self.recipient,
            subject=self.subject,
            body=self.body,
        )


class WhatsAppPayload(BaseModel):
    """Twilio webhook fields used by the router."""

    model_config = ConfigDict(populate_by_name=True)

    sender: str = Field(alias="from")
    body: str
    session_id: Optional[str] = Field(default=None, alias="sessionId")

    def to_message(self) -> TwilioMessage:
        return TwilioMessage(sender=self.sender, body=self.body)


class ReportRequest(BaseModel):
    actions: str


class SubAgentPromptRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_request: str = Field(alias="userRequest")
    available_data: str = Field(default="", alias="availableData")
    sub_agent_capabilities: str = Field(alias="subAgentCapabilities")


def _require_responder(router: FlowRouter) -> DefaultResponder:
    if router.responder is None:
        raise HTTPException(status_code=503, detail="No language model is configured.")
    return router.responder


def create_app(
    settings: Optional[AppSettings] = None,
    *,
    router: Optional[FlowRouter] = None,
    allow_origins: Sequence[str] | None = None,
    transcriber: Transcriber = stub_transcriber,
) -> FastAPI:
    """Create the FastAPI app; ``router`` overrides the one built from settings."""

    if router is None:
        if settings is None:
            settings = AppSettings.load()
        router = FlowRouter.create(settings)
    flow_router = router

    app = FastAPI(title="Conversation Router", version="0.1.0")
    origins = list(allow_origins) if allow_origins else ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.router = flow_router

    @app.post("/chat")
    async def chat(request: ChatRequest) -> Dict[str, Any]:
        response = await flow_router.handle(
            request.message,
            channel=request.channel,
            session_id=request.session_id,
        )
        return response.to_dict()

    @app.post("/sessions/{session_id}/reset")
    async def reset_session(session_id: str) -> Dict[str, Any]:
        response = await flow_router.handle(RESET_TRIGGER, session_id=session_id)
        return response.to_dict()

    @app.get("/tasks")
    async def list_tasks() -> List[Dict[str, Any]]:
        return [task.to_dict() for task in flow_router.tasks.list()]

    @app.patch("/tasks/{task_id}")
    async def update_task(task_id: str, patch: TaskPatch) -> Dict[str, Any]:
        changes = patch.model_dump(exclude_unset=True)
        try:
            updated = flow_router.tasks.update(task_id, changes)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        if not updated:
            raise HTTPException(status_code=404, detail=f"Unknown task: {task_id}")
        task = flow_router.tasks.get(task_id)
        if task is None:
            raise HTTPException(status_code=404, detail=f"Unknown task: {task_id}")
        return task.to_dict()

    @app.post("/channels/email")
    async def ingest_email(payload: EmailPayload) -> Dict[str, Any]:
        message, channel = normalize_email(payload.to_message())
        response = await flow_router.handle(
            message,
            channel=channel,
            session_id=payload.session_id or payload.sender,
        )
        return response.to_dict()

    @app.post("/channels/whatsapp")
    async def ingest_whatsapp(payload: WhatsAppPayload) -> Dict[str, Any]:
        message, channel = normalize_whatsapp(payload.to_message())
        response = await flow_router.handle(
            message,
            channel=channel,
            session_id=payload.session_id or payload.sender,
        )
        return response.to_dict()

    @app.post("/channels/voice")
    async def ingest_voice(
        request: Request,
        session_id: str = Query(default=DEFAULT_SESSION_ID, alias="sessionId"),
    ) -> Dict[str, Any]:
        try:
            message, channel = await normalize_voice(await request.body(), transcriber)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        response = await flow_router.handle(message, channel=channel, session_id=session_id)
        return response.to_dict()

    @app.post("/reports")
    async def report_actions(payload: ReportRequest) -> Dict[str, str]:
        responder = _require_responder(flow_router)
        try:
            report = await responder.report_actions(payload.actions)
        except StageFailure as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return {"summary": report.summary, "response": report.reply}

    @app.post("/sub-agent-prompts")
    async def sub_agent_prompts(payload: SubAgentPromptRequest) -> Dict[str, Any]:
        responder = _require_responder(flow_router)
        try:
            prompts = await responder.plan_sub_agents(
                payload.user_request,
                payload.available_data,
                payload.sub_agent_capabilities,
            )
        except StageFailure as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return {"prompts": prompts}

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


def run_server(
    settings: AppSettings,
    *,
    host: str = "127.0.0.1",
    port: int = 8081,
    allow_origins: Sequence[str] | None = None,
    tracing: bool = False,
    log_level: str = "info",
) -> None:
    """Start the FastAPI server with uvicorn."""

    if tracing and not initialize_tracing(settings):
        logger.warning("Serving without tracing.")
    app = create_app(settings, allow_origins=allow_origins)
    logger.info("Serving conversation router on http://%s:%s", host, port)
    uvicorn.run(app, host=host, port=port, log_level=log_level)


def add_server_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host interface for the API server (default: 127.0.0.1).",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8081,
        help="Port for the API server (default: 8081).",
    )
    parser.add_argument(
        "--allow-origin",
        action="append",
        dest="allow_origin",
        help="Optional CORS origin(s) to allow. Defaults to '*' if not provided.",
    )
    parser.add_argument(
        "--tracing",
        action="store_true",
        help="Enable OpenTelemetry tracing via ROUTER_OTLP_ENDPOINT.",
    )
    parser.add_argument(
        "--log-level",
        default="info",
        help="Logging level for uvicorn (default: info).",
    )
