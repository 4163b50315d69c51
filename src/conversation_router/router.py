"""Flow router: the per-turn state machine behind the chat front-end.

Every inbound message passes through :meth:`FlowRouter.handle`, which
decides which flow owns the turn, feeds it the session history, applies the
post-conditions of a finished flow and shapes the outbound reply.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Dict, Optional

from .config import AppSettings
from .errors import CompletionParseError, InterviewEngineError, RouterError, StageFailure
from .history import Speaker
from .interview_agent import InterviewEngine, build_interview_engine
from .maf_client import MAFChatClient
from .models import (
    Channel,
    FlowName,
    FlowStatus,
    InterviewAnswers,
    RouterResponse,
    SessionState,
    Task,
)
from .responder import DefaultResponder
from .session_store import (
    DEFAULT_SESSION_ID,
    InMemorySessionStore,
    RedisSessionStore,
    SessionStore,
    connect_redis,
)
from .task_store import InMemoryTaskStore, RedisTaskStore, TaskStore, format_task_list
from .tasks import DEFAULT_DUE_DAYS, create_follow_up_task, describe_created_task
from .triggers import (
    ACTION_TOKENS,
    GREETING,
    INTERVIEW_TRIGGER,
    PLACEHOLDER_TRIGGER,
    RESET_TRIGGER,
    VIEW_TASKS_TRIGGER,
    choice_actions,
    top_level_actions,
)

logger = logging.getLogger(__name__)

EMPTY_INPUT_PROMPT = "Please type a message or pick one of the options."
PLACEHOLDER_NOTICE = "The 'Create Product' feature is not implemented yet."
INTERVIEW_STUCK_NOTICE = (
    "Sorry, I got stuck during the onboarding process. "
    "Please restart the onboarding."
)
STAGE_FAILURE_NOTICE = (
    "Sorry, I couldn't process your message right now ({stage} step failed). "
    "Please try again."
)
INTERNAL_ERROR_NOTICE = (
    "Sorry, I encountered an internal error while processing your request. "
    "Please try again later. (Details: {detail})"
)
COMPLETION_HEADER = "Onboarding complete! Here's the collected information:"


class FlowRouter:
    """Routes each message to the interview, placeholder or default flow."""

    def __init__(
        self,
        *,
        sessions: SessionStore,
        tasks: TaskStore,
        interview_engine: InterviewEngine,
        responder: Optional[DefaultResponder] = None,
        task_due_days: int = DEFAULT_DUE_DAYS,
    ) -> None:
        self._sessions = sessions
        self._tasks = tasks
        self._interview_engine = interview_engine
        self._responder = responder
        self._task_due_days = task_due_days
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    @classmethod
    def create(cls, settings: AppSettings) -> "FlowRouter":
        """Wire stores, engine and responder from application settings."""

        client = MAFChatClient(settings.model) if settings.model else None
        sessions: SessionStore
        tasks: TaskStore
        if settings.redis_url:
            redis_client = connect_redis(settings.redis_url)
            sessions = RedisSessionStore(redis_client)
            tasks = RedisTaskStore(redis_client)
        else:
            sessions = InMemorySessionStore()
            tasks = InMemoryTaskStore()
        responder = DefaultResponder(client) if client else None
        if responder is None:
            logger.warning("No model configured; free-text replies are unavailable.")
        return cls(
            sessions=sessions,
            tasks=tasks,
            interview_engine=build_interview_engine(settings, client),
            responder=responder,
            task_due_days=settings.task_due_days,
        )

    @property
    def tasks(self) -> TaskStore:
        return self._tasks

    @property
    def sessions(self) -> SessionStore:
        return self._sessions

    @property
    def responder(self) -> Optional[DefaultResponder]:
        return self._responder

    @property
    def active_session_locks(self) -> int:
        """Number of sessions with a request in flight or queued."""

        return len(self._locks)

    async def handle(
        self,
        message: str,
        channel: Channel = Channel.CHAT,
        session_id: str = DEFAULT_SESSION_ID,
    ) -> RouterResponse:
        """Process one inbound message and return the reply for the UI."""

        text = message.strip()
        if not text:
            return RouterResponse(EMPTY_INPUT_PROMPT, status=FlowStatus.AWAITING_INPUT)

        lock = self._locks.setdefault(session_id, asyncio.Lock())
        self._lock_users[session_id] = self._lock_users.get(session_id, 0) + 1
        try:
            async with lock:
                return await self._handle_locked(text, channel, session_id)
        finally:
            self._release_lock(session_id)

    def _release_lock(self, session_id: str) -> None:
        # the lock is dropped once no request holds or awaits it
        remaining = self._lock_users[session_id] - 1
        if remaining:
            self._lock_users[session_id] = remaining
            return
        del self._lock_users[session_id]
        del self._locks[session_id]

    async def _handle_locked(
        self,
        text: str,
        channel: Channel,
        session_id: str,
    ) -> RouterResponse:
        logger.info(
            "Session %s received %s message: %r",
            session_id,
            channel.value,
            text,
        )
        if text == RESET_TRIGGER:
            return self._reset(session_id)

        state = self._sessions.get(session_id)
        try:
            response = await self._route(text, channel, state)
        except Exception as exc:  # noqa: BLE001 - outermost boundary
            logger.exception("Unhandled error in session %s", session_id)
            response = self._fail(
                state,
                INTERNAL_ERROR_NOTICE.format(detail=exc),
            )
        self._sessions.save(session_id, state)
        logger.debug(
            "Session %s now in flow '%s' with %d turns",
            session_id,
            state.active_flow.value,
            len(state.history),
        )
        return response

    def _reset(self, session_id: str) -> RouterResponse:
        try:
            self._sessions.reset(session_id)
        except Exception as exc:  # noqa: BLE001 - outermost boundary
            logger.exception("Reset failed for session %s", session_id)
            return RouterResponse(
                INTERNAL_ERROR_NOTICE.format(detail=exc),
                actions=top_level_actions(),
                status=FlowStatus.FAILED,
            )
        logger.info("Session %s reset", session_id)
        return RouterResponse(
            GREETING,
            actions=top_level_actions(),
            status=FlowStatus.AWAITING_CHOICE,
        )

    async def _route(
        self,
        text: str,
        channel: Channel,
        state: SessionState,
    ) -> RouterResponse:
        if text == VIEW_TASKS_TRIGGER:
            return self._show_tasks(state)

        speaker = Speaker.ACTION if text in ACTION_TOKENS else Speaker.USER
        flow = state.active_flow
        starting = False
        if flow is FlowName.NONE:
            if text == INTERVIEW_TRIGGER:
                flow, starting = FlowName.INTERVIEW, True
                state.history.clear()
            elif text == PLACEHOLDER_TRIGGER:
                flow, starting = FlowName.PLACEHOLDER, True
            if starting:
                logger.info("Starting '%s' flow", flow.value)
                state.active_flow = flow
        if not starting:
            state.history.append(speaker, text)

        if flow is FlowName.INTERVIEW:
            return await self._continue_interview(state)
        if flow is FlowName.PLACEHOLDER:
            return self._run_placeholder(state)
        return await self._respond_default(text, channel, state)

    def _show_tasks(self, state: SessionState) -> RouterResponse:
        listing = format_task_list(self._tasks.list())
        state.history.append(Speaker.AGENT, listing)
        return RouterResponse(listing, status=FlowStatus.INFO)

    async def _continue_interview(self, state: SessionState) -> RouterResponse:
        try:
            step = await self._interview_engine.advance(state.history.turns())
        except (InterviewEngineError, CompletionParseError):
            logger.exception("Interview engine failed")
            return self._recover_interview(state)

        if step.status is FlowStatus.FAILED:
            return self._recover_interview(state)

        if step.is_complete:
            if step.answers is None:
                logger.error("Interview reported completion without answers")
                return self._recover_interview(state)
            created: Optional[Task] = None
            if step.prerequisite_just_answered:
                created = create_follow_up_task(
                    self._tasks,
                    step.answers,
                    due_days=self._task_due_days,
                )
            final_message = self._completion_message(step.answers, created)
            state.history.append(Speaker.AGENT, final_message)
            state.active_flow = FlowName.NONE
            logger.info("Interview finished; task created: %s", created is not None)
            return RouterResponse(final_message, status=FlowStatus.COMPLETED)

        if not step.question:
            logger.error("Interview is unfinished but produced no question")
            return self._recover_interview(state)

        state.history.append(Speaker.AGENT, step.question)
        if step.options:
            return RouterResponse(
                step.question,
                actions=choice_actions(step.options),
                status=FlowStatus.AWAITING_CHOICE,
            )
        return RouterResponse(step.question, status=FlowStatus.AWAITING_INPUT)

    @staticmethod
    def _completion_message(answers: InterviewAnswers, task: Optional[Task]) -> str:
        payload = json.dumps(answers.to_dict(), indent=2, ensure_ascii=False)
        lines = [COMPLETION_HEADER, "```json", payload, "```"]
        if task is not None:
            lines.append(describe_created_task(task))
        return "\n".join(lines)

    def _recover_interview(self, state: SessionState) -> RouterResponse:
        state.history.append(Speaker.AGENT, INTERVIEW_STUCK_NOTICE)
        state.active_flow = FlowName.NONE
        return RouterResponse(
            INTERVIEW_STUCK_NOTICE,
            actions=top_level_actions(),
            status=FlowStatus.FAILED,
        )

    def _run_placeholder(self, state: SessionState) -> RouterResponse:
        state.history.append(Speaker.AGENT, PLACEHOLDER_NOTICE)
        state.active_flow = FlowName.NONE
        return RouterResponse(
            PLACEHOLDER_NOTICE,
            actions=top_level_actions(),
            status=FlowStatus.AWAITING_CHOICE,
        )

    async def _respond_default(
        self,
        text: str,
        channel: Channel,
        state: SessionState,
    ) -> RouterResponse:
        if self._responder is None:
            raise RouterError("No language model is configured for free-text messages.")
        try:
            outcome = await self._responder.respond(text, channel)
        except StageFailure as exc:
            logger.error("Default responder failed: %s", exc)
            return self._fail(state, STAGE_FAILURE_NOTICE.format(stage=exc.stage))
        if outcome.spam:
            logger.info("Message discarded as spam")
        state.history.append(Speaker.AGENT, outcome.text)
        return RouterResponse(outcome.text, status=FlowStatus.COMPLETED)

    @staticmethod
    def _fail(state: SessionState, message: str) -> RouterResponse:
        state.active_flow = FlowName.NONE
        state.history.append(Speaker.AGENT, message)
        return RouterResponse(
            message,
            actions=top_level_actions(),
            status=FlowStatus.FAILED,
        )
