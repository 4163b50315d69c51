"""Keyed storage for per-session conversation state."""

from __future__ import annotations

import json
import logging
from typing import Dict, Optional, Protocol

import redis
from redis import Redis
from redis.exceptions import RedisError

from .models import SessionState

logger = logging.getLogger(__name__)

DEFAULT_SESSION_ID = "default"


class SessionStore(Protocol):
    """Maps a session id to its :class:`SessionState`."""

    def get(self, session_id: str) -> SessionState:
        ...

    def save(self, session_id: str, state: SessionState) -> None:
        ...

    def reset(self, session_id: str) -> SessionState:
        ...


class InMemorySessionStore:
    """Holds session state in process memory; lost on restart."""

    def __init__(self) -> None:
        self._sessions: Dict[str, SessionState] = {}

    def get(self, session_id: str) -> SessionState:
        state = self._sessions.get(session_id)
        if state is None:
            state = SessionState()
            self._sessions[session_id] = state
        return state

    def save(self, session_id: str, state: SessionState) -> None:
        self._sessions[session_id] = state

    def reset(self, session_id: str) -> SessionState:
        state = SessionState()
        self._sessions[session_id] = state
        return state


class RedisSessionStore:
    """Persists each session as a JSON blob under ``<namespace>:<id>``."""

    def __init__(
        self,
        client: Redis,
        *,
        namespace: str = "session",
        ttl_seconds: Optional[int] = None,
    ) -> None:
        self._client = client
        self._namespace = namespace
        self._ttl_seconds = ttl_seconds

    def _key(self, session_id: str) -> str:
        return f"{self._namespace}:{session_id}"

    def get(self, session_id: str) -> SessionState:
        raw_value = self._client.get(self._key(session_id))
        if not raw_value:
            return SessionState()
        if isinstance(raw_value, bytes):
            decoded = raw_value.decode("utf-8")
        else:
            decoded = str(raw_value)
        try:
            payload = json.loads(decoded)
        except json.JSONDecodeError:
            logger.warning(
                "Discarding unreadable session payload for %s", session_id
            )
            return SessionState()
        if not isinstance(payload, dict):
            return SessionState()
        return SessionState.from_dict(payload)

    def save(self, session_id: str, state: SessionState) -> None:
        blob = json.dumps(state.to_dict(), ensure_ascii=False)
        self._client.set(self._key(session_id), blob, ex=self._ttl_seconds)

    def reset(self, session_id: str) -> SessionState:
        state = SessionState()
        self.save(session_id, state)
        return state


def connect_redis(redis_url: str) -> Redis:
    """Open a Redis client for the stores; raises if the URL is unusable."""

    try:
        client = redis.from_url(  # type: ignore[call-overload]
            redis_url,
            decode_responses=True,
        )
    except RedisError as exc:  # pragma: no cover - network guarded
        logger.warning("Redis connection failed: %s", exc)
        raise
    return client
