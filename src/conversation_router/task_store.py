"""Task persistence: an in-memory store and a Redis-backed one."""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from datetime import datetime, time, timezone
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence
from uuid import uuid4

from redis import Redis
from redis.exceptions import RedisError

from .models import Priority, Task

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset({"description", "priority", "due_date", "completed"})

EMPTY_TASKS_MESSAGE = "You have no pending tasks."


class TaskStore(Protocol):
    """Public interface shared by every task store."""

    def add(
        self,
        description: str,
        priority: Priority,
        due_date: Optional[datetime] = None,
    ) -> Task:
        ...

    def list(self) -> List[Task]:
        ...

    def get(self, task_id: str) -> Optional[Task]:
        ...

    def update(self, task_id: str, changes: Mapping[str, Any]) -> bool:
        ...


def _new_task_id() -> str:
    created_at = datetime.now(timezone.utc)
    return "task_{}_{}".format(
        created_at.strftime("%Y%m%d%H%M%S"),
        uuid4().hex[:12],
    )


def _coerce_due_date(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    raise ValueError(f"Unsupported due date value: {value!r}")


def apply_task_changes(task: Task, changes: Mapping[str, Any]) -> Task:
    """Apply a partial update; an explicit ``due_date=None`` clears the date."""

    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(
            "Unsupported task field(s): {}".format(", ".join(sorted(unknown)))
        )
    if "description" in changes:
        task.description = str(changes["description"])
    if "priority" in changes:
        task.priority = Priority(changes["priority"])
    if "due_date" in changes:
        task.due_date = _coerce_due_date(changes["due_date"])
    if "completed" in changes:
        task.completed = bool(changes["completed"])
    return task


class InMemoryTaskStore:
    """Keeps tasks in insertion order for the lifetime of the process."""

    def __init__(self) -> None:
        self._tasks: Dict[str, Task] = {}

    def add(
        self,
        description: str,
        priority: Priority,
        due_date: Optional[datetime] = None,
    ) -> Task:
        task_id = _new_task_id()
        while task_id in self._tasks:
            task_id = _new_task_id()
        task = Task(
            id=task_id,
            description=description,
            priority=Priority(priority),
            due_date=due_date,
        )
        self._tasks[task_id] = task
        logger.info("Task %s added (%s)", task_id, task.priority.value)
        return replace(task)

    def list(self) -> List[Task]:
        return [replace(task) for task in self._tasks.values()]

    def get(self, task_id: str) -> Optional[Task]:
        task = self._tasks.get(task_id)
        return replace(task) if task else None

    def update(self, task_id: str, changes: Mapping[str, Any]) -> bool:
        task = self._tasks.get(task_id)
        if task is None:
            logger.info("Task %s not found; update skipped.", task_id)
            return False
        updated = apply_task_changes(replace(task), changes)
        self._tasks[task_id] = updated
        return True


class RedisTaskStore:
    """Stores tasks as JSON blobs in a Redis hash with an ordered id list."""

    def __init__(self, client: Redis, *, namespace: str = "tasks") -> None:
        self._client = client
        self._hash_key = f"{namespace}:items"
        self._order_key = f"{namespace}:order"

    def add(
        self,
        description: str,
        priority: Priority,
        due_date: Optional[datetime] = None,
    ) -> Task:
        task_id = _new_task_id()
        while self._client.hexists(self._hash_key, task_id):
            task_id = _new_task_id()
        task = Task(
            id=task_id,
            description=description,
            priority=Priority(priority),
            due_date=due_date,
        )
        pipeline = self._client.pipeline()
        pipeline.hset(self._hash_key, task_id, _dump(task))
        pipeline.rpush(self._order_key, task_id)
        pipeline.execute()
        logger.info("Task %s added (%s)", task_id, task.priority.value)
        return task

    def list(self) -> List[Task]:
        ids = [_decode(raw) for raw in self._client.lrange(self._order_key, 0, -1)]
        if not ids:
            return []
        blobs = self._client.hmget(self._hash_key, ids)
        return [_load(blob) for blob in blobs if blob is not None]

    def get(self, task_id: str) -> Optional[Task]:
        blob = self._client.hget(self._hash_key, task_id)
        return _load(blob) if blob is not None else None

    def update(self, task_id: str, changes: Mapping[str, Any]) -> bool:
        task = self.get(task_id)
        if task is None:
            logger.info("Task %s not found; update skipped.", task_id)
            return False
        updated = apply_task_changes(task, changes)
        try:
            self._client.hset(self._hash_key, task_id, _dump(updated))
        except RedisError:
            logger.exception("Redis update failed for task %s", task_id)
            raise
        return True


def _decode(raw: Any) -> str:
    if isinstance(raw, bytes):
        return raw.decode("utf-8")
    return str(raw)


def _dump(task: Task) -> str:
    return json.dumps(task.to_dict(), ensure_ascii=False)


def _load(blob: Any) -> Task:
    return Task.from_dict(json.loads(_decode(blob)))


def format_due_date(value: datetime) -> str:
    """Render a due date, dropping the time of day when it is exactly midnight."""

    if value.time() == time(0, 0):
        return value.strftime("%b %d, %Y")
    return value.strftime("%b %d, %Y %I:%M %p")


def format_task_list(tasks: Sequence[Task]) -> str:
    """Render tasks as a numbered, human-readable list."""

    if not tasks:
        return EMPTY_TASKS_MESSAGE
    lines: List[str] = ["Here are your current tasks:"]
    for index, task in enumerate(tasks, start=1):
        lines.append(f"{index}. {task.description}")
        lines.append(f"   Priority: {task.priority.value}")
        if task.due_date is not None:
            lines.append(f"   Due: {format_due_date(task.due_date)}")
        status = "Completed" if task.completed else "Pending"
        lines.append(f"   Status: {status}")
    return "\n".join(lines)
