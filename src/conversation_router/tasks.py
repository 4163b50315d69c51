"""Follow-up task created when the onboarding interview completes."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from .models import InterviewAnswers, Priority, Task, TaskDraft
from .task_store import TaskStore, format_due_date

logger = logging.getLogger(__name__)

DEFAULT_DUE_DAYS = 5

MISSING_PREREQUISITE_TASK = "Set up a Stripe account"
EXISTING_PREREQUISITE_TASK = "Connect your existing Stripe account"


def draft_follow_up_task(
    answers: InterviewAnswers,
    *,
    now: Optional[datetime] = None,
    due_days: int = DEFAULT_DUE_DAYS,
) -> Optional[TaskDraft]:
    """Map the prerequisite answer onto a task draft; ``None`` when unknown."""

    if answers.confirmed_prerequisite is None:
        return None
    if answers.confirmed_prerequisite:
        return TaskDraft(
            description=EXISTING_PREREQUISITE_TASK,
            priority=Priority.MEDIUM,
        )
    reference = now or datetime.now(timezone.utc)
    return TaskDraft(
        description=MISSING_PREREQUISITE_TASK,
        priority=Priority.HIGH,
        due_date=reference + timedelta(days=due_days),
    )


def create_follow_up_task(
    store: TaskStore,
    answers: InterviewAnswers,
    *,
    due_days: int = DEFAULT_DUE_DAYS,
) -> Optional[Task]:
    draft = draft_follow_up_task(answers, due_days=due_days)
    if draft is None:
        logger.warning("Prerequisite answer missing; no follow-up task created.")
        return None
    return store.add(draft.description, draft.priority, draft.due_date)


def describe_created_task(task: Task) -> str:
    note = f'I\'ve added a {task.priority.value}-priority task: "{task.description}"'
    if task.due_date is not None:
        note += f" (due {format_due_date(task.due_date)})"
    return note + "."
