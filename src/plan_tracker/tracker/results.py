"""Result shapes returned by every tracker operation."""

from __future__ import annotations

from pydantic import BaseModel, Field

from plan_tracker.storage.models import Task, TaskProgress


class TrackerResult(BaseModel):
    """Outcome of one tracker call.

    Successful results always carry the derived scheduling values so the
    caller never needs a follow-up read to learn what to do next.
    """

    success: bool
    error: str | None = None
    type: str | None = None
    message: str | None = None
    tasks: list[Task] = Field(default_factory=list)
    next_task: Task | None = None
    progress: TaskProgress = Field(default_factory=TaskProgress)
    all_completed: bool = False


class TaskChangeResult(TrackerResult):
    task: Task | None = None


class TasksAddedResult(TrackerResult):
    new_tasks: list[Task] = Field(default_factory=list)
