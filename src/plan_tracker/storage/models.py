"""Pydantic models shared by the tracker, storage backends and the memory mirror.

Terms used in this file:
- Plan: every task recorded for one session, in creation order.
- Upsert: a write keyed by task id that inserts a new row or merges the given
  fields into an existing one.
"""

from __future__ import annotations

import secrets
import string
import time
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

# Any status may be set from any other; there is no transition table.
TaskStatus = Literal[
    "pending",
    "in_progress",
    "completed",
    "blocked",
    "cancelled",
    "approved",
    "skipped",
]

TASK_STATUSES: tuple[str, ...] = (
    "pending",
    "in_progress",
    "completed",
    "blocked",
    "cancelled",
    "approved",
    "skipped",
)

_ID_ALPHABET = string.digits + string.ascii_lowercase


class Task(BaseModel):
    """One unit of work inside a session's plan."""

    id: str
    session_id: str
    title: str
    description: str = ""
    status: TaskStatus = "pending"
    # Ids of tasks that must be completed first. Unknown ids never resolve.
    dependencies: list[str] = Field(default_factory=list)
    created_at: datetime
    completed_at: datetime | None = None
    estimated_duration: str = ""
    actual_duration: str = ""
    task_type: str = "general"


class TaskSpec(BaseModel):
    """Caller-supplied description of a task to add to a plan."""

    title: str = Field(min_length=1)
    description: str | None = None
    dependencies: list[str] | None = None
    estimated_duration: str | None = None

    def to_task(self, *, session_id: str, now: datetime | None = None) -> Task:
        return Task(
            id=new_task_id(),
            session_id=session_id,
            title=self.title,
            description=self.description or "",
            status="pending",
            dependencies=list(self.dependencies or []),
            created_at=now or datetime.now(tz=UTC),
            estimated_duration=self.estimated_duration or "",
        )


class TaskUpsert(BaseModel):
    """Store write for one task; ``None`` fields keep the stored value."""

    id: str
    title: str | None = None
    description: str | None = None
    status: TaskStatus | None = None
    dependencies: list[str] | None = None
    created_at: datetime | None = None
    completed_at: datetime | None = None
    estimated_duration: str | None = None
    actual_duration: str | None = None
    task_type: str | None = None

    @classmethod
    def from_task(cls, task: Task) -> TaskUpsert:
        return cls(
            id=task.id,
            title=task.title,
            description=task.description,
            status=task.status,
            dependencies=list(task.dependencies),
            created_at=task.created_at,
            completed_at=task.completed_at,
            estimated_duration=task.estimated_duration,
            actual_duration=task.actual_duration,
            task_type=task.task_type,
        )

    def changes(self) -> dict[str, Any]:
        """Fields this upsert sets, excluding the id."""
        return {
            key: value
            for key, value in self.model_dump().items()
            if key != "id" and value is not None
        }

    def apply_to(self, task: Task) -> Task:
        return task.model_copy(update=self.changes(), deep=True)

    def to_new_task(self, *, session_id: str) -> Task:
        payload = self.changes()
        payload.setdefault("title", "")
        payload.setdefault("created_at", datetime.now(tz=UTC))
        return Task(id=self.id, session_id=session_id, **payload)


class TaskProgress(BaseModel):
    """Derived completion summary for a plan; never persisted."""

    completed: int = 0
    total: int = 0
    percentage: int = 0
    in_progress: int = 0
    pending: int = 0


def new_task_id() -> str:
    """Return an opaque id such as ``task_1718000000000_k3j9x0q2a``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"task_{int(time.time() * 1000)}_{suffix}"
