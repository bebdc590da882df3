"""Task orchestration operations used by the planning agent.

Each public method is one short unit of work: read the plan, change it with
the pure resolution helpers, persist through the repository and report the
next available task, progress and completion.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from typing import Any, TypeVar

from plan_tracker.engine.resolution import (
    all_completed,
    find_dependency_problems,
    next_available_task,
    task_progress,
)
from plan_tracker.errors import ConfigurationError
from plan_tracker.storage.models import TASK_STATUSES, Task, TaskSpec, TaskUpsert
from plan_tracker.storage.repository import TaskRepository
from plan_tracker.tracker.results import TaskChangeResult, TasksAddedResult, TrackerResult

logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT", bound=TrackerResult)


class TaskTracker:
    def __init__(
        self,
        repository: TaskRepository,
        *,
        validate_dependencies: bool = False,
    ) -> None:
        self.repository = repository
        self.validate_dependencies = validate_dependencies

    def create_plan(
        self,
        session_id: str | None,
        principal_id: str | None,
        specs: Iterable[TaskSpec | dict[str, Any]],
    ) -> TrackerResult:
        """Create the session's plan, or return the existing one unchanged."""
        session_id, principal_id = _require_scope(session_id, principal_id)
        task_specs = _coerce_specs(specs)
        if not task_specs:
            return TrackerResult(
                success=False,
                error="no_tasks_provided",
                message="No tasks provided for plan creation",
            )

        with self.repository.session_lock(session_id):
            existing = self.repository.get_tasks(session_id, principal_id)
            if existing:
                logger.info(
                    "task_plan event=exists session_id=%s tasks=%d",
                    session_id,
                    len(existing),
                )
                return _with_plan_state(
                    TrackerResult(
                        success=True,
                        type="task-plan-exists",
                        message=f"Found existing task plan with {len(existing)} tasks",
                    ),
                    existing,
                )

            now = datetime.now(tz=UTC)
            new_tasks = [spec.to_task(session_id=session_id, now=now) for spec in task_specs]
            rejected = self._reject_dependencies(new_tasks, TrackerResult)
            if rejected is not None:
                return rejected
            self.repository.save_tasks(session_id, principal_id, new_tasks)

        logger.info("task_plan event=created session_id=%s tasks=%d", session_id, len(new_tasks))
        return _with_plan_state(
            TrackerResult(
                success=True,
                type="task-plan-created",
                message=f"Created task plan with {len(new_tasks)} tasks",
            ),
            new_tasks,
        )

    def update_task(
        self,
        session_id: str | None,
        principal_id: str | None,
        task_id: str,
        status: str,
    ) -> TaskChangeResult:
        session_id, principal_id = _require_scope(session_id, principal_id)
        return self._set_status(session_id, principal_id, task_id, status, kind="task-updated")

    def complete_task(
        self,
        session_id: str | None,
        principal_id: str | None,
        task_id: str,
    ) -> TaskChangeResult:
        session_id, principal_id = _require_scope(session_id, principal_id)
        return self._set_status(
            session_id, principal_id, task_id, "completed", kind="task-completed"
        )

    def get_status(self, session_id: str | None, principal_id: str | None) -> TrackerResult:
        session_id, principal_id = _require_scope(session_id, principal_id)
        tasks = self.repository.get_tasks(session_id, principal_id)
        progress = task_progress(tasks)
        return _with_plan_state(
            TrackerResult(
                success=True,
                type="task-status",
                message=(
                    f"Task Status: {progress.completed}/{progress.total} completed "
                    f"({progress.percentage}%)"
                ),
            ),
            tasks,
        )

    def add_tasks(
        self,
        session_id: str | None,
        principal_id: str | None,
        specs: Iterable[TaskSpec | dict[str, Any]],
    ) -> TasksAddedResult:
        """Append new pending tasks after the existing ones."""
        session_id, principal_id = _require_scope(session_id, principal_id)
        task_specs = _coerce_specs(specs)
        if not task_specs:
            return TasksAddedResult(
                success=False,
                error="no_tasks_provided",
                message="No tasks provided to add",
            )

        with self.repository.session_lock(session_id):
            current = self.repository.get_tasks(session_id, principal_id)
            now = datetime.now(tz=UTC)
            new_tasks = [spec.to_task(session_id=session_id, now=now) for spec in task_specs]
            combined = [*current, *new_tasks]
            rejected = self._reject_dependencies(combined, TasksAddedResult)
            if rejected is not None:
                return rejected
            # Existing rows are left alone; only the new tasks are written.
            self.repository.save_tasks(
                session_id,
                principal_id,
                combined,
                upserts=[TaskUpsert.from_task(task) for task in new_tasks],
            )

        logger.info(
            "task_plan event=tasks_added session_id=%s added=%d total=%d",
            session_id,
            len(new_tasks),
            len(combined),
        )
        result = _with_plan_state(
            TasksAddedResult(
                success=True,
                type="tasks-added",
                message=f"Added {len(new_tasks)} new tasks",
            ),
            combined,
        )
        result.new_tasks = new_tasks
        return result

    def _set_status(
        self,
        session_id: str,
        principal_id: str,
        task_id: str,
        status: str,
        *,
        kind: str,
    ) -> TaskChangeResult:
        if not task_id:
            return TaskChangeResult(
                success=False,
                error="task_id_required",
                message="Task ID required for update",
            )
        if status not in TASK_STATUSES:
            return TaskChangeResult(
                success=False,
                error="invalid_status",
                message=f"Unknown task status: {status}",
            )

        with self.repository.session_lock(session_id):
            tasks = self.repository.get_tasks(session_id, principal_id)
            index = next((i for i, task in enumerate(tasks) if task.id == task_id), None)
            if index is None:
                logger.info(
                    "task_plan event=task_not_found session_id=%s task_id=%s",
                    session_id,
                    task_id,
                )
                return TaskChangeResult(
                    success=False,
                    error="task_not_found",
                    message="Task not found",
                )

            completed_at = datetime.now(tz=UTC) if status == "completed" else None
            upsert = TaskUpsert(id=task_id, status=status, completed_at=completed_at)
            updated = upsert.apply_to(tasks[index])
            tasks[index] = updated
            # Status-only write: other fields and other tasks stay as stored,
            # even when ``tasks`` came from a stale cache.
            self.repository.save_tasks(session_id, principal_id, tasks, upserts=[upsert])

        logger.info(
            "task_plan event=status_changed session_id=%s task_id=%s status=%s",
            session_id,
            task_id,
            status,
        )
        verb = "Completed task" if kind == "task-completed" else "Task updated"
        result = _with_plan_state(
            TaskChangeResult(success=True, type=kind, message=f"{verb}: {updated.title}"),
            tasks,
        )
        result.task = updated
        return result

    def _reject_dependencies(
        self,
        tasks: Sequence[Task],
        result_type: type[ResultT],
    ) -> ResultT | None:
        if not self.validate_dependencies:
            return None
        problems = find_dependency_problems(tasks)
        if not problems:
            return None
        return result_type(
            success=False,
            error="invalid_dependencies",
            message=problems.describe(),
        )


def _require_scope(session_id: str | None, principal_id: str | None) -> tuple[str, str]:
    session = (session_id or "").strip()
    principal = (principal_id or "").strip()
    if not session:
        raise ConfigurationError("No session id available for task tracking")
    if not principal:
        raise ConfigurationError("Principal id is required for task tracking")
    return session, principal


def _coerce_specs(specs: Iterable[TaskSpec | dict[str, Any]] | None) -> list[TaskSpec]:
    if specs is None:
        return []
    return [
        spec if isinstance(spec, TaskSpec) else TaskSpec.model_validate(spec) for spec in specs
    ]


def _with_plan_state(result: ResultT, tasks: Sequence[Task]) -> ResultT:
    result.tasks = list(tasks)
    result.next_task = next_available_task(tasks)
    result.progress = task_progress(tasks)
    result.all_completed = all_completed(tasks)
    return result
