"""In-memory task store for tests and local development."""

from __future__ import annotations

import threading
from collections.abc import Sequence

from plan_tracker.storage.models import Task, TaskUpsert


class InMemoryTaskStore:
    """Thread-safe store keyed by (session, principal); dict order is creation order."""

    def __init__(self) -> None:
        self._plans: dict[tuple[str, str], dict[str, Task]] = {}
        self._lock = threading.Lock()

    def migrate(self) -> None:
        return None

    def upsert_tasks(
        self,
        session_id: str,
        principal_id: str,
        upserts: Sequence[TaskUpsert],
    ) -> None:
        with self._lock:
            plan = dict(self._plans.get((session_id, principal_id), {}))
            for upsert in upserts:
                current = plan.get(upsert.id)
                if current is None:
                    plan[upsert.id] = upsert.to_new_task(session_id=session_id)
                else:
                    plan[upsert.id] = upsert.apply_to(current)
            self._plans[(session_id, principal_id)] = plan

    def get_tasks(self, session_id: str, principal_id: str) -> list[Task]:
        with self._lock:
            plan = self._plans.get((session_id, principal_id), {})
            return [task.model_copy(deep=True) for task in plan.values()]
