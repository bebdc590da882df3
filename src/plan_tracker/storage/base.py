"""Storage interface for durable task plans."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from plan_tracker.storage.models import Task, TaskUpsert


class TaskStore(Protocol):
    def migrate(self) -> None: ...

    def upsert_tasks(
        self,
        session_id: str,
        principal_id: str,
        upserts: Sequence[TaskUpsert],
    ) -> None: ...

    def get_tasks(self, session_id: str, principal_id: str) -> list[Task]: ...
