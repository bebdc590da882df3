from __future__ import annotations

from collections.abc import Iterator, Sequence
from datetime import UTC, datetime

import pytest

from plan_tracker.errors import StoreReadError, StoreWriteError
from plan_tracker.mirror.memory import InMemoryExternalMemory
from plan_tracker.mirror.sync import MirrorSync
from plan_tracker.storage.cache import TaskCache
from plan_tracker.storage.memory import InMemoryTaskStore
from plan_tracker.storage.models import Task, TaskUpsert
from plan_tracker.storage.repository import TaskRepository
from plan_tracker.tracker.service import TaskTracker

SESSION_ID = "chat-42"
PRINCIPAL_ID = "user-7"


class FlakyTaskStore(InMemoryTaskStore):
    """Test double whose reads or writes can be switched to fail."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_reads = False
        self.fail_writes = False
        self.write_calls: list[list[TaskUpsert]] = []

    def upsert_tasks(
        self,
        session_id: str,
        principal_id: str,
        upserts: Sequence[TaskUpsert],
    ) -> None:
        self.write_calls.append(list(upserts))
        if self.fail_writes:
            raise StoreWriteError("store unavailable")
        super().upsert_tasks(session_id, principal_id, upserts)

    def get_tasks(self, session_id: str, principal_id: str) -> list[Task]:
        if self.fail_reads:
            raise StoreReadError("store unavailable")
        return super().get_tasks(session_id, principal_id)


def _make_task(
    task_id: str,
    *,
    status: str = "pending",
    dependencies: list[str] | None = None,
    title: str | None = None,
) -> Task:
    return Task(
        id=task_id,
        session_id=SESSION_ID,
        title=title or f"Task {task_id}",
        status=status,
        dependencies=dependencies or [],
        created_at=datetime(2026, 1, 1, tzinfo=UTC),
    )


@pytest.fixture
def make_task():
    return _make_task


@pytest.fixture
def store() -> FlakyTaskStore:
    return FlakyTaskStore()


@pytest.fixture
def external_memory() -> InMemoryExternalMemory:
    return InMemoryExternalMemory()


@pytest.fixture
def mirror(external_memory: InMemoryExternalMemory) -> Iterator[MirrorSync]:
    sync = MirrorSync(external_memory)
    yield sync
    sync.close(timeout=5.0)


@pytest.fixture
def repository(store: FlakyTaskStore, mirror: MirrorSync) -> TaskRepository:
    return TaskRepository(store, cache=TaskCache(), mirror=mirror)


@pytest.fixture
def tracker(repository: TaskRepository) -> TaskTracker:
    return TaskTracker(repository)
