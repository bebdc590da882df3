"""Storage backends, cache and models."""

from plan_tracker.storage.base import TaskStore
from plan_tracker.storage.cache import TaskCache
from plan_tracker.storage.memory import InMemoryTaskStore
from plan_tracker.storage.models import Task, TaskProgress, TaskSpec, TaskStatus, TaskUpsert
from plan_tracker.storage.postgres import PostgresTaskStore
from plan_tracker.storage.repository import TaskRepository

__all__ = [
    "InMemoryTaskStore",
    "PostgresTaskStore",
    "Task",
    "TaskCache",
    "TaskProgress",
    "TaskRepository",
    "TaskSpec",
    "TaskStatus",
    "TaskStore",
    "TaskUpsert",
]
