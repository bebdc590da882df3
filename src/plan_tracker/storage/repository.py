"""Read/write policy across the durable store, the process cache and the mirror.

Reads are store-first: the store is consulted on every read and its answer
replaces the cache entry. The cache only answers when the store fails or has
nothing for the session. Writes go to the cache, then to the store (the
durability boundary), then a mirror update is scheduled without waiting.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from typing import Protocol

from plan_tracker.errors import StoreError, StoreWriteError
from plan_tracker.storage.base import TaskStore
from plan_tracker.storage.cache import TaskCache
from plan_tracker.storage.models import Task, TaskUpsert

logger = logging.getLogger(__name__)


class MirrorScheduler(Protocol):
    def schedule(self, session_id: str, principal_id: str, tasks: Sequence[Task]) -> None: ...


class TaskRepository:
    def __init__(
        self,
        store: TaskStore,
        *,
        cache: TaskCache | None = None,
        mirror: MirrorScheduler | None = None,
    ) -> None:
        self.store = store
        self.cache = cache if cache is not None else TaskCache()
        self.mirror = mirror
        self._session_locks: dict[str, threading.Lock] = {}
        self._session_locks_guard = threading.Lock()

    def session_lock(self, session_id: str) -> threading.Lock:
        """Lock serializing read-modify-write sequences for one session in this process."""
        with self._session_locks_guard:
            lock = self._session_locks.get(session_id)
            if lock is None:
                lock = threading.Lock()
                self._session_locks[session_id] = lock
            return lock

    def get_tasks(self, session_id: str, principal_id: str) -> list[Task]:
        try:
            tasks = self.store.get_tasks(session_id, principal_id)
        except Exception as exc:  # noqa: BLE001
            cached = self.cache.get(session_id, principal_id)
            logger.warning(
                "task_store event=read_fallback reason=store_error session_id=%s "
                "cached_tasks=%d error=%s",
                session_id,
                len(cached),
                exc,
            )
            return cached

        if tasks:
            self.cache.set(session_id, principal_id, tasks)
            return tasks

        cached = self.cache.get(session_id, principal_id)
        if cached:
            logger.warning(
                "task_store event=read_fallback reason=store_empty session_id=%s cached_tasks=%d",
                session_id,
                len(cached),
            )
        return cached

    def save_tasks(
        self,
        session_id: str,
        principal_id: str,
        tasks: Sequence[Task],
        *,
        upserts: Sequence[TaskUpsert] | None = None,
    ) -> None:
        """Persist ``tasks`` for a session.

        ``upserts`` narrows what is written to the store (for example a single
        status change); the cache always receives the full list. Raises
        ``StoreWriteError`` when the store write fails, after putting the
        previous cache entry back.
        """
        writes = list(upserts) if upserts is not None else [TaskUpsert.from_task(t) for t in tasks]
        previous = self.cache.peek(session_id, principal_id)
        self.cache.set(session_id, principal_id, tasks)

        try:
            self.store.upsert_tasks(session_id, principal_id, writes)
        except StoreError:
            self.cache.restore(session_id, principal_id, previous)
            raise
        except Exception as exc:
            self.cache.restore(session_id, principal_id, previous)
            raise StoreWriteError(
                f"Failed to persist tasks for session {session_id}: {exc}"
            ) from exc

        logger.info(
            "task_store event=saved session_id=%s tasks=%d upserts=%d",
            session_id,
            len(tasks),
            len(writes),
        )
        if self.mirror is not None:
            self.mirror.schedule(session_id, principal_id, tasks)
