"""Process-local snapshot cache of session task plans."""

from __future__ import annotations

import threading
from collections.abc import Sequence

from plan_tracker.storage.models import Task


class TaskCache:
    """Last-write-wins ``(session_id, principal_id) -> tasks`` map.

    Keys match the store's partitioning, so one principal never reads another
    principal's plan for the same session. Entries are copied in and out so
    callers can mutate what they get back. The cache is per process; only the
    store is shared between processes.
    """

    def __init__(self) -> None:
        self._entries: dict[tuple[str, str], list[Task]] = {}
        self._lock = threading.Lock()

    def get(self, session_id: str, principal_id: str) -> list[Task]:
        with self._lock:
            entry = self._entries.get((session_id, principal_id), [])
            return [task.model_copy(deep=True) for task in entry]

    def set(self, session_id: str, principal_id: str, tasks: Sequence[Task]) -> None:
        snapshot = [task.model_copy(deep=True) for task in tasks]
        with self._lock:
            self._entries[(session_id, principal_id)] = snapshot

    def restore(
        self,
        session_id: str,
        principal_id: str,
        tasks: Sequence[Task] | None,
    ) -> None:
        """Put back a previous snapshot; ``None`` removes the entry."""
        if tasks is None:
            with self._lock:
                self._entries.pop((session_id, principal_id), None)
            return
        self.set(session_id, principal_id, tasks)

    def peek(self, session_id: str, principal_id: str) -> list[Task] | None:
        with self._lock:
            entry = self._entries.get((session_id, principal_id))
            if entry is None:
                return None
            return [task.model_copy(deep=True) for task in entry]
