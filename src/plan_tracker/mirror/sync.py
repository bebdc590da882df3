"""Best-effort background sync of plans into the external memory.

Delivery is at-least-once. When an in-place update fails the record is
created again, so one session can end up with two mirror records. The store
stays the source of truth; the mirror is only a search index over it.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from concurrent.futures import Future, ThreadPoolExecutor, wait

from plan_tracker.mirror.base import ExternalMemory
from plan_tracker.mirror.render import (
    CONTENT_TYPE,
    build_metadata,
    is_plan_record_for,
    render_plan,
    search_query,
)
from plan_tracker.storage.models import Task

logger = logging.getLogger(__name__)


class MirrorSync:
    """Schedule mirror updates without blocking the caller.

    A single worker thread applies updates in the order they were scheduled,
    so a later plan snapshot never lands before an earlier one.
    """

    def __init__(
        self,
        memory: ExternalMemory,
        *,
        title: str = "Task Plan",
        search_limit: int = 5,
    ) -> None:
        self.memory = memory
        self.title = title
        self.search_limit = search_limit
        self._record_ids: dict[tuple[str, str], str] = {}
        self._lock = threading.Lock()
        self._pending: set[Future[str | None]] = set()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="plan-mirror")

    def schedule(
        self,
        session_id: str,
        principal_id: str,
        tasks: Sequence[Task],
    ) -> Future[str | None] | None:
        snapshot = [task.model_copy(deep=True) for task in tasks]
        try:
            future = self._executor.submit(self.sync_now, session_id, principal_id, snapshot)
        except RuntimeError as exc:
            logger.warning("mirror event=schedule_skipped session_id=%s error=%s", session_id, exc)
            return None
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def sync_now(self, session_id: str, principal_id: str, tasks: Sequence[Task]) -> str | None:
        """Write one snapshot to the mirror; returns the record id or None on failure."""
        try:
            return self._sync(session_id, principal_id, tasks)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "mirror event=sync_failed session_id=%s error=%s",
                session_id,
                exc,
                exc_info=True,
            )
            return None

    def record_id_for(self, session_id: str, principal_id: str) -> str | None:
        with self._lock:
            return self._record_ids.get((session_id, principal_id))

    def flush(self, timeout: float | None = None) -> bool:
        """Wait for scheduled updates; returns False if some were still running."""
        with self._lock:
            pending = set(self._pending)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def close(self, timeout: float | None = None) -> None:
        self.flush(timeout)
        self._executor.shutdown(wait=True)

    def _sync(self, session_id: str, principal_id: str, tasks: Sequence[Task]) -> str:
        content = render_plan(tasks, title=self.title)
        metadata = build_metadata(session_id, principal_id, tasks, title=self.title)

        record_id = self.record_id_for(session_id, principal_id) or self._find_existing(
            session_id, principal_id
        )
        if record_id:
            try:
                updated = self.memory.update_record(record_id, content, metadata)
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "mirror event=update_error session_id=%s record_id=%s error=%s",
                    session_id,
                    record_id,
                    exc,
                )
                updated = False
            if updated:
                self._remember(session_id, principal_id, record_id)
                logger.info(
                    "mirror event=updated session_id=%s record_id=%s tasks=%d",
                    session_id,
                    record_id,
                    len(tasks),
                )
                return record_id
            logger.warning(
                "mirror event=update_failed session_id=%s record_id=%s action=create",
                session_id,
                record_id,
            )

        new_record_id = self.memory.create_record(principal_id, content, metadata)
        self._remember(session_id, principal_id, new_record_id)
        logger.info(
            "mirror event=created session_id=%s record_id=%s tasks=%d",
            session_id,
            new_record_id,
            len(tasks),
        )
        return new_record_id

    def _find_existing(self, session_id: str, principal_id: str) -> str | None:
        try:
            hits = self.memory.search(
                principal_id,
                search_query(session_id),
                self.search_limit,
                where={"session_id": session_id, "content_type": CONTENT_TYPE},
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("mirror event=search_failed session_id=%s error=%s", session_id, exc)
            return None
        for hit in hits:
            if is_plan_record_for(hit.metadata, session_id):
                logger.info(
                    "mirror event=found_existing session_id=%s record_id=%s",
                    session_id,
                    hit.record_id,
                )
                return hit.record_id
        return None

    def _remember(self, session_id: str, principal_id: str, record_id: str) -> None:
        with self._lock:
            self._record_ids[(session_id, principal_id)] = record_id

    def _forget(self, future: Future[str | None]) -> None:
        with self._lock:
            self._pending.discard(future)
