"""PostgreSQL-backed task store with automatic table migration.

Terms used in this file:
- Upsert: INSERT ... ON CONFLICT DO UPDATE, keyed by (session_id, task_id).
- Merge: a column whose incoming value is NULL keeps its stored value, so a
  status-only write never clobbers the title or dependencies.
- Position: a BIGSERIAL that records insertion order; plans are read back in it.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

from plan_tracker.errors import StoreReadError, StoreWriteError
from plan_tracker.storage.models import Task, TaskUpsert

logger = logging.getLogger(__name__)

_UPSERT_SQL = """
    INSERT INTO plan_tasks (
        session_id,
        task_id,
        principal_id,
        title,
        description,
        status,
        dependencies,
        created_at,
        completed_at,
        estimated_duration,
        actual_duration,
        task_type,
        updated_at
    ) VALUES (
        %(session_id)s,
        %(task_id)s,
        %(principal_id)s,
        COALESCE(%(title)s, ''),
        COALESCE(%(description)s, ''),
        COALESCE(%(status)s, 'pending'),
        COALESCE(%(dependencies)s::jsonb, '[]'::jsonb),
        COALESCE(%(created_at)s::timestamptz, %(now)s::timestamptz),
        %(completed_at)s::timestamptz,
        COALESCE(%(estimated_duration)s, ''),
        COALESCE(%(actual_duration)s, ''),
        COALESCE(%(task_type)s, 'general'),
        %(now)s::timestamptz
    )
    ON CONFLICT (session_id, task_id) DO UPDATE SET
        title = COALESCE(%(title)s, plan_tasks.title),
        description = COALESCE(%(description)s, plan_tasks.description),
        status = COALESCE(%(status)s, plan_tasks.status),
        dependencies = COALESCE(%(dependencies)s::jsonb, plan_tasks.dependencies),
        completed_at = COALESCE(%(completed_at)s::timestamptz, plan_tasks.completed_at),
        estimated_duration = COALESCE(%(estimated_duration)s, plan_tasks.estimated_duration),
        actual_duration = COALESCE(%(actual_duration)s, plan_tasks.actual_duration),
        task_type = COALESCE(%(task_type)s, plan_tasks.task_type),
        updated_at = %(now)s::timestamptz
    WHERE plan_tasks.principal_id = EXCLUDED.principal_id
    RETURNING task_id
"""


class PostgresTaskStore:
    """Thread-safe PostgreSQL store for session task plans."""

    def __init__(self, database_url: str, *, connect_timeout_s: float = 5.0) -> None:
        if not database_url:
            raise ValueError("PLAN_TRACKER_DATABASE_URL is required")
        self.database_url = database_url
        self.connect_timeout_s = connect_timeout_s
        self._lock = threading.Lock()
        self._psycopg, self._dict_row, self._json_wrapper = self._load_psycopg()

    def migrate(self) -> None:
        """Create the plan table and indexes if they do not already exist."""
        with self._lock, self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS plan_tasks (
                    session_id TEXT NOT NULL,
                    task_id TEXT NOT NULL,
                    principal_id TEXT NOT NULL,
                    position BIGSERIAL,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    status TEXT NOT NULL DEFAULT 'pending',
                    dependencies JSONB NOT NULL DEFAULT '[]'::jsonb,
                    created_at TIMESTAMPTZ NOT NULL,
                    completed_at TIMESTAMPTZ,
                    estimated_duration TEXT NOT NULL DEFAULT '',
                    actual_duration TEXT NOT NULL DEFAULT '',
                    task_type TEXT NOT NULL DEFAULT 'general',
                    updated_at TIMESTAMPTZ NOT NULL,
                    PRIMARY KEY (session_id, task_id)
                )
                """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_plan_tasks_session_principal
                ON plan_tasks(session_id, principal_id, position)
                """)
            conn.commit()

    def upsert_tasks(
        self,
        session_id: str,
        principal_id: str,
        upserts: Sequence[TaskUpsert],
    ) -> None:
        if not upserts:
            return
        now = datetime.now(tz=UTC)
        params = [
            self._upsert_params(upsert, session_id=session_id, principal_id=principal_id, now=now)
            for upsert in upserts
        ]
        try:
            with self._lock, self._connect() as conn:
                with conn.cursor() as cursor:
                    cursor.executemany(_UPSERT_SQL, params, returning=True)
                    written = self._count_returned(cursor)
                if written != len(params):
                    # A task id owned by another principal matches no row.
                    conn.rollback()
                    raise StoreWriteError(
                        f"Upsert for session {session_id} wrote {written} of "
                        f"{len(params)} task(s); task ids belong to another principal"
                    )
                conn.commit()
        except self._psycopg.Error as exc:
            raise StoreWriteError(
                f"Failed to upsert {len(params)} task(s) for session {session_id}: {exc}"
            ) from exc

    def get_tasks(self, session_id: str, principal_id: str) -> list[Task]:
        try:
            with self._lock, self._connect() as conn:
                rows = conn.execute(
                    """
                    SELECT *
                    FROM plan_tasks
                    WHERE session_id = %s AND principal_id = %s
                    ORDER BY position ASC
                    """,
                    (session_id, principal_id),
                ).fetchall()
        except self._psycopg.Error as exc:
            raise StoreReadError(f"Failed to read tasks for session {session_id}: {exc}") from exc
        return [self._row_to_task(row) for row in rows]

    def _connect(self) -> Any:
        return self._psycopg.connect(
            self.database_url,
            row_factory=self._dict_row,
            connect_timeout=max(int(self.connect_timeout_s), 1),
        )

    def _upsert_params(
        self,
        upsert: TaskUpsert,
        *,
        session_id: str,
        principal_id: str,
        now: datetime,
    ) -> dict[str, Any]:
        return {
            "session_id": session_id,
            "task_id": upsert.id,
            "principal_id": principal_id,
            "title": upsert.title,
            "description": upsert.description,
            "status": upsert.status,
            "dependencies": (
                self._json_wrapper(upsert.dependencies)
                if upsert.dependencies is not None
                else None
            ),
            "created_at": upsert.created_at,
            "completed_at": upsert.completed_at,
            "estimated_duration": upsert.estimated_duration,
            "actual_duration": upsert.actual_duration,
            "task_type": upsert.task_type,
            "now": now,
        }

    @staticmethod
    def _count_returned(cursor: Any) -> int:
        """Count RETURNING rows across every result set of an ``executemany``."""
        written = len(cursor.fetchall())
        while cursor.nextset():
            written += len(cursor.fetchall())
        return written

    @staticmethod
    def _load_psycopg() -> tuple[Any, Any, Any]:
        try:
            import psycopg
            from psycopg.rows import dict_row
            from psycopg.types.json import Json
        except ImportError as exc:  # pragma: no cover
            raise RuntimeError(
                "PostgreSQL storage requires psycopg. "
                'Install with: python -m pip install "psycopg[binary]>=3.2,<4.0"'
            ) from exc
        return psycopg, dict_row, Json

    @staticmethod
    def _parse_dependencies(raw: Any, *, task_id: str) -> list[str]:
        """Read a dependency column, treating legacy free-text values as no dependencies."""
        if raw is None:
            return []
        parsed = raw
        if isinstance(raw, str):
            text = raw.strip()
            if not (text.startswith("[") and text.endswith("]")):
                if text:
                    logger.warning(
                        "task_store event=legacy_dependencies task_id=%s value=%r",
                        task_id,
                        text[:50],
                    )
                return []
            try:
                parsed = json.loads(text)
            except json.JSONDecodeError:
                logger.warning("task_store event=malformed_dependencies task_id=%s", task_id)
                return []
        if not isinstance(parsed, list):
            return []
        return [str(item) for item in parsed if item is not None]

    @staticmethod
    def _parse_datetime(raw: Any) -> datetime | None:
        if raw is None:
            return None
        if isinstance(raw, datetime):
            return raw
        if isinstance(raw, str):
            return datetime.fromisoformat(raw)
        raise TypeError(f"Unsupported datetime value: {type(raw)!r}")

    @classmethod
    def _row_to_task(cls, row: Any) -> Task:
        task_id = str(row["task_id"])
        return Task(
            id=task_id,
            session_id=str(row["session_id"]),
            title=row["title"] or "",
            description=row.get("description") or "",
            status=row["status"],
            dependencies=cls._parse_dependencies(row.get("dependencies"), task_id=task_id),
            created_at=cls._parse_datetime(row["created_at"]) or datetime.now(tz=UTC),
            completed_at=cls._parse_datetime(row.get("completed_at")),
            estimated_duration=row.get("estimated_duration") or "",
            actual_duration=row.get("actual_duration") or "",
            task_type=row.get("task_type") or "general",
        )
