"""Human-readable rendering of a plan for the external memory mirror."""

from __future__ import annotations

import json
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

from plan_tracker.engine.resolution import task_progress
from plan_tracker.storage.models import Task

CONTENT_TYPE = "task_plan"
SOURCE_TYPE = "plan_tracker_task_plan"
TOPICS = ("tasks", "planning", "productivity")

_STATUS_GLYPHS = {
    "completed": "✅",
    "in_progress": "🔄",
}
_DEFAULT_GLYPH = "⭕"


def status_glyph(status: str) -> str:
    return _STATUS_GLYPHS.get(status, _DEFAULT_GLYPH)


def render_plan(tasks: Sequence[Task], *, title: str = "Task Plan") -> str:
    progress = task_progress(tasks)
    lines = [
        f"Task Plan: {title}",
        "",
        f"Tasks ({progress.completed}/{progress.total} completed):",
    ]
    for task in tasks:
        line = f"• {status_glyph(task.status)} {task.title}"
        if task.description:
            line += f" - {task.description}"
        lines.append(line)
    lines.extend(["", f"Progress: {progress.percentage}% complete"])
    return "\n".join(lines)


def search_query(session_id: str) -> str:
    return f"task plan session {session_id}"


def build_metadata(
    session_id: str,
    principal_id: str,
    tasks: Sequence[Task],
    *,
    title: str = "Task Plan",
    now: datetime | None = None,
) -> dict[str, Any]:
    """Scalar-valued metadata; ``session_id`` and ``content_type`` re-find the record."""
    progress = task_progress(tasks)
    updated_at = (now or datetime.now(tz=UTC)).isoformat()
    task_data = {
        "session_id": session_id,
        "title": title,
        "tasks": [task.model_dump(mode="json") for task in tasks],
        "progress": progress.model_dump(),
        "updated_at": updated_at,
    }
    return {
        "session_id": session_id,
        "content_type": CONTENT_TYPE,
        "principal_id": principal_id,
        "source_type": SOURCE_TYPE,
        "source_url": f"/sessions/{session_id}",
        "category": "Task Planning",
        "plan_title": title,
        "topics": ",".join(TOPICS),
        "task_count": progress.total,
        "completed_count": progress.completed,
        "progress_percentage": progress.percentage,
        "task_data": json.dumps(task_data, ensure_ascii=True),
        "updated_at": updated_at,
    }


def is_plan_record_for(metadata: dict[str, Any], session_id: str) -> bool:
    return (
        str(metadata.get("session_id", "")) == session_id
        and metadata.get("content_type") == CONTENT_TYPE
    )
