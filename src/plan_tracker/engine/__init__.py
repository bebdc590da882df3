"""Pure dependency resolution helpers."""

from plan_tracker.engine.resolution import (
    DependencyProblems,
    all_completed,
    find_dependency_problems,
    is_available,
    next_available_task,
    task_progress,
)

__all__ = [
    "DependencyProblems",
    "all_completed",
    "find_dependency_problems",
    "is_available",
    "next_available_task",
    "task_progress",
]
