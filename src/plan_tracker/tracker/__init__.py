"""Task orchestration operations."""

from plan_tracker.tracker.factory import build_tracker
from plan_tracker.tracker.results import TaskChangeResult, TasksAddedResult, TrackerResult
from plan_tracker.tracker.service import TaskTracker

__all__ = [
    "TaskChangeResult",
    "TaskTracker",
    "TasksAddedResult",
    "TrackerResult",
    "build_tracker",
]
