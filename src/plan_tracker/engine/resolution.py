"""Dependency resolution over an in-memory task list.

Everything here is pure: no I/O, no mutation of the tasks passed in.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, field

from plan_tracker.storage.models import Task, TaskProgress


@dataclass(frozen=True)
class DependencyProblems:
    unknown: dict[str, list[str]] = field(default_factory=dict)
    cyclic: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.unknown or self.cyclic)

    def describe(self) -> str:
        parts: list[str] = []
        for task_id, missing in self.unknown.items():
            parts.append(f"{task_id} depends on unknown {', '.join(missing)}")
        if self.cyclic:
            parts.append(f"dependency cycle through {', '.join(self.cyclic)}")
        return "; ".join(parts)


def is_available(task: Task, tasks: Sequence[Task]) -> bool:
    if task.status != "pending":
        return False
    status_by_id = {item.id: item.status for item in tasks}
    return all(status_by_id.get(dep_id) == "completed" for dep_id in task.dependencies)


def next_available_task(tasks: Sequence[Task]) -> Task | None:
    """First available task in plan order, or None."""
    status_by_id = {item.id: item.status for item in tasks}
    for task in tasks:
        if task.status != "pending":
            continue
        if all(status_by_id.get(dep_id) == "completed" for dep_id in task.dependencies):
            return task
    return None


def task_progress(tasks: Sequence[Task]) -> TaskProgress:
    total = len(tasks)
    completed = sum(1 for task in tasks if task.status == "completed")
    return TaskProgress(
        completed=completed,
        total=total,
        percentage=_round_half_up(completed / total * 100) if total else 0,
        in_progress=sum(1 for task in tasks if task.status == "in_progress"),
        pending=sum(1 for task in tasks if task.status == "pending"),
    )


def all_completed(tasks: Sequence[Task]) -> bool:
    # An empty plan is "nothing yet", not "done".
    return bool(tasks) and all(task.status == "completed" for task in tasks)


def find_dependency_problems(tasks: Sequence[Task]) -> DependencyProblems:
    """Report dangling dependency ids and tasks stuck on or behind a cycle."""
    known = {task.id for task in tasks}
    unknown: dict[str, list[str]] = {}
    for task in tasks:
        missing = [dep_id for dep_id in task.dependencies if dep_id not in known]
        if missing:
            unknown[task.id] = missing

    edges = {
        task.id: [dep_id for dep_id in task.dependencies if dep_id in known] for task in tasks
    }
    cyclic = _cyclic_nodes(edges, order=[task.id for task in tasks])
    return DependencyProblems(unknown=unknown, cyclic=cyclic)


def _cyclic_nodes(edges: dict[str, list[str]], *, order: list[str]) -> list[str]:
    # Kahn's algorithm: whatever cannot be peeled off is on or behind a cycle.
    indegree = {node: 0 for node in edges}
    dependents: dict[str, list[str]] = {node: [] for node in edges}
    for node, deps in edges.items():
        for dep in deps:
            indegree[node] += 1
            dependents[dep].append(node)

    ready = [node for node in order if indegree[node] == 0]
    resolved: set[str] = set()
    while ready:
        node = ready.pop()
        resolved.add(node)
        for dependent in dependents[node]:
            indegree[dependent] -= 1
            if indegree[dependent] == 0:
                ready.append(dependent)
    return [node for node in order if node not in resolved]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))
