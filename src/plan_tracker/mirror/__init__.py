"""External memory mirror of task plans."""

from plan_tracker.mirror.base import ExternalMemory, MemoryRecord
from plan_tracker.mirror.chroma import ChromaExternalMemory
from plan_tracker.mirror.memory import InMemoryExternalMemory
from plan_tracker.mirror.render import build_metadata, render_plan
from plan_tracker.mirror.sync import MirrorSync

__all__ = [
    "ChromaExternalMemory",
    "ExternalMemory",
    "InMemoryExternalMemory",
    "MemoryRecord",
    "MirrorSync",
    "build_metadata",
    "render_plan",
]
