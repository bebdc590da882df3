"""Interface to the searchable external memory that mirrors task plans."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class MemoryRecord:
    record_id: str
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)
    relevance: float = 0.0


class ExternalMemory(Protocol):
    def search(
        self,
        principal_id: str,
        query: str,
        limit: int,
        *,
        where: dict[str, Any] | None = None,
    ) -> list[MemoryRecord]:
        """Ranked records of ``principal_id`` whose metadata equals every ``where`` item."""
        ...

    def create_record(self, principal_id: str, content: str, metadata: dict[str, Any]) -> str: ...

    def update_record(self, record_id: str, content: str, metadata: dict[str, Any]) -> bool: ...
