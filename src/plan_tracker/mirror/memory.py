"""In-memory external memory for tests and deployments without a memory service."""

from __future__ import annotations

import re
import threading
from typing import Any
from uuid import uuid4

from plan_tracker.mirror.base import MemoryRecord

_TOKEN_RE = re.compile(r"[a-z0-9_\-]+")


class InMemoryExternalMemory:
    """Keeps records in a dict and ranks search hits by shared query tokens."""

    def __init__(self) -> None:
        self._records: dict[str, tuple[str, str, dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def search(
        self,
        principal_id: str,
        query: str,
        limit: int,
        *,
        where: dict[str, Any] | None = None,
    ) -> list[MemoryRecord]:
        query_tokens = set(_tokens(query))
        hits: list[MemoryRecord] = []
        with self._lock:
            records = list(self._records.items())
        for record_id, (owner, content, metadata) in records:
            if owner != principal_id:
                continue
            if where and any(metadata.get(key) != value for key, value in where.items()):
                continue
            haystack = set(_tokens(content)) | set(_tokens(" ".join(map(str, metadata.values()))))
            overlap = len(query_tokens & haystack)
            if overlap == 0:
                continue
            relevance = round(overlap / max(len(query_tokens), 1), 4)
            hits.append(MemoryRecord(record_id, content, dict(metadata), relevance))
        hits.sort(key=lambda hit: hit.relevance, reverse=True)
        return hits[: max(limit, 0)]

    def create_record(self, principal_id: str, content: str, metadata: dict[str, Any]) -> str:
        record_id = str(uuid4())
        with self._lock:
            self._records[record_id] = (principal_id, content, dict(metadata))
        return record_id

    def update_record(self, record_id: str, content: str, metadata: dict[str, Any]) -> bool:
        with self._lock:
            current = self._records.get(record_id)
            if current is None:
                return False
            owner, _, existing = current
            self._records[record_id] = (owner, content, {**existing, **metadata})
        return True

    def records(self) -> list[MemoryRecord]:
        with self._lock:
            return [
                MemoryRecord(record_id, content, dict(metadata))
                for record_id, (_, content, metadata) in self._records.items()
            ]


def _tokens(text: str) -> list[str]:
    return _TOKEN_RE.findall(text.lower())
