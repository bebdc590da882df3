"""Chroma-backed external memory for plan mirror records."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from uuid import uuid4

from plan_tracker.mirror.base import MemoryRecord


class ChromaExternalMemory:
    """Store mirror records in a persistent Chroma collection.

    Chroma only accepts scalar metadata values, so lists and dicts are stored
    as JSON strings and ``None`` values are dropped.
    """

    def __init__(
        self,
        persist_path: str | Path,
        *,
        collection_name: str = "plan_tracker_mirror",
        embedding_function: Any | None = None,
    ) -> None:
        self.persist_path = Path(persist_path).expanduser().resolve()
        self.collection_name = collection_name
        self._embedding_function = embedding_function
        self._collection: Any | None = None

    def search(
        self,
        principal_id: str,
        query: str,
        limit: int,
        *,
        where: dict[str, Any] | None = None,
    ) -> list[MemoryRecord]:
        collection = self._get_collection()
        raw = collection.query(
            query_texts=[query],
            n_results=max(limit, 1),
            where=_where_filter(principal_id, where),
            include=["documents", "metadatas", "distances"],
        )

        ids = _first_list(raw.get("ids"))
        docs = _first_list(raw.get("documents"))
        metadatas = _first_list(raw.get("metadatas"))
        distances = _first_list(raw.get("distances"))

        hits: list[MemoryRecord] = []
        for idx, record_id in enumerate(ids):
            metadata_raw = metadatas[idx] if idx < len(metadatas) else {}
            metadata = dict(metadata_raw) if isinstance(metadata_raw, dict) else {}
            distance = _safe_float(distances[idx] if idx < len(distances) else 1.0, default=1.0)
            hits.append(
                MemoryRecord(
                    record_id=str(record_id),
                    content=str(docs[idx] if idx < len(docs) else ""),
                    metadata=metadata,
                    relevance=_distance_to_relevance(distance),
                )
            )
        return hits

    def create_record(self, principal_id: str, content: str, metadata: dict[str, Any]) -> str:
        record_id = str(uuid4())
        payload = _flatten_metadata({**metadata, "principal_id": principal_id})
        self._get_collection().add(ids=[record_id], documents=[content], metadatas=[payload])
        return record_id

    def update_record(self, record_id: str, content: str, metadata: dict[str, Any]) -> bool:
        collection = self._get_collection()
        existing = collection.get(ids=[record_id], include=["metadatas"])
        existing_ids = existing.get("ids") or []
        if record_id not in existing_ids:
            return False
        existing_metadatas = existing.get("metadatas") or [{}]
        current = existing_metadatas[0] if isinstance(existing_metadatas[0], dict) else {}
        merged = _flatten_metadata({**current, **metadata})
        collection.update(ids=[record_id], documents=[content], metadatas=[merged])
        return True

    def _get_collection(self) -> Any:
        if self._collection is not None:
            return self._collection
        try:
            import chromadb
        except ImportError as exc:  # pragma: no cover
            raise RuntimeError(
                "Chroma mirror requires chromadb. Install with: python -m pip install chromadb"
            ) from exc

        self.persist_path.mkdir(parents=True, exist_ok=True)
        client = chromadb.PersistentClient(path=str(self.persist_path))
        kwargs: dict[str, Any] = {"name": self.collection_name}
        if self._embedding_function is not None:
            kwargs["embedding_function"] = self._embedding_function
        self._collection = client.get_or_create_collection(**kwargs)
        return self._collection


def _where_filter(principal_id: str, where: dict[str, Any] | None) -> dict[str, Any]:
    # Chroma takes a single field directly but several only under "$and".
    clauses = [{"principal_id": principal_id}]
    clauses.extend({key: value} for key, value in (where or {}).items())
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def _flatten_metadata(metadata: dict[str, Any]) -> dict[str, str | int | float | bool]:
    flat: dict[str, str | int | float | bool] = {}
    for key, value in metadata.items():
        if value is None:
            continue
        if isinstance(value, (str, int, float, bool)):
            flat[key] = value
        else:
            flat[key] = json.dumps(value, ensure_ascii=True, default=str)
    return flat


def _first_list(value: Any) -> list[Any]:
    if isinstance(value, list) and value:
        first = value[0]
        if isinstance(first, list):
            return first
    return []


def _safe_float(value: Any, *, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _distance_to_relevance(distance: float) -> float:
    # Chroma returns lower-is-better distance values.
    return round(1.0 / (1.0 + max(distance, 0.0)), 4)
