"""Wire a tracker from settings."""

from __future__ import annotations

import logging

from plan_tracker.config.settings import Settings
from plan_tracker.mirror.chroma import ChromaExternalMemory
from plan_tracker.mirror.memory import InMemoryExternalMemory
from plan_tracker.mirror.sync import MirrorSync
from plan_tracker.storage.base import TaskStore
from plan_tracker.storage.cache import TaskCache
from plan_tracker.storage.memory import InMemoryTaskStore
from plan_tracker.storage.postgres import PostgresTaskStore
from plan_tracker.storage.repository import TaskRepository
from plan_tracker.tracker.service import TaskTracker

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> TaskStore:
    if settings.store_backend == "memory":
        return InMemoryTaskStore()

    database_url = settings.resolved_database_url()
    if not database_url:
        raise RuntimeError(
            "Missing database URL. Set PLAN_TRACKER_DATABASE_URL "
            "or DATABASE_URL, or use PLAN_TRACKER_STORE_BACKEND=memory."
        )
    store = PostgresTaskStore(database_url, connect_timeout_s=settings.store_connect_timeout_s)
    store.migrate()
    return store


def build_mirror(settings: Settings) -> MirrorSync | None:
    if settings.mirror_backend == "disabled":
        return None
    if settings.mirror_backend == "memory":
        memory = InMemoryExternalMemory()
    else:
        memory = ChromaExternalMemory(
            settings.resolved_chroma_persist_path(),
            collection_name=settings.chroma_collection,
        )
    return MirrorSync(
        memory,
        title=settings.plan_title,
        search_limit=settings.mirror_search_limit,
    )


def build_tracker(
    settings: Settings,
    *,
    store: TaskStore | None = None,
    mirror: MirrorSync | None = None,
) -> TaskTracker:
    repository = TaskRepository(
        store if store is not None else build_store(settings),
        cache=TaskCache(),
        mirror=mirror if mirror is not None else build_mirror(settings),
    )
    logger.info(
        "tracker event=built store=%s mirror=%s validate_dependencies=%s",
        type(repository.store).__name__,
        type(repository.mirror).__name__ if repository.mirror is not None else "none",
        settings.validate_dependencies,
    )
    return TaskTracker(repository, validate_dependencies=settings.validate_dependencies)
