"""FastAPI app entrypoint for plan-tracker."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from plan_tracker.config.settings import Settings, get_settings
from plan_tracker.errors import ConfigurationError, StoreWriteError
from plan_tracker.storage.models import TaskSpec, TaskStatus
from plan_tracker.tracker.factory import build_tracker
from plan_tracker.tracker.results import TaskChangeResult, TasksAddedResult, TrackerResult
from plan_tracker.tracker.service import TaskTracker


class TaskListRequest(BaseModel):
    tasks: list[TaskSpec] = Field(default_factory=list)


class UpdateTaskRequest(BaseModel):
    status: TaskStatus


def _ensure_runtime_state(
    app: FastAPI,
    *,
    settings: Settings,
    tracker_override: TaskTracker | None,
) -> None:
    if not hasattr(app.state, "tracker"):
        app.state.tracker = tracker_override or build_tracker(settings)

    if not hasattr(app.state, "settings"):
        app.state.settings = settings


def create_app(
    *,
    tracker: TaskTracker | None = None,
    settings_override: Settings | None = None,
) -> FastAPI:
    settings = settings_override or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _ensure_runtime_state(app, settings=settings, tracker_override=tracker)
        yield
        mirror = app.state.tracker.repository.mirror
        if mirror is not None:
            mirror.close(timeout=settings.mirror_flush_timeout_s)

    app_lifespan = lifespan if tracker is None else None
    app = FastAPI(title=settings.app_name, lifespan=app_lifespan)

    # Keep test paths reliable when lifespan is not executed by the client.
    if tracker is not None:
        _ensure_runtime_state(app, settings=settings, tracker_override=tracker)

    def _get_tracker(request: Request) -> TaskTracker:
        if not hasattr(request.app.state, "tracker"):
            _ensure_runtime_state(request.app, settings=settings, tracker_override=tracker)
        return request.app.state.tracker

    @app.exception_handler(ConfigurationError)
    async def configuration_error(_: Request, exc: ConfigurationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "configuration_error", "message": str(exc)},
        )

    @app.exception_handler(StoreWriteError)
    async def store_write_error(_: Request, exc: StoreWriteError) -> JSONResponse:
        return JSONResponse(
            status_code=503,
            content={"success": False, "error": "store_unavailable", "message": str(exc)},
        )

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "service": settings.app_name}

    @app.post("/sessions/{session_id}/plan", response_model=TrackerResult)
    def create_plan(
        session_id: str,
        payload: TaskListRequest,
        request: Request,
        x_principal_id: str | None = Header(default=None),
    ) -> TrackerResult | JSONResponse:
        result = _get_tracker(request).create_plan(session_id, x_principal_id, payload.tasks)
        return _respond(result)

    @app.get("/sessions/{session_id}/tasks", response_model=TrackerResult)
    def get_status(
        session_id: str,
        request: Request,
        x_principal_id: str | None = Header(default=None),
    ) -> TrackerResult:
        return _get_tracker(request).get_status(session_id, x_principal_id)

    @app.post("/sessions/{session_id}/tasks", response_model=TasksAddedResult)
    def add_tasks(
        session_id: str,
        payload: TaskListRequest,
        request: Request,
        x_principal_id: str | None = Header(default=None),
    ) -> TasksAddedResult | JSONResponse:
        result = _get_tracker(request).add_tasks(session_id, x_principal_id, payload.tasks)
        return _respond(result)

    @app.patch("/sessions/{session_id}/tasks/{task_id}", response_model=TaskChangeResult)
    def update_task(
        session_id: str,
        task_id: str,
        payload: UpdateTaskRequest,
        request: Request,
        x_principal_id: str | None = Header(default=None),
    ) -> TaskChangeResult | JSONResponse:
        result = _get_tracker(request).update_task(
            session_id, x_principal_id, task_id, payload.status
        )
        return _respond(result)

    @app.post("/sessions/{session_id}/tasks/{task_id}/complete", response_model=TaskChangeResult)
    def complete_task(
        session_id: str,
        task_id: str,
        request: Request,
        x_principal_id: str | None = Header(default=None),
    ) -> TaskChangeResult | JSONResponse:
        result = _get_tracker(request).complete_task(session_id, x_principal_id, task_id)
        return _respond(result)

    return app


def _respond(result: TrackerResult) -> TrackerResult | JSONResponse:
    if result.success:
        return result
    status_code = 404 if result.error == "task_not_found" else 422
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))


app = create_app()
