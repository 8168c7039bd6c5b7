# src/mbot/api/app.py

"""FastAPI wrapper around the task store and the job registry."""

from __future__ import annotations

import logging
import time
from datetime import date
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..core.state import AppState
from ..errors import Conflict, InvalidInput, MbotError, NotFound, ParseError, PersistenceError
from ..jobs.actions import catalog
from ..tasks.task_models import TaskRecord

logger = logging.getLogger(__name__)

_STATUS: dict[type[MbotError], int] = {
    NotFound: 404,
    InvalidInput: 400,
    Conflict: 409,
    ParseError: 422,
    PersistenceError: 503,
}


class CreateTask(BaseModel):
    text: str
    due_date: date | None = None
    due_time: str | None = None


class UpdateTask(BaseModel):
    text: str | None = None
    done: bool | None = None
    due_date: date | None = None
    due_time: str | None = None


class CreateJob(BaseModel):
    name: str
    schedule: str
    action: str


def task_to_dict(rec: TaskRecord) -> dict[str, Any]:
    return {
        "id": rec.id,
        "text": rec.text,
        "done": rec.done,
        "due_date": rec.due_date.isoformat() if rec.due_date else None,
        "due_time": rec.due_time,
        "created_at": rec.created_at,
    }


def create_app(state: AppState) -> FastAPI:
    app = FastAPI(title=f"{getattr(state.settings, 'app_name', 'mbot')} API")
    app.state.mbot = state
    started = time.time()

    @app.exception_handler(MbotError)
    async def _core_error(request: Request, exc: MbotError) -> JSONResponse:
        status = next((code for kind, code in _STATUS.items() if isinstance(exc, kind)), 500)
        if status >= 500:
            logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=status, content={"error": type(exc).__name__, "detail": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def _bad_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": "InvalidInput", "detail": jsonable_encoder(exc.errors())})

    # ---- tasks ----

    @app.get("/api/tasks")
    def list_tasks():
        return [task_to_dict(r) for r in state.store.list()]

    @app.post("/api/tasks", status_code=201)
    def create_task(body: CreateTask):
        rec = state.store.create(body.text, due_date=body.due_date, due_time=body.due_time)
        return task_to_dict(rec)

    @app.post("/api/tasks/reload")
    def reload_tasks():
        count = state.sync.reload()
        return {"ok": True, "count": count}

    @app.get("/api/tasks/{task_id}")
    def get_task(task_id: int):
        return task_to_dict(state.store.get(task_id))

    @app.patch("/api/tasks/{task_id}")
    def update_task(task_id: int, body: UpdateTask):
        # Only fields present in the body are changed; explicit nulls clear the schedule tag.
        fields = body.model_dump(exclude_unset=True)
        kwargs: dict[str, Any] = {}
        if fields.get("text") is not None:
            kwargs["text"] = fields["text"]
        if fields.get("done") is not None:
            kwargs["done"] = fields["done"]
        for key in ("due_date", "due_time"):
            if key in fields:
                kwargs[key] = fields[key]
        return task_to_dict(state.store.update(task_id, **kwargs))

    @app.delete("/api/tasks/{task_id}")
    def delete_task(task_id: int):
        state.store.delete(task_id)
        return {"ok": True}

    @app.post("/api/tasks/{task_id}/toggle")
    def toggle_task(task_id: int):
        return task_to_dict(state.store.toggle(task_id))

    # ---- jobs ----

    @app.get("/api/jobs")
    def list_jobs():
        return [job.to_dict() for job in state.registry.list()]

    @app.get("/api/jobs/actions")
    def list_actions():
        return catalog.describe()

    @app.post("/api/jobs", status_code=201)
    def add_job(body: CreateJob):
        action = catalog.build(state, body.action)
        job = state.registry.add(body.name, body.schedule, action, action_ref=body.action)
        return job.to_dict()

    @app.delete("/api/jobs/{name}")
    def remove_job(name: str):
        state.registry.remove(name)
        return {"ok": True}

    @app.post("/api/jobs/{name}/disable")
    def disable_job(name: str):
        return state.registry.disable(name).to_dict()

    @app.post("/api/jobs/{name}/enable")
    def enable_job(name: str):
        return state.registry.enable(name).to_dict()

    # ---- misc ----

    @app.get("/api/health")
    def health_check():
        err = state.sync.last_error
        return {
            "uptime_seconds": int(time.time() - started),
            "tasks": state.store.count(),
            "store_version": state.store.version,
            "jobs": len(state.registry.list()),
            "running_jobs": state.scheduler.inflight,
            "persistence": {"path": str(state.sync.path), "ok": err is None, "error": str(err) if err else None},
        }

    return app
