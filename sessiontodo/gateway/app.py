from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Awaitable, Callable
from typing import Annotated, Any

from fastapi import FastAPI, HTTPException, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from sessiontodo.observability import (
    bind_session,
    configure_uvicorn_logging,
    get_json_logger,
    get_metrics,
    use_request_context,
)
from sessiontodo.tasks.models import Task, TaskCreate, TaskUpdate
from sessiontodo.tasks.store import StoreError, TaskStore

SessionQuery = Annotated[str, Query(alias="sessionId")]

_LANDING_PAGE = """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>To-Do List</title>
</head>
<body>
  <h1>To-Do List</h1>
  <form id="add-form">
    <input id="description" name="description" placeholder="What needs doing?" required>
    <button type="submit">Add</button>
  </form>
  <ul id="tasks"></ul>
  <script>
    const sessionId = localStorage.getItem("sessionId") || crypto.randomUUID();
    localStorage.setItem("sessionId", sessionId);
    const list = document.getElementById("tasks");

    async function refresh() {
      const res = await fetch(`/api/tasks?sessionId=${encodeURIComponent(sessionId)}`);
      const tasks = res.ok ? await res.json() : [];
      list.replaceChildren(...tasks.map(render));
    }

    function render(task) {
      const li = document.createElement("li");
      const box = document.createElement("input");
      box.type = "checkbox";
      box.checked = task.completed;
      box.onchange = async () => {
        await fetch(`/api/tasks/${task.id}`, {
          method: "PUT",
          headers: {"Content-Type": "application/json"},
          body: JSON.stringify({completed: box.checked, sessionId}),
        });
      };
      const del = document.createElement("button");
      del.textContent = "Delete";
      del.onclick = async () => {
        await fetch(`/api/tasks/${task.id}?sessionId=${encodeURIComponent(sessionId)}`,
                    {method: "DELETE"});
        refresh();
      };
      li.append(box, " ", task.description, " ", del);
      return li;
    }

    document.getElementById("add-form").onsubmit = async (ev) => {
      ev.preventDefault();
      const input = document.getElementById("description");
      await fetch("/api/tasks", {
        method: "POST",
        headers: {"Content-Type": "application/json"},
        body: JSON.stringify({description: input.value, sessionId}),
      });
      input.value = "";
      refresh();
    };
    refresh();
  </script>
</body>
</html>
"""


def _serialize_task(task: Task) -> dict[str, Any]:
    return task.model_dump(mode="json", by_alias=True)


def _require_session(value: str) -> str:
    sid = value.strip()
    if not sid:
        raise RequestValidationError(
            [
                {
                    "type": "value_error",
                    "loc": ("query", "sessionId"),
                    "msg": "sessionId must be non-empty",
                    "input": value,
                }
            ]
        )
    bind_session(sid)
    return sid


def create_app(store: TaskStore) -> FastAPI:
    """Build the task API around a single, already-constructed store handle.

    Routes:
    - GET/POST /api/tasks, PUT/DELETE /api/tasks/{task_id}: session-scoped CRUD
    - GET /: landing page
    - GET /health, GET /ready: liveness and store readiness probes

    Missing records answer 404 and store faults answer 500; both bodies
    carry a `message` field.
    """
    app = FastAPI(title="sessiontodo")
    # Configure uvicorn logging at app creation to avoid import-time side effects
    configure_uvicorn_logging()
    logger = get_json_logger("sessiontodo.gateway")
    metrics = get_metrics()

    @app.middleware("http")
    async def _request_context(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        start = time.perf_counter()
        with use_request_context(request_id):
            response = await call_next(request)
            logger.info(
                "request handled",
                extra={
                    "event": "http_request",
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": round((time.perf_counter() - start) * 1000.0, 3),
                },
            )
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            {"loc": [str(p) for p in err.get("loc", ())], "msg": str(err.get("msg", ""))}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=422, content={"message": "invalid request", "errors": errors}
        )

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    def _store_fault(op: str, message: str, exc: StoreError) -> HTTPException:
        logger.error(
            "task store error",
            extra={
                "event": "store_error",
                "attributes": {"op": op, "error": str(exc)[:200]},
            },
        )
        metrics.increment("task_store_errors", {"op": op})
        return HTTPException(status_code=500, detail=message)

    def _not_found(op: str, task_id: str) -> HTTPException:
        logger.info(
            "task not found",
            extra={"event": "task_not_found", "task_id": task_id, "attributes": {"op": op}},
        )
        metrics.increment("task_not_found", {"op": op})
        return HTTPException(status_code=404, detail="Task not found")

    @app.get("/", response_class=HTMLResponse)
    async def index() -> str:
        return _LANDING_PAGE

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/ready")
    async def ready() -> dict[str, str]:
        if not await asyncio.to_thread(store.ping):
            logger.error(
                "store not ready",
                extra={"event": "store_error", "path": "ready"},
            )
            metrics.increment("gateway_ready_errors", {})
            raise HTTPException(status_code=503, detail="store not ready")
        return {"status": "ok"}

    @app.get("/api/tasks")
    async def list_tasks(session_id: SessionQuery) -> list[dict[str, Any]]:
        sid = _require_session(session_id)
        metrics.increment("task_requests", {"op": "list"})
        try:
            tasks = await asyncio.to_thread(store.list_by_session, sid)
        except StoreError as exc:
            raise _store_fault("list", "Error fetching tasks", exc) from exc
        return [_serialize_task(t) for t in tasks]

    @app.post("/api/tasks", status_code=201)
    async def add_task(body: TaskCreate) -> dict[str, Any]:
        bind_session(body.session_id)
        metrics.increment("task_requests", {"op": "create"})
        try:
            task = await asyncio.to_thread(store.create, body.description, body.session_id)
        except StoreError as exc:
            raise _store_fault("create", "Error adding task", exc) from exc
        logger.info("task created", extra={"event": "task_created", "task_id": task.id})
        return _serialize_task(task)

    @app.put("/api/tasks/{task_id}")
    async def update_task(task_id: str, body: TaskUpdate) -> dict[str, Any]:
        bind_session(body.session_id)
        metrics.increment("task_requests", {"op": "update"})
        try:
            task = await asyncio.to_thread(
                lambda: store.update_by_id(
                    task_id,
                    body.session_id,
                    completed=body.completed,
                    description=body.description,
                )
            )
        except StoreError as exc:
            raise _store_fault("update", "Error updating task", exc) from exc
        if task is None:
            raise _not_found("update", task_id)
        logger.info("task updated", extra={"event": "task_updated", "task_id": task_id})
        return _serialize_task(task)

    @app.delete("/api/tasks/{task_id}")
    async def delete_task(task_id: str, session_id: SessionQuery) -> dict[str, str]:
        sid = _require_session(session_id)
        metrics.increment("task_requests", {"op": "delete"})
        try:
            removed = await asyncio.to_thread(store.delete_by_id, task_id, sid)
        except StoreError as exc:
            raise _store_fault("delete", "Error deleting task", exc) from exc
        if not removed:
            raise _not_found("delete", task_id)
        logger.info("task deleted", extra={"event": "task_deleted", "task_id": task_id})
        return {"message": "Task deleted"}

    return app


__all__ = ["create_app"]
