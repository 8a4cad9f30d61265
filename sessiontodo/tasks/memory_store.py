from __future__ import annotations

import threading

from .models import Task
from .store import TaskStore, apply_patch


class InMemoryTaskStore(TaskStore):
    """Thread-safe in-process store for local runs without Redis.

    Tasks live in an insertion-ordered dict keyed by id; nothing survives a
    restart.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, Task] = {}
        self._lock = threading.RLock()

    def _scoped(self, task_id: str, session_id: str) -> Task | None:
        task = self._tasks.get(task_id)
        if task is None or task.session_id != session_id:
            return None
        return task

    def list_by_session(self, session_id: str) -> list[Task]:
        with self._lock:
            return [t.model_copy() for t in self._tasks.values() if t.session_id == session_id]

    def create(self, description: str, session_id: str) -> Task:
        task = Task(description=description, session_id=session_id)
        with self._lock:
            self._tasks[task.id] = task
        return task.model_copy()

    def update_by_id(
        self,
        task_id: str,
        session_id: str,
        *,
        completed: bool | None = None,
        description: str | None = None,
    ) -> Task | None:
        with self._lock:
            current = self._scoped(task_id, session_id)
            if current is None:
                return None
            updated = apply_patch(current, completed=completed, description=description)
            self._tasks[task_id] = updated
            return updated.model_copy()

    def delete_by_id(self, task_id: str, session_id: str) -> bool:
        with self._lock:
            if self._scoped(task_id, session_id) is None:
                return False
            del self._tasks[task_id]
            return True

    def ping(self) -> bool:
        return True


__all__ = ["InMemoryTaskStore"]
