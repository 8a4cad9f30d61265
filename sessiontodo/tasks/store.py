from __future__ import annotations

from .models import Task


class StoreError(Exception):
    """The backing store failed (connectivity, unreadable data).

    Raised instead of returning a not-found value so callers can tell an
    infrastructure fault apart from a missing record.
    """


class TaskStore:
    """Session-scoped Task store interface.

    Every read and mutation is filtered by `session_id`; a record that exists
    under another session behaves exactly like a missing one.
    """

    def list_by_session(self, session_id: str) -> list[Task]:  # pragma: no cover - interface only
        raise NotImplementedError

    def create(self, description: str, session_id: str) -> Task:  # pragma: no cover
        raise NotImplementedError

    def update_by_id(
        self,
        task_id: str,
        session_id: str,
        *,
        completed: bool | None = None,
        description: str | None = None,
    ) -> Task | None:  # pragma: no cover - interface only
        raise NotImplementedError

    def delete_by_id(self, task_id: str, session_id: str) -> bool:  # pragma: no cover
        raise NotImplementedError

    def ping(self) -> bool:  # pragma: no cover - interface only
        raise NotImplementedError


def apply_patch(task: Task, *, completed: bool | None, description: str | None) -> Task:
    """Return a copy of `task` with only the provided fields replaced."""
    changes: dict[str, object] = {}
    if completed is not None:
        changes["completed"] = completed
    if description is not None:
        changes["description"] = description
    return task.model_copy(update=changes)


__all__ = ["StoreError", "TaskStore", "apply_patch"]
