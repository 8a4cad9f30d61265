from __future__ import annotations

import json
import time
from typing import Any, cast

import redis
from pydantic import ValidationError

from sessiontodo.observability import get_json_logger

from .models import Task
from .store import StoreError, TaskStore, apply_patch


class RedisTaskStore(TaskStore):
    """Redis-backed Task store.

    Data structures:
    - Hash per task: key `{prefix}:task:{id}` with field `json` holding the document
    - Sorted set per session for insertion ordering:
      key `{prefix}:session:{session_id}` with score=creation epoch seconds, member=task_id

    The redis-py client keeps its own connection pool, so one instance is
    shared by every in-flight request.
    """

    def __init__(
        self, *, url: str, key_prefix: str = "todo", client: redis.Redis | None = None
    ) -> None:
        self._redis: redis.Redis = client if client is not None else redis.Redis.from_url(url)
        self._prefix = key_prefix.rstrip(":")
        self._logger = get_json_logger("sessiontodo.store")

    # key helpers
    def _task_key(self, task_id: str) -> str:
        return f"{self._prefix}:task:{task_id}"

    def _session_key(self, session_id: str) -> str:
        return f"{self._prefix}:session:{session_id}"

    @staticmethod
    def _encode(task: Task) -> str:
        return json.dumps(task.model_dump(by_alias=True), separators=(",", ":"))

    def _load(self, task_id: str, client: Any | None = None) -> Task | None:
        conn = client if client is not None else self._redis
        raw = cast(bytes | None, conn.hget(self._task_key(task_id), "json"))
        if raw is None:
            return None
        try:
            return Task.model_validate(json.loads(raw.decode("utf-8")))
        except (ValueError, ValidationError) as exc:
            self._logger.error(
                "corrupt task document",
                extra={"event": "store_corrupt", "task_id": task_id},
            )
            raise StoreError(f"corrupt task document {task_id}") from exc

    def _scoped(self, task_id: str, session_id: str, client: Any | None = None) -> Task | None:
        task = self._load(task_id, client)
        if task is None or task.session_id != session_id:
            return None
        return task

    def list_by_session(self, session_id: str) -> list[Task]:
        try:
            ids_bytes = cast(
                list[bytes], self._redis.zrange(self._session_key(session_id), 0, -1)
            )
            result: list[Task] = []
            for raw_id in ids_bytes:
                task = self._scoped(raw_id.decode("utf-8"), session_id)
                if task is not None:
                    result.append(task)
            return result
        except redis.exceptions.RedisError as exc:
            raise StoreError(str(exc)) from exc

    def create(self, description: str, session_id: str) -> Task:
        task = Task(description=description, session_id=session_id)
        try:
            p = self._redis.pipeline()
            p.hset(self._task_key(task.id), mapping={"json": self._encode(task)})
            p.zadd(self._session_key(session_id), {task.id: time.time()})
            p.execute()
        except redis.exceptions.RedisError as exc:
            raise StoreError(str(exc)) from exc
        return task

    def update_by_id(
        self,
        task_id: str,
        session_id: str,
        *,
        completed: bool | None = None,
        description: str | None = None,
    ) -> Task | None:
        key = self._task_key(task_id)

        def _apply(pipe: Any) -> Task | None:
            current = self._scoped(task_id, session_id, pipe)
            if current is None:
                return None
            updated = apply_patch(current, completed=completed, description=description)
            pipe.multi()
            pipe.hset(key, mapping={"json": self._encode(updated)})
            return updated

        try:
            # WATCH the document so a delete landing mid-update aborts the write;
            # the retry then finds the key gone. Concurrent updates stay last-write-wins.
            return cast(
                Task | None, self._redis.transaction(_apply, key, value_from_callable=True)
            )
        except redis.exceptions.RedisError as exc:
            raise StoreError(str(exc)) from exc

    def delete_by_id(self, task_id: str, session_id: str) -> bool:
        try:
            if self._scoped(task_id, session_id) is None:
                return False
            p = self._redis.pipeline()
            p.delete(self._task_key(task_id))
            p.zrem(self._session_key(session_id), task_id)
            res: list[Any] = p.execute()
        except redis.exceptions.RedisError as exc:
            raise StoreError(str(exc)) from exc
        # A concurrent delete may have won the race; report what this call removed
        return bool(int(res[0]))

    def ping(self) -> bool:
        try:
            return bool(self._redis.ping())
        except redis.exceptions.RedisError:
            return False


__all__ = ["RedisTaskStore"]
