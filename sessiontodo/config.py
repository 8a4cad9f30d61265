from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Literal

from sessiontodo.tasks.memory_store import InMemoryTaskStore
from sessiontodo.tasks.redis_store import RedisTaskStore
from sessiontodo.tasks.store import TaskStore

DEFAULT_PORT = 3001


@dataclass(slots=True)
class AppConfig:
    redis_url: str
    key_prefix: str
    store_backend: Literal["redis", "memory"]
    host: str
    port: int


def _read_port(raw: str | None) -> int:
    value = (raw or "").strip()
    try:
        port = int(value) if value else DEFAULT_PORT
    except ValueError:
        return DEFAULT_PORT
    return port if 0 < port < 65536 else DEFAULT_PORT


def load_config(env: dict[str, str] | None = None) -> AppConfig:
    e: dict[str, Any] = dict(os.environ)
    if env:
        e.update(env)
    backend_raw = (e.get("TODO_STORE") or "redis").strip().lower()
    backend: Literal["redis", "memory"] = "memory" if backend_raw == "memory" else "redis"
    return AppConfig(
        redis_url=e.get("REDIS_URL") or "redis://localhost:6379/0",
        key_prefix=e.get("TODO_STORE_PREFIX") or "todo",
        store_backend=backend,
        host=e.get("HOST") or "0.0.0.0",
        port=_read_port(e.get("PORT")),
    )


def build_store(cfg: AppConfig) -> TaskStore:
    """Create the process-wide store handle described by `cfg`."""
    if cfg.store_backend == "memory":
        return InMemoryTaskStore()
    return RedisTaskStore(url=cfg.redis_url, key_prefix=cfg.key_prefix)


__all__ = ["AppConfig", "DEFAULT_PORT", "build_store", "load_config"]
