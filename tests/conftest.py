from __future__ import annotations

import os
import time
import uuid
from collections.abc import Callable, Generator

import pytest

from sessiontodo.observability import reset_metrics


def _wait_until(timeout_s: float, pause_s: float, check: Callable[[], bool]) -> bool:
    deadline = time.time() + timeout_s
    while time.time() < deadline:
        if check():
            return True
        time.sleep(pause_s)
    return False


def _redis_ping(url: str) -> bool:
    try:
        import redis

        r = redis.Redis.from_url(url, socket_connect_timeout=0.5)
        return bool(r.ping())
    except Exception:
        return False


@pytest.fixture(scope="session")
def redis_url() -> str:
    """Provide a reachable Redis URL, or skip.

    Priority:
    1) REDIS_URL env if reachable
    2) localhost:6379
    """
    env_url = os.getenv("REDIS_URL")
    if env_url and _wait_until(5.0, 0.2, lambda: _redis_ping(env_url)):
        return env_url

    local_url = "redis://localhost:6379/0"
    if _redis_ping(local_url):
        return local_url

    pytest.skip("Redis not available; set REDIS_URL or start a local Redis")


@pytest.fixture()
def key_prefix() -> str:
    return f"testtodo:{uuid.uuid4()}"


@pytest.fixture(autouse=True)
def _fresh_metrics() -> Generator[None, None, None]:
    reset_metrics()
    yield
    reset_metrics()
