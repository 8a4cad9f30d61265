from .memory_store import InMemoryTaskStore
from .models import Task, TaskCreate, TaskUpdate
from .redis_store import RedisTaskStore
from .store import StoreError, TaskStore

__all__ = [
    "InMemoryTaskStore",
    "RedisTaskStore",
    "StoreError",
    "Task",
    "TaskCreate",
    "TaskStore",
    "TaskUpdate",
]
