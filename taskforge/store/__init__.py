"""Task and hierarchy persistence adapters."""

from .base import BaseTaskStore
from .memory_store import InMemoryTaskStore
from .redis_store import RedisTaskStore
from .hierarchy_store import BaseHierarchyStore, InMemoryHierarchyStore

__all__ = [
    "BaseTaskStore",
    "InMemoryTaskStore",
    "RedisTaskStore",
    "BaseHierarchyStore",
    "InMemoryHierarchyStore",
]
