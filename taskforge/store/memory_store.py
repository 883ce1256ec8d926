"""In-memory task store."""

import logging
from typing import Dict, List, Optional

from .base import BaseTaskStore
from ..models.scheduling_models import Task

logger = logging.getLogger(__name__)


class InMemoryTaskStore(BaseTaskStore):
    """Dict-backed task store. Contents do not survive a restart."""

    def __init__(self):
        # dicts keep insertion order, replacement keeps the original slot
        self._tasks: Dict[str, Task] = {}

    async def put(self, task: Task) -> None:
        self._validate(task)
        self._tasks[task.id] = task
        logger.debug(f"Stored task {task.id} ({task.status.value})")

    async def get(self, task_id: str) -> Optional[Task]:
        return self._tasks.get(task_id)

    async def all(self) -> List[Task]:
        return list(self._tasks.values())

    def __len__(self) -> int:
        return len(self._tasks)
