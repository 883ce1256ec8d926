"""Abstract base class for task store implementations."""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional
from ..models.scheduling_models import Task, TaskStatus


class BaseTaskStore(ABC):
    """
    Keyed collection of Task records.

    Absence is reported as None, never as an exception. Query results keep
    insertion order.
    """

    @abstractmethod
    async def put(self, task: Task) -> None:
        """
        Insert or replace a task by ID.

        Args:
            task: Task to store

        Raises:
            ValueError: If the task ID is empty
        """
        pass

    @abstractmethod
    async def get(self, task_id: str) -> Optional[Task]:
        """
        Retrieve a task by ID.

        Args:
            task_id: Task identifier

        Returns:
            Task if found, None otherwise
        """
        pass

    @abstractmethod
    async def all(self) -> List[Task]:
        """Return every task in insertion order."""
        pass

    async def all_by_status(self, status: TaskStatus) -> List[Task]:
        """
        Return tasks with the given status.

        Args:
            status: Status to filter by

        Returns:
            Matching tasks in insertion order
        """
        return [task for task in await self.all() if task.status == status]

    async def all_by_milestone(self, milestone_id: str) -> List[Task]:
        """
        Return tasks owned by a milestone.

        Args:
            milestone_id: Milestone identifier

        Returns:
            Matching tasks in insertion order
        """
        return [task for task in await self.all() if task.milestone_id == milestone_id]

    @asynccontextmanager
    async def lock(self) -> AsyncIterator[None]:
        """
        Exclusive section shared by every process using this store.

        The default does nothing, which is enough for a store owned by a
        single process. Shared backends override it.
        """
        yield

    async def close(self) -> None:
        """Release backend resources."""
        return None

    @staticmethod
    def _validate(task: Task) -> None:
        if not task.id:
            raise ValueError("Task ID must not be empty")
