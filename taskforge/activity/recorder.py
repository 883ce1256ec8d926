"""Activity recorders: audit sinks for terminal task transitions."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from redis.exceptions import RedisError

from ..models.scheduling_models import TaskExecution
from ..store.redis_store import RedisTaskStore

logger = logging.getLogger(__name__)


class BaseActivityRecorder(ABC):
    """Receives one call per terminal transition. Never read back by the scheduler."""

    @abstractmethod
    async def record_task_execution(
        self,
        task_id: str,
        success: bool,
        output: Optional[Any] = None,
        error_details: Optional[str] = None,
    ) -> TaskExecution:
        """
        Record a task outcome.

        Args:
            task_id: Task that reached a terminal or failed state
            success: Whether the task completed
            output: Completion payload
            error_details: Failure or skip reason

        Returns:
            The stored execution record
        """
        pass

    @abstractmethod
    async def get_history(self) -> List[TaskExecution]:
        """Return the latest execution record of every task."""
        pass


class InMemoryActivityRecorder(BaseActivityRecorder):
    """Keeps the latest execution per task in process memory."""

    def __init__(self):
        self._history: Dict[str, TaskExecution] = {}

    async def record_task_execution(
        self,
        task_id: str,
        success: bool,
        output: Optional[Any] = None,
        error_details: Optional[str] = None,
    ) -> TaskExecution:
        previous = self._history.get(task_id)
        execution = TaskExecution(
            task_id=task_id,
            success=success,
            output=output,
            error_details=error_details,
            retry_count=previous.retry_count + 1 if previous else 0,
        )
        self._history[task_id] = execution
        return execution

    async def get_history(self) -> List[TaskExecution]:
        return list(self._history.values())


class RedisActivityRecorder(BaseActivityRecorder):
    """
    Stores execution records in a Redis hash keyed by task ID.

    Shares the connection pool and key prefix of a Redis task store.
    """

    def __init__(self, store: RedisTaskStore):
        self.store = store
        self.key = f"{store.prefix}:task_history"

    async def record_task_execution(
        self,
        task_id: str,
        success: bool,
        output: Optional[Any] = None,
        error_details: Optional[str] = None,
    ) -> TaskExecution:
        redis = await self.store.get_client()

        try:
            existing = await redis.hget(self.key, task_id)
            retry_count = (
                TaskExecution.model_validate_json(existing).retry_count + 1
                if existing
                else 0
            )
            execution = TaskExecution(
                task_id=task_id,
                success=success,
                output=output,
                error_details=error_details,
                retry_count=retry_count,
            )
            await redis.hset(self.key, task_id, execution.model_dump_json())
        except RedisError as e:
            logger.error(f"Failed to record execution of task {task_id}: {e}")
            raise

        return execution

    async def get_history(self) -> List[TaskExecution]:
        redis = await self.store.get_client()
        records = await redis.hgetall(self.key)
        return [TaskExecution.model_validate_json(v) for v in records.values()]
