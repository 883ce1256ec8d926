"""Autonomous task service: the polling loop that drives the scheduler."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional

from ..activity.recorder import (
    BaseActivityRecorder,
    InMemoryActivityRecorder,
    RedisActivityRecorder,
)
from ..config.scheduler_config import SchedulerConfig
from ..decomposition.archetypes import ArchetypeSubtaskGenerator
from ..decomposition.base import BaseSubtaskGenerator
from ..decomposition.decomposer import TaskDecomposer
from ..decomposition.llm_generator import LLMSubtaskGenerator
from ..models.scheduling_models import ProjectPlan, Task, TaskStatus
from ..progress.aggregator import ProgressAggregator
from ..scheduling.scheduler import TaskScheduler
from ..store.base import BaseTaskStore
from ..store.memory_store import InMemoryTaskStore
from ..store.redis_store import RedisTaskStore

logger = logging.getLogger(__name__)

TaskExecutor = Callable[[Task], Awaitable[Any]]
ConfirmationCallback = Callable[[Task, Any], Awaitable[bool]]


def create_task_store(config: SchedulerConfig) -> BaseTaskStore:
    """Build the task store selected by ``task_store_backend``."""
    if config.task_store_backend == "redis":
        return RedisTaskStore(config=config)
    if config.task_store_backend != "memory":
        logger.warning(
            f"Unknown task store backend '{config.task_store_backend}', using memory"
        )
    return InMemoryTaskStore()


def create_subtask_generator(config: SchedulerConfig) -> BaseSubtaskGenerator:
    """Build the subtask generator selected by ``subtask_generator``."""
    if config.subtask_generator == "llm":
        if config.openai_api_key:
            return LLMSubtaskGenerator(config=config)
        logger.warning("OPENAI_API_KEY not set, using archetype subtask names")
    return ArchetypeSubtaskGenerator()


class AutonomousTaskService:
    """
    Drives the scheduler from a fixed-interval polling loop.

    Owns the caller-side policies the core leaves open: how often a failed
    task is retried, when a task needing confirmation may be closed, and
    which goal a finished task reports to.

    Usage:
        service = AutonomousTaskService(executor=run_task)
        await service.load_plan(plan)
        await service.start()  # runs until stop()
    """

    def __init__(
        self,
        config: Optional[SchedulerConfig] = None,
        executor: Optional[TaskExecutor] = None,
        store: Optional[BaseTaskStore] = None,
        recorder: Optional[BaseActivityRecorder] = None,
        generator: Optional[BaseSubtaskGenerator] = None,
        aggregator: Optional[ProgressAggregator] = None,
        confirm: Optional[ConfirmationCallback] = None,
    ):
        """
        Initialize autonomous task service.

        Args:
            config: Scheduler configuration
            executor: Coroutine that performs a task and returns its result
            store: Task store (built from config if omitted)
            recorder: Activity recorder (matches the store backend if omitted)
            generator: Subtask generator (built from config if omitted)
            aggregator: Progress aggregator for goal-backed tasks
            confirm: Operator sign-off for tasks that require confirmation
        """
        self.config = config or SchedulerConfig()
        self.executor = executor
        self.confirm = confirm
        self.aggregator = aggregator

        self.store = store or create_task_store(self.config)
        if recorder is None:
            if isinstance(self.store, RedisTaskStore):
                recorder = RedisActivityRecorder(self.store)
            else:
                recorder = InMemoryActivityRecorder()
        self.recorder = recorder

        self.decomposer = TaskDecomposer(
            store=self.store,
            generator=generator or create_subtask_generator(self.config),
            complexity_threshold=self.config.complexity_threshold_hours,
        )
        self.scheduler = TaskScheduler(store=self.store, recorder=self.recorder)

        self._running = False
        self._task: Optional[asyncio.Task] = None

    async def load_plan(self, plan: ProjectPlan) -> List[str]:
        """Decompose a project plan into the task store."""
        return await self.decomposer.generate_initial_tasks(plan)

    async def run_once(self) -> Optional[Task]:
        """
        Select one task, execute it and record the outcome.

        Returns:
            The task as stored after processing, or None if nothing was
            eligible
        """
        if self.executor is None:
            raise RuntimeError("No executor configured")

        task = await self.scheduler.get_next_task()
        if task is None:
            return None

        try:
            result = await self.executor(task)
        except Exception as e:
            logger.exception(f'Executor failed on task "{task.name}"')
            failed = await self.scheduler.fail_task(task.id, str(e))
            if failed.failure_count < self.config.max_task_retries:
                return await self.scheduler.requeue_task(task.id)
            logger.warning(
                f'Task "{task.name}" stays failed after {failed.failure_count} attempts'
            )
            await self._sync_goals(failed)
            return failed

        if task.requires_confirmation and not await self._confirmed(task, result):
            logger.info(f'Task "{task.name}" awaiting operator confirmation')
            return await self.scheduler.update_task_context(
                task.id, {"awaiting_confirmation": True, "pending_result": result}
            )

        completed = await self.scheduler.complete_task(task.id, result)
        await self._sync_goals(completed)
        return await self.store.get(task.id)

    async def _confirmed(self, task: Task, result: Any) -> bool:
        if self.confirm is None:
            return False
        try:
            return await self.confirm(task, result)
        except Exception:
            logger.exception(f'Confirmation failed for task "{task.name}"')
            return False

    async def _sync_goals(self, task: Task) -> None:
        """
        Report a task outcome to the goal it backs.

        A completed task also reports every parent it closed. A permanently
        failed task leaves its parent open, so only its own goal is updated.
        """
        if self.aggregator is None:
            return

        current: Optional[Task] = task
        while current is not None:
            goal_id = current.context.get("goal_id")
            if goal_id:
                await self.aggregator.sync_goal_from_task(goal_id, current)
            if not current.parent_task_id:
                break
            current = await self.store.get(current.parent_task_id)
            if current is not None and current.status != TaskStatus.COMPLETED:
                break

    async def run_until_idle(self, max_iterations: Optional[int] = None) -> int:
        """
        Process tasks until none is eligible.

        Args:
            max_iterations: Optional cap on processed tasks

        Returns:
            Number of tasks processed
        """
        processed = 0
        while max_iterations is None or processed < max_iterations:
            if await self.run_once() is None:
                break
            processed += 1
        return processed

    async def start(self) -> None:
        """Start the polling loop."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info(
            f"Autonomous task service started "
            f"(poll every {self.config.poll_interval_seconds}s)"
        )

    async def stop(self) -> None:
        """Stop the polling loop."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Autonomous task service stopped")

    async def _loop(self) -> None:
        while self._running:
            try:
                await self.run_until_idle()
            except Exception:
                logger.exception("Error in autonomous task loop")
            await asyncio.sleep(self.config.poll_interval_seconds)

    async def close(self) -> None:
        await self.stop()
        await self.store.close()
