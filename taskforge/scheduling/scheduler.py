"""Task scheduler: eligibility, priority selection and status transitions."""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

from .errors import TaskNotFoundError
from ..activity.recorder import BaseActivityRecorder, InMemoryActivityRecorder
from ..decomposition.dependency_manager import DependencyManager
from ..store.base import BaseTaskStore
from ..models.scheduling_models import (
    DependencyValidation,
    ProgressSummary,
    Task,
    TaskPriority,
    TaskStatus,
)


logger = logging.getLogger(__name__)


class TaskScheduler:
    """
    Chooses the next task to work on and applies status transitions.

    PATTERN: Filter by satisfied dependencies first, then sort by priority
    CRITICAL: Every read-decide-write sequence runs under an asyncio.Lock and
    the store's own lock, so two pollers can never select the same task,
    whether they share a process or only a Redis store
    GOTCHA: Cyclic dependencies are not rejected; the tasks involved simply
    never become eligible

    State machine::

        PENDING --select--> IN_PROGRESS --complete--> COMPLETED
        PENDING --select--> IN_PROGRESS --fail------> FAILED
        FAILED  --requeue--> PENDING
        PENDING --skip-----> SKIPPED
    """

    def __init__(
        self,
        store: BaseTaskStore,
        recorder: Optional[BaseActivityRecorder] = None,
    ):
        """
        Initialize scheduler.

        Args:
            store: Task store holding all tasks
            recorder: Audit sink for terminal transitions
        """
        self.store = store
        self.recorder = recorder or InMemoryActivityRecorder()
        self._lock = asyncio.Lock()
        self.logger = logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Creation and lookup
    # ------------------------------------------------------------------

    async def create_task(
        self,
        name: str,
        description: str,
        priority: int,
        estimated_effort: float,
        milestone_id: str,
        dependencies: Optional[List[str]] = None,
        requires_confirmation: bool = False,
        test_criteria: Optional[List[str]] = None,
    ) -> str:
        """
        Create a pending task.

        Returns:
            New task ID
        """
        task = Task(
            name=name,
            description=description,
            priority=priority,
            dependencies=list(dependencies or []),
            estimated_effort=estimated_effort,
            milestone_id=milestone_id,
            requires_confirmation=requires_confirmation,
            test_criteria=list(test_criteria or []),
        )

        async with self._lock, self.store.lock():
            await self.store.put(task)

        self.logger.info(f'Created new task: "{name}"')
        return task.id

    async def get_task(self, task_id: str) -> Optional[Task]:
        return await self.store.get(task_id)

    async def get_all_tasks(self) -> List[Task]:
        return await self.store.all()

    async def get_tasks_by_status(self, status: TaskStatus) -> List[Task]:
        return await self.store.all_by_status(status)

    async def get_tasks_by_milestone(self, milestone_id: str) -> List[Task]:
        return await self.store.all_by_milestone(milestone_id)

    async def _require(self, task_id: str) -> Task:
        task = await self.store.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def _dependencies_met(
        self,
        task: Task,
        tasks: Dict[str, Task],
        seen: Optional[Set[str]] = None,
    ) -> bool:
        """
        Check whether every dependency of a task is satisfied.

        A dependency is satisfied when it is COMPLETED. The link to a task's
        own decomposition parent is also satisfied while that parent is
        IN_PROGRESS with its own dependencies met, since a parent only
        completes once all of its subtasks have.
        """
        seen = (seen or set()) | {task.id}

        for dep_id in task.dependencies:
            dep = tasks.get(dep_id)
            if dep is None:
                return False
            if dep.status == TaskStatus.COMPLETED:
                continue
            if (
                dep_id == task.parent_task_id
                and dep.status == TaskStatus.IN_PROGRESS
                and dep_id not in seen
                and self._dependencies_met(dep, tasks, seen)
            ):
                continue
            return False

        return True

    def _eligible(self, tasks: List[Task]) -> List[Task]:
        by_id = {task.id: task for task in tasks}
        return [
            task
            for task in tasks
            if task.status == TaskStatus.PENDING and self._dependencies_met(task, by_id)
        ]

    async def get_next_task(self) -> Optional[Task]:
        """
        Select the highest-priority eligible task and mark it IN_PROGRESS.

        Returns:
            The selected task, or None when nothing is pending or every
            pending task is blocked
        """
        async with self._lock, self.store.lock():
            tasks = await self.store.all()

            if not any(task.status == TaskStatus.PENDING for task in tasks):
                return None

            eligible = self._eligible(tasks)
            if not eligible:
                self.logger.info(
                    "No tasks available to work on - "
                    "all pending tasks have unmet dependencies"
                )
                return None

            # sort() is stable, ties keep insertion order
            eligible.sort(key=lambda t: t.priority)
            next_task = eligible[0].model_copy(
                update={
                    "status": TaskStatus.IN_PROGRESS,
                    "started_at": datetime.now(),
                }
            )
            await self.store.put(next_task)

        self.logger.info(
            f'Selected next task: "{next_task.name}" (Priority {next_task.priority})'
        )
        return next_task

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def complete_task(self, task_id: str, result: Optional[Any] = None) -> Task:
        """
        Mark a task COMPLETED and derive its parent's completion.

        Raises:
            TaskNotFoundError: If the task does not exist
        """
        async with self._lock, self.store.lock():
            return await self._complete(task_id, result)

    async def _complete(self, task_id: str, result: Optional[Any]) -> Task:
        task = await self._require(task_id)
        completed = task.model_copy(
            update={
                "status": TaskStatus.COMPLETED,
                "completed_at": datetime.now(),
                "result": result,
            }
        )
        await self.store.put(completed)

        self.logger.info(f'Completed task "{task.name}"')
        await self.recorder.record_task_execution(task_id, True, result)

        if completed.parent_task_id:
            await self._check_parent_completion(completed.parent_task_id)

        return completed

    async def fail_task(self, task_id: str, error: str) -> Task:
        """
        Mark a task FAILED and count the attempt. Never requeues by itself.

        Raises:
            TaskNotFoundError: If the task does not exist
        """
        async with self._lock, self.store.lock():
            task = await self._require(task_id)
            failed = task.model_copy(
                update={
                    "status": TaskStatus.FAILED,
                    "failure_count": task.failure_count + 1,
                }
            )
            await self.store.put(failed)

        self.logger.error(
            f'Failed task "{task.name}" (Attempt {failed.failure_count}): {error}'
        )
        await self.recorder.record_task_execution(task_id, False, None, error)
        return failed

    async def skip_task(self, task_id: str) -> Task:
        """
        Mark a task SKIPPED.

        Raises:
            TaskNotFoundError: If the task does not exist
        """
        async with self._lock, self.store.lock():
            task = await self._require(task_id)
            skipped = task.model_copy(
                update={
                    "status": TaskStatus.SKIPPED,
                    "completed_at": datetime.now(),
                }
            )
            await self.store.put(skipped)

        self.logger.info(f'Skipped task "{task.name}"')
        await self.recorder.record_task_execution(task_id, False, None, "skipped")
        return skipped

    async def requeue_task(self, task_id: str) -> Task:
        """
        Put a task back to PENDING.

        failure_count and timestamps are kept; they are overwritten by the
        next selection or completion.

        Raises:
            TaskNotFoundError: If the task does not exist
        """
        async with self._lock, self.store.lock():
            task = await self._require(task_id)
            if task.status != TaskStatus.FAILED:
                self.logger.warning(
                    f'Requeueing task "{task.name}" from status {task.status.value}'
                )
            requeued = task.model_copy(update={"status": TaskStatus.PENDING})
            await self.store.put(requeued)

        self.logger.info(f'Requeued task "{task.name}" for retry')
        return requeued

    async def increment_failure_count(self, task_id: str) -> int:
        """
        Count a failed attempt without changing status.

        Raises:
            TaskNotFoundError: If the task does not exist
        """
        async with self._lock, self.store.lock():
            task = await self._require(task_id)
            failure_count = task.failure_count + 1
            await self.store.put(task.model_copy(update={"failure_count": failure_count}))

        return failure_count

    async def update_task_context(self, task_id: str, context: Dict[str, Any]) -> Task:
        """
        Merge keys into a task's context.

        Raises:
            TaskNotFoundError: If the task does not exist
        """
        async with self._lock, self.store.lock():
            task = await self._require(task_id)
            updated = task.model_copy(update={"context": {**task.context, **context}})
            await self.store.put(updated)

        return updated

    async def check_parent_task_completion(self, parent_task_id: str) -> None:
        """Complete a parent once every one of its subtasks is COMPLETED."""
        async with self._lock, self.store.lock():
            await self._check_parent_completion(parent_task_id)

    async def _check_parent_completion(self, parent_task_id: str) -> None:
        parent = await self.store.get(parent_task_id)
        if parent is None:
            return

        subtasks = [
            task
            for task in await self.store.all()
            if task.parent_task_id == parent_task_id
        ]
        if not subtasks:
            return

        all_completed = all(t.status == TaskStatus.COMPLETED for t in subtasks)
        if all_completed and parent.status != TaskStatus.COMPLETED:
            await self._complete(
                parent_task_id,
                {"subtask_results": [t.result for t in subtasks]},
            )

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    async def get_high_priority_task_count(self) -> int:
        """Count open tasks at HIGH priority or above."""
        return sum(
            1
            for task in await self.store.all()
            if task.priority <= TaskPriority.HIGH and not task.is_terminal
        )

    async def get_progress_summary(self) -> ProgressSummary:
        """
        Summarize scheduler state.

        ``blocked`` is True when pending tasks exist but none is eligible,
        which tells a blocked schedule apart from an empty one.
        """
        tasks = await self.store.all()

        status_counts: Dict[str, int] = {}
        for task in tasks:
            status_counts[task.status.value] = status_counts.get(task.status.value, 0) + 1

        # Parents are counted through their subtasks
        leaves = [t for t in tasks if not t.context.get("subtask_ids")]
        has_pending = status_counts.get(TaskStatus.PENDING.value, 0) > 0

        return ProgressSummary(
            total_tasks=len(tasks),
            status_counts=status_counts,
            total_effort=sum(t.estimated_effort for t in leaves),
            completed_effort=sum(
                t.estimated_effort for t in leaves if t.status == TaskStatus.COMPLETED
            ),
            has_pending=has_pending,
            blocked=has_pending and not self._eligible(tasks),
            high_priority_open=sum(
                1
                for t in tasks
                if t.priority <= TaskPriority.HIGH and not t.is_terminal
            ),
        )

    async def validate_dependencies(self) -> DependencyValidation:
        """
        Report cycles and dangling references in the dependency graph.

        Diagnostic only; scheduling behaves the same whatever this returns.
        """
        manager = DependencyManager()
        manager.build_from_tasks(await self.store.all())
        return manager.validate_dependencies()
