"""Decomposition engine: milestones into tasks, oversized tasks into subtasks."""

import logging
import math
from datetime import datetime
from typing import Dict, List, Optional

from .base import BaseSubtaskGenerator
from .archetypes import ArchetypeSubtaskGenerator
from ..store.base import BaseTaskStore
from ..models.scheduling_models import (
    Milestone,
    ProjectPlan,
    Task,
    TaskPriority,
    TaskStatus,
    SubtaskProposal,
)


logger = logging.getLogger(__name__)

DEFAULT_COMPLEXITY_THRESHOLD = 4.0


class TaskDecomposer:
    """
    Turns plan milestones into tasks and splits oversized tasks.

    PATTERN: Milestone -> root task -> ceil(effort / threshold) subtasks
    CRITICAL: A parent either gets all of its subtasks or none of them
    GOTCHA: Subtask efforts are an equal split of the parent's effort, even
    when the generator proposes its own estimates
    """

    def __init__(
        self,
        store: BaseTaskStore,
        generator: Optional[BaseSubtaskGenerator] = None,
        fallback_generator: Optional[BaseSubtaskGenerator] = None,
        complexity_threshold: float = DEFAULT_COMPLEXITY_THRESHOLD,
    ):
        """
        Initialize decomposer.

        Args:
            store: Task store populated by decomposition
            generator: Primary subtask generator
            fallback_generator: Used when the primary generator fails
            complexity_threshold: Effort hours above which a task is split
        """
        self.store = store
        self.fallback_generator = fallback_generator or ArchetypeSubtaskGenerator()
        self.generator = generator or self.fallback_generator
        self.complexity_threshold = complexity_threshold
        self.logger = logging.getLogger(__name__)

        # milestone ID -> root task ID, for plan-internal dependencies
        self.milestone_tasks: Dict[str, str] = {}

    async def generate_initial_tasks(self, plan: ProjectPlan) -> List[str]:
        """
        Create tasks for every milestone of a project plan.

        Milestone dependencies that name an earlier milestone of the plan are
        rewritten to that milestone's root task ID.

        Args:
            plan: Project plan

        Returns:
            Root task IDs, one per milestone
        """
        self.logger.info(
            f"Generating initial tasks from project plan '{plan.project_name}'..."
        )

        task_ids = []
        for milestone in plan.milestones:
            task_ids.append(await self.create_task_from_milestone(milestone))

        self.logger.info(f"Generated {len(await self.store.all())} initial tasks")
        return task_ids

    async def create_task_from_milestone(self, milestone: Milestone) -> str:
        """
        Build a task from a milestone, persist it and decompose it.

        Args:
            milestone: Plan milestone

        Returns:
            ID of the milestone's root task
        """
        dependencies = [
            self.milestone_tasks.get(dep_id, dep_id) for dep_id in milestone.dependencies
        ]

        task = Task(
            name=milestone.name,
            description=milestone.description,
            priority=milestone.priority,
            dependencies=dependencies,
            estimated_effort=milestone.estimated_effort,
            milestone_id=milestone.id,
            requires_confirmation=milestone.priority <= TaskPriority.HIGH,
        )

        await self.store.put(task)
        self.milestone_tasks[milestone.id] = task.id

        await self.generate_subtasks(task)
        return task.id

    def subtask_count(self, effort: float) -> int:
        """Number of subtasks for a given effort, 0 when no split is needed."""
        if effort <= self.complexity_threshold:
            return 0
        return math.ceil(effort / self.complexity_threshold)

    def subtask_effort(self, parent_task: Task, count: int) -> List[float]:
        """Effort of each subtask. Shares always sum to the parent's effort."""
        return [parent_task.estimated_effort / count] * count

    async def generate_subtasks(self, parent_task: Task) -> List[Task]:
        """
        Split a task into subtasks when its effort exceeds the threshold.

        On success the subtasks are persisted and the parent is moved to
        IN_PROGRESS without confirmation. On failure nothing is written and
        the parent stays an ordinary leaf.

        With the default equal split from subtask_effort() no subtask exceeds
        the threshold, so hierarchies are one level deep. The recursive pass
        over new subtasks only splits further when subtask_effort() is
        overridden to hand out uneven shares.

        Args:
            parent_task: Task to split

        Returns:
            Created subtasks (empty when no split happened)
        """
        count = self.subtask_count(parent_task.estimated_effort)
        if count == 0:
            return []

        self.logger.info(
            f'Breaking down task "{parent_task.name}" into {count} subtasks'
        )

        proposals = await self._propose(parent_task, count)
        if not proposals:
            return []

        efforts = self.subtask_effort(parent_task, count)
        subtasks = [
            Task(
                name=proposal.name,
                description=proposal.description,
                priority=parent_task.priority,
                dependencies=[parent_task.id],
                estimated_effort=efforts[i],
                milestone_id=parent_task.milestone_id,
                requires_confirmation=False,
                context={
                    "parent_task_id": parent_task.id,
                    "subtask_index": i,
                    "total_subtasks": count,
                },
            )
            for i, proposal in enumerate(proposals)
        ]

        for subtask in subtasks:
            await self.store.put(subtask)

        # The parent is never executed itself while subtasks are open
        parent = parent_task.model_copy(
            update={
                "status": TaskStatus.IN_PROGRESS,
                "requires_confirmation": False,
                "started_at": parent_task.started_at or datetime.now(),
                "context": {
                    **parent_task.context,
                    "subtask_ids": [s.id for s in subtasks],
                },
            }
        )
        await self.store.put(parent)

        created = list(subtasks)
        for subtask in subtasks:
            created.extend(await self.generate_subtasks(subtask))

        return created

    async def _propose(self, task: Task, count: int) -> List[SubtaskProposal]:
        """
        Ask the generator for proposals, falling back to the archetype list.

        Returns:
            Proposals, or an empty list when every generator failed
        """
        generators = [self.generator]
        if self.fallback_generator is not self.generator:
            generators.append(self.fallback_generator)

        for generator in generators:
            try:
                proposals = await generator.generate(task, count)
                return generator.validate_proposals(proposals, count)
            except Exception as e:
                self.logger.error(
                    f'Failed to generate subtasks for "{task.name}" '
                    f"with {generator.name} generator: {e}"
                )

        return []
