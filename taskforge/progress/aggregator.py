"""Hierarchical progress aggregation with bottom-up propagation."""

import logging
from datetime import datetime
from typing import Iterable, Optional, Tuple

from .notifier import BaseNotificationSink, LoggingNotificationSink, PROGRESS_UPDATED
from ..store.hierarchy_store import BaseHierarchyStore
from ..models.progress_models import GoalRecord
from ..models.scheduling_models import Task, TaskStatus


logger = logging.getLogger(__name__)


class ProgressAggregator:
    """
    Rolls goal progress up through milestone, feature and project.

    PATTERN: Update goal -> recompute milestone -> feature -> project
    CRITICAL: Each level is recomputed from its current children, never from
    a delta, so re-running with unchanged children gives the same numbers

    Weights per level:
        milestone <- goals by ``percent_of_milestone``
        feature   <- milestones by ``percent_of_feature``
        project   <- features by ``priority``
    A zero weight counts as 1. A level without children is at 0.
    """

    def __init__(
        self,
        store: BaseHierarchyStore,
        notifier: Optional[BaseNotificationSink] = None,
    ):
        """
        Initialize progress aggregator.

        Args:
            store: Persistence collaborator for hierarchy records
            notifier: Sink receiving a notification per recomputed record
        """
        self.store = store
        self.notifier = notifier or LoggingNotificationSink()
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def goal_progress(goal: GoalRecord) -> Optional[float]:
        """
        Effective progress of a goal.

        Returns:
            100 for completed goals, None for skipped goals (excluded from the
            milestone average), otherwise the stored progress
        """
        if goal.status == TaskStatus.SKIPPED:
            return None
        if goal.completed or goal.status == TaskStatus.COMPLETED:
            return 100.0
        return goal.progress

    @staticmethod
    def weighted_average(values: Iterable[Tuple[float, float]]) -> int:
        """
        Weighted average of (progress, weight) pairs, rounded half up.

        Returns:
            0 when there are no pairs
        """
        total_weight = 0.0
        weighted_progress = 0.0

        for progress, weight in values:
            weight = weight or 1
            total_weight += weight
            weighted_progress += progress * weight

        if total_weight <= 0:
            return 0
        return int(weighted_progress / total_weight + 0.5)

    async def update_goal_progress(self, goal_id: str, progress: float) -> None:
        """
        Set a goal's progress and cascade upward.

        Args:
            goal_id: Goal to update
            progress: New progress (clamped to 0-100)
        """
        goal = await self.store.get_goal(goal_id)
        if goal is None:
            self.logger.warning(f"Goal {goal_id} not found, progress not updated")
            return

        goal = goal.model_copy(
            update={
                "progress": min(100.0, max(0.0, progress)),
                "last_updated": datetime.now(),
            }
        )
        await self.store.put_goal(goal)
        await self.recompute_milestone(goal.milestone_id)

    async def sync_goal_from_task(self, goal_id: str, task: Task) -> None:
        """
        Mirror a task's status onto the goal it backs, then cascade.

        Args:
            goal_id: Goal backed by the task
            task: Task whose status changed
        """
        goal = await self.store.get_goal(goal_id)
        if goal is None:
            self.logger.warning(f"Goal {goal_id} not found, cannot sync task {task.id}")
            return

        update = {"status": task.status, "last_updated": datetime.now()}
        if task.status == TaskStatus.COMPLETED:
            update["progress"] = 100.0
            update["completed"] = True

        await self.store.put_goal(goal.model_copy(update=update))
        await self.recompute_milestone(goal.milestone_id)

    async def recompute_milestone(
        self, milestone_id: str, cascade: bool = True
    ) -> Optional[int]:
        """
        Recompute a milestone from its goals.

        Returns:
            New milestone progress, or None if the milestone is unknown
        """
        milestone = await self.store.get_milestone(milestone_id)
        if milestone is None:
            self.logger.warning(f"Milestone {milestone_id} not found")
            return None

        goals = await self.store.goals_by_milestone(milestone_id)
        weighted = []
        for goal in goals:
            value = self.goal_progress(goal)
            if value is None:
                continue  # skipped
            weighted.append((value, goal.percent_of_milestone))
        progress = self.weighted_average(weighted)

        milestone = milestone.model_copy(
            update={"progress": progress, "last_updated": datetime.now()}
        )
        await self.store.put_milestone(milestone)
        await self._notify("milestone", milestone_id, progress)

        self.logger.debug(
            f"Updated milestone {milestone_id} progress: {progress}% ({len(goals)} goals)"
        )

        if cascade:
            await self.recompute_feature(milestone.feature_id)
        return progress

    async def recompute_feature(
        self, feature_id: str, cascade: bool = True
    ) -> Optional[int]:
        """
        Recompute a feature from its milestones.

        Returns:
            New feature progress, or None if the feature is unknown
        """
        feature = await self.store.get_feature(feature_id)
        if feature is None:
            self.logger.warning(f"Feature {feature_id} not found")
            return None

        milestones = await self.store.milestones_by_feature(feature_id)
        progress = self.weighted_average(
            (m.progress, m.percent_of_feature) for m in milestones
        )

        feature = feature.model_copy(
            update={"progress": progress, "last_updated": datetime.now()}
        )
        await self.store.put_feature(feature)
        await self._notify("feature", feature_id, progress)

        self.logger.debug(
            f"Updated feature {feature_id} progress: {progress}% "
            f"({len(milestones)} milestones)"
        )

        if cascade and feature.project_id:
            await self.recompute_project(feature.project_id)
        return progress

    async def recompute_project(self, project_id: str) -> Optional[int]:
        """
        Recompute a project from its features.

        Returns:
            New project progress, or None if the project is unknown
        """
        project = await self.store.get_project(project_id)
        if project is None:
            self.logger.warning(f"Project {project_id} not found")
            return None

        features = await self.store.features_by_project(project_id)
        progress = self.weighted_average((f.progress, f.priority) for f in features)

        project = project.model_copy(
            update={"progress": progress, "last_updated": datetime.now()}
        )
        await self.store.put_project(project)
        await self._notify("project", project_id, progress)

        self.logger.info(f"Project {project_id} progress: {progress}%")
        return progress

    async def _notify(self, level: str, record_id: str, progress: int) -> None:
        await self.notifier.publish(
            PROGRESS_UPDATED,
            {"level": level, "id": record_id, "progress": progress},
        )
