"""Persistence collaborator for the Project -> Feature -> Milestone -> Goal hierarchy."""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from ..models.progress_models import (
    GoalRecord,
    MilestoneRecord,
    FeatureRecord,
    ProjectRecord,
)

logger = logging.getLogger(__name__)


class BaseHierarchyStore(ABC):
    """Get/put by ID plus child lookup by parent ID for every hierarchy level."""

    @abstractmethod
    async def get_project(self, project_id: str) -> Optional[ProjectRecord]:
        pass

    @abstractmethod
    async def put_project(self, project: ProjectRecord) -> None:
        pass

    @abstractmethod
    async def get_feature(self, feature_id: str) -> Optional[FeatureRecord]:
        pass

    @abstractmethod
    async def put_feature(self, feature: FeatureRecord) -> None:
        pass

    @abstractmethod
    async def get_milestone(self, milestone_id: str) -> Optional[MilestoneRecord]:
        pass

    @abstractmethod
    async def put_milestone(self, milestone: MilestoneRecord) -> None:
        pass

    @abstractmethod
    async def get_goal(self, goal_id: str) -> Optional[GoalRecord]:
        pass

    @abstractmethod
    async def put_goal(self, goal: GoalRecord) -> None:
        pass

    @abstractmethod
    async def features_by_project(self, project_id: str) -> List[FeatureRecord]:
        pass

    @abstractmethod
    async def milestones_by_feature(self, feature_id: str) -> List[MilestoneRecord]:
        pass

    @abstractmethod
    async def goals_by_milestone(self, milestone_id: str) -> List[GoalRecord]:
        pass


class InMemoryHierarchyStore(BaseHierarchyStore):
    """Dict-backed hierarchy store, mainly for tests and single-process use."""

    def __init__(self):
        self.projects: Dict[str, ProjectRecord] = {}
        self.features: Dict[str, FeatureRecord] = {}
        self.milestones: Dict[str, MilestoneRecord] = {}
        self.goals: Dict[str, GoalRecord] = {}

    async def get_project(self, project_id: str) -> Optional[ProjectRecord]:
        return self.projects.get(project_id)

    async def put_project(self, project: ProjectRecord) -> None:
        self.projects[project.id] = project

    async def get_feature(self, feature_id: str) -> Optional[FeatureRecord]:
        return self.features.get(feature_id)

    async def put_feature(self, feature: FeatureRecord) -> None:
        self.features[feature.id] = feature

    async def get_milestone(self, milestone_id: str) -> Optional[MilestoneRecord]:
        return self.milestones.get(milestone_id)

    async def put_milestone(self, milestone: MilestoneRecord) -> None:
        self.milestones[milestone.id] = milestone

    async def get_goal(self, goal_id: str) -> Optional[GoalRecord]:
        return self.goals.get(goal_id)

    async def put_goal(self, goal: GoalRecord) -> None:
        self.goals[goal.id] = goal

    async def features_by_project(self, project_id: str) -> List[FeatureRecord]:
        return [f for f in self.features.values() if f.project_id == project_id]

    async def milestones_by_feature(self, feature_id: str) -> List[MilestoneRecord]:
        return [m for m in self.milestones.values() if m.feature_id == feature_id]

    async def goals_by_milestone(self, milestone_id: str) -> List[GoalRecord]:
        return [g for g in self.goals.values() if g.milestone_id == milestone_id]
