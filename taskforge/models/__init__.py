"""Models package for the task scheduler."""

from .scheduling_models import (
    TaskStatus,
    TaskPriority,
    TERMINAL_STATUSES,
    Task,
    Milestone,
    ProjectPlan,
    SubtaskProposal,
    TaskExecution,
    DependencyValidation,
    ProgressSummary,
)
from .progress_models import (
    GoalRecord,
    MilestoneRecord,
    FeatureRecord,
    ProjectRecord,
)

__all__ = [
    # Scheduling models
    "TaskStatus",
    "TaskPriority",
    "TERMINAL_STATUSES",
    "Task",
    "Milestone",
    "ProjectPlan",
    "SubtaskProposal",
    "TaskExecution",
    "DependencyValidation",
    "ProgressSummary",
    # Progress hierarchy models
    "GoalRecord",
    "MilestoneRecord",
    "FeatureRecord",
    "ProjectRecord",
]
