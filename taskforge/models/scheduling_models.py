"""Data models for the autonomous task scheduler."""

from pydantic import BaseModel, Field
from typing import Dict, List, Any, Optional
from enum import Enum, IntEnum
from datetime import datetime
from uuid import uuid4


class TaskStatus(str, Enum):
    """Lifecycle status of a schedulable task."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.SKIPPED})


class TaskPriority(IntEnum):
    """Priority tiers. Lower value means higher priority."""

    CRITICAL = 1
    HIGH = 2
    MEDIUM = 3
    LOW = 4
    OPTIMIZATION = 5


class Task(BaseModel):
    """A unit of schedulable work."""

    id: str = Field(default_factory=lambda: str(uuid4()), description="Unique task ID")
    name: str = Field(description="Task name/title")
    description: str = Field(default="", description="Detailed task description")
    status: TaskStatus = Field(default=TaskStatus.PENDING)
    priority: int = Field(
        default=TaskPriority.MEDIUM, ge=1, le=5, description="Priority ordinal"
    )

    # Scheduling constraints
    dependencies: List[str] = Field(
        default_factory=list, description="Task IDs that must complete first"
    )
    estimated_effort: float = Field(
        default=1.0, gt=0, description="Estimated effort in hours"
    )
    milestone_id: str = Field(description="Owning milestone ID")
    requires_confirmation: bool = Field(
        default=False, description="Operator sign-off required before completion"
    )

    # Timing
    created_at: datetime = Field(default_factory=datetime.now)
    started_at: Optional[datetime] = Field(default=None)
    completed_at: Optional[datetime] = Field(default=None)

    # Execution metadata
    failure_count: int = Field(default=0, ge=0)
    context: Dict[str, Any] = Field(
        default_factory=dict, description="Open-ended task payload"
    )
    test_criteria: List[str] = Field(
        default_factory=list, description="Advisory acceptance criteria"
    )
    result: Optional[Any] = Field(default=None, description="Completion payload")

    @property
    def parent_task_id(self) -> Optional[str]:
        """ID of the task this one was decomposed from, if any."""
        return self.context.get("parent_task_id")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class Milestone(BaseModel):
    """Milestone entry of an externally produced project plan."""

    id: str = Field(description="Milestone ID")
    name: str = Field(description="Milestone name")
    description: str = Field(default="")
    estimated_effort: float = Field(gt=0, description="Estimated effort in hours")
    dependencies: List[str] = Field(
        default_factory=list, description="IDs of milestones this one depends on"
    )
    priority: int = Field(default=TaskPriority.MEDIUM, ge=1, le=5)


class ProjectPlan(BaseModel):
    """Project plan fed to the decomposition engine."""

    project_name: str = Field(description="Project name")
    project_description: str = Field(default="")
    core_functionalities: List[str] = Field(default_factory=list)
    milestones: List[Milestone] = Field(default_factory=list)
    timeline: Optional[int] = Field(default=None, description="Estimated days")


class SubtaskProposal(BaseModel):
    """One subtask suggested by a subtask generator."""

    name: str
    description: str
    estimated_effort: float = Field(gt=0)


class TaskExecution(BaseModel):
    """Audit record of a terminal task transition."""

    task_id: str
    timestamp: datetime = Field(default_factory=datetime.now)
    success: bool
    output: Optional[Any] = None
    error_details: Optional[str] = None
    retry_count: int = Field(default=0, description="Times this task was re-recorded")


class DependencyValidation(BaseModel):
    """Result of dependency graph diagnostics."""

    is_valid: bool = Field(description="Whether dependencies form valid DAG")
    has_cycles: bool = Field(
        default=False, description="Whether circular dependencies exist"
    )
    cycles: List[List[str]] = Field(
        default_factory=list, description="Circular dependency chains"
    )
    missing_dependencies: List[str] = Field(
        default_factory=list, description="Referenced but missing tasks"
    )
    execution_order: List[str] = Field(
        default_factory=list, description="Valid execution order if DAG"
    )


class ProgressSummary(BaseModel):
    """Snapshot of scheduler state for callers and dashboards."""

    total_tasks: int = 0
    status_counts: Dict[str, int] = Field(default_factory=dict)
    total_effort: float = 0.0
    completed_effort: float = 0.0
    has_pending: bool = False
    blocked: bool = Field(
        default=False, description="Pending tasks exist but none is eligible"
    )
    high_priority_open: int = 0
