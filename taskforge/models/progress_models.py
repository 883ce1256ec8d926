"""Hierarchy records whose completion percentages roll up bottom-up."""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from .scheduling_models import TaskStatus


class GoalRecord(BaseModel):
    """Leaf of the progress hierarchy."""

    id: str
    milestone_id: str
    name: str = ""
    progress: float = Field(default=0, ge=0, le=100)
    completed: bool = False
    status: Optional[TaskStatus] = Field(
        default=None, description="Status of the task backing this goal, if any"
    )
    percent_of_milestone: float = Field(
        default=0, ge=0, description="Weight in the milestone rollup, 0 when unset"
    )
    last_updated: Optional[datetime] = None


class MilestoneRecord(BaseModel):
    id: str
    feature_id: str
    name: str = ""
    progress: int = Field(default=0, ge=0, le=100)
    percent_of_feature: float = Field(
        default=0, ge=0, description="Weight in the feature rollup, 0 when unset"
    )
    last_updated: Optional[datetime] = None


class FeatureRecord(BaseModel):
    id: str
    project_id: Optional[str] = None
    name: str = ""
    progress: int = Field(default=0, ge=0, le=100)
    priority: float = Field(
        default=0, ge=0, description="Weight in the project rollup, 0 when unset"
    )
    last_updated: Optional[datetime] = None


class ProjectRecord(BaseModel):
    id: str
    name: str = ""
    progress: int = Field(default=0, ge=0, le=100)
    last_updated: Optional[datetime] = None
