"""Service layer wiring the scheduler core to its collaborators."""

from .autonomous_service import (
    AutonomousTaskService,
    create_task_store,
    create_subtask_generator,
)

__all__ = [
    "AutonomousTaskService",
    "create_task_store",
    "create_subtask_generator",
]
