"""Scheduler error types."""


class TaskNotFoundError(Exception):
    """An operation addressed a task ID that is not in the store."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task with ID {task_id} not found")
