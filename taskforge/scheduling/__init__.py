"""Task selection and lifecycle management."""

from .errors import TaskNotFoundError
from .scheduler import TaskScheduler

__all__ = [
    "TaskNotFoundError",
    "TaskScheduler",
]
