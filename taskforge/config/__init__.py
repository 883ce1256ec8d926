"""Configuration for the task scheduler."""

from .scheduler_config import SchedulerConfig

__all__ = ["SchedulerConfig"]
