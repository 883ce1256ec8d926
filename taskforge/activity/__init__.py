"""Task outcome recording."""

from .recorder import (
    BaseActivityRecorder,
    InMemoryActivityRecorder,
    RedisActivityRecorder,
)

__all__ = [
    "BaseActivityRecorder",
    "InMemoryActivityRecorder",
    "RedisActivityRecorder",
]
