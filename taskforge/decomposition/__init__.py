"""Task decomposition subsystem.

Turns plan milestones into tasks, splits oversized tasks into subtasks and
reports on the resulting dependency graph.
"""

from .base import BaseSubtaskGenerator, DecompositionError
from .archetypes import ArchetypeSubtaskGenerator
from .llm_generator import LLMSubtaskGenerator
from .decomposer import TaskDecomposer
from .dependency_manager import DependencyManager

__all__ = [
    "BaseSubtaskGenerator",
    "DecompositionError",
    "ArchetypeSubtaskGenerator",
    "LLMSubtaskGenerator",
    "TaskDecomposer",
    "DependencyManager",
]
