"""Static phase-archetype subtask generator."""

from typing import List

from .base import BaseSubtaskGenerator
from ..models.scheduling_models import Task, SubtaskProposal

# Phase archetypes, in order
ARCHETYPE_TEMPLATES = [
    "Research for {name}",
    "Design for {name}",
    "Implementation of {name}",
    "Testing for {name}",
    "Documentation for {name}",
]


class ArchetypeSubtaskGenerator(BaseSubtaskGenerator):
    """
    Names subtasks after fixed development phases.

    Indices past the archetype list get a generic "Subtask N for ..." label.
    Needs no external service, so it is always usable as a fallback.
    """

    name = "archetype"

    def subtask_name(self, task: Task, index: int) -> str:
        if index < len(ARCHETYPE_TEMPLATES):
            return ARCHETYPE_TEMPLATES[index].format(name=task.name)
        return f"Subtask {index + 1} for {task.name}"

    async def generate(self, task: Task, subtask_count: int) -> List[SubtaskProposal]:
        effort = task.estimated_effort / subtask_count
        return [
            SubtaskProposal(
                name=self.subtask_name(task, i),
                description=f'Part {i + 1} of "{task.name}": {task.description}',
                estimated_effort=effort,
            )
            for i in range(subtask_count)
        ]
