"""Base subtask generator abstract class."""

import logging
from abc import ABC, abstractmethod
from typing import List
from ..models.scheduling_models import Task, SubtaskProposal


logger = logging.getLogger(__name__)


class DecompositionError(Exception):
    """Subtask generation failed."""

    pass


class BaseSubtaskGenerator(ABC):
    """
    Abstract base class for subtask naming/content generators.

    Generators only propose names, descriptions and efforts. Creating and
    persisting the subtasks is the decomposer's job.
    """

    name: str = "base"

    def __init__(self):
        self.logger = logging.getLogger(f"{__name__}.{self.name}")

    @abstractmethod
    async def generate(self, task: Task, subtask_count: int) -> List[SubtaskProposal]:
        """
        Propose subtasks for a task.

        Args:
            task: Task being decomposed
            subtask_count: Number of subtasks wanted

        Returns:
            Exactly ``subtask_count`` proposals

        Raises:
            DecompositionError: If no valid breakdown could be produced
        """
        pass

    def validate_proposals(
        self, proposals: List[SubtaskProposal], subtask_count: int
    ) -> List[SubtaskProposal]:
        """
        Check that a breakdown has the requested size.

        Raises:
            DecompositionError: On a count mismatch
        """
        if len(proposals) != subtask_count:
            raise DecompositionError(
                f"Expected {subtask_count} subtasks, got {len(proposals)}"
            )
        return proposals
