"""Dependency graph diagnostics with cycle detection and topological sorting."""

import logging
from graphlib import TopologicalSorter, CycleError
from typing import Dict, Iterable, List, Set
from ..models.scheduling_models import Task, DependencyValidation


logger = logging.getLogger(__name__)


class DependencyManager:
    """
    Read-only view of task dependencies as a graph.

    PATTERN: Use Python's built-in graphlib for topological sorting
    GOTCHA: The scheduler never rejects cycles; this only reports them
    """

    def __init__(self):
        """Initialize dependency manager."""
        self.graph: Dict[str, Set[str]] = {}  # task_id -> set of dependencies
        self.missing: Set[str] = set()
        self.logger = logging.getLogger(__name__)

    def add_task(self, task_id: str) -> None:
        if task_id not in self.graph:
            self.graph[task_id] = set()

    def add_dependency(self, task_id: str, depends_on: str) -> None:
        """
        Record that task_id depends on depends_on.

        Args:
            task_id: Task that has the dependency
            depends_on: Task that must complete first
        """
        self.add_task(task_id)
        self.add_task(depends_on)
        self.graph[task_id].add(depends_on)

    def build_from_tasks(self, tasks: Iterable[Task]) -> None:
        """
        Build the graph from task records.

        Dependencies on unknown IDs are collected in ``missing`` and left out
        of the graph.

        Args:
            tasks: Task records
        """
        self.graph.clear()
        self.missing.clear()

        tasks = list(tasks)
        known = {task.id for task in tasks}

        for task in tasks:
            self.add_task(task.id)

        for task in tasks:
            for dependency_id in task.dependencies:
                if dependency_id not in known:
                    self.logger.warning(
                        f"Task {task.id} depends on non-existent task {dependency_id}"
                    )
                    self.missing.add(dependency_id)
                    continue

                self.add_dependency(task.id, dependency_id)

        self.logger.debug(
            f"Built dependency graph: "
            f"{len(self.graph)} tasks, "
            f"{sum(len(deps) for deps in self.graph.values())} dependencies"
        )

    def validate_dependencies(self) -> DependencyValidation:
        """
        Validate dependency graph and detect cycles.

        Returns:
            DependencyValidation with results
        """
        missing = sorted(self.missing)

        try:
            sorter = TopologicalSorter(self.graph)
            execution_order = list(sorter.static_order())

            return DependencyValidation(
                is_valid=not missing,
                has_cycles=False,
                cycles=[],
                missing_dependencies=missing,
                execution_order=execution_order,
            )

        except CycleError as e:
            self.logger.warning(f"Circular dependencies detected: {e}")

            return DependencyValidation(
                is_valid=False,
                has_cycles=True,
                cycles=self._find_all_cycles(),
                missing_dependencies=missing,
                execution_order=[],
            )

    def _find_all_cycles(self) -> List[List[str]]:
        """
        Find circular dependency chains using DFS.

        GOTCHA: May not find all cycles in complex graphs

        Returns:
            List of cycle chains (each cycle is a list of task IDs)
        """
        cycles = []
        visited = set()
        rec_stack = set()

        def dfs(node: str, path: List[str]) -> None:
            visited.add(node)
            rec_stack.add(node)
            path.append(node)

            for neighbor in sorted(self.graph.get(node, set())):
                if neighbor not in visited:
                    dfs(neighbor, path.copy())
                elif neighbor in rec_stack:
                    cycle_start = path.index(neighbor)
                    cycles.append(path[cycle_start:] + [neighbor])

            rec_stack.remove(node)

        for node in self.graph:
            if node not in visited:
                dfs(node, [])

        return cycles
