"""Rich rendering of scheduler state."""

from typing import List

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..models.scheduling_models import (
    DependencyValidation,
    ProgressSummary,
    Task,
    TaskPriority,
    TaskStatus,
)

STATUS_STYLES = {
    TaskStatus.PENDING: "yellow",
    TaskStatus.IN_PROGRESS: "cyan",
    TaskStatus.COMPLETED: "green",
    TaskStatus.FAILED: "red",
    TaskStatus.SKIPPED: "dim",
}


def priority_label(priority: int) -> str:
    try:
        return TaskPriority(priority).name.title()
    except ValueError:
        return str(priority)


def render_tasks(console: Console, tasks: List[Task], title: str = "Tasks") -> None:
    """Print tasks as a table, subtasks indented under their parent."""
    table = Table(title=title)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Name")
    table.add_column("Status")
    table.add_column("Priority")
    table.add_column("Effort (h)", justify="right")
    table.add_column("Failures", justify="right")

    for task in tasks:
        style = STATUS_STYLES.get(task.status, "")
        name = escape(task.name)
        if task.parent_task_id:
            name = f"  └ {name}"
        if task.requires_confirmation:
            name += " [bold](confirm)[/bold]"
        table.add_row(
            task.id[:8],
            name,
            f"[{style}]{task.status.value}[/{style}]",
            priority_label(task.priority),
            f"{task.estimated_effort:.2f}",
            str(task.failure_count),
        )

    console.print(table)


def render_summary(console: Console, summary: ProgressSummary) -> None:
    table = Table(title="Scheduler summary", show_header=False)
    table.add_column("Metric")
    table.add_column("Value", justify="right")

    table.add_row("Total tasks", str(summary.total_tasks))
    for status, count in sorted(summary.status_counts.items()):
        table.add_row(f"  {status}", str(count))
    table.add_row(
        "Effort done",
        f"{summary.completed_effort:.1f} / {summary.total_effort:.1f} h",
    )
    table.add_row("Open high-priority tasks", str(summary.high_priority_open))
    table.add_row("Blocked", "yes" if summary.blocked else "no")

    console.print(table)


def render_validation(console: Console, validation: DependencyValidation) -> None:
    if validation.is_valid:
        console.print("[green]Dependency graph is acyclic and complete[/green]")
        return

    for cycle in validation.cycles:
        console.print(f"[red]Cycle:[/red] {' -> '.join(cycle)}")
    for missing in validation.missing_dependencies:
        console.print(f"[yellow]Missing dependency:[/yellow] {missing}")
