"""Command line interface for the task scheduler."""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Optional

import click
from pydantic import ValidationError
from rich.console import Console

from .output import render_summary, render_tasks, render_validation
from ..config.scheduler_config import SchedulerConfig
from ..models.scheduling_models import ProjectPlan, Task, TaskStatus
from ..scheduling.errors import TaskNotFoundError
from ..services.autonomous_service import AutonomousTaskService

logger = logging.getLogger(__name__)

console = Console()


def _run(
    config: SchedulerConfig,
    action: Callable[[AutonomousTaskService], Awaitable[Any]],
    **service_kwargs: Any,
) -> Any:
    """Run an async action against a freshly wired service."""

    async def runner() -> Any:
        service = AutonomousTaskService(config=config, **service_kwargs)
        try:
            return await action(service)
        finally:
            await service.close()

    try:
        return asyncio.run(runner())
    except TaskNotFoundError as e:
        raise click.ClickException(str(e))


async def _resolve_id(service: AutonomousTaskService, task_id: str) -> str:
    """Accept a full task ID or a unique prefix of one."""
    if await service.store.get(task_id):
        return task_id
    matches = [t.id for t in await service.store.all() if t.id.startswith(task_id)]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        raise click.ClickException(f"Task ID prefix '{task_id}' is ambiguous")
    return task_id


async def _simulated_executor(task: Task) -> dict:
    return {"simulated": True, "task": task.name}


async def _auto_confirm(task: Task, result: Any) -> bool:
    return True


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option(
    "--backend",
    type=click.Choice(["memory", "redis"]),
    help="Override the task store backend",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, backend: Optional[str]) -> None:
    """taskforge - autonomous task scheduler."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    config = SchedulerConfig()
    if backend:
        config.task_store_backend = backend
    ctx.obj = config


@cli.command()
@click.argument("plan_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--run", "run_tasks", is_flag=True, help="Simulate executing every task")
@click.pass_obj
def plan(config: SchedulerConfig, plan_file: str, run_tasks: bool) -> None:
    """Decompose a project plan JSON file into tasks."""
    try:
        with open(plan_file, "r", encoding="utf-8") as f:
            project_plan = ProjectPlan.model_validate(json.load(f))
    except (json.JSONDecodeError, ValidationError) as e:
        raise click.ClickException(f"Invalid plan file: {e}")

    async def action(service: AutonomousTaskService):
        await service.load_plan(project_plan)
        processed = await service.run_until_idle() if run_tasks else 0
        return await service.scheduler.get_all_tasks(), processed

    tasks, processed = _run(
        config,
        action,
        executor=_simulated_executor,
        confirm=_auto_confirm,
    )
    render_tasks(console, tasks, title=project_plan.project_name)
    if run_tasks:
        console.print(f"Processed {processed} tasks")


@cli.command()
@click.option(
    "--status",
    type=click.Choice([s.value for s in TaskStatus]),
    help="Only show tasks with this status",
)
@click.pass_obj
def tasks(config: SchedulerConfig, status: Optional[str]) -> None:
    """List tasks."""

    async def action(service: AutonomousTaskService):
        if status:
            return await service.scheduler.get_tasks_by_status(TaskStatus(status))
        return await service.scheduler.get_all_tasks()

    render_tasks(console, _run(config, action))


@cli.command(name="next")
@click.pass_obj
def next_task(config: SchedulerConfig) -> None:
    """Select the next eligible task and mark it in progress."""

    async def action(service: AutonomousTaskService):
        task = await service.scheduler.get_next_task()
        summary = await service.scheduler.get_progress_summary()
        return task, summary

    task, summary = _run(config, action)
    if task is not None:
        render_tasks(console, [task], title="Next task")
    elif summary.blocked:
        console.print("[yellow]Blocked: pending tasks have unmet dependencies[/yellow]")
    else:
        console.print("No pending tasks left")


@cli.command()
@click.argument("task_id")
@click.option("--result", help="JSON result payload")
@click.pass_obj
def complete(config: SchedulerConfig, task_id: str, result: Optional[str]) -> None:
    """Mark a task completed."""
    try:
        payload = json.loads(result) if result else None
    except json.JSONDecodeError as e:
        raise click.ClickException(f"Invalid result JSON: {e}")

    async def action(service: AutonomousTaskService):
        return await service.scheduler.complete_task(
            await _resolve_id(service, task_id), payload
        )

    render_tasks(console, [_run(config, action)], title="Completed")


@cli.command()
@click.argument("task_id")
@click.option("--error", "error_message", required=True, help="Failure reason")
@click.pass_obj
def fail(config: SchedulerConfig, task_id: str, error_message: str) -> None:
    """Mark a task failed."""

    async def action(service: AutonomousTaskService):
        return await service.scheduler.fail_task(
            await _resolve_id(service, task_id), error_message
        )

    render_tasks(console, [_run(config, action)], title="Failed")


@cli.command()
@click.argument("task_id")
@click.pass_obj
def skip(config: SchedulerConfig, task_id: str) -> None:
    """Skip a task."""

    async def action(service: AutonomousTaskService):
        return await service.scheduler.skip_task(await _resolve_id(service, task_id))

    render_tasks(console, [_run(config, action)], title="Skipped")


@cli.command()
@click.argument("task_id")
@click.pass_obj
def requeue(config: SchedulerConfig, task_id: str) -> None:
    """Put a failed task back in the queue."""

    async def action(service: AutonomousTaskService):
        return await service.scheduler.requeue_task(await _resolve_id(service, task_id))

    render_tasks(console, [_run(config, action)], title="Requeued")


@cli.command()
@click.pass_obj
def summary(config: SchedulerConfig) -> None:
    """Show task counts and effort progress."""

    async def action(service: AutonomousTaskService):
        return await service.scheduler.get_progress_summary()

    render_summary(console, _run(config, action))


@cli.command()
@click.pass_obj
def cycles(config: SchedulerConfig) -> None:
    """Report dependency cycles and dangling dependencies."""

    async def action(service: AutonomousTaskService):
        return await service.scheduler.validate_dependencies()

    render_validation(console, _run(config, action))


def main() -> None:
    cli()
