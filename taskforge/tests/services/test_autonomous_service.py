"""Tests for the autonomous task service."""

import pytest
from unittest.mock import AsyncMock

from taskforge.config.scheduler_config import SchedulerConfig
from taskforge.decomposition.archetypes import ArchetypeSubtaskGenerator
from taskforge.decomposition.llm_generator import LLMSubtaskGenerator
from taskforge.models.progress_models import FeatureRecord, GoalRecord, MilestoneRecord
from taskforge.models.scheduling_models import Milestone, ProjectPlan, TaskStatus
from taskforge.progress.aggregator import ProgressAggregator
from taskforge.services.autonomous_service import (
    AutonomousTaskService,
    create_subtask_generator,
    create_task_store,
)
from taskforge.store.hierarchy_store import InMemoryHierarchyStore
from taskforge.store.memory_store import InMemoryTaskStore
from taskforge.store.redis_store import RedisTaskStore


@pytest.fixture
def config():
    return SchedulerConfig(
        task_store_backend="memory",
        subtask_generator="archetype",
        complexity_threshold_hours=4,
        max_task_retries=3,
        poll_interval_seconds=0.01,
    )


async def echo(task):
    return f"done: {task.name}"


def test_create_task_store(config):
    assert isinstance(create_task_store(config), InMemoryTaskStore)
    assert isinstance(
        create_task_store(config.model_copy(update={"task_store_backend": "redis"})),
        RedisTaskStore,
    )
    assert isinstance(
        create_task_store(config.model_copy(update={"task_store_backend": "sqlite"})),
        InMemoryTaskStore,
    )


def test_create_subtask_generator_without_key_falls_back(config):
    llm_config = config.model_copy(
        update={"subtask_generator": "llm", "openai_api_key": None}
    )
    assert isinstance(create_subtask_generator(llm_config), ArchetypeSubtaskGenerator)


def test_create_subtask_generator_with_key(config, mocker):
    mocker.patch("taskforge.decomposition.llm_generator.tiktoken")
    mocker.patch("taskforge.decomposition.llm_generator.AsyncOpenAI")
    llm_config = config.model_copy(
        update={"subtask_generator": "llm", "openai_api_key": "sk-test"}
    )
    assert isinstance(create_subtask_generator(llm_config), LLMSubtaskGenerator)


@pytest.mark.asyncio
async def test_run_until_idle_completes_plan(config):
    service = AutonomousTaskService(config=config, executor=echo)
    plan = ProjectPlan(
        project_name="Shop",
        milestones=[
            Milestone(id="m1", name="Catalog", estimated_effort=8, priority=3),
            Milestone(
                id="m2", name="Checkout", estimated_effort=2, priority=3, dependencies=["m1"]
            ),
        ],
    )
    await service.load_plan(plan)

    processed = await service.run_until_idle()

    # two Catalog subtasks, then Checkout
    assert processed == 3
    tasks = await service.scheduler.get_all_tasks()
    assert all(t.status == TaskStatus.COMPLETED for t in tasks)
    assert tasks[-1].name == "Checkout"
    assert tasks[-1].result == "done: Checkout"


@pytest.mark.asyncio
async def test_run_once_without_executor_raises(config):
    service = AutonomousTaskService(config=config)
    task_id = await service.scheduler.create_task("a", "", 3, 1, "m1")

    with pytest.raises(RuntimeError):
        await service.run_once()

    assert (await service.scheduler.get_task(task_id)).status == TaskStatus.PENDING


@pytest.mark.asyncio
async def test_failed_task_is_retried_until_limit(config):
    executor = AsyncMock(side_effect=ValueError("flaky"))
    service = AutonomousTaskService(config=config, executor=executor)
    task_id = await service.scheduler.create_task("flaky", "", 3, 1, "m1")

    processed = await service.run_until_idle()

    assert executor.await_count == 3
    assert processed == 3
    task = await service.scheduler.get_task(task_id)
    assert task.status == TaskStatus.FAILED
    assert task.failure_count == 3


@pytest.mark.asyncio
async def test_retry_succeeds_after_transient_failure(config):
    executor = AsyncMock(side_effect=[ValueError("flaky"), "ok"])
    service = AutonomousTaskService(config=config, executor=executor)
    task_id = await service.scheduler.create_task("flaky", "", 3, 1, "m1")

    await service.run_until_idle()

    task = await service.scheduler.get_task(task_id)
    assert task.status == TaskStatus.COMPLETED
    assert task.failure_count == 1
    assert task.result == "ok"


@pytest.mark.asyncio
async def test_confirmation_required_without_callback(config):
    service = AutonomousTaskService(config=config, executor=echo)
    task_id = await service.scheduler.create_task(
        "deploy", "", 1, 1, "m1", requires_confirmation=True
    )

    task = await service.run_once()

    assert task.status == TaskStatus.IN_PROGRESS
    assert task.context["awaiting_confirmation"] is True
    assert task.context["pending_result"] == "done: deploy"
    assert await service.run_once() is None
    assert (await service.scheduler.get_task(task_id)).status == TaskStatus.IN_PROGRESS


@pytest.mark.asyncio
async def test_confirmation_granted(config):
    confirm = AsyncMock(return_value=True)
    service = AutonomousTaskService(config=config, executor=echo, confirm=confirm)
    await service.scheduler.create_task(
        "deploy", "", 1, 1, "m1", requires_confirmation=True
    )

    task = await service.run_once()

    assert task.status == TaskStatus.COMPLETED
    confirm.assert_awaited_once()


@pytest.mark.asyncio
async def test_completion_syncs_goals_up_the_parent_chain(config):
    hierarchy = InMemoryHierarchyStore()
    await hierarchy.put_feature(FeatureRecord(id="f1"))
    await hierarchy.put_milestone(MilestoneRecord(id="ms1", feature_id="f1"))
    await hierarchy.put_goal(GoalRecord(id="g-parent", milestone_id="ms1"))
    await hierarchy.put_goal(GoalRecord(id="g-child", milestone_id="ms1"))
    aggregator = ProgressAggregator(store=hierarchy)

    service = AutonomousTaskService(config=config, executor=echo, aggregator=aggregator)
    parent_id = await service.decomposer.create_task_from_milestone(
        Milestone(id="m1", name="Catalog", estimated_effort=8, priority=3)
    )
    await service.scheduler.update_task_context(parent_id, {"goal_id": "g-parent"})
    first_child = (await service.store.get(parent_id)).context["subtask_ids"][0]
    await service.scheduler.update_task_context(first_child, {"goal_id": "g-child"})

    await service.run_once()

    assert (await hierarchy.get_goal("g-child")).completed
    assert not (await hierarchy.get_goal("g-parent")).completed
    assert (await hierarchy.get_milestone("ms1")).progress == 50

    await service.run_once()

    assert (await hierarchy.get_goal("g-parent")).completed
    assert (await hierarchy.get_milestone("ms1")).progress == 100


@pytest.mark.asyncio
async def test_start_and_stop(config):
    service = AutonomousTaskService(config=config, executor=echo)

    await service.start()
    await service.start()
    await service.stop()

    assert service._task is None


@pytest.mark.asyncio
async def test_permanent_failure_is_reported_to_goal(config):
    hierarchy = InMemoryHierarchyStore()
    await hierarchy.put_feature(FeatureRecord(id="f1"))
    await hierarchy.put_milestone(MilestoneRecord(id="ms1", feature_id="f1"))
    await hierarchy.put_goal(GoalRecord(id="g1", milestone_id="ms1", progress=40))
    aggregator = ProgressAggregator(store=hierarchy)

    executor = AsyncMock(side_effect=ValueError("broken"))
    service = AutonomousTaskService(config=config, executor=executor, aggregator=aggregator)
    task_id = await service.scheduler.create_task("flaky", "", 3, 1, "m1")
    await service.scheduler.update_task_context(task_id, {"goal_id": "g1"})

    await service.run_until_idle()

    goal = await hierarchy.get_goal("g1")
    assert goal.status == TaskStatus.FAILED
    assert not goal.completed
    assert (await hierarchy.get_milestone("ms1")).progress == 40


@pytest.mark.asyncio
async def test_retried_failure_is_not_reported_to_goal(config):
    hierarchy = InMemoryHierarchyStore()
    await hierarchy.put_milestone(MilestoneRecord(id="ms1", feature_id="f1"))
    await hierarchy.put_goal(GoalRecord(id="g1", milestone_id="ms1"))
    aggregator = ProgressAggregator(store=hierarchy)

    executor = AsyncMock(side_effect=ValueError("flaky"))
    service = AutonomousTaskService(config=config, executor=executor, aggregator=aggregator)
    task_id = await service.scheduler.create_task("flaky", "", 3, 1, "m1")
    await service.scheduler.update_task_context(task_id, {"goal_id": "g1"})

    await service.run_once()

    assert (await hierarchy.get_goal("g1")).status is None


@pytest.mark.asyncio
async def test_failing_confirmation_keeps_task_held(config):
    confirm = AsyncMock(side_effect=ConnectionError("operator unreachable"))
    service = AutonomousTaskService(config=config, executor=echo, confirm=confirm)
    await service.scheduler.create_task(
        "deploy", "", 1, 1, "m1", requires_confirmation=True
    )

    task = await service.run_once()

    assert task.status == TaskStatus.IN_PROGRESS
    assert task.context["awaiting_confirmation"] is True
