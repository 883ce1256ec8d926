"""Tests for task selection and status transitions."""

import asyncio
import pytest
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock

from taskforge.activity.recorder import InMemoryActivityRecorder
from taskforge.decomposition.decomposer import TaskDecomposer
from taskforge.models.scheduling_models import Task, TaskPriority, TaskStatus
from taskforge.scheduling.errors import TaskNotFoundError
from taskforge.scheduling.scheduler import TaskScheduler
from taskforge.store.memory_store import InMemoryTaskStore


@pytest.fixture
def store():
    return InMemoryTaskStore()


@pytest.fixture
def recorder():
    return InMemoryActivityRecorder()


@pytest.fixture
def scheduler(store, recorder):
    return TaskScheduler(store=store, recorder=recorder)


async def add(scheduler, name, priority=TaskPriority.MEDIUM, dependencies=None, **kwargs):
    return await scheduler.create_task(
        name=name,
        description=f"{name} description",
        priority=priority,
        estimated_effort=kwargs.pop("estimated_effort", 2),
        milestone_id=kwargs.pop("milestone_id", "m1"),
        dependencies=dependencies,
        **kwargs,
    )


@pytest.mark.asyncio
class TestSelection:
    """Eligibility and priority ordering."""

    async def test_empty_store_returns_none(self, scheduler):
        assert await scheduler.get_next_task() is None

    async def test_selection_marks_in_progress(self, scheduler):
        task_id = await add(scheduler, "only")

        task = await scheduler.get_next_task()

        assert task.id == task_id
        assert task.status == TaskStatus.IN_PROGRESS
        assert task.started_at is not None
        stored = await scheduler.get_task(task_id)
        assert stored.status == TaskStatus.IN_PROGRESS

    async def test_priority_wins_within_eligible_set(self, scheduler):
        await add(scheduler, "later", priority=TaskPriority.MEDIUM)
        urgent = await add(scheduler, "urgent", priority=TaskPriority.CRITICAL)

        first = await scheduler.get_next_task()
        second = await scheduler.get_next_task()

        assert first.id == urgent
        assert second.name == "later"

    async def test_ties_keep_insertion_order(self, scheduler):
        await add(scheduler, "first", priority=TaskPriority.LOW)
        await add(scheduler, "second", priority=TaskPriority.LOW)

        assert (await scheduler.get_next_task()).name == "first"
        assert (await scheduler.get_next_task()).name == "second"

    async def test_dependency_blocks_higher_priority_task(self, scheduler):
        """An unmet prerequisite is never jumped, whatever the priority."""
        base = await add(scheduler, "base", priority=TaskPriority.LOW)
        await add(scheduler, "dependent", priority=TaskPriority.CRITICAL, dependencies=[base])

        first = await scheduler.get_next_task()
        assert first.id == base

        # base in progress, dependent still blocked
        assert await scheduler.get_next_task() is None

        await scheduler.complete_task(base)
        assert (await scheduler.get_next_task()).name == "dependent"

    async def test_unknown_dependency_never_eligible(self, scheduler):
        await add(scheduler, "orphan", dependencies=["does-not-exist"])
        assert await scheduler.get_next_task() is None

    async def test_cycle_stays_blocked(self, scheduler, store):
        a = Task(id="a", name="a", milestone_id="m1", dependencies=["b"])
        b = Task(id="b", name="b", milestone_id="m1", dependencies=["a"])
        await store.put(a)
        await store.put(b)

        assert await scheduler.get_next_task() is None
        validation = await scheduler.validate_dependencies()
        assert validation.has_cycles

    async def test_failed_dependency_blocks(self, scheduler):
        base = await add(scheduler, "base")
        await add(scheduler, "dependent", dependencies=[base])
        await scheduler.get_next_task()
        await scheduler.fail_task(base, "broken")

        assert await scheduler.get_next_task() is None

    async def test_concurrent_pollers_never_share_a_task(self, scheduler):
        await add(scheduler, "only")

        results = await asyncio.gather(
            scheduler.get_next_task(),
            scheduler.get_next_task(),
            scheduler.get_next_task(),
        )

        selected = [r for r in results if r is not None]
        assert len(selected) == 1

    async def test_schedulers_sharing_a_store_never_share_a_task(self):
        """Separate scheduler instances serialize through the store lock."""
        store = SharedStore()
        first = TaskScheduler(store=store)
        second = TaskScheduler(store=store)
        await add(first, "only")
        store.lock_entries = 0

        results = await asyncio.gather(first.get_next_task(), second.get_next_task())

        assert len([r for r in results if r is not None]) == 1
        assert store.lock_entries == 2


class SharedStore(InMemoryTaskStore):
    """Store that yields on reads and serializes through its own lock."""

    def __init__(self):
        super().__init__()
        self._shared_lock = asyncio.Lock()
        self.lock_entries = 0

    async def all(self):
        await asyncio.sleep(0)
        return await super().all()

    @asynccontextmanager
    async def lock(self):
        async with self._shared_lock:
            self.lock_entries += 1
            yield


@pytest.mark.asyncio
class TestTransitions:
    """Completion, failure, skip and requeue."""

    async def test_complete_records_result(self, scheduler, recorder):
        task_id = await add(scheduler, "work")
        await scheduler.get_next_task()

        completed = await scheduler.complete_task(task_id, {"files": 2})

        assert completed.status == TaskStatus.COMPLETED
        assert completed.completed_at is not None
        assert completed.result == {"files": 2}
        history = await recorder.get_history()
        assert history[0].task_id == task_id
        assert history[0].success is True
        assert history[0].output == {"files": 2}

    async def test_fail_increments_failure_count(self, scheduler, recorder):
        task_id = await add(scheduler, "flaky")
        await scheduler.get_next_task()

        failed = await scheduler.fail_task(task_id, "timeout")

        assert failed.status == TaskStatus.FAILED
        assert failed.failure_count == 1
        history = await recorder.get_history()
        assert history[0].success is False
        assert history[0].error_details == "timeout"

    async def test_requeue_keeps_failure_count(self, scheduler):
        task_id = await add(scheduler, "flaky")
        await scheduler.get_next_task()
        await scheduler.fail_task(task_id, "timeout")

        requeued = await scheduler.requeue_task(task_id)

        assert requeued.status == TaskStatus.PENDING
        assert requeued.failure_count == 1
        again = await scheduler.get_next_task()
        assert again.id == task_id
        assert again.failure_count == 1

    async def test_skip_is_terminal_and_recorded(self, scheduler, recorder):
        task_id = await add(scheduler, "optional")

        skipped = await scheduler.skip_task(task_id)

        assert skipped.status == TaskStatus.SKIPPED
        assert skipped.completed_at is not None
        assert await scheduler.get_next_task() is None
        history = await recorder.get_history()
        assert history[0].success is False
        assert history[0].error_details == "skipped"

    async def test_recorder_called_once_per_terminal_transition(self, store):
        recorder = AsyncMock()
        scheduler = TaskScheduler(store=store, recorder=recorder)
        task_id = await add(scheduler, "work")

        await scheduler.get_next_task()
        await scheduler.complete_task(task_id, "ok")

        recorder.record_task_execution.assert_awaited_once_with(task_id, True, "ok")

    async def test_increment_failure_count(self, scheduler):
        task_id = await add(scheduler, "work")

        assert await scheduler.increment_failure_count(task_id) == 1
        assert await scheduler.increment_failure_count(task_id) == 2
        task = await scheduler.get_task(task_id)
        assert task.status == TaskStatus.PENDING

    async def test_update_task_context_merges(self, scheduler):
        task_id = await add(scheduler, "work")
        await scheduler.update_task_context(task_id, {"a": 1})

        updated = await scheduler.update_task_context(task_id, {"b": 2})

        assert updated.context == {"a": 1, "b": 2}

    @pytest.mark.parametrize(
        "operation",
        [
            lambda s: s.complete_task("missing"),
            lambda s: s.fail_task("missing", "err"),
            lambda s: s.skip_task("missing"),
            lambda s: s.requeue_task("missing"),
            lambda s: s.update_task_context("missing", {}),
            lambda s: s.increment_failure_count("missing"),
        ],
    )
    async def test_unknown_task_raises(self, scheduler, operation):
        with pytest.raises(TaskNotFoundError) as exc_info:
            await operation(scheduler)
        assert exc_info.value.task_id == "missing"


@pytest.mark.asyncio
class TestParentCompletion:
    """Parent completion is derived from subtasks."""

    async def _decomposed_parent(self, store, effort=12):
        parent = Task(name="Feature", milestone_id="m1", estimated_effort=effort)
        await store.put(parent)
        subtasks = await TaskDecomposer(store=store).generate_subtasks(parent)
        return parent, subtasks

    async def test_parent_completes_after_last_subtask(self, scheduler, store):
        parent, subtasks = await self._decomposed_parent(store)
        assert len(subtasks) == 3

        for i in range(2):
            task = await scheduler.get_next_task()
            await scheduler.complete_task(task.id, f"result {i}")
            assert (await store.get(parent.id)).status == TaskStatus.IN_PROGRESS

        last = await scheduler.get_next_task()
        await scheduler.complete_task(last.id, "result 2")

        stored_parent = await store.get(parent.id)
        assert stored_parent.status == TaskStatus.COMPLETED
        assert stored_parent.result == {
            "subtask_results": ["result 0", "result 1", "result 2"]
        }

    async def test_skipped_subtask_keeps_parent_open(self, scheduler, store):
        parent, subtasks = await self._decomposed_parent(store, effort=8)

        await scheduler.skip_task(subtasks[0].id)
        task = await scheduler.get_next_task()
        await scheduler.complete_task(task.id)

        assert (await store.get(parent.id)).status == TaskStatus.IN_PROGRESS

    async def test_explicit_check_without_subtasks_is_noop(self, scheduler):
        task_id = await add(scheduler, "plain")

        await scheduler.check_parent_task_completion(task_id)

        assert (await scheduler.get_task(task_id)).status == TaskStatus.PENDING

    async def test_parent_dependencies_gate_subtasks(self, scheduler, store):
        """Subtasks wait for the prerequisites of their parent."""
        base = await add(scheduler, "base", priority=TaskPriority.LOW)
        parent = Task(
            name="Feature",
            milestone_id="m1",
            estimated_effort=8,
            dependencies=[base],
            priority=TaskPriority.CRITICAL,
        )
        await store.put(parent)
        await TaskDecomposer(store=store).generate_subtasks(parent)

        first = await scheduler.get_next_task()
        assert first.id == base
        assert await scheduler.get_next_task() is None

        await scheduler.complete_task(base)
        assert (await scheduler.get_next_task()).parent_task_id == parent.id


@pytest.mark.asyncio
class TestReporting:
    async def test_high_priority_count(self, scheduler):
        done = await add(scheduler, "done", priority=TaskPriority.CRITICAL)
        await add(scheduler, "open critical", priority=TaskPriority.CRITICAL)
        await add(scheduler, "open high", priority=TaskPriority.HIGH)
        await add(scheduler, "open medium", priority=TaskPriority.MEDIUM)
        skipped = await add(scheduler, "skipped high", priority=TaskPriority.HIGH)
        await scheduler.complete_task(done)
        await scheduler.skip_task(skipped)

        assert await scheduler.get_high_priority_task_count() == 2

    async def test_failed_high_priority_still_counts(self, scheduler):
        task_id = await add(scheduler, "critical", priority=TaskPriority.CRITICAL)
        await scheduler.get_next_task()
        await scheduler.fail_task(task_id, "err")

        assert await scheduler.get_high_priority_task_count() == 1

    async def test_summary_distinguishes_blocked_from_idle(self, scheduler):
        summary = await scheduler.get_progress_summary()
        assert not summary.has_pending
        assert not summary.blocked

        await add(scheduler, "stuck", dependencies=["nowhere"])
        summary = await scheduler.get_progress_summary()
        assert summary.has_pending
        assert summary.blocked
        assert summary.status_counts == {"pending": 1}

    async def test_summary_effort_counts_leaves_only(self, scheduler, store):
        parent = Task(name="Feature", milestone_id="m1", estimated_effort=8)
        await store.put(parent)
        await TaskDecomposer(store=store).generate_subtasks(parent)

        task = await scheduler.get_next_task()
        await scheduler.complete_task(task.id)
        summary = await scheduler.get_progress_summary()

        assert summary.total_effort == pytest.approx(8)
        assert summary.completed_effort == pytest.approx(4)
