"""Tests for the TaskExecutionEngine."""
import asyncio
import random

import pytest

from MindCanvas.agents import ModelClient
from MindCanvas.core import ExecutionStatus, OutputType, TaskStatus
from MindCanvas.infrastructure import NotFoundError, TaskAlreadyRunningError, TransportError
from MindCanvas.llm_backends import Completion
from MindCanvas.runtime import EXECUTION_STEPS, TaskExecutionEngine


@pytest.fixture
def task(store):
    intention = store.create_intention()
    store.update_intention(intention.id, title="Move apartments")
    return store.add_task(intention.id, "Hire movers", description="Get three quotes")


@pytest.fixture
def gated_backend(fake_backend_cls):
    class GatedBackend(fake_backend_cls):
        """Blocks inside the remote call until released."""

        def __init__(self):
            super().__init__()
            self.entered = asyncio.Event()
            self.release = asyncio.Event()

        async def acomplete(self, messages, temperature=0.7, max_tokens=None):
            self.entered.set()
            await self.release.wait()
            return await super().acomplete(messages, temperature, max_tokens)

    return GatedBackend()


@pytest.fixture
def gated_engine(store, governor, scheduler, settings, gated_backend):
    client = ModelClient(gated_backend, governor, settings, sleep=scheduler.sleep)
    return TaskExecutionEngine(store, governor, client, scheduler, settings, rng=random.Random(1))


class TestSuccessfulExecution:
    """Tests for a run that completes."""

    @pytest.mark.asyncio
    async def test_progress_monotonic_and_100_only_when_completed(self, engine, backend, task):
        """Should report non-decreasing progress ending at 100 on completion."""
        backend.responses.append("1. Call three moving companies")
        updates = []

        execution = await engine.execute_task(task.id, updates.append)

        progress = [u.progress for u in updates]
        assert progress == sorted(progress)
        assert progress[:5] == [0, 20, 40, 60, 80]
        assert progress[-1] == 100
        assert all(u.status == ExecutionStatus.COMPLETED for u in updates if u.progress == 100)
        assert updates[0].status == ExecutionStatus.STARTING
        assert execution.status == ExecutionStatus.COMPLETED
        assert execution.completed_at is not None

    @pytest.mark.asyncio
    async def test_outputs_logged_in_order(self, engine, backend, task):
        """Should log four progress steps then the result."""
        backend.responses.append("1. Call three moving companies")

        execution = await engine.execute_task(task.id)

        assert [o.type for o in execution.outputs] == [OutputType.PROGRESS] * 4 + [OutputType.RESULT]
        assert [o.content for o in execution.outputs[:4]] == list(EXECUTION_STEPS[:4])
        assert execution.result() == "1. Call three moving companies"

    @pytest.mark.asyncio
    async def test_task_mirrored_in_store(self, engine, backend, store, task):
        """Should leave the stored task completed with the result."""
        backend.responses.append("Quotes gathered")

        await engine.execute_task(task.id)

        stored = store.require_task(task.id)
        assert stored.status == TaskStatus.COMPLETED
        assert stored.progress == 100
        assert stored.latest_result() == "Quotes gathered"
        assert stored.execution_started is not None
        assert stored.execution_completed is not None

    @pytest.mark.asyncio
    async def test_single_governed_request_with_tokens(self, engine, backend, governor, task):
        """Should record one request and the reported usage."""
        backend.responses.append("done")

        await engine.execute_task(task.id)

        usage = governor.snapshot()
        assert usage.total_requests == 1
        assert usage.current_requests == 0
        assert usage.tokens_used == 150

    @pytest.mark.asyncio
    async def test_missing_usage_uses_estimate(self, engine, backend, governor, task):
        """Should fall back to the default token estimate."""
        backend.responses.append(Completion(content="done", model="gpt-4", usage=None))

        await engine.execute_task(task.id)

        assert governor.snapshot().tokens_used == 500

    @pytest.mark.asyncio
    async def test_pacing_delays_within_bounds(self, engine, backend, scheduler, task):
        """Should pause between the four synthetic steps."""
        backend.responses.append("done")

        await engine.execute_task(task.id)

        assert len(scheduler.sleeps) == 4
        assert all(1.0 <= d <= 3.0 for d in scheduler.sleeps)

    @pytest.mark.asyncio
    async def test_zero_pacing(self, engine, backend, scheduler, settings, task):
        """Should allow pacing to be disabled."""
        settings.pacing.step_delay_min = settings.pacing.step_delay_max = 0.0
        backend.responses.append("done")

        await engine.execute_task(task.id)

        assert scheduler.sleeps == [0.0] * 4

    @pytest.mark.asyncio
    async def test_degraded_result_still_completes(self, engine, backend, governor, task):
        """Should complete with the fallback text and no token charge."""
        backend.responses.append(TransportError("down", status_code=502))

        execution = await engine.execute_task(task.id)

        assert execution.status == ExecutionStatus.COMPLETED
        assert execution.outputs[-1].metadata == {"degraded": True}
        assert '"Hire movers"' in execution.result()
        assert governor.snapshot().tokens_used == 0

    @pytest.mark.asyncio
    async def test_async_progress_callback_awaited(self, engine, backend, task):
        """Should await coroutine observers."""
        backend.responses.append("done")
        seen = []

        async def observer(execution):
            seen.append(execution.progress)

        await engine.execute_task(task.id, observer)

        assert seen[-1] == 100


class TestFailedExecution:
    """Tests for runs that end in failure."""

    @pytest.mark.asyncio
    async def test_rate_limited_fails_without_governor_increment(self, engine, backend, governor, task):
        """Should fail before any remote call or request count."""
        for _ in range(61):
            governor.record_request_start()
            governor.record_request_end()
        before = governor.snapshot()
        updates = []

        execution = await engine.execute_task(task.id, updates.append)

        after = governor.snapshot()
        assert execution.status == ExecutionStatus.FAILED
        assert "Rate limit" in execution.error
        assert after.total_requests == before.total_requests
        assert after.current_requests == 0
        assert backend.calls == []
        assert all(u.progress < 100 for u in updates)
        assert execution.outputs[-1].type == OutputType.ERROR

    @pytest.mark.asyncio
    async def test_unexpected_error_fails_and_releases_slot(self, engine, backend, governor, store, task):
        """Should fail, log the error and pair start/end."""
        backend.responses.append(RuntimeError("backend exploded"))

        execution = await engine.execute_task(task.id)

        assert execution.status == ExecutionStatus.FAILED
        assert execution.error == "backend exploded"
        assert execution.progress == 80
        assert governor.snapshot().current_requests == 0
        assert governor.snapshot().total_requests == 1
        stored = store.require_task(task.id)
        assert stored.status == TaskStatus.SPAWNING
        assert stored.progress < 100

    @pytest.mark.asyncio
    async def test_no_client_fails(self, store, governor, scheduler, settings, task):
        """Should fail when AI is not configured."""
        engine = TaskExecutionEngine(store, governor, None, scheduler, settings)

        execution = await engine.execute_task(task.id)

        assert execution.status == ExecutionStatus.FAILED
        assert execution.error == "AI service not initialized"

    @pytest.mark.asyncio
    async def test_rerun_after_failure_appends_outputs(self, engine, backend, store, task):
        """Should keep earlier outputs on the task across runs."""
        backend.responses.extend([RuntimeError("flaky"), "second time lucky"])

        await engine.execute_task(task.id)
        await engine.execute_task(task.id)

        stored = store.require_task(task.id)
        assert stored.status == TaskStatus.COMPLETED
        types = [o.type for o in stored.outputs]
        assert types.count(OutputType.ERROR) == 1
        assert types[-1] == OutputType.RESULT

    @pytest.mark.asyncio
    async def test_unknown_task_raises(self, engine):
        """Should reject ids that are not in the store."""
        with pytest.raises(NotFoundError):
            await engine.execute_task("missing")


class TestConcurrencyAndOverride:
    """Tests for concurrent runs and force-complete."""

    @pytest.mark.asyncio
    async def test_same_task_cannot_run_twice(self, gated_engine, gated_backend, task):
        """Should refuse a second concurrent run of one task."""
        gated_backend.responses.append("done")
        runner = asyncio.create_task(gated_engine.execute_task(task.id))
        await gated_backend.entered.wait()

        assert gated_engine.is_running(task.id)
        with pytest.raises(TaskAlreadyRunningError):
            await gated_engine.execute_task(task.id)

        gated_backend.release.set()
        execution = await runner
        assert execution.status == ExecutionStatus.COMPLETED
        assert not gated_engine.is_running(task.id)

    @pytest.mark.asyncio
    async def test_force_complete_cancels_in_flight_call(self, gated_engine, gated_backend, governor, store, task):
        """Should complete immediately, abandon the call and release the slot."""
        gated_backend.responses.append("too late")
        updates = []
        runner = asyncio.create_task(gated_engine.execute_task(task.id, updates.append))
        await gated_backend.entered.wait()
        assert governor.snapshot().current_requests == 1

        forced = await gated_engine.force_complete(task.id)
        execution = await runner

        assert forced is execution
        assert execution.forced
        assert execution.status == ExecutionStatus.COMPLETED
        assert execution.progress == 100
        assert execution.result() is None
        assert updates[-1].progress == 100
        usage = governor.snapshot()
        assert usage.current_requests == 0
        assert usage.total_requests == 1
        assert usage.tokens_used == 0
        stored = store.require_task(task.id)
        assert stored.status == TaskStatus.COMPLETED
        assert stored.progress == 100

    @pytest.mark.asyncio
    async def test_force_complete_idle_task(self, engine, store, governor, task):
        """Should complete a task that is not running."""
        execution = await engine.force_complete(task.id)

        assert execution.forced
        assert execution.status == ExecutionStatus.COMPLETED
        assert store.require_task(task.id).status == TaskStatus.COMPLETED
        assert governor.snapshot().total_requests == 0

    @pytest.mark.asyncio
    async def test_independent_tasks_run_concurrently(self, engine, backend, store, governor, task):
        """Should run different tasks side by side."""
        other = store.add_task(task.intention_id, "Pack boxes")
        backend.responses.extend(["a", "b"])

        results = await asyncio.gather(
            engine.execute_task(task.id),
            engine.execute_task(other.id),
        )

        assert all(r.status == ExecutionStatus.COMPLETED for r in results)
        assert governor.snapshot().total_requests == 2
        assert governor.snapshot().current_requests == 0


class TestDeletedTask:
    """Tests for tasks removed from the store while executing."""

    @pytest.mark.asyncio
    async def test_deleted_during_result_call(self, store, governor, scheduler, settings, fake_backend_cls, task):
        """Should finish without raising and release the slot."""
        class DeletingBackend(fake_backend_cls):
            async def acomplete(self, messages, temperature=0.7, max_tokens=None):
                store.delete_task(task.id)
                return await super().acomplete(messages, temperature, max_tokens)

        backend = DeletingBackend(["Quotes gathered"])
        client = ModelClient(backend, governor, settings, sleep=scheduler.sleep)
        engine = TaskExecutionEngine(store, governor, client, scheduler, settings, rng=random.Random(3))

        execution = await engine.execute_task(task.id)

        assert execution.status == ExecutionStatus.COMPLETED
        assert store.get_task(task.id) is None
        assert not engine.is_running(task.id)
        assert governor.snapshot().current_requests == 0

    @pytest.mark.asyncio
    async def test_deleted_between_steps_fails(self, engine, backend, store, governor, task):
        """Should end failed without a remote call when the task is gone."""
        backend.responses.append("never used")

        def on_progress(execution):
            if execution.progress == 40 and store.get_task(task.id) is not None:
                store.delete_task(task.id)

        execution = await engine.execute_task(task.id, on_progress)

        assert execution.status == ExecutionStatus.FAILED
        assert "Task not found" in execution.error
        assert execution.progress < 100
        assert backend.calls == []
        assert governor.snapshot().current_requests == 0
