"""Unit tests for WorkflowProgressView."""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from tpdesk.errors import ApiError, InvalidInputError, OperationError
from tpdesk.workflow.models import ProjectWorkflowStep, WorkflowStepStatus
from tpdesk.workflow.view import WorkflowProgressView

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def view(backend, hook_engine):
    return WorkflowProgressView(backend, "p1", hook_engine=hook_engine, now=lambda: NOW)


class TestLoad:
    """Tests for loading a workflow."""

    @pytest.mark.asyncio
    async def test_load_fetches_steps_and_progress(self, view, backend, recorder):
        assert await view.load()

        assert [s.id for s in view.steps] == ["s1", "s2", "s3"]
        assert view.progress.percent_complete == 33
        assert view.error is None
        assert backend.call_count("get_workflow") == 1
        assert backend.call_count("get_workflow_progress") == 1
        assert recorder.names() == ["workflow.loaded"]

    @pytest.mark.asyncio
    async def test_either_failure_fails_both(self, view, backend, recorder):
        """Test steps and progress are only applied together."""
        await view.load()
        backend.fail_next("get_workflow_progress")
        backend.workflows["p1"].steps[0].notes = "changed on server"

        assert not await view.load()

        assert view.error == "Internal server error"
        assert all(step.notes is None for step in view.steps)
        assert view.progress.percent_complete == 33
        assert recorder.names()[-1] == "workflow.load_failed"

    @pytest.mark.asyncio
    async def test_unknown_project(self, backend):
        view = WorkflowProgressView(backend, "p404")
        assert not await view.load()
        assert view.error == "Workflow not found"
        assert view.snapshot().workflow is None

    @pytest.mark.asyncio
    async def test_stale_load_discarded(self, backend):
        view = WorkflowProgressView(backend, "p1")
        release = asyncio.Event()
        original = backend.get_workflow
        calls = 0

        async def get_workflow(project_id):
            nonlocal calls
            calls += 1
            if calls == 1:
                await release.wait()
                workflow = await original(project_id)
                workflow.steps[0].notes = "stale"
                return workflow
            return await original(project_id)

        backend.get_workflow = get_workflow
        first = asyncio.create_task(view.load())
        await asyncio.sleep(0)
        assert await view.load()

        release.set()
        assert not await first
        assert all(step.notes != "stale" for step in view.steps)

    @pytest.mark.asyncio
    async def test_snapshot(self, view):
        await view.load()
        snapshot = view.snapshot()

        assert [s.order for s in snapshot.steps] == [1, 2, 3]
        assert [s.order for s in snapshot.workflow.steps] == [1, 2, 3]
        assert snapshot.progress.total_steps == 3
        assert not snapshot.is_loading


class TestUpdateStep:
    """Tests for step updates."""

    @pytest.mark.asyncio
    async def test_start_sets_start_date_when_missing(self, view):
        await view.load()
        step = await view.start_step("s3")

        assert step.status == WorkflowStepStatus.IN_PROGRESS
        assert step.start_date == NOW

    @pytest.mark.asyncio
    async def test_start_keeps_recorded_start_date(self, view, backend):
        await view.load()
        original = view.get_step("s2").start_date

        step = await view.update_step("s2", {"status": "in_progress"})

        assert step.start_date == original

    @pytest.mark.asyncio
    async def test_complete_sets_completed_date_when_missing(self, view):
        await view.load()
        step = await view.complete_step("s2", actual_days=5)

        assert step.completed_date == NOW
        assert step.actual_days == 5
        assert view.progress.completed_steps == 2
        assert view.progress.percent_complete == 67

    @pytest.mark.asyncio
    async def test_complete_keeps_existing_completed_date(self, view, backend):
        await view.load()
        recorded = view.get_step("s1").completed_date

        step = await view.update_step("s1", {"status": "completed"})

        assert step.completed_date == recorded

    @pytest.mark.asyncio
    async def test_explicit_date_in_patch_wins(self, view):
        await view.load()
        chosen = datetime(2026, 10, 15, tzinfo=timezone.utc)

        step = await view.update_step("s3", {"status": "in_progress", "start_date": chosen})

        assert step.start_date == chosen

    @pytest.mark.asyncio
    async def test_block_and_notes(self, view, recorder):
        await view.load()
        await view.block_step("s2", "Waiting on client data")

        assert view.get_step("s2").status == WorkflowStepStatus.BLOCKED
        assert view.get_step("s2").notes == "Waiting on client data"
        assert view.progress.blocked_steps == 1
        assert view.progress.in_progress_steps == 0
        assert "workflow.step_updated" in recorder.names()

        await view.update_step_notes("s2", "Data received")
        await view.assign_step("s2", "u3")
        assert view.get_step("s2").notes == "Data received"
        assert view.get_step("s2").assigned_to_id == "u3"

    @pytest.mark.asyncio
    async def test_unknown_step(self, view, backend):
        await view.load()
        with pytest.raises(InvalidInputError, match="s99"):
            await view.update_step("s99", {"notes": "x"})
        assert backend.call_count("update_workflow_step") == 0

    @pytest.mark.asyncio
    async def test_invalid_patch(self, view, backend):
        await view.load()
        with pytest.raises(InvalidInputError):
            await view.update_step("s1", {"status": "finished"})
        assert backend.call_count("update_workflow_step") == 0

    @pytest.mark.asyncio
    async def test_failure_leaves_steps(self, view, backend, recorder):
        await view.load()
        before = view.steps
        backend.fail_next(
            "update_workflow_step", ApiError("no", status_code=403, server_message="Not permitted")
        )

        with pytest.raises(OperationError, match="Not permitted"):
            await view.block_step("s2", "x")

        assert view.steps == before
        assert view.error == "Not permitted"
        assert recorder.names()[-1] == "workflow.step_update_failed"

    @pytest.mark.asyncio
    async def test_order_kept_from_loaded_step(self, view):
        """Test the cached order survives a response with a different order."""
        backend = AsyncMock()
        await view.load()
        view.backend = backend
        backend.update_workflow_step.return_value = ProjectWorkflowStep(
            id="s3", step_name="Analysis", order=0, status="blocked"
        )
        backend.get_workflow_progress.return_value = view.progress

        step = await view.block_step("s3")

        assert step.order == 3
        assert [s.id for s in view.steps] == ["s1", "s2", "s3"]

    @pytest.mark.asyncio
    async def test_progress_is_refetched_not_computed(self, view, backend):
        await view.load()
        calls = backend.call_count("get_workflow_progress")

        await view.update_step_notes("s1", "Kickoff held")

        assert backend.call_count("get_workflow_progress") == calls + 1

    @pytest.mark.asyncio
    async def test_progress_refresh_failure_keeps_update(self, view, backend):
        await view.load()
        backend.fail_next("get_workflow_progress")

        step = await view.block_step("s3")

        assert step.status == WorkflowStepStatus.BLOCKED
        assert view.get_step("s3").status == WorkflowStepStatus.BLOCKED
        assert view.error == "Internal server error"
        assert view.progress.blocked_steps == 0

    @pytest.mark.asyncio
    async def test_stale_progress_discarded(self, gated_backend):
        """Test an older progress response arriving last does not overwrite newer progress."""
        view = WorkflowProgressView(gated_backend, "p1")
        await view.load()
        gated_backend.held.add("get_workflow_progress")

        first = asyncio.create_task(view.refresh_progress())
        await gated_backend.wait_for_gates(1)
        second = asyncio.create_task(view.refresh_progress())
        await gated_backend.wait_for_gates(2)

        gated_backend.gates[1].set()
        assert await second is True
        assert view.progress.percent_complete == 33

        workflow = gated_backend.workflows["p1"]
        workflow.steps = [
            step.model_copy(update={"status": WorkflowStepStatus.COMPLETED}) for step in workflow.steps
        ]
        gated_backend.gates[0].set()
        assert await first is False

        assert view.progress.percent_complete == 33
        assert view.progress.completed_steps == 1
