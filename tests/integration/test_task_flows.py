"""End-to-end flows through the stores against the offline backend."""

import math

import pytest

from tpdesk.services.offline import OfflineBackend
from tpdesk.tasks.kanban import KanbanBoard
from tpdesk.tasks.models import TaskStatus
from tpdesk.tasks.store import TaskStore
from tpdesk.workflow.models import WorkflowStepStatus
from tpdesk.workflow.view import WorkflowProgressView

FILTER_CHANGES = [
    {"status": "todo"},
    {"priority": "high"},
    {"project_id": "p2"},
    {"assigned_to": "u1"},
    {"overdue": True},
    {"tags": ["analysis"]},
    {"status": "blocked", "project_id": "p2"},
]


@pytest.fixture
def large_backend(today):
    """Backend with enough tasks for several pages."""
    backend = OfflineBackend(today=lambda: today)
    statuses = list(TaskStatus)
    backend.seed(
        tasks=[
            {
                "id": f"task-{i:02d}",
                "title": f"Task {i}" + (" bug" if i % 4 == 0 else ""),
                "status": statuses[i % len(statuses)].value,
                "project_id": "p1" if i % 2 else "p2",
            }
            for i in range(1, 24)
        ]
    )
    return backend


class TestScenarios:
    """Scenario flows."""

    @pytest.mark.asyncio
    async def test_status_and_search_filter(self, backend, task_config, today):
        """Status todo plus search "bug" shows only matching todo tasks."""
        store = TaskStore(backend, config=task_config)
        await store.load()

        await store.update_filters(status="todo")
        await store.update_filters(search="bug")
        await store.settle()

        ids = [t.id for t in store.tasks]
        assert ids == ["t1", "t2"]
        for task in store.tasks:
            assert task.status == TaskStatus.TODO
            assert "bug" in f"{task.title} {task.description or ''}".lower()

    @pytest.mark.asyncio
    async def test_create_without_project_appears_on_page_one(self, backend, task_config):
        store = TaskStore(backend, config=task_config)
        await store.refresh()
        total_before = store.stats.total

        task = await store.create({"title": "Draft local file"})

        assert task.project_id is None
        assert task.id in [t.id for t in store.tasks]
        assert store.page == 1
        assert store.stats.total == total_before + 1
        assert store.pagination.total == total_before + 1

    @pytest.mark.asyncio
    async def test_blocking_in_progress_step(self, backend):
        view = WorkflowProgressView(backend, "p1")
        await view.load()
        before = view.progress
        assert view.get_step("s2").status == WorkflowStepStatus.IN_PROGRESS

        await view.update_step("s2", {"status": "blocked"})

        assert view.progress.in_progress_steps == 0
        assert view.progress.blocked_steps == 1
        assert view.progress.percent_complete == before.percent_complete
        assert [s.order for s in view.steps] == [1, 2, 3]


class TestProperties:
    """Store-wide properties."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("change", FILTER_CHANGES)
    async def test_filter_change_resets_page_and_matches(self, large_backend, change, today):
        store = TaskStore(large_backend, config={"page_size": 5})
        await store.load()
        await store.go_to_page(2)

        await store.update_filters(**change)

        assert store.page == 1
        for task in store.tasks:
            assert store.filters.matches(task, today)
        expected = [t for t in large_backend.tasks.values() if store.filters.matches(t, today)]
        assert store.pagination.total == len(expected)

    @pytest.mark.asyncio
    async def test_total_pages_and_bounds(self, large_backend):
        store = TaskStore(large_backend, config={"page_size": 5})
        await store.load()
        assert store.pagination.total_pages == math.ceil(23 / 5)

        page = 1
        while await store.next_page():
            page += 1
            assert store.pagination.total_pages == math.ceil(store.pagination.total / 5)
        assert page == 5
        assert len(store.tasks) == 3

        calls = large_backend.call_count("list_tasks")
        assert not await store.go_to_page(6)
        assert not await store.go_to_page(0)
        assert large_backend.call_count("list_tasks") == calls

    @pytest.mark.asyncio
    async def test_create_visible_under_matching_filters(self, backend, task_config):
        store = TaskStore(backend, config=task_config, initial_filters={"status": "review"})
        await store.refresh()
        total = store.stats.total

        task = await store.create({"title": "Review memo", "status": "review"})

        assert task.id in [t.id for t in store.tasks]
        assert store.stats.total == total + 1

    @pytest.mark.asyncio
    async def test_update_status_moves_buckets(self, backend, task_config):
        store = TaskStore(backend, config=task_config)
        await store.refresh()
        order = [t.id for t in store.tasks]
        todo = store.stats.by_status[TaskStatus.TODO]
        review = store.stats.by_status[TaskStatus.REVIEW]

        await store.update("t2", {"status": "review"})

        assert [t.id for t in store.tasks] == order
        assert store.get("t2").status == TaskStatus.REVIEW
        assert store.stats.by_status[TaskStatus.TODO] == todo - 1
        assert store.stats.by_status[TaskStatus.REVIEW] == review + 1
        assert sum(store.stats.by_status.values()) == store.stats.total

    @pytest.mark.asyncio
    async def test_delete_drops_task_and_total(self, backend, task_config):
        store = TaskStore(backend, config=task_config)
        await store.refresh()
        total = store.stats.total

        await store.delete("t4")

        assert "t4" not in [t.id for t in store.tasks]
        assert store.stats.total == total - 1

    @pytest.mark.asyncio
    async def test_drop_on_own_column_is_silent(self, backend, task_config):
        store = TaskStore(backend, config=task_config)
        board = KanbanBoard(store)
        await store.refresh()
        snapshot = store.snapshot()
        calls = list(backend.calls)

        for task in store.tasks:
            assert not await board.move_card(task.id, task.status)

        assert backend.calls == calls
        assert store.snapshot() == snapshot

    @pytest.mark.asyncio
    async def test_completed_date_auto_fill(self, backend):
        view = WorkflowProgressView(backend, "p1")
        await view.load()
        recorded = view.get_step("s1").completed_date

        s3 = await view.complete_step("s3")
        s1 = await view.update_step("s1", {"status": "completed"})

        assert s3.completed_date is not None
        assert s1.completed_date == recorded

    @pytest.mark.asyncio
    async def test_percent_complete_matches_counts(self, backend):
        view = WorkflowProgressView(backend, "p1")
        await view.load()

        for step_id in ["s2", "s3"]:
            await view.complete_step(step_id)
            progress = view.progress
            assert progress.percent_complete == math.floor(
                100 * progress.completed_steps / progress.total_steps + 0.5
            )

        assert view.progress.percent_complete == 100

    @pytest.mark.asyncio
    async def test_percent_complete_defined_for_empty_workflow(self, today):
        backend = OfflineBackend(today=lambda: today)
        backend.seed(workflows=[{"id": "w", "projectId": "empty", "steps": []}])
        view = WorkflowProgressView(backend, "empty")

        await view.load()

        assert view.progress.total_steps == 0
        assert view.progress.percent_complete == 0
