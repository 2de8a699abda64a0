"""Shared fixtures and fakes."""

import asyncio
from datetime import date
from typing import Any, Optional

import pytest

from tpdesk.hooks.base import Hook, HookContext, HookResult
from tpdesk.hooks.engine import HookEngine
from tpdesk.projects.models import Project, ProjectFilters, ProjectPage
from tpdesk.services.offline import OfflineBackend
from tpdesk.tasks.models import Pagination, TaskFilters, TaskPage, TaskStats
from tpdesk.workflow.models import WorkflowProgress

TODAY = date(2026, 10, 18)


def task_record(task_id: str, title: str, **fields: Any) -> dict[str, Any]:
    """Raw task record for OfflineBackend.seed."""
    return {"id": task_id, "title": title, **fields}


SAMPLE_TASKS = [
    task_record("t1", "Fix bug in benchmark filter", status="todo", priority="high",
                due_date="2026-10-10", project_id="p1", assigned_to_id="u1", tags=["analysis"]),
    task_record("t2", "Review interview notes", description="Bug bash follow-up", status="todo",
                priority="low", project_id="p1"),
    task_record("t3", "Draft local file", status="in_progress", priority="medium",
                due_date="2026-10-18", project_id="p2", assigned_to_id="u2"),
    task_record("t4", "Collect agreements", status="completed", priority="urgent",
                due_date="2026-10-01", project_id="p1"),
    task_record("t5", "Bug triage meeting", status="blocked", priority="high",
                due_date="2026-10-20", project_id="p2", tags=["meeting", "analysis"]),
    task_record("t6", "Update segmentation", status="review", priority="medium",
                due_date="2026-11-30", assigned_to_id="u1"),
]


SAMPLE_WORKFLOW = {
    "id": "wf1",
    "projectId": "p1",
    "template": {"id": "tpl1", "name": "Local File"},
    "steps": [
        # Deliberately out of order
        {"id": "s3", "stepName": "Analysis", "order": 3, "status": "not_started", "estimatedDays": 4},
        {"id": "s1", "stepName": "Kickoff", "order": 1, "status": "completed", "estimatedDays": 1,
         "startDate": "2026-10-01T09:00:00Z", "completedDate": "2026-10-02T09:00:00Z"},
        {"id": "s2", "stepName": "Data request", "order": 2, "status": "in_progress",
         "estimatedDays": 10, "startDate": "2026-10-12T09:00:00Z"},
    ],
}


SAMPLE_PROJECTS = [
    {"id": "p1", "projectName": "Acme Local File", "deliverableType": "LOCAL_FILE",
     "status": "ANALYSIS", "priority": "high", "projectManagerId": "u1",
     "deadline": "2026-12-15T00:00:00.000Z"},
    {"id": "p2", "projectName": "Acme Master File", "deliverableType": "MASTER_FILE",
     "status": "PLANNING", "priority": "medium", "projectManagerId": "u2",
     "description": "Group-wide benchmark refresh"},
    {"id": "p3", "projectName": "Beta Benchmark", "deliverableType": "BENCHMARK_ANALYSIS",
     "status": "DELIVERED", "priority": "low", "projectManagerId": "u1"},
]


class RecordingHook(Hook):
    """Collects every event it sees."""

    priority = 50

    def __init__(self, config: dict | None = None):
        self.config = config or {}
        self.events: list[HookContext] = []

    async def execute(self, context: HookContext) -> HookResult:
        self.events.append(context)
        return HookResult()

    def names(self) -> list[str]:
        return [context.event for context in self.events]


class GatedBackend(OfflineBackend):
    """Offline backend whose held responses can be released in any order."""

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.held: set[str] = set()
        self.gates: list[asyncio.Event] = []

    async def _gate(self, operation: str) -> None:
        if operation in self.held:
            gate = asyncio.Event()
            self.gates.append(gate)
            await gate.wait()

    async def list_tasks(self, filters: TaskFilters, page: int = 1, limit: int = 50) -> TaskPage:
        await self._gate("list_tasks")
        return await super().list_tasks(filters, page, limit)

    async def get_task_stats(self, project_id: Optional[str] = None) -> TaskStats:
        await self._gate("get_task_stats")
        return await super().get_task_stats(project_id)

    async def get_workflow_progress(self, project_id: str) -> WorkflowProgress:
        await self._gate("get_workflow_progress")
        return await super().get_workflow_progress(project_id)

    async def list_projects(
        self, filters: ProjectFilters, page: int = 1, limit: int = 20
    ) -> ProjectPage:
        await self._gate("list_projects")
        return await super().list_projects(filters, page, limit)

    async def get_project(self, project_id: str) -> Project:
        await self._gate("get_project")
        return await super().get_project(project_id)

    async def wait_for_gates(self, count: int) -> None:
        while len(self.gates) < count:
            await asyncio.sleep(0)


class UnclampedBackend(OfflineBackend):
    """Offline backend that reports a page past the end as requested, with no items."""

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.fail_clamped_reload = False

    async def list_tasks(self, filters: TaskFilters, page: int = 1, limit: int = 50) -> TaskPage:
        result = await super().list_tasks(filters, page, limit)
        if result.pagination.page == page:
            return result

        if self.fail_clamped_reload:
            self.fail_next("list_tasks")
        pagination = Pagination(page=page, limit=limit, total=result.pagination.total)
        return TaskPage(items=[], pagination=pagination)


@pytest.fixture
def backend():
    """Offline backend with sample tasks, projects and one workflow."""
    backend = OfflineBackend(today=lambda: TODAY)
    backend.seed(tasks=SAMPLE_TASKS, workflows=[SAMPLE_WORKFLOW], projects=SAMPLE_PROJECTS)
    return backend


@pytest.fixture
def gated_backend():
    """Gated backend with the same sample data."""
    backend = GatedBackend(today=lambda: TODAY)
    backend.seed(tasks=SAMPLE_TASKS, workflows=[SAMPLE_WORKFLOW], projects=SAMPLE_PROJECTS)
    return backend


@pytest.fixture
def unclamped_backend():
    """Backend with sample tasks that does not clamp out-of-range pages."""
    backend = UnclampedBackend(today=lambda: TODAY)
    backend.seed(tasks=SAMPLE_TASKS)
    return backend


@pytest.fixture
def recorder():
    return RecordingHook()


@pytest.fixture
def hook_engine(recorder):
    """Hook engine with a recorder on every event."""
    engine = HookEngine({"enabled": True})
    engine.register("*", recorder)
    return engine


@pytest.fixture
def task_config():
    return {"page_size": 50, "search_debounce_seconds": 0.01}


@pytest.fixture
def today():
    return TODAY
