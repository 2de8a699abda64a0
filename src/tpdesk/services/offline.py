"""In-memory backend used for demos, offline mode and tests."""

import logging
from collections.abc import Callable
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Optional

import yaml

from tpdesk.errors import ApiError
from tpdesk.projects.models import Project, ProjectFilters, ProjectPage
from tpdesk.services.base import ProjectBackend, TaskBackend, WorkflowBackend
from tpdesk.tasks.models import (
    Pagination,
    Task,
    TaskCreate,
    TaskFilters,
    TaskPage,
    TaskStats,
    TaskUpdate,
)
from tpdesk.workflow.models import (
    ProjectWorkflow,
    ProjectWorkflowStep,
    WorkflowProgress,
    WorkflowStepUpdate,
    WorkflowTemplate,
)

logger = logging.getLogger(__name__)


class OfflineBackend(TaskBackend, WorkflowBackend, ProjectBackend):
    """
    Deterministic stand-in for the engagement API.

    Behaves like the REST server as far as the stores can observe:
    - Filters are applied with ``TaskFilters.matches`` and ``ProjectFilters.matches``
    - Records are returned in insertion order
    - A page beyond the last one is clamped to the last page
    - Stats and workflow progress are computed server-side

    Every call is recorded in ``calls``; ``fail_next`` queues an error for
    the next call of a given operation.
    """

    def __init__(
        self,
        config: Optional[dict] = None,
        today: Optional[Callable[[], date]] = None,
    ) -> None:
        """
        Initialize offline backend.

        Args:
            config: Offline configuration (``user_id``, ``seed_file``)
            today: Clock used for overdue and progress calculations
        """
        self.config = config or {}
        self.user_id = self.config.get("user_id", "user-1")
        self._today = today or date.today

        self.tasks: dict[str, Task] = {}
        self.workflows: dict[str, ProjectWorkflow] = {}
        self.projects: dict[str, Project] = {}
        self.calls: list[str] = []
        self._failures: dict[str, list[ApiError]] = {}
        self._next_id = 1

        seed_file = self.config.get("seed_file")
        if seed_file:
            self.load_seed(seed_file)

    # Seeding

    def load_seed(self, path: str) -> None:
        """
        Load tasks, workflows and projects from a YAML file.

        Args:
            path: File with ``tasks``, ``workflows`` and ``projects`` lists
        """
        if not Path(path).exists():
            logger.warning(f"Seed file not found: {path}")
            return

        with open(path) as f:
            seed = yaml.safe_load(f) or {}

        self.seed(
            tasks=seed.get("tasks", []),
            workflows=seed.get("workflows", []),
            projects=seed.get("projects", []),
        )
        logger.info(
            f"Loaded {len(self.tasks)} tasks, {len(self.workflows)} workflows "
            f"and {len(self.projects)} projects from {path}"
        )

    def seed(
        self,
        tasks: Iterable[dict[str, Any]] = (),
        workflows: Iterable[dict[str, Any]] = (),
        projects: Iterable[dict[str, Any]] = (),
    ) -> None:
        """Add raw records, bypassing fault injection."""
        for record in tasks:
            record = dict(record)
            record.setdefault("id", self._new_id("task"))
            if "created_at" not in record and "createdAt" not in record:
                record["created_at"] = datetime.now(timezone.utc)
            task = Task.model_validate(record)
            self.tasks[task.id] = task

        for record in workflows:
            workflow = ProjectWorkflow.model_validate(record)
            self.workflows[workflow.project_id] = workflow

        for record in projects:
            project = Project.model_validate(record)
            self.projects[project.id] = project

    def add_workflow(self, project_id: str, template: WorkflowTemplate) -> ProjectWorkflow:
        """Instantiate a project workflow from a template."""
        workflow_id = self._new_id("workflow")
        steps = [
            ProjectWorkflowStep(
                id=self._new_id("step"),
                project_workflow_id=workflow_id,
                template_step_id=template_step.id,
                step_name=template_step.step_name,
                description=template_step.description,
                order=template_step.order,
                estimated_days=template_step.estimated_days,
            )
            for template_step in template.steps
        ]
        workflow = ProjectWorkflow(
            id=workflow_id,
            project_id=project_id,
            template_id=template.id,
            template=template,
            steps=steps,
        )
        self.workflows[project_id] = workflow
        logger.info(f"Created workflow {workflow_id} for project {project_id} from {template.name}")
        return workflow

    # Fault injection

    def fail_next(self, operation: str, error: Optional[ApiError] = None) -> None:
        """
        Make the next call of ``operation`` raise.

        Args:
            operation: Method name, e.g. ``"update_task"``
            error: Error to raise (default: 500 with a server message)
        """
        error = error or ApiError(
            "Internal server error", status_code=500, server_message="Internal server error"
        )
        self._failures.setdefault(operation, []).append(error)

    def call_count(self, operation: str) -> int:
        return self.calls.count(operation)

    def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        queued = self._failures.get(operation)
        if queued:
            raise queued.pop(0)

    def _new_id(self, prefix: str) -> str:
        while True:
            candidate = f"{prefix}-{self._next_id}"
            self._next_id += 1
            if candidate not in self.tasks:
                return candidate

    @staticmethod
    def _not_found(what: str) -> ApiError:
        message = f"{what} not found"
        return ApiError(message, status_code=404, server_message=message)

    @staticmethod
    def _paginate(records: list, page: int, limit: int) -> tuple[list, Pagination]:
        if page < 1 or limit < 1:
            raise ApiError("Invalid pagination", status_code=400, server_message="Invalid pagination")

        pagination = Pagination(page=page, limit=limit, total=len(records))
        if pagination.total_pages and page > pagination.total_pages:
            pagination.page = pagination.total_pages

        start = (pagination.page - 1) * limit
        items = [record.model_copy(deep=True) for record in records[start : start + limit]]
        return items, pagination

    # Tasks

    async def list_tasks(self, filters: TaskFilters, page: int = 1, limit: int = 50) -> TaskPage:
        self._enter("list_tasks")
        today = self._today()
        matching = [task for task in self.tasks.values() if filters.matches(task, today)]
        items, pagination = self._paginate(matching, page, limit)
        return TaskPage(items=items, pagination=pagination)

    async def get_task_stats(self, project_id: Optional[str] = None) -> TaskStats:
        self._enter("get_task_stats")
        tasks = [t for t in self.tasks.values() if project_id is None or t.project_id == project_id]
        return TaskStats.from_tasks(tasks, self._today())

    async def get_task(self, task_id: str) -> Task:
        self._enter("get_task")
        task = self.tasks.get(task_id)
        if task is None:
            raise self._not_found("Task")
        return task.model_copy(deep=True)

    async def get_my_tasks(self) -> list[Task]:
        self._enter("get_my_tasks")
        return [
            task.model_copy(deep=True)
            for task in self.tasks.values()
            if task.assigned_to_id == self.user_id
        ]

    async def create_task(self, data: TaskCreate) -> Task:
        self._enter("create_task")
        now = datetime.now(timezone.utc)
        record = data.model_dump(exclude_none=True)
        task = Task.model_validate(
            {
                **record,
                "id": self._new_id("task"),
                "created_by_id": self.user_id,
                "created_at": now,
                "updated_at": now,
            }
        )
        self.tasks[task.id] = task
        logger.info(f"Created task: {task.id} - {task.title}")
        return task.model_copy(deep=True)

    async def update_task(self, task_id: str, data: TaskUpdate) -> Task:
        self._enter("update_task")
        task = self.tasks.get(task_id)
        if task is None:
            raise self._not_found("Task")

        changes = data.model_dump(exclude_unset=True)
        updated = Task.model_validate(
            {**task.model_dump(), **changes, "updated_at": datetime.now(timezone.utc)}
        )
        self.tasks[task_id] = updated
        logger.debug(f"Updated task: {task_id}")
        return updated.model_copy(deep=True)

    async def delete_task(self, task_id: str) -> None:
        self._enter("delete_task")
        if task_id not in self.tasks:
            raise self._not_found("Task")
        del self.tasks[task_id]
        logger.info(f"Deleted task: {task_id}")

    # Workflows

    async def get_workflow(self, project_id: str) -> ProjectWorkflow:
        self._enter("get_workflow")
        workflow = self.workflows.get(project_id)
        if workflow is None:
            raise self._not_found("Workflow")
        return workflow.model_copy(deep=True)

    async def get_workflow_progress(self, project_id: str) -> WorkflowProgress:
        self._enter("get_workflow_progress")
        workflow = self.workflows.get(project_id)
        if workflow is None:
            raise self._not_found("Workflow")
        return WorkflowProgress.from_steps(workflow.steps, self._today())

    async def update_workflow_step(
        self, project_id: str, step_id: str, data: WorkflowStepUpdate
    ) -> ProjectWorkflowStep:
        self._enter("update_workflow_step")
        workflow = self.workflows.get(project_id)
        if workflow is None:
            raise self._not_found("Workflow")

        for index, step in enumerate(workflow.steps):
            if step.id == step_id:
                changes = data.model_dump(exclude_unset=True)
                updated = ProjectWorkflowStep.model_validate(
                    {**step.model_dump(), **changes, "updated_at": datetime.now(timezone.utc)}
                )
                workflow.steps[index] = updated
                return updated.model_copy(deep=True)

        raise self._not_found("Workflow step")

    # Projects

    async def list_projects(
        self, filters: ProjectFilters, page: int = 1, limit: int = 20
    ) -> ProjectPage:
        self._enter("list_projects")
        matching = [project for project in self.projects.values() if filters.matches(project)]
        items, pagination = self._paginate(matching, page, limit)
        return ProjectPage(items=items, pagination=pagination)

    async def get_project(self, project_id: str) -> Project:
        self._enter("get_project")
        project = self.projects.get(project_id)
        if project is None:
            raise self._not_found("Project")
        return project.model_copy(deep=True)
