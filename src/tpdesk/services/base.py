"""Boundary between the stores and the remote engagement service."""

from abc import ABC, abstractmethod
from typing import Optional

from tpdesk.projects.models import Project, ProjectFilters, ProjectPage
from tpdesk.tasks.models import Task, TaskCreate, TaskFilters, TaskPage, TaskStats, TaskUpdate
from tpdesk.workflow.models import (
    ProjectWorkflow,
    ProjectWorkflowStep,
    WorkflowProgress,
    WorkflowStepUpdate,
)


class TaskBackend(ABC):
    """
    Source of truth for tasks.

    Every method may raise ``ApiError``; nothing else is allowed to escape.
    """

    @abstractmethod
    async def list_tasks(self, filters: TaskFilters, page: int, limit: int) -> TaskPage:
        """
        Fetch one page of tasks matching ``filters``.

        Args:
            filters: Active filters
            page: 1-based page number
            limit: Page size

        Returns:
            TaskPage with items and pagination
        """
        pass

    @abstractmethod
    async def get_task_stats(self, project_id: Optional[str] = None) -> TaskStats:
        """Aggregate counts, optionally scoped to one project."""
        pass

    @abstractmethod
    async def get_task(self, task_id: str) -> Task:
        pass

    @abstractmethod
    async def get_my_tasks(self) -> list[Task]:
        """Tasks assigned to the current user."""
        pass

    @abstractmethod
    async def create_task(self, data: TaskCreate) -> Task:
        pass

    @abstractmethod
    async def update_task(self, task_id: str, data: TaskUpdate) -> Task:
        pass

    @abstractmethod
    async def delete_task(self, task_id: str) -> None:
        pass


class WorkflowBackend(ABC):
    """Source of truth for project workflows."""

    @abstractmethod
    async def get_workflow(self, project_id: str) -> ProjectWorkflow:
        """Workflow with all its steps."""
        pass

    @abstractmethod
    async def get_workflow_progress(self, project_id: str) -> WorkflowProgress:
        pass

    @abstractmethod
    async def update_workflow_step(
        self, project_id: str, step_id: str, data: WorkflowStepUpdate
    ) -> ProjectWorkflowStep:
        pass


class ProjectBackend(ABC):
    """Source of truth for engagement projects (read side)."""

    @abstractmethod
    async def list_projects(self, filters: ProjectFilters, page: int, limit: int) -> ProjectPage:
        """
        Fetch one page of projects matching ``filters``.

        Args:
            filters: Active filters
            page: 1-based page number
            limit: Page size

        Returns:
            ProjectPage with the items and the server's pagination block
        """
        pass

    @abstractmethod
    async def get_project(self, project_id: str) -> Project:
        pass
