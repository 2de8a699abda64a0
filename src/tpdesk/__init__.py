"""tpdesk - project, task and workflow state for transfer-pricing engagements."""

__version__ = "0.1.0"

from tpdesk.core.dashboard import Dashboard
from tpdesk.errors import ApiError, InvalidInputError, OperationError, TpDeskError
from tpdesk.projects.models import Project, ProjectFilters, ProjectStatus
from tpdesk.projects.store import ProjectStore
from tpdesk.tasks.kanban import KanbanBoard
from tpdesk.tasks.models import Task, TaskFilters, TaskPriority, TaskStats, TaskStatus
from tpdesk.tasks.store import TaskStore
from tpdesk.workflow.view import WorkflowProgressView

__all__ = [
    "ApiError",
    "Dashboard",
    "InvalidInputError",
    "KanbanBoard",
    "OperationError",
    "Project",
    "ProjectFilters",
    "ProjectStatus",
    "ProjectStore",
    "Task",
    "TaskFilters",
    "TaskPriority",
    "TaskStats",
    "TaskStatus",
    "TaskStore",
    "TpDeskError",
    "WorkflowProgressView",
]
