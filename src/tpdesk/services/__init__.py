"""Task, workflow and project backends."""

from tpdesk.services.base import ProjectBackend, TaskBackend, WorkflowBackend
from tpdesk.services.offline import OfflineBackend
from tpdesk.services.projects import ProjectService
from tpdesk.services.tasks import TaskService
from tpdesk.services.workflow import WorkflowService

__all__ = [
    "OfflineBackend",
    "ProjectBackend",
    "ProjectService",
    "TaskBackend",
    "TaskService",
    "WorkflowBackend",
    "WorkflowService",
]
