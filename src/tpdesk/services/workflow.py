"""REST implementation of the workflow backend."""

import logging

from tpdesk.api.client import ApiClient
from tpdesk.services.base import WorkflowBackend
from tpdesk.services.tasks import parse_payload
from tpdesk.workflow.models import (
    ProjectWorkflow,
    ProjectWorkflowStep,
    WorkflowProgress,
    WorkflowStepUpdate,
)

logger = logging.getLogger(__name__)


class WorkflowService(WorkflowBackend):
    """Workflow endpoints of the engagement API."""

    def __init__(self, client: ApiClient) -> None:
        self.client = client

    async def get_workflow(self, project_id: str) -> ProjectWorkflow:
        body = await self.client.get(f"/projects/{project_id}/workflow")
        return parse_payload(ProjectWorkflow, body.get("data"), "workflow")

    async def get_workflow_progress(self, project_id: str) -> WorkflowProgress:
        body = await self.client.get(f"/projects/{project_id}/workflow/progress")
        return parse_payload(WorkflowProgress, body.get("data") or {}, "workflow progress")

    async def update_workflow_step(
        self, project_id: str, step_id: str, data: WorkflowStepUpdate
    ) -> ProjectWorkflowStep:
        body = await self.client.put(
            f"/projects/{project_id}/workflow/{step_id}",
            json=data.to_wire(exclude_unset=True),
        )
        logger.debug(f"Updated workflow step {step_id} of project {project_id}")
        return parse_payload(ProjectWorkflowStep, body.get("data"), "workflow step")
