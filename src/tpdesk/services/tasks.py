"""REST implementation of the task backend."""

import logging
from typing import Any, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from tpdesk.api.client import ApiClient
from tpdesk.errors import ApiError
from tpdesk.services.base import TaskBackend
from tpdesk.tasks.models import (
    Pagination,
    Task,
    TaskCreate,
    TaskFilters,
    TaskPage,
    TaskPriority,
    TaskStats,
    TaskStatus,
    TaskUpdate,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_payload(model: type[ModelT], payload: Any, what: str) -> ModelT:
    """
    Validate a response payload into a model.

    Raises:
        ApiError: The payload does not match the model
    """
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        logger.warning(f"Invalid {what} payload: {e}")
        raise ApiError(f"Received an invalid {what} from the server") from e


class TaskService(TaskBackend):
    """Task endpoints of the engagement API."""

    def __init__(self, client: ApiClient) -> None:
        self.client = client

    async def list_tasks(self, filters: TaskFilters, page: int = 1, limit: int = 50) -> TaskPage:
        params: dict[str, Any] = {"page": page, "limit": limit}
        params.update(filters.to_query_params())

        body = await self.client.get("/tasks", params=params)
        items = body.get("data") or []
        if not isinstance(items, list):
            raise ApiError("Received an invalid task list from the server")

        pagination = body.get("pagination") or {"page": page, "limit": limit, "total": len(items)}
        return TaskPage(
            items=[parse_payload(Task, item, "task") for item in items],
            pagination=parse_payload(Pagination, pagination, "pagination"),
        )

    async def get_task_stats(self, project_id: Optional[str] = None) -> TaskStats:
        params = {"projectId": project_id} if project_id else {}
        body = await self.client.get("/tasks/stats", params=params)
        return parse_payload(TaskStats, body.get("data") or {}, "task statistics")

    async def get_task(self, task_id: str) -> Task:
        body = await self.client.get(f"/tasks/{task_id}")
        return parse_payload(Task, body.get("data"), "task")

    async def get_my_tasks(self) -> list[Task]:
        body = await self.client.get("/tasks/my/all")
        return [parse_payload(Task, item, "task") for item in body.get("data") or []]

    async def create_task(self, data: TaskCreate) -> Task:
        body = await self.client.post("/tasks", json=data.to_wire(exclude_unset=True))
        task = parse_payload(Task, body.get("data"), "task")
        logger.info(f"Created task: {task.id} - {task.title}")
        return task

    async def update_task(self, task_id: str, data: TaskUpdate) -> Task:
        body = await self.client.put(f"/tasks/{task_id}", json=data.to_wire(exclude_unset=True))
        logger.debug(f"Updated task: {task_id}")
        return parse_payload(Task, body.get("data"), "task")

    async def delete_task(self, task_id: str) -> None:
        await self.client.delete(f"/tasks/{task_id}")
        logger.info(f"Deleted task: {task_id}")

    async def update_task_status(self, task_id: str, status: TaskStatus) -> Task:
        return await self.update_task(task_id, TaskUpdate(status=status))

    async def update_task_priority(self, task_id: str, priority: TaskPriority) -> Task:
        return await self.update_task(task_id, TaskUpdate(priority=priority))

    async def assign_task(self, task_id: str, user_id: Optional[str]) -> Task:
        return await self.update_task(task_id, TaskUpdate(assigned_to_id=user_id))
