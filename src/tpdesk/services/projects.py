"""REST implementation of the project backend."""

import logging
from typing import Any

from tpdesk.api.client import ApiClient
from tpdesk.errors import ApiError
from tpdesk.projects.models import Project, ProjectFilters, ProjectPage
from tpdesk.services.base import ProjectBackend
from tpdesk.services.tasks import parse_payload
from tpdesk.tasks.models import Pagination

logger = logging.getLogger(__name__)


class ProjectService(ProjectBackend):
    """Project endpoints of the engagement API."""

    def __init__(self, client: ApiClient) -> None:
        self.client = client

    async def list_projects(
        self, filters: ProjectFilters, page: int = 1, limit: int = 20
    ) -> ProjectPage:
        params: dict[str, Any] = {"page": page, "limit": limit}
        params.update(filters.to_query_params())

        body = await self.client.get("/projects", params=params)
        items = body.get("data") or []
        if not isinstance(items, list):
            raise ApiError("Received an invalid project list from the server")

        pagination = body.get("pagination") or {"page": page, "limit": limit, "total": len(items)}
        logger.debug(f"Fetched {len(items)} projects (page {page})")
        return ProjectPage(
            items=[parse_payload(Project, item, "project") for item in items],
            pagination=parse_payload(Pagination, pagination, "pagination"),
        )

    async def get_project(self, project_id: str) -> Project:
        body = await self.client.get(f"/projects/{project_id}")
        return parse_payload(Project, body.get("data"), "project")
