"""Project list store and single-project detail."""

import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

from tpdesk.errors import ApiError, error_message
from tpdesk.hooks import base as events
from tpdesk.hooks.engine import HookEngine
from tpdesk.projects.models import Project, ProjectFilters
from tpdesk.services.base import ProjectBackend
from tpdesk.tasks.filters import FilterState
from tpdesk.tasks.models import Pagination

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProjectStoreSnapshot:
    """Read-only view of the project store."""

    projects: tuple[Project, ...]
    filters: ProjectFilters
    pagination: Pagination
    page: int
    is_loading: bool
    error: Optional[str]
    project: Optional[Project]
    project_error: Optional[str]


class ProjectStore:
    """
    Read model for the project list and the project being viewed.

    The list and the detail have separate generation counters and separate
    error fields; a failure in one never touches the other, and a failed
    load keeps whatever was shown before.
    """

    def __init__(
        self,
        backend: ProjectBackend,
        config: Optional[dict] = None,
        hook_engine: Optional[HookEngine] = None,
        initial_filters: Optional[Union[ProjectFilters, dict[str, Any]]] = None,
    ) -> None:
        """
        Initialize project store.

        Args:
            backend: Remote project service
            config: Project configuration (``page_size``)
            hook_engine: Receives load events
            initial_filters: Filters to start from and to reset to
        """
        self.backend = backend
        self.config = config or {}
        self.hook_engine = hook_engine
        self.limit = self.config.get("page_size", 20)

        if isinstance(initial_filters, dict):
            initial_filters = ProjectFilters.build(**initial_filters)
        self.filter_state = FilterState(initial_filters, filters_type=ProjectFilters)

        self._projects: list[Project] = []
        self.pagination = Pagination(page=1, limit=self.limit, total=0)
        self.page = 1
        self.is_loading = False
        self.error: Optional[str] = None

        self._project: Optional[Project] = None
        self.is_loading_project = False
        self.project_error: Optional[str] = None

        self._generation = 0
        self._project_generation = 0

    @property
    def filters(self) -> ProjectFilters:
        return self.filter_state.current

    @property
    def projects(self) -> tuple[Project, ...]:
        return tuple(project.model_copy(deep=True) for project in self._projects)

    @property
    def project(self) -> Optional[Project]:
        return self._project.model_copy(deep=True) if self._project else None

    def get(self, project_id: str) -> Optional[Project]:
        """Cached copy of a project on the current page, if present."""
        for project in self._projects:
            if project.id == project_id:
                return project.model_copy(deep=True)
        return None

    def snapshot(self) -> ProjectStoreSnapshot:
        return ProjectStoreSnapshot(
            projects=self.projects,
            filters=self.filters,
            pagination=self.pagination.model_copy(),
            page=self.page,
            is_loading=self.is_loading,
            error=self.error,
            project=self.project,
            project_error=self.project_error,
        )

    # List

    async def load(self, reset_page: bool = False) -> bool:
        """
        Load the current page, or page 1 when ``reset_page`` is set.

        Returns:
            True if this call's result was applied
        """
        return await self._load(1 if reset_page else self.page)

    async def refresh(self) -> bool:
        """Reload the current page with the current filters."""
        return await self._load(self.page)

    async def _load(self, page: int) -> bool:
        self._generation += 1
        generation = self._generation
        self.is_loading = True
        self.error = None

        try:
            result = await self.backend.list_projects(self.filters, page, self.limit)
        except ApiError as e:
            if generation != self._generation:
                return False
            self.is_loading = False
            self.error = error_message(e, "Failed to fetch projects")
            logger.warning(f"Error fetching projects: {e.message}")
            await self.emit(events.PROJECTS_LOAD_FAILED, {"error": self.error})
            return False

        if generation != self._generation:
            logger.debug(f"Discarding stale project page (generation {generation})")
            return False

        last_page = result.pagination.total_pages
        if last_page >= 1 and result.pagination.page > last_page:
            return await self._load(last_page)

        self._projects = list(result.items)
        self.pagination = result.pagination
        self.page = result.pagination.page
        self.is_loading = False

        logger.debug(f"Loaded {len(self._projects)} projects (page {self.page})")
        await self.emit(
            events.PROJECTS_LOADED,
            {"count": len(self._projects), "page": self.page, "total": self.pagination.total},
        )
        return True

    async def update_filters(self, **partial: Any) -> None:
        """
        Merge filter changes and reload from page 1.

        Raises:
            InvalidInputError: Unknown filter field or invalid value
        """
        if self.filter_state.update(**partial):
            await self.load(reset_page=True)

    async def reset_filters(self) -> None:
        if self.filter_state.reset():
            await self.load(reset_page=True)

    async def go_to_page(self, page: int) -> bool:
        """
        Load page ``page``.

        Returns:
            False without any request when ``page`` is outside [1, total_pages]
        """
        if page < 1 or page > self.pagination.total_pages:
            return False
        return await self._load(page)

    async def next_page(self) -> bool:
        return await self.go_to_page(self.page + 1)

    async def prev_page(self) -> bool:
        return await self.go_to_page(self.page - 1)

    # Detail

    async def load_project(self, project_id: str) -> bool:
        """
        Load one project into ``project``.

        On failure ``project_error`` is set. The previously shown project is
        kept only if it is the one that was requested.

        Returns:
            True if this call's result was applied
        """
        self._project_generation += 1
        generation = self._project_generation
        self.is_loading_project = True
        self.project_error = None

        try:
            project = await self.backend.get_project(project_id)
        except ApiError as e:
            if generation != self._project_generation:
                return False
            self.is_loading_project = False
            self.project_error = error_message(e, "Failed to fetch project")
            if self._project is not None and self._project.id != project_id:
                self._project = None
            logger.warning(f"Error fetching project {project_id}: {e.message}")
            await self.emit(
                events.PROJECT_LOAD_FAILED, {"project_id": project_id, "error": self.project_error}
            )
            return False

        if generation != self._project_generation:
            logger.debug(f"Discarding stale project {project_id} (generation {generation})")
            return False

        self._project = project
        self.is_loading_project = False
        await self.emit(events.PROJECT_LOADED, {"project": project})
        return True

    async def emit(self, event: str, data: dict[str, Any]) -> None:
        if self.hook_engine is not None:
            await self.hook_engine.trigger(event, data, source=self)
