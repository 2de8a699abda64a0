"""Task collection store: filtered, paged cache of tasks plus statistics."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

from tpdesk.core.models import coerce_form
from tpdesk.errors import ApiError, InvalidInputError, OperationError, error_message
from tpdesk.hooks import base as events
from tpdesk.hooks.engine import HookEngine
from tpdesk.services.base import TaskBackend
from tpdesk.tasks.filters import FilterState
from tpdesk.tasks.models import (
    Pagination,
    Task,
    TaskCreate,
    TaskFilters,
    TaskPriority,
    TaskStats,
    TaskStatus,
    TaskUpdate,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaskStoreSnapshot:
    """Read-only view of the store for presentation code."""

    tasks: tuple[Task, ...]
    stats: Optional[TaskStats]
    stats_error: Optional[str]
    filters: TaskFilters
    pagination: Pagination
    page: int
    is_loading: bool
    error: Optional[str]

    @property
    def total_pages(self) -> int:
        return self.pagination.total_pages


class TaskStore:
    """
    Keeps the current page of tasks consistent with the remote service.

    Ownership rules:
    - Only this store writes ``tasks``, ``pagination`` and ``stats``
    - Every load is tagged with a generation number; a response for anything
      but the latest load is discarded
    - Mutations reconcile the cache before refreshing statistics
    - A failed load or mutation leaves the cached tasks exactly as they were
    """

    def __init__(
        self,
        backend: TaskBackend,
        config: Optional[dict] = None,
        hook_engine: Optional[HookEngine] = None,
        project_id: Optional[str] = None,
        initial_filters: Optional[Union[TaskFilters, dict[str, Any]]] = None,
    ) -> None:
        """
        Initialize task store.

        Args:
            backend: Remote task service
            config: Task configuration (``page_size``, ``search_debounce_seconds``)
            hook_engine: Receives change events for dependent views
            project_id: Scope every request and the statistics to one project
            initial_filters: Filters to start from and to reset to
        """
        self.backend = backend
        self.config = config or {}
        self.hook_engine = hook_engine
        self.project_id = project_id

        self.limit = self.config.get("page_size", 50)
        self.search_debounce_seconds = self.config.get("search_debounce_seconds", 0.3)

        if isinstance(initial_filters, dict):
            initial_filters = TaskFilters.build(**initial_filters)
        self.filter_state = FilterState(initial_filters)

        self._tasks: list[Task] = []
        self.pagination = Pagination(page=1, limit=self.limit, total=0)
        self.page = 1
        self.is_loading = False
        self.error: Optional[str] = None

        self.stats: Optional[TaskStats] = None
        self.stats_error: Optional[str] = None

        self._generation = 0
        self._stats_generation = 0
        self._search_task: Optional[asyncio.Task] = None
        self._search_timer_armed = False

    # Read side

    @property
    def filters(self) -> TaskFilters:
        return self.filter_state.current

    @property
    def tasks(self) -> tuple[Task, ...]:
        return tuple(task.model_copy(deep=True) for task in self._tasks)

    def get(self, task_id: str) -> Optional[Task]:
        """Cached copy of a task on the current page, if present."""
        for task in self._tasks:
            if task.id == task_id:
                return task.model_copy(deep=True)
        return None

    def snapshot(self) -> TaskStoreSnapshot:
        return TaskStoreSnapshot(
            tasks=self.tasks,
            stats=self.stats.model_copy(deep=True) if self.stats else None,
            stats_error=self.stats_error,
            filters=self.filters,
            pagination=self.pagination.model_copy(),
            page=self.page,
            is_loading=self.is_loading,
            error=self.error,
        )

    # Loading

    def _active_filters(self) -> TaskFilters:
        if self.project_id:
            return self.filters.merged(project_id=self.project_id)
        return self.filters

    async def load(self, reset_page: bool = False) -> bool:
        """
        Load the current page, or page 1 when ``reset_page`` is set.

        Returns:
            True if this call's result was applied
        """
        return await self._load(1 if reset_page else self.page)

    async def _load(self, page: int) -> bool:
        self._generation += 1
        generation = self._generation
        self.is_loading = True
        self.error = None

        filters = self._active_filters()
        try:
            result = await self.backend.list_tasks(filters, page, self.limit)
        except ApiError as e:
            if generation != self._generation:
                logger.debug(f"Discarding stale task load failure (generation {generation})")
                return False
            self.is_loading = False
            self.error = error_message(e, "Failed to load tasks")
            logger.warning(f"Error loading tasks: {e.message}")
            await self.emit(events.TASKS_LOAD_FAILED, {"error": self.error})
            return False

        if generation != self._generation:
            logger.debug(f"Discarding stale task page (generation {generation})")
            return False

        # Server answered for a page past the end: move to the last page
        # without touching the cache
        last_page = result.pagination.total_pages
        if last_page >= 1 and result.pagination.page > last_page:
            logger.debug(f"Page {result.pagination.page} beyond last page, clamping to {last_page}")
            return await self._load(last_page)

        self._tasks = list(result.items)
        self.pagination = result.pagination
        self.page = result.pagination.page
        self.is_loading = False

        logger.debug(
            f"Loaded {len(self._tasks)} tasks (page {self.page}/{self.pagination.total_pages})"
        )
        await self.emit(
            events.TASKS_LOADED,
            {"count": len(self._tasks), "page": self.page, "total": self.pagination.total},
        )
        return True

    async def load_stats(self) -> bool:
        """
        Refresh aggregate statistics.

        Failures only set ``stats_error``; the task list is never affected and
        the last good statistics are kept.

        Returns:
            True if new statistics were applied
        """
        self._stats_generation += 1
        generation = self._stats_generation

        try:
            stats = await self.backend.get_task_stats(self.project_id)
        except ApiError as e:
            if generation != self._stats_generation:
                return False
            self.stats_error = error_message(e, "Task statistics unavailable")
            logger.warning(f"Error loading task stats: {e.message}")
            await self.emit(events.STATS_LOAD_FAILED, {"error": self.stats_error})
            return False

        if generation != self._stats_generation:
            logger.debug(f"Discarding stale stats (generation {generation})")
            return False

        self.stats = stats
        self.stats_error = None
        await self.emit(events.STATS_LOADED, {"stats": stats})
        return True

    async def refresh(self) -> None:
        """Reload page 1 and statistics concurrently."""
        await asyncio.gather(self.load(reset_page=True), self.load_stats())

    # Filters

    async def update_filters(self, **partial: Any) -> None:
        """
        Merge filter changes and reload from page 1.

        A change that touches only ``search`` is debounced; anything else
        reloads immediately with the latest filters.

        Raises:
            InvalidInputError: Unknown filter field or invalid value
        """
        changed = self.filter_state.update(**partial)
        if not changed:
            return

        if changed == {"search"}:
            self._schedule_search_reload()
            return

        self._cancel_search_reload()
        await self.load(reset_page=True)

    async def reset_filters(self) -> None:
        """Restore the initial filters and reload from page 1."""
        self._cancel_search_reload()
        if self.filter_state.reset():
            await self.load(reset_page=True)

    def _schedule_search_reload(self) -> None:
        self._cancel_search_reload()
        self._search_timer_armed = True
        self._search_task = asyncio.create_task(self._debounced_search_reload())

    def _cancel_search_reload(self) -> None:
        # Only the timer is cancelled; a load already under way is made stale
        # by the next load's generation instead.
        if self._search_task is not None and self._search_timer_armed:
            self._search_task.cancel()
        self._search_timer_armed = False

    async def _debounced_search_reload(self) -> None:
        await asyncio.sleep(self.search_debounce_seconds)
        self._search_timer_armed = False
        await self.load(reset_page=True)

    async def settle(self) -> None:
        """Wait until no debounced search reload is pending or running."""
        while self._search_task is not None and not self._search_task.done():
            await asyncio.wait({self._search_task})

    async def aclose(self) -> None:
        self._cancel_search_reload()
        await self.settle()

    # Pagination

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

    # Mutations

    async def create(self, data: Union[TaskCreate, dict[str, Any]]) -> Task:
        """
        Create a task, then reload page 1 and refresh statistics.

        Args:
            data: Task form

        Returns:
            The created task

        Raises:
            InvalidInputError: Form failed validation; nothing was sent
            OperationError: The service rejected the request
        """
        form = coerce_form(TaskCreate, data)
        if self.project_id and form.project_id is None:
            form = TaskCreate.model_validate(
                {**form.model_dump(exclude_unset=True), "project_id": self.project_id}
            )
        self._check_form(form)

        try:
            task = await self.backend.create_task(form)
        except ApiError as e:
            message = await self._mutation_failed("create", e, "Failed to create task")
            raise OperationError(message) from e

        self.error = None
        await self.emit(events.TASK_CREATED, {"task": task})
        # Sort position under the current filters is unknown, so page 1 is reloaded
        await self.load(reset_page=True)
        await self.load_stats()
        return task

    async def update(self, task_id: str, patch: Union[TaskUpdate, dict[str, Any]]) -> Task:
        """
        Update a task and patch it in place in the cached page.

        A task not on the current page is left alone in the cache; statistics
        are refreshed either way.

        Raises:
            InvalidInputError: Patch failed validation; nothing was sent
            OperationError: The service rejected the request
        """
        form = coerce_form(TaskUpdate, patch)
        self._check_form(form)

        try:
            updated = await self.backend.update_task(task_id, form)
        except ApiError as e:
            message = await self._mutation_failed("update", e, "Failed to update task", task_id)
            raise OperationError(message) from e

        self.error = None
        in_page = self._replace_cached(updated)
        await self.emit(events.TASK_UPDATED, {"task": updated, "in_page": in_page})
        await self.load_stats()
        return updated

    async def delete(self, task_id: str) -> None:
        """
        Delete a task and drop it from the cached page.

        The page is not reloaded, so pagination totals stay stale until the
        next load.

        Raises:
            OperationError: The service rejected the request
        """
        try:
            await self.backend.delete_task(task_id)
        except ApiError as e:
            message = await self._mutation_failed("delete", e, "Failed to delete task", task_id)
            raise OperationError(message) from e

        self.error = None
        self._tasks = [task for task in self._tasks if task.id != task_id]
        await self.emit(events.TASK_DELETED, {"task_id": task_id})
        await self.load_stats()

    async def update_status(self, task_id: str, status: Union[TaskStatus, str]) -> Task:
        return await self.update(task_id, {"status": status})

    async def update_priority(self, task_id: str, priority: Union[TaskPriority, str]) -> Task:
        return await self.update(task_id, {"priority": priority})

    async def assign(self, task_id: str, user_id: Optional[str]) -> Task:
        return await self.update(task_id, {"assigned_to_id": user_id})

    # Helpers

    @staticmethod
    def _check_form(form: Union[TaskCreate, TaskUpdate]) -> None:
        result = form.validate_form()
        if not result.valid:
            raise InvalidInputError("; ".join(result.errors))

    def _replace_cached(self, updated: Task) -> bool:
        for index, task in enumerate(self._tasks):
            if task.id == updated.id:
                self._tasks[index] = updated
                return True
        return False

    async def _mutation_failed(
        self,
        operation: str,
        error: ApiError,
        fallback: str,
        task_id: Optional[str] = None,
    ) -> str:
        message = error_message(error, fallback)
        self.error = message
        logger.warning(f"Task {operation} failed: {error.message}")
        await self.emit(
            events.TASK_MUTATION_FAILED,
            {"operation": operation, "task_id": task_id, "error": message},
        )
        return message

    async def emit(self, event: str, data: dict[str, Any]) -> None:
        if self.hook_engine is not None:
            await self.hook_engine.trigger(event, data, source=self)
