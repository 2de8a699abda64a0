"""Composition root wiring the API, hooks and stores together."""

import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any, Optional, Union

from tpdesk.api.client import ApiClient
from tpdesk.api.session import SessionContext
from tpdesk.hooks.engine import HookEngine
from tpdesk.projects.models import ProjectFilters
from tpdesk.projects.store import ProjectStore
from tpdesk.services.base import ProjectBackend, TaskBackend, WorkflowBackend
from tpdesk.services.offline import OfflineBackend
from tpdesk.services.projects import ProjectService
from tpdesk.services.tasks import TaskService
from tpdesk.services.workflow import WorkflowService
from tpdesk.tasks.kanban import KanbanBoard
from tpdesk.tasks.models import TaskFilters
from tpdesk.tasks.store import TaskStore
from tpdesk.workflow.view import WorkflowProgressView

logger = logging.getLogger(__name__)


class Dashboard:
    """Builds the backends and hands out stores bound to them."""

    def __init__(
        self,
        config: dict,
        on_unauthorized: Optional[Callable[[SessionContext], None]] = None,
    ) -> None:
        """
        Initialize the dashboard.

        Args:
            config: Configuration dictionary (see ``tpdesk.config``)
            on_unauthorized: Called once when the session can no longer be refreshed
        """
        self.config = config
        self.on_unauthorized = on_unauthorized

        # Components will be initialized in initialize()
        self.session: Optional[SessionContext] = None
        self.client: Optional[ApiClient] = None
        self.task_backend: Optional[TaskBackend] = None
        self.workflow_backend: Optional[WorkflowBackend] = None
        self.project_backend: Optional[ProjectBackend] = None
        self.hook_engine: Optional[HookEngine] = None
        self._stores: list[TaskStore] = []

        self._setup_logging()

    def _setup_logging(self) -> None:
        """Setup logging based on configuration."""
        log_config = self.config.get("logging", {})
        log_level = log_config.get("level", "INFO")
        log_file = log_config.get("file", "./.tpdesk/logs/tpdesk.log")

        # Ensure log directory exists
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        logging.basicConfig(
            level=getattr(logging, log_level.upper()),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            handlers=[
                logging.FileHandler(log_file),
                logging.StreamHandler() if log_config.get("console", False) else logging.NullHandler(),
            ],
        )

    @property
    def is_offline(self) -> bool:
        return self.config.get("api", {}).get("mode", "rest") == "offline"

    async def initialize(self) -> None:
        """Initialize the hook engine and the backends."""
        logger.info("Initializing dashboard...")
        api_config = self.config.get("api", {})

        self.hook_engine = HookEngine(self.config.get("hooks", {}))
        await self.hook_engine.initialize()

        if self.is_offline:
            backend = OfflineBackend({"seed_file": api_config.get("seed_file")})
            self.task_backend = backend
            self.workflow_backend = backend
            self.project_backend = backend
            logger.info("Running against the offline backend")
        else:
            token_env = api_config.get("access_token_env", "TPDESK_ACCESS_TOKEN")
            self.session = SessionContext(
                access_token=os.environ.get(token_env),
                on_unauthorized=self.on_unauthorized,
            )
            self.client = ApiClient(api_config, session=self.session)
            self.task_backend = TaskService(self.client)
            self.workflow_backend = WorkflowService(self.client)
            self.project_backend = ProjectService(self.client)

        logger.info("Dashboard initialized successfully")

    def _require_initialized(self) -> None:
        backends = (self.task_backend, self.workflow_backend, self.project_backend)
        if any(backend is None for backend in backends):
            raise RuntimeError("Dashboard not initialized; call initialize() first")

    def task_store(
        self,
        project_id: Optional[str] = None,
        initial_filters: Optional[Union[TaskFilters, dict[str, Any]]] = None,
    ) -> TaskStore:
        """
        Create a task store bound to this dashboard's backend.

        Args:
            project_id: Scope the store to one project
            initial_filters: Filters to start from and reset to

        Returns:
            TaskStore (not yet loaded)
        """
        self._require_initialized()
        store = TaskStore(
            self.task_backend,
            config=self.config.get("tasks", {}),
            hook_engine=self.hook_engine,
            project_id=project_id,
            initial_filters=initial_filters,
        )
        self._stores.append(store)
        return store

    def kanban(self, store: TaskStore) -> KanbanBoard:
        return KanbanBoard(store)

    def workflow_view(self, project_id: str) -> WorkflowProgressView:
        """Create a workflow view for one project."""
        self._require_initialized()
        return WorkflowProgressView(
            self.workflow_backend, project_id, hook_engine=self.hook_engine
        )

    def project_store(
        self, initial_filters: Optional[Union[ProjectFilters, dict[str, Any]]] = None
    ) -> ProjectStore:
        """Create a project store bound to this dashboard's backend."""
        self._require_initialized()
        return ProjectStore(
            self.project_backend,
            config=self.config.get("projects", {}),
            hook_engine=self.hook_engine,
            initial_filters=initial_filters,
        )

    async def close(self) -> None:
        """Cancel pending reloads and close the HTTP client."""
        logger.info("Shutting down dashboard...")
        for store in self._stores:
            await store.aclose()
        self._stores.clear()

        if self.client is not None:
            await self.client.aclose()
            self.client = None

        logger.info("Dashboard shutdown complete")

    async def __aenter__(self) -> "Dashboard":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
