"""Read model for one project's workflow steps and progress."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Union

from tpdesk.core.models import coerce_form
from tpdesk.errors import ApiError, InvalidInputError, OperationError, error_message
from tpdesk.hooks import base as events
from tpdesk.hooks.engine import HookEngine
from tpdesk.services.base import WorkflowBackend
from tpdesk.workflow.models import (
    ProjectWorkflow,
    ProjectWorkflowStep,
    WorkflowProgress,
    WorkflowStepStatus,
    WorkflowStepUpdate,
    ordered,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkflowSnapshot:
    """Read-only view of a project's workflow for presentation code."""

    workflow: Optional[ProjectWorkflow]
    steps: tuple[ProjectWorkflowStep, ...]
    progress: Optional[WorkflowProgress]
    is_loading: bool
    error: Optional[str]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorkflowProgressView:
    """
    Keeps a project's ordered workflow steps and its progress summary in sync
    with the remote service.

    Progress is always taken from the server, never recomputed locally, so
    the on-track rule stays authoritative there.
    """

    def __init__(
        self,
        backend: WorkflowBackend,
        project_id: str,
        hook_engine: Optional[HookEngine] = None,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """
        Initialize workflow view.

        Args:
            backend: Remote workflow service
            project_id: Project whose workflow is shown
            hook_engine: Receives change events for dependent views
            now: Clock used for auto-filled step dates
        """
        self.backend = backend
        self.project_id = project_id
        self.hook_engine = hook_engine
        self._now = now or _utcnow

        self.workflow: Optional[ProjectWorkflow] = None
        self._steps: list[ProjectWorkflowStep] = []
        self.progress: Optional[WorkflowProgress] = None
        self.is_loading = False
        self.error: Optional[str] = None

        self._generation = 0
        self._progress_generation = 0

    @property
    def steps(self) -> tuple[ProjectWorkflowStep, ...]:
        """Steps sorted by ``order``."""
        return tuple(step.model_copy(deep=True) for step in ordered(self._steps))

    def get_step(self, step_id: str) -> Optional[ProjectWorkflowStep]:
        for step in self._steps:
            if step.id == step_id:
                return step.model_copy(deep=True)
        return None

    def snapshot(self) -> WorkflowSnapshot:
        steps = self.steps
        workflow = None
        if self.workflow is not None:
            workflow = self.workflow.model_copy(deep=True, update={"steps": list(steps)})
        return WorkflowSnapshot(
            workflow=workflow,
            steps=steps,
            progress=self.progress.model_copy() if self.progress else None,
            is_loading=self.is_loading,
            error=self.error,
        )

    async def load(self) -> bool:
        """
        Fetch the workflow and its progress concurrently.

        Both requests succeed or the load fails as a whole; on failure the
        previous steps and progress are kept.

        Returns:
            True if this call's result was applied
        """
        self._generation += 1
        generation = self._generation
        self.is_loading = True
        self.error = None

        try:
            workflow, progress = await asyncio.gather(
                self.backend.get_workflow(self.project_id),
                self.backend.get_workflow_progress(self.project_id),
            )
        except ApiError as e:
            if generation != self._generation:
                logger.debug(f"Discarding stale workflow load failure (generation {generation})")
                return False
            self.is_loading = False
            self.error = error_message(e, "Failed to load workflow")
            logger.warning(f"Error loading workflow for project {self.project_id}: {e.message}")
            await self._emit(events.WORKFLOW_LOAD_FAILED, {"error": self.error})
            return False

        if generation != self._generation:
            logger.debug(f"Discarding stale workflow (generation {generation})")
            return False

        self.workflow = workflow
        self._steps = list(workflow.steps)
        self.progress = progress
        self.is_loading = False
        # A newer load supersedes any progress refresh still in flight
        self._progress_generation += 1

        logger.debug(
            f"Loaded workflow {workflow.id}: {len(self._steps)} steps, "
            f"{progress.percent_complete}% complete"
        )
        await self._emit(
            events.WORKFLOW_LOADED,
            {"workflow_id": workflow.id, "steps": len(self._steps), "progress": progress},
        )
        return True

    async def update_step(
        self, step_id: str, patch: Union[WorkflowStepUpdate, dict[str, Any]]
    ) -> ProjectWorkflowStep:
        """
        Update one step, then re-fetch progress.

        Moving a step to ``in_progress`` fills ``start_date`` and moving it to
        ``completed`` fills ``completed_date``, but only when neither the patch
        nor the recorded step already carries that date.

        Args:
            step_id: Step to update; must be one of the loaded steps
            patch: Fields to change

        Returns:
            The updated step

        Raises:
            InvalidInputError: Unknown step or invalid patch; nothing was sent
            OperationError: The service rejected the request
        """
        form = coerce_form(WorkflowStepUpdate, patch)
        current = self._find(step_id)
        if current is None:
            raise InvalidInputError(f"Unknown workflow step: {step_id}")

        form = self._with_derived_dates(form, current)

        try:
            updated = await self.backend.update_workflow_step(self.project_id, step_id, form)
        except ApiError as e:
            self.error = error_message(e, "Failed to update workflow step")
            logger.warning(f"Workflow step {step_id} update failed: {e.message}")
            await self._emit(
                events.WORKFLOW_STEP_UPDATE_FAILED, {"step_id": step_id, "error": self.error}
            )
            raise OperationError(self.error) from e

        self.error = None
        # Sequence position belongs to the loaded workflow, not to the response
        updated = updated.model_copy(update={"order": current.order})
        self._replace(updated)
        await self._emit(events.WORKFLOW_STEP_UPDATED, {"step": updated})

        await self.refresh_progress()
        return updated.model_copy(deep=True)

    async def refresh_progress(self) -> bool:
        """
        Re-fetch the progress summary.

        A failure sets ``error`` and keeps the previous summary.

        Returns:
            True if new progress was applied
        """
        self._progress_generation += 1
        generation = self._progress_generation

        try:
            progress = await self.backend.get_workflow_progress(self.project_id)
        except ApiError as e:
            if generation != self._progress_generation:
                return False
            self.error = error_message(e, "Failed to load workflow progress")
            logger.warning(f"Error loading workflow progress: {e.message}")
            return False

        if generation != self._progress_generation:
            return False

        self.progress = progress
        return True

    async def start_step(self, step_id: str) -> ProjectWorkflowStep:
        return await self.update_step(step_id, {"status": WorkflowStepStatus.IN_PROGRESS})

    async def complete_step(
        self, step_id: str, actual_days: Optional[float] = None
    ) -> ProjectWorkflowStep:
        patch: dict[str, Any] = {"status": WorkflowStepStatus.COMPLETED}
        if actual_days is not None:
            patch["actual_days"] = actual_days
        return await self.update_step(step_id, patch)

    async def block_step(self, step_id: str, notes: Optional[str] = None) -> ProjectWorkflowStep:
        patch: dict[str, Any] = {"status": WorkflowStepStatus.BLOCKED}
        if notes is not None:
            patch["notes"] = notes
        return await self.update_step(step_id, patch)

    async def assign_step(self, step_id: str, user_id: Optional[str]) -> ProjectWorkflowStep:
        return await self.update_step(step_id, {"assigned_to_id": user_id})

    async def update_step_notes(self, step_id: str, notes: str) -> ProjectWorkflowStep:
        return await self.update_step(step_id, {"notes": notes})

    # Helpers

    def _with_derived_dates(
        self, form: WorkflowStepUpdate, current: ProjectWorkflowStep
    ) -> WorkflowStepUpdate:
        sent = form.model_fields_set
        derived: dict[str, datetime] = {}

        if form.status == WorkflowStepStatus.IN_PROGRESS:
            if "start_date" not in sent and current.start_date is None:
                derived["start_date"] = self._now()
        elif form.status == WorkflowStepStatus.COMPLETED:
            if "completed_date" not in sent and current.completed_date is None:
                derived["completed_date"] = self._now()

        if not derived:
            return form
        return WorkflowStepUpdate.model_validate(
            {**form.model_dump(exclude_unset=True), **derived}
        )

    def _find(self, step_id: str) -> Optional[ProjectWorkflowStep]:
        for step in self._steps:
            if step.id == step_id:
                return step
        return None

    def _replace(self, updated: ProjectWorkflowStep) -> None:
        for index, step in enumerate(self._steps):
            if step.id == updated.id:
                self._steps[index] = updated
                return

    async def _emit(self, event: str, data: dict[str, Any]) -> None:
        if self.hook_engine is not None:
            await self.hook_engine.trigger(event, data, source=self)
