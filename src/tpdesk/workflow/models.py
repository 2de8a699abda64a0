"""Project workflow data models."""

import math
from collections import Counter
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Iterable, Optional

from pydantic import ConfigDict, Field, field_validator, model_validator

from tpdesk.core.models import WireModel, round_half_up


class WorkflowStepStatus(str, Enum):
    """Workflow step status."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"


class WorkflowTemplateStep(WireModel):
    """One step of a reusable workflow template."""

    id: str
    step_name: str
    description: Optional[str] = None
    order: int
    estimated_days: Optional[float] = None
    required_role: Optional[str] = None


class WorkflowTemplate(WireModel):
    """Template a project workflow is instantiated from (one per deliverable type)."""

    id: str
    name: str
    description: Optional[str] = None
    deliverable_type: Optional[str] = None
    is_active: bool = True
    steps: list[WorkflowTemplateStep] = Field(default_factory=list)


class ProjectWorkflowStep(WireModel):
    """One stage of a project's workflow with its own status and schedule."""

    id: str
    project_workflow_id: Optional[str] = None
    template_step_id: Optional[str] = None
    step_name: str
    description: Optional[str] = None
    order: int
    status: WorkflowStepStatus = WorkflowStepStatus.NOT_STARTED
    assigned_to_id: Optional[str] = None
    start_date: Optional[datetime] = None
    completed_date: Optional[datetime] = None
    estimated_days: Optional[float] = Field(default=None, ge=0)
    actual_days: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def has_overrun(self, today: date) -> bool:
        """True when an in-progress step has run past its estimate."""
        if self.status != WorkflowStepStatus.IN_PROGRESS:
            return False
        if self.start_date is None or self.estimated_days is None:
            return False
        return (today - self.start_date.date()).days > self.estimated_days


def ordered(steps: Iterable[ProjectWorkflowStep]) -> list[ProjectWorkflowStep]:
    """Sort steps by ``order``; the sort is stable so ties keep insertion order."""
    return sorted(steps, key=lambda step: step.order)


class ProjectWorkflow(WireModel):
    """Ordered sequence of steps scoped to one project."""

    id: str
    project_id: str
    template_id: Optional[str] = None
    template: Optional[WorkflowTemplate] = None
    steps: list[ProjectWorkflowStep] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_order(self) -> "ProjectWorkflow":
        seen: set[int] = set()
        for step in self.steps:
            if step.order in seen:
                raise ValueError(f"Duplicate step order {step.order} in workflow {self.id}")
            seen.add(step.order)
        return self

    def ordered_steps(self) -> list[ProjectWorkflowStep]:
        """Steps in display/progress sequence."""
        return ordered(self.steps)


class WorkflowStepUpdate(WireModel):
    """Partial patch for a workflow step; only explicitly set fields are sent."""

    model_config = ConfigDict(extra="forbid")

    status: Optional[WorkflowStepStatus] = None
    assigned_to_id: Optional[str] = None
    start_date: Optional[datetime] = None
    completed_date: Optional[datetime] = None
    actual_days: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None


class WorkflowProgress(WireModel):
    """Progress summary for a project workflow."""

    total_steps: int = 0
    completed_steps: int = 0
    in_progress_steps: int = 0
    not_started_steps: int = 0
    blocked_steps: int = 0
    percent_complete: int = 0
    estimated_completion_date: Optional[date] = None
    is_on_track: bool = True

    @field_validator("percent_complete", mode="before")
    @classmethod
    def _round_percent(cls, value: object) -> object:
        # Servers may report a fractional percentage
        if isinstance(value, float):
            return round_half_up(value)
        return value

    @classmethod
    def from_steps(cls, steps: Iterable[ProjectWorkflowStep], today: date) -> "WorkflowProgress":
        """
        Compute progress from a step list.

        A workflow is on track when no step is blocked and no in-progress step
        has run longer than its estimate. The estimated completion date is
        today plus the remaining estimated days of unfinished steps.

        Args:
            steps: Workflow steps, in any order
            today: Reference date

        Returns:
            WorkflowProgress
        """
        steps = list(steps)
        counts = Counter(step.status for step in steps)
        total = len(steps)
        completed = counts[WorkflowStepStatus.COMPLETED]

        unfinished = [s for s in steps if s.status != WorkflowStepStatus.COMPLETED]
        estimated = None
        if unfinished:
            remaining_days = sum(s.estimated_days or 0 for s in unfinished)
            estimated = today + timedelta(days=math.ceil(remaining_days))

        return cls(
            total_steps=total,
            completed_steps=completed,
            in_progress_steps=counts[WorkflowStepStatus.IN_PROGRESS],
            not_started_steps=counts[WorkflowStepStatus.NOT_STARTED],
            blocked_steps=counts[WorkflowStepStatus.BLOCKED],
            percent_complete=round_half_up(100 * completed / total) if total else 0,
            estimated_completion_date=estimated,
            is_on_track=(
                counts[WorkflowStepStatus.BLOCKED] == 0
                and not any(step.has_overrun(today) for step in steps)
            ),
        )
