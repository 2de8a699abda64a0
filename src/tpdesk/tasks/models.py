"""Task data models."""

import math
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Iterable, Optional

from pydantic import ConfigDict, Field, field_validator, model_validator

from tpdesk.core.models import ALL, FilterModel, ValidationResult, WireModel


class TaskStatus(str, Enum):
    """Task status, one kanban column each."""

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    COMPLETED = "completed"
    BLOCKED = "blocked"


class TaskPriority(str, Enum):
    """Task priority levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


def _dedupe(values: Optional[Iterable[str]]) -> list[str]:
    result: list[str] = []
    for value in values or []:
        if value not in result:
            result.append(value)
    return result


class Task(WireModel):
    """A unit of engagement work, optionally linked to a project."""

    id: str
    title: str = Field(min_length=1)
    description: Optional[str] = None
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[date] = None
    estimated_hours: Optional[float] = Field(default=None, ge=0)
    actual_hours: Optional[float] = Field(default=None, ge=0)
    tags: list[str] = Field(default_factory=list)

    # Relations
    project_id: Optional[str] = None
    workflow_step_id: Optional[str] = None
    assigned_to_id: Optional[str] = None
    created_by_id: Optional[str] = None

    # Metadata
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("due_date", mode="before")
    @classmethod
    def _date_part(cls, value: Any) -> Any:
        # The API sends full ISO timestamps for due dates
        if isinstance(value, str) and "T" in value:
            return value.split("T", 1)[0]
        if isinstance(value, datetime):
            return value.date()
        return value

    @field_validator("tags", mode="before")
    @classmethod
    def _unique_tags(cls, value: Any) -> list[str]:
        return _dedupe(value)

    def is_overdue(self, today: date) -> bool:
        """Check whether the task is past its due date and still open."""
        return (
            self.due_date is not None
            and self.due_date < today
            and self.status != TaskStatus.COMPLETED
        )


class TaskCreate(WireModel):
    """Form state for creating a task."""

    model_config = ConfigDict(extra="forbid")

    title: str
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[date] = None
    estimated_hours: Optional[float] = Field(default=None, ge=0)
    tags: Optional[list[str]] = None
    project_id: Optional[str] = None
    workflow_step_id: Optional[str] = None
    assigned_to_id: Optional[str] = None

    @field_validator("tags", mode="before")
    @classmethod
    def _unique_tags(cls, value: Any) -> Optional[list[str]]:
        return None if value is None else _dedupe(value)

    def validate_form(self) -> ValidationResult:
        """Check required fields before anything is sent."""
        errors = []
        if not self.title.strip():
            errors.append("Title is required")
        return ValidationResult(valid=not errors, errors=errors)


class TaskUpdate(WireModel):
    """
    Partial patch for a task.

    Only fields that were explicitly set are sent, so ``assigned_to_id=None``
    unassigns the task while an omitted field is left alone.
    """

    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[date] = None
    estimated_hours: Optional[float] = Field(default=None, ge=0)
    actual_hours: Optional[float] = Field(default=None, ge=0)
    tags: Optional[list[str]] = None
    project_id: Optional[str] = None
    workflow_step_id: Optional[str] = None
    assigned_to_id: Optional[str] = None

    @field_validator("tags", mode="before")
    @classmethod
    def _unique_tags(cls, value: Any) -> Optional[list[str]]:
        return None if value is None else _dedupe(value)

    def validate_form(self) -> ValidationResult:
        """A title, when present in the patch, must not be blank."""
        errors = []
        if "title" in self.model_fields_set and not (self.title or "").strip():
            errors.append("Title cannot be empty")
        return ValidationResult(valid=not errors, errors=errors)


class TaskFilters(FilterModel):
    """
    Query predicate for the task list.

    ``None`` means "no constraint on this dimension". The ``"all"`` sentinel
    is accepted for status and priority and normalized to ``None``.
    """

    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    project_id: Optional[str] = None
    assigned_to: Optional[str] = None
    search: Optional[str] = None
    tags: Optional[tuple[str, ...]] = None
    overdue: Optional[bool] = None
    due_date_from: Optional[date] = None
    due_date_to: Optional[date] = None

    @field_validator("status", "priority", mode="before")
    @classmethod
    def _drop_all_sentinel(cls, value: Any) -> Any:
        return None if value == ALL else value

    @field_validator("search", mode="before")
    @classmethod
    def _blank_search(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("tags", mode="before")
    @classmethod
    def _tag_tuple(cls, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, str):
            value = [tag.strip() for tag in value.split(",") if tag.strip()]
        tags = tuple(_dedupe(value))
        return tags or None

    def to_query_params(self) -> dict[str, str]:
        """Render as query parameters; unset fields are omitted."""
        params: dict[str, str] = {}
        if self.status:
            params["status"] = self.status.value
        if self.priority:
            params["priority"] = self.priority.value
        if self.project_id:
            params["projectId"] = self.project_id
        if self.assigned_to:
            params["assignedTo"] = self.assigned_to
        if self.search:
            params["search"] = self.search
        if self.tags:
            params["tags"] = ",".join(self.tags)
        if self.overdue:
            params["overdue"] = "true"
        if self.due_date_from:
            params["dueDateFrom"] = self.due_date_from.isoformat()
        if self.due_date_to:
            params["dueDateTo"] = self.due_date_to.isoformat()
        return params

    def matches(self, task: Task, today: date) -> bool:
        """Check whether a task satisfies every active predicate."""
        if self.status and task.status != self.status:
            return False
        if self.priority and task.priority != self.priority:
            return False
        if self.project_id and task.project_id != self.project_id:
            return False
        if self.assigned_to and task.assigned_to_id != self.assigned_to:
            return False
        if self.search:
            needle = self.search.strip().lower()
            haystack = f"{task.title}\n{task.description or ''}".lower()
            if needle not in haystack:
                return False
        if self.tags and not set(self.tags).issubset(task.tags):
            return False
        if self.overdue and not task.is_overdue(today):
            return False
        if self.due_date_from and (task.due_date is None or task.due_date < self.due_date_from):
            return False
        if self.due_date_to and (task.due_date is None or task.due_date > self.due_date_to):
            return False
        return True


def _zero_counts(enum_cls: type[Enum]) -> dict:
    return {member: 0 for member in enum_cls}


class TaskStats(WireModel):
    """Server-computed aggregate counts, independent of the current page."""

    total: int = Field(default=0, ge=0)
    by_status: dict[TaskStatus, int] = Field(default_factory=lambda: _zero_counts(TaskStatus))
    by_priority: dict[TaskPriority, int] = Field(default_factory=lambda: _zero_counts(TaskPriority))
    overdue: int = Field(default=0, ge=0)
    due_today: int = Field(default=0, ge=0)
    due_this_week: int = Field(default=0, ge=0)

    @field_validator("by_status", mode="after")
    @classmethod
    def _all_statuses(cls, value: dict[TaskStatus, int]) -> dict[TaskStatus, int]:
        return {status: value.get(status, 0) for status in TaskStatus}

    @field_validator("by_priority", mode="after")
    @classmethod
    def _all_priorities(cls, value: dict[TaskPriority, int]) -> dict[TaskPriority, int]:
        return {priority: value.get(priority, 0) for priority in TaskPriority}

    @classmethod
    def from_tasks(cls, tasks: Iterable[Task], today: date) -> "TaskStats":
        """Compute stats over a complete task set."""
        tasks = list(tasks)
        by_status = _zero_counts(TaskStatus)
        by_priority = _zero_counts(TaskPriority)
        overdue = due_today = due_this_week = 0
        week_end = today + timedelta(days=6)

        for task in tasks:
            by_status[task.status] += 1
            by_priority[task.priority] += 1
            if task.status == TaskStatus.COMPLETED or task.due_date is None:
                continue
            if task.due_date < today:
                overdue += 1
            elif task.due_date == today:
                due_today += 1
            if today <= task.due_date <= week_end:
                due_this_week += 1

        return cls(
            total=len(tasks),
            by_status=by_status,
            by_priority=by_priority,
            overdue=overdue,
            due_today=due_today,
            due_this_week=due_this_week,
        )


class Pagination(WireModel):
    """Page position; ``total_pages`` is always ``ceil(total / limit)``."""

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=50, ge=1)
    total: int = Field(default=0, ge=0)
    total_pages: int = 0

    @model_validator(mode="after")
    def _derive_total_pages(self) -> "Pagination":
        self.total_pages = math.ceil(self.total / self.limit)
        return self


class TaskPage(WireModel):
    """One page of tasks as returned by the list endpoint."""

    items: list[Task] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)


__all__ = [
    "ALL",
    "Pagination",
    "Task",
    "TaskCreate",
    "TaskFilters",
    "TaskPage",
    "TaskPriority",
    "TaskStats",
    "TaskStatus",
    "TaskUpdate",
]
