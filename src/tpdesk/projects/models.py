"""Project data models."""

from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from pydantic import Field, field_validator

from tpdesk.core.models import ALL, FilterModel, WireModel
from tpdesk.tasks.models import Pagination, TaskPriority


class ProjectStatus(str, Enum):
    """Engagement lifecycle status."""

    NOT_STARTED = "NOT_STARTED"
    PLANNING = "PLANNING"
    DATA_GATHERING = "DATA_GATHERING"
    ANALYSIS = "ANALYSIS"
    DRAFTING = "DRAFTING"
    INTERNAL_REVIEW = "INTERNAL_REVIEW"
    CLIENT_REVIEW = "CLIENT_REVIEW"
    FINALIZATION = "FINALIZATION"
    DELIVERED = "DELIVERED"
    ARCHIVED = "ARCHIVED"
    ON_HOLD = "ON_HOLD"
    WAITING_CLIENT = "WAITING_CLIENT"
    WAITING_THIRD_PARTY = "WAITING_THIRD_PARTY"
    REVISION_REQUIRED = "REVISION_REQUIRED"


class DeliverableType(str, Enum):
    """What the engagement produces."""

    LOCAL_FILE = "LOCAL_FILE"
    MASTER_FILE = "MASTER_FILE"
    BENCHMARK_ANALYSIS = "BENCHMARK_ANALYSIS"
    IC_AGREEMENT = "IC_AGREEMENT"
    TP_POLICY = "TP_POLICY"
    AOA_REPORT = "AOA_REPORT"
    TRANSACTION_REPORT = "TRANSACTION_REPORT"
    TP_AUDIT_SUPPORT = "TP_AUDIT_SUPPORT"
    SETTLEMENT_PROCEDURE = "SETTLEMENT_PROCEDURE"
    APA_MAP_NEGOTIATION = "APA_MAP_NEGOTIATION"
    TP_PLANNING = "TP_PLANNING"
    DISPUTE_RESOLUTION = "DISPUTE_RESOLUTION"
    IP_VALUATION = "IP_VALUATION"
    CBCR_SUPPORT = "CBCR_SUPPORT"
    LF_COMMENT_REVIEW = "LF_COMMENT_REVIEW"
    MF_COMMENT_REVIEW = "MF_COMMENT_REVIEW"


class Project(WireModel):
    """A client engagement."""

    id: str
    project_name: str = Field(min_length=1)
    client_id: Optional[str] = None
    organization_id: Optional[str] = None
    deliverable_type: Optional[DeliverableType] = None
    status: ProjectStatus = ProjectStatus.NOT_STARTED
    priority: TaskPriority = TaskPriority.MEDIUM
    start_date: Optional[date] = None
    deadline: Optional[date] = None
    estimated_hours: Optional[float] = Field(default=None, ge=0)
    actual_hours: Optional[float] = Field(default=None, ge=0)
    budget: Optional[float] = Field(default=None, ge=0)
    actual_cost: Optional[float] = Field(default=None, ge=0)
    project_manager_id: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("start_date", "deadline", mode="before")
    @classmethod
    def _date_part(cls, value: Any) -> Any:
        if isinstance(value, str) and "T" in value:
            return value.split("T", 1)[0]
        if isinstance(value, datetime):
            return value.date()
        return value


class ProjectFilters(FilterModel):
    """
    Query predicate for the project list.

    The ``"all"`` sentinel is accepted for status and priority.
    """

    status: Optional[ProjectStatus] = None
    priority: Optional[TaskPriority] = None
    search: Optional[str] = None
    project_manager_id: Optional[str] = None

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

    def to_query_params(self) -> dict[str, str]:
        params: dict[str, str] = {}
        if self.status:
            params["status"] = self.status.value
        if self.priority:
            params["priority"] = self.priority.value
        if self.search:
            params["search"] = self.search
        if self.project_manager_id:
            params["projectManagerId"] = self.project_manager_id
        return params

    def matches(self, project: Project) -> bool:
        """Check whether a project satisfies every active predicate."""
        if self.status and project.status != self.status:
            return False
        if self.priority and project.priority != self.priority:
            return False
        if self.project_manager_id and project.project_manager_id != self.project_manager_id:
            return False
        if self.search:
            needle = self.search.strip().lower()
            haystack = f"{project.project_name}\n{project.description or ''}".lower()
            if needle not in haystack:
                return False
        return True


class ProjectPage(WireModel):
    """One page of projects as returned by the list endpoint."""

    items: list[Project] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=lambda: Pagination(limit=20))


__all__ = [
    "DeliverableType",
    "Project",
    "ProjectFilters",
    "ProjectPage",
    "ProjectStatus",
]
