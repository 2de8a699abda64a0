"""Base classes for change notifications."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

# Events emitted by the stores
TASKS_LOADED = "tasks.loaded"
TASKS_LOAD_FAILED = "tasks.load_failed"
STATS_LOADED = "stats.loaded"
STATS_LOAD_FAILED = "stats.load_failed"
TASK_CREATED = "task.created"
TASK_UPDATED = "task.updated"
TASK_DELETED = "task.deleted"
TASK_MUTATION_FAILED = "task.mutation_failed"
KANBAN_MOVE_REVERTED = "kanban.move_reverted"
WORKFLOW_LOADED = "workflow.loaded"
WORKFLOW_LOAD_FAILED = "workflow.load_failed"
WORKFLOW_STEP_UPDATED = "workflow.step_updated"
WORKFLOW_STEP_UPDATE_FAILED = "workflow.step_update_failed"
PROJECTS_LOADED = "projects.loaded"
PROJECTS_LOAD_FAILED = "projects.load_failed"
PROJECT_LOADED = "project.loaded"
PROJECT_LOAD_FAILED = "project.load_failed"


@dataclass
class HookContext:
    """Context passed to hooks when an event fires."""

    event: str  # e.g. "task.updated"
    data: dict[str, Any]  # Event-specific data
    source: Optional[Any] = None  # Store or view that emitted the event
    metadata: dict[str, Any] = field(default_factory=dict)  # Filled in by earlier hooks


@dataclass
class HookResult:
    """Result returned from a hook."""

    metadata: Optional[dict[str, Any]] = None  # Passed on to later hooks


class Hook(ABC):
    """Base hook interface for user implementation."""

    priority: int = 100  # Lower runs first

    @abstractmethod
    async def execute(self, context: HookContext) -> HookResult:
        """
        React to an event.

        Hooks observe; they must not write into store caches.

        Args:
            context: Hook execution context

        Returns:
            HookResult, optionally with metadata for later hooks
        """
        pass

    def should_run(self, context: HookContext) -> bool:
        """Optional filter to skip this hook for some events."""
        return True


def hook(event: str, priority: int = 100) -> Any:
    """
    Decorator turning an async function into a Hook for ``event``.

    Args:
        event: Event name, or "*" for every event
        priority: Lower runs first

    Returns:
        Hook instance with ``event`` and ``priority`` attributes
    """

    def decorator(func: Any) -> Any:
        hook_priority = priority

        class FunctionHook(Hook):
            priority = hook_priority

            async def execute(self, context: HookContext) -> HookResult:
                result = await func(context)
                return result if isinstance(result, HookResult) else HookResult()

        instance = FunctionHook()
        instance.event = event
        instance.__name__ = getattr(func, "__name__", "FunctionHook")
        return instance

    return decorator
