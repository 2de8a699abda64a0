"""Kanban board over a TaskStore."""

import logging
from dataclasses import dataclass
from typing import Optional, Union

from tpdesk.errors import InvalidInputError, TpDeskError
from tpdesk.hooks import base as events
from tpdesk.tasks.models import Task, TaskStatus
from tpdesk.tasks.store import TaskStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KanbanColumn:
    status: TaskStatus
    title: str
    tasks: tuple[Task, ...] = ()


COLUMN_TITLES = {
    TaskStatus.TODO: "To Do",
    TaskStatus.IN_PROGRESS: "In Progress",
    TaskStatus.REVIEW: "In Review",
    TaskStatus.COMPLETED: "Completed",
    TaskStatus.BLOCKED: "Blocked",
}


class KanbanBoard:
    """
    Groups the store's current page into status columns and turns card drops
    into status updates.

    While a move is in flight the card is shown in its target column. The
    store's cache is only changed by the store itself once the update
    succeeds; on failure the pending move is dropped and the card is shown in
    its original column again.
    """

    def __init__(self, store: TaskStore) -> None:
        self.store = store
        self._pending: dict[str, TaskStatus] = {}
        self.last_error: Optional[str] = None

    def displayed_status(self, task: Task) -> TaskStatus:
        return self._pending.get(task.id, task.status)

    def columns(self) -> list[KanbanColumn]:
        """Columns in fixed order, each keeping the page's task order."""
        grouped: dict[TaskStatus, list[Task]] = {status: [] for status in COLUMN_TITLES}
        for task in self.store.tasks:
            grouped[self.displayed_status(task)].append(task)

        return [
            KanbanColumn(status=status, title=title, tasks=tuple(grouped[status]))
            for status, title in COLUMN_TITLES.items()
        ]

    def column_for(self, task_id: str) -> Optional[TaskStatus]:
        """Column a card is currently shown in."""
        task = self.store.get(task_id)
        return self.displayed_status(task) if task else None

    async def move_card(self, task_id: str, new_status: Union[TaskStatus, str]) -> bool:
        """
        Handle a card dropped into a column.

        Args:
            task_id: Dragged task
            new_status: Status of the column it was dropped into

        Returns:
            True if the status changed; False for a drop into the card's own
            column (no request is made) or a failed update (card reverted)
        """
        try:
            new_status = TaskStatus(new_status)
        except ValueError as e:
            raise InvalidInputError(f"Unknown task status: {new_status!r}") from e

        task = self.store.get(task_id)
        if task is None:
            logger.debug(f"Dropped card {task_id} is not on the current page")
            return False

        if self.displayed_status(task) == new_status:
            return False

        previous = task.status
        self._pending[task_id] = new_status
        self.last_error = None
        try:
            await self.store.update_status(task_id, new_status)
        except TpDeskError as e:
            self._pending.pop(task_id, None)
            self.last_error = e.message
            logger.info(f"Reverting card {task_id} to '{previous.value}': {self.last_error}")
            await self.store.emit(
                events.KANBAN_MOVE_REVERTED,
                {"task_id": task_id, "from": previous, "to": new_status, "error": self.last_error},
            )
            return False

        self._pending.pop(task_id, None)
        return True
