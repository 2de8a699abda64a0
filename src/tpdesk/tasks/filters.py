"""Filter state for the task and project lists."""

import logging
from typing import Any, Generic, Optional

from tpdesk.core.models import FilterT
from tpdesk.tasks.models import TaskFilters

logger = logging.getLogger(__name__)


class FilterState(Generic[FilterT]):
    """
    Holds the current filters and the value ``reset`` returns to.

    The initial value is whatever the caller supplied, not necessarily
    empty filters. Without one, ``filters_type()`` is used.
    """

    def __init__(
        self,
        initial: Optional[FilterT] = None,
        filters_type: type[FilterT] = TaskFilters,
    ) -> None:
        self.initial = initial or filters_type()
        self.current = self.initial

    def update(self, **partial: Any) -> set[str]:
        """
        Merge a partial update into the current filters.

        Args:
            **partial: Fields to change; an explicit ``None`` clears the field

        Returns:
            Names of the fields whose values actually changed

        Raises:
            InvalidInputError: Unknown field or invalid value
        """
        merged = self.current.merged(**partial)
        changed = merged.changed_fields(self.current)
        self.current = merged
        if changed:
            logger.debug(f"Filters changed: {sorted(changed)}")
        return changed

    def reset(self) -> set[str]:
        """Restore the initial filters; returns the fields that changed."""
        changed = self.initial.changed_fields(self.current)
        self.current = self.initial
        return changed
