"""Built-in mutation metrics hook."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from tpdesk.hooks.base import (
    KANBAN_MOVE_REVERTED,
    TASK_CREATED,
    TASK_DELETED,
    TASK_MUTATION_FAILED,
    TASK_UPDATED,
    TASKS_LOAD_FAILED,
    WORKFLOW_STEP_UPDATE_FAILED,
    WORKFLOW_STEP_UPDATED,
    Hook,
    HookContext,
    HookResult,
)

logger = logging.getLogger(__name__)

SUCCESS_EVENTS = {TASK_CREATED, TASK_UPDATED, TASK_DELETED, WORKFLOW_STEP_UPDATED}
FAILURE_EVENTS = {
    TASK_MUTATION_FAILED,
    TASKS_LOAD_FAILED,
    WORKFLOW_STEP_UPDATE_FAILED,
    KANBAN_MOVE_REVERTED,
}


class MutationMetricsHook(Hook):
    """
    Counts mutations and failures per event.

    Register it for "*". Counts are kept in memory and, when ``output_file``
    is set, persisted as JSON after every change.

    Config options:
        output_file: Path to metrics JSON file (default: none, memory only)
    """

    priority = 100

    def __init__(self, config: Optional[dict[str, Any]] = None):
        self.config = config or {}
        self.output_file = self.config.get("output_file")
        self.metrics: dict[str, Any] = {"events": {}, "last_updated": None}

        if self.output_file:
            Path(self.output_file).parent.mkdir(parents=True, exist_ok=True)
            self._load_metrics()

    def should_run(self, context: HookContext) -> bool:
        return context.event in SUCCESS_EVENTS or context.event in FAILURE_EVENTS

    async def execute(self, context: HookContext) -> HookResult:
        events = self.metrics["events"]
        events[context.event] = events.get(context.event, 0) + 1
        self.metrics["last_updated"] = datetime.now().isoformat()

        if self.output_file:
            self._save_metrics()

        return HookResult()

    def _load_metrics(self) -> None:
        path = Path(self.output_file)
        if not path.exists():
            return
        try:
            with open(path) as f:
                self.metrics.update(json.load(f))
            logger.debug(f"Loaded metrics from {path}")
        except (OSError, ValueError) as e:
            logger.warning(f"Error loading metrics: {e}")

    def _save_metrics(self) -> None:
        try:
            with open(self.output_file, "w") as f:
                json.dump(self.metrics, f, indent=2)
        except OSError as e:
            logger.error(f"Error saving metrics: {e}")

    def get_summary(self) -> dict[str, Any]:
        """
        Summarize collected counts.

        Returns:
            Dict with ``mutations``, ``failures`` and ``failure_rate``
        """
        events = self.metrics["events"]
        mutations = sum(count for event, count in events.items() if event in SUCCESS_EVENTS)
        failures = sum(count for event, count in events.items() if event in FAILURE_EVENTS)
        attempts = mutations + failures
        return {
            "mutations": mutations,
            "failures": failures,
            "failure_rate": failures / attempts if attempts > 0 else 0.0,
            "by_event": dict(events),
        }
