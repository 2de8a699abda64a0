"""Built-in event log hook."""

import json
import logging
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from tpdesk.hooks.base import Hook, HookContext, HookResult

logger = logging.getLogger(__name__)


class EventLogHook(Hook):
    """
    Appends every event it receives to a file.

    Config options:
        log_file: Path to log file (default: .tpdesk/events.log)
        log_format: "text" or "json" (default: "text")
    """

    priority = 10

    def __init__(self, config: dict[str, Any]):
        self.config = config
        self.log_file = config.get("log_file", ".tpdesk/events.log")
        self.log_format = config.get("log_format", "text")

        Path(self.log_file).parent.mkdir(parents=True, exist_ok=True)

    async def execute(self, context: HookContext) -> HookResult:
        timestamp = datetime.now().isoformat()

        if self.log_format == "json":
            entry = {
                "timestamp": timestamp,
                "event": context.event,
                "data": self._sanitize_data(context.data),
            }
            line = json.dumps(entry) + "\n"
        else:
            line = f"[{timestamp}] Event: {context.event} | Data: {self._format_data(context.data)}\n"

        try:
            with open(self.log_file, "a") as f:
                f.write(line)
        except OSError as e:
            logger.error(f"Cannot write event log {self.log_file}: {e}")

        return HookResult()

    def _sanitize_data(self, data: dict[str, Any]) -> dict[str, Any]:
        """Make event data JSON-serializable."""
        sanitized = {}
        for key, value in data.items():
            if isinstance(value, BaseModel):
                sanitized[key] = value.model_dump(mode="json", by_alias=True)
            elif isinstance(value, Enum):
                sanitized[key] = value.value
            else:
                try:
                    json.dumps(value)
                    sanitized[key] = value
                except (TypeError, ValueError):
                    sanitized[key] = str(value)
        return sanitized

    def _format_data(self, data: dict[str, Any]) -> str:
        items = []
        for key, value in data.items():
            if isinstance(value, BaseModel):
                name = value.__class__.__name__
                identifier = getattr(value, "id", None)
                items.append(f"{key}={name}({identifier})" if identifier else f"{key}={name}")
                continue
            if isinstance(value, Enum):
                value = value.value
            value_str = str(value)
            if len(value_str) > 100:
                value_str = value_str[:97] + "..."
            items.append(f"{key}={value_str}")
        return ", ".join(items)
