"""Built-in hooks."""

from tpdesk.hooks.builtin.logging import EventLogHook
from tpdesk.hooks.builtin.metrics import MutationMetricsHook

__all__ = ["EventLogHook", "MutationMetricsHook"]
