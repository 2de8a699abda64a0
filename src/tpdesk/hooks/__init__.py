"""Change notifications for task and workflow stores."""

from tpdesk.hooks.base import Hook, HookContext, HookResult, hook
from tpdesk.hooks.engine import HookEngine

__all__ = ["Hook", "HookContext", "HookEngine", "HookResult", "hook"]
