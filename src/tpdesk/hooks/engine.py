"""Hook engine delivering store change events to observers."""

import importlib
import logging
from pathlib import Path
from typing import Any, Optional

import yaml

from tpdesk.hooks.base import Hook, HookContext, HookResult

logger = logging.getLogger(__name__)


class HookEngine:
    """
    Dispatches store events to registered hooks.

    Features:
    - Load hooks from YAML configuration
    - Register hooks programmatically (dependent views, tests)
    - Execute hooks in priority order, "*" hooks receive every event
    - A failing hook is logged and skipped; it never fails the store operation
    """

    def __init__(self, config: Optional[dict] = None):
        """
        Initialize hook engine.

        Args:
            config: Hook configuration (``enabled``, ``config_file``)
        """
        self.config = config or {}
        self.hooks: dict[str, list[tuple[int, Hook]]] = {}  # event -> [(priority, hook)]
        self.enabled = self.config.get("enabled", True)

    async def initialize(self) -> None:
        """Load hooks from the configured YAML file, if any."""
        if not self.enabled:
            logger.info("Hooks disabled in configuration")
            return

        config_file = self.config.get("config_file")
        if config_file:
            if Path(config_file).exists():
                self.load_from_yaml(config_file)
            else:
                logger.warning(f"Hook config file not found: {config_file}")

        logger.info(f"Hook engine initialized with {self._count_hooks()} hooks")

    def _count_hooks(self) -> int:
        return sum(len(hooks) for hooks in self.hooks.values())

    def load_from_yaml(self, config_file: str) -> None:
        """
        Register hooks listed in a YAML file.

        Expected layout::

            hooks:
              "task.updated":
                - path: "tpdesk.hooks.builtin.logging:EventLogHook"
                  priority: 10
                  config: {log_file: ".tpdesk/events.log"}

        Args:
            config_file: Path to hooks.yaml
        """
        with open(config_file) as f:
            hook_config = yaml.safe_load(f) or {}

        hooks_by_event = hook_config.get("hooks")
        if not hooks_by_event:
            logger.warning(f"No hooks found in {config_file}")
            return

        for event, hook_list in hooks_by_event.items():
            if not isinstance(hook_list, list):
                logger.warning(f"Invalid hook list for event {event}")
                continue
            for spec in hook_list:
                self._register_from_spec(event, spec)

    def _register_from_spec(self, event: str, spec: dict) -> None:
        if not spec.get("enabled", True):
            logger.debug(f"Skipping disabled hook for event {event}")
            return

        hook_path = spec.get("path", "")
        if ":" not in hook_path:
            logger.warning(f"Invalid hook path for event {event}: {hook_path!r}")
            return

        module_path, class_name = hook_path.split(":", 1)
        try:
            module = importlib.import_module(module_path)
            hook_class = getattr(module, class_name)
        except (ImportError, AttributeError) as e:
            logger.error(f"Cannot load hook {hook_path} for event {event}: {e}")
            return

        hook = hook_class(config=spec.get("config", {}))
        self.register(event, hook, priority=spec.get("priority", hook.priority))
        logger.info(f"Registered hook {class_name} for event '{event}'")

    def register(self, event: str, hook: Hook, priority: Optional[int] = None) -> None:
        """
        Register a hook for an event.

        Args:
            event: Event name, or "*" for all events
            hook: Hook instance
            priority: Overrides ``hook.priority`` (lower runs first)
        """
        priority = hook.priority if priority is None else priority
        self.hooks.setdefault(event, []).append((priority, hook))
        self.hooks[event].sort(key=lambda x: x[0])
        logger.debug(f"Registered hook {hook.__class__.__name__} for '{event}' (priority={priority})")

    def unregister(self, hook: Hook) -> None:
        """Remove a hook from every event it was registered for."""
        for event in list(self.hooks):
            self.hooks[event] = [(p, h) for p, h in self.hooks[event] if h is not hook]
            if not self.hooks[event]:
                del self.hooks[event]

    async def trigger(
        self,
        event: str,
        data: dict[str, Any],
        source: Optional[Any] = None,
    ) -> HookResult:
        """
        Run all hooks for an event.

        Args:
            event: Event name
            data: Event-specific data
            source: Emitting store or view

        Returns:
            HookResult with metadata accumulated across hooks
        """
        if not self.enabled:
            return HookResult()

        all_hooks = self.hooks.get(event, []) + self.hooks.get("*", [])
        all_hooks.sort(key=lambda x: x[0])
        if not all_hooks:
            return HookResult()

        context = HookContext(event=event, data=data, source=source)
        for priority, hook in all_hooks:
            try:
                if not hook.should_run(context):
                    continue
                result = await hook.execute(context)
                if result and result.metadata:
                    context.metadata.update(result.metadata)
            except Exception as e:
                logger.error(
                    f"Error executing hook {hook.__class__.__name__} for event '{event}': {e}",
                    exc_info=True,
                )

        return HookResult(metadata=context.metadata)

    def get_hooks_for_event(self, event: str) -> list[Hook]:
        """Hooks that would run for ``event``, wildcard hooks included."""
        return [hook for _, hook in self.hooks.get(event, []) + self.hooks.get("*", [])]
