"""
Hook registry for host integration.

The engine registers nothing on import. The host integration layer
creates a registry, calls ``register_mitigator`` explicitly and then
dispatches its own lifecycle events into it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from ..utils.logger import get_logger

if TYPE_CHECKING:
    from ..core import Mitigator

logger = get_logger("hooks")

ADMIN_INIT = "admin_init"
ALL_PLUGINS = "all_plugins"

DEFAULT_PRIORITY = 10
# Runs after plugins that try to hide themselves from the list
VISIBILITY_PRIORITY = 999


@dataclass
class _Callback:
    priority: int
    order: int
    func: Callable[..., Any]


class HookRegistry:
    """
    Priority-ordered actions and filters.

    Features:
    - add_action / do_action for side-effect hooks
    - add_filter / apply_filters for value-transforming hooks
    - Lower priority runs first; ties keep registration order
    """

    def __init__(self):
        self._hooks: Dict[str, List[_Callback]] = {}
        self._counter = 0

    def _add(self, hook: str, func: Callable[..., Any], priority: int) -> None:
        self._counter += 1
        callbacks = self._hooks.setdefault(hook, [])
        callbacks.append(_Callback(priority, self._counter, func))
        callbacks.sort(key=lambda cb: (cb.priority, cb.order))

    def add_action(self, hook: str, func: Callable[..., Any], priority: int = DEFAULT_PRIORITY) -> None:
        self._add(hook, func, priority)

    def add_filter(self, hook: str, func: Callable[..., Any], priority: int = DEFAULT_PRIORITY) -> None:
        self._add(hook, func, priority)

    def remove(self, hook: str, func: Callable[..., Any]) -> bool:
        """Remove every registration of func on hook."""
        callbacks = self._hooks.get(hook, [])
        kept = [cb for cb in callbacks if cb.func != func]
        self._hooks[hook] = kept
        return len(kept) != len(callbacks)

    def has(self, hook: str, func: Optional[Callable[..., Any]] = None) -> bool:
        callbacks = self._hooks.get(hook, [])
        if func is None:
            return bool(callbacks)
        return any(cb.func == func for cb in callbacks)

    def do_action(self, hook: str, *args: Any) -> None:
        for cb in list(self._hooks.get(hook, [])):
            cb.func(*args)

    def apply_filters(self, hook: str, value: Any, *args: Any) -> Any:
        for cb in list(self._hooks.get(hook, [])):
            value = cb.func(value, *args)
        return value


def register_mitigator(registry: HookRegistry, mitigator: "Mitigator") -> None:
    """
    Wire a mitigator into the host's hooks.

    - admin_init: one gated mitigation pass per qualifying request
    - all_plugins: visibility enforcement on every plugin list render
    """
    registry.add_action(ADMIN_INIT, mitigator.on_admin_request)
    registry.add_filter(ALL_PLUGINS, mitigator.on_plugin_list, VISIBILITY_PRIORITY)
    logger.debug("Mitigator hooks registered")
