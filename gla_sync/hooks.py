"""
Hook registry

Named actions (dispatched by the worker) and filters (extension points such
as the per-job batch size). Callbacks run in registration order.
"""

from __future__ import annotations

import inspect
from collections import defaultdict
from typing import Any, Callable

import structlog

logger = structlog.get_logger()

ActionCallback = Callable[..., Any]
FilterCallback = Callable[..., Any]


class HookRegistry:
    def __init__(self) -> None:
        self._actions: dict[str, list[ActionCallback]] = defaultdict(list)
        self._filters: dict[str, list[FilterCallback]] = defaultdict(list)

    def add_action(self, hook: str, callback: ActionCallback) -> None:
        self._actions[hook].append(callback)

    def has_action(self, hook: str) -> bool:
        return bool(self._actions.get(hook))

    async def do_action(self, hook: str, *args: Any) -> None:
        """Run every callback registered for `hook`.

        Exceptions propagate to the caller; remaining callbacks are not run.
        """
        callbacks = list(self._actions.get(hook) or [])
        if not callbacks:
            logger.warning("No callbacks registered for hook", hook=hook)
            return
        for callback in callbacks:
            result = callback(*args)
            if inspect.isawaitable(result):
                await result

    def add_filter(self, name: str, callback: FilterCallback) -> None:
        self._filters[name].append(callback)

    def apply_filters(self, name: str, value: Any, *args: Any) -> Any:
        for callback in self._filters.get(name) or []:
            value = callback(value, *args)
        return value
