"""Event binding and emission for PyPusher."""

import inspect
from collections.abc import Callable
from typing import Any

import structlog

from .types import PusherEvent

logger = structlog.get_logger(__name__)


async def invoke(callback: Callable, *args: Any) -> None:
    """Call a sync or async callback and wait for it."""
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class EventEmitter:
    """
    Holds event handlers bound by name and emits events to them.

    Handlers take a single ``PusherEvent`` argument and may be plain
    functions or coroutine functions. Handlers bound with ``bind_all``
    receive every event. A failing handler is logged and does not stop the
    remaining handlers.
    """

    def __init__(self):
        self.bindings: dict[str, list[Callable]] = {}
        self.global_bindings: list[Callable] = []

    def bind(self, event: str, callback: Callable | None = None):
        """
        Register an event handler.

        Can be used as a decorator:
            @channel.bind("my-event")
            def handler(event):
                pass

        Or as a regular method:
            channel.bind("my-event", handler)
        """

        def decorator(func: Callable) -> Callable:
            self.bindings.setdefault(event, []).append(func)
            logger.debug("events.bound", event_name=event)
            return func

        if callback is None:
            return decorator

        decorator(callback)
        return callback

    def bind_all(self, callback: Callable) -> Callable:
        """Register a handler that receives every event."""
        self.global_bindings.append(callback)
        return callback

    def unbind(self, event: str, callback: Callable | None = None) -> None:
        """
        Remove event handler(s).

        Args:
            event: The event name
            callback: Specific callback to remove, or None to remove all
        """
        if event not in self.bindings:
            return

        if callback is None:
            self.bindings[event] = []
        else:
            self.bindings[event] = [cb for cb in self.bindings[event] if cb != callback]

    def unbind_all(self) -> None:
        """Remove every handler."""
        self.bindings.clear()
        self.global_bindings.clear()

    async def emit_event(self, event: PusherEvent) -> None:
        """Deliver an event to its bound handlers and then to the global ones."""
        callbacks = list(self.bindings.get(event.event, [])) + list(self.global_bindings)

        for callback in callbacks:
            try:
                await invoke(callback, event)
            except Exception as e:
                logger.error(
                    "events.callback_error",
                    event_name=event.event,
                    channel=event.channel,
                    error=str(e),
                )
