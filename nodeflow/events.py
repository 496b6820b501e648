# nodeflow/events.py
import inspect
import logging
import threading
from typing import Any, Callable, List

from .models import GraphEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[GraphEvent], Any]


class EventBus:
    """Fan-out of run lifecycle events to every subscriber of a compiled graph.

    Handlers may be plain functions or coroutine functions. A handler that
    raises is logged and skipped; it never affects the run that emitted
    the event.
    """

    def __init__(self):
        self._handlers: List[EventHandler] = []
        self._lock = threading.Lock()

    def subscribe(self, handler: EventHandler) -> None:
        with self._lock:
            if handler not in self._handlers:
                self._handlers.append(handler)

    def unsubscribe(self, handler: EventHandler) -> None:
        with self._lock:
            if handler in self._handlers:
                self._handlers.remove(handler)

    @property
    def handlers(self) -> List[EventHandler]:
        with self._lock:
            return list(self._handlers)

    async def publish(self, event: GraphEvent) -> None:
        for handler in self.handlers:
            try:
                res = handler(event)
                if inspect.isawaitable(res):
                    await res
            except Exception:
                logger.exception(
                    "event handler failed: handler=%r, event_type=%s, execution_id=%s",
                    handler,
                    event.event_type.value,
                    event.execution_id,
                )
