# nodeflow/hooks.py
import asyncio
import inspect
import logging
from typing import Any, Callable, Mapping, Optional, Set

from .edges import Edge
from .graph import CompiledGraph
from .models import EventType, GraphEvent, GraphResult, RunOptions
from .nodes import Node

logger = logging.getLogger(__name__)

ResultCallback = Callable[[GraphResult], Any]


class HookRunnable(CompiledGraph):
    """A sub-graph triggered by a parent graph's node completions.

    Each successful NODE_END of the entry point starts an independent run
    of this graph, seeded with that node's output. Hook runs are never
    awaited by the parent and their results never enter the parent's
    GraphResult; they go to `on_result` instead.
    """

    def __init__(
        self,
        nodes: Mapping[str, Node],
        edges: Mapping[str, Edge],
        start: str,
        end: Optional[str],
        parent: CompiledGraph,
        entry_point: str,
    ):
        super().__init__(nodes, edges, start, end)
        self.parent = parent
        self.entry_point = entry_point
        self._options = RunOptions()
        self._on_result: Optional[ResultCallback] = None
        self._in_flight: Set[asyncio.Task] = set()

    @property
    def connected(self) -> bool:
        return self._listener in self.parent.bus.handlers

    def connect(self, options: Any = None, on_result: Optional[ResultCallback] = None) -> None:
        """Start listening to the parent graph.

        `options` is a RunOptions or a mapping of `max_node_visits`,
        `timeout_ms` and `on_result`; an explicit `on_result` argument wins.
        """
        if isinstance(options, Mapping):
            options = dict(options)
            callback = options.pop("on_result", None)
            on_result = on_result or callback
        self._options = RunOptions.resolve(options)
        self._on_result = on_result
        self.parent.subscribe(self._listener)
        logger.debug("hook_connected: entry_point=%s", self.entry_point)

    def disconnect(self) -> None:
        self.parent.unsubscribe(self._listener)
        logger.debug("hook_disconnected: entry_point=%s", self.entry_point)

    async def join(self) -> None:
        """Wait for hook runs already in flight."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    def _listener(self, event: GraphEvent) -> None:
        if event.event_type != EventType.NODE_END:
            return
        history = event.history
        if history.node.name != self.entry_point or not history.is_ok:
            return
        task = asyncio.ensure_future(self._run(history.node.output, self._options, self._on_result))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def _run(self, input: Any, options: RunOptions, on_result: Optional[ResultCallback]) -> None:
        result = await self._engine.run(input, options)
        if on_result is None:
            return
        try:
            res = on_result(result)
            if inspect.isawaitable(res):
                await res
        except Exception:
            logger.exception(
                "hook result callback failed: entry_point=%s, execution_id=%s",
                self.entry_point,
                result.execution_id,
            )
