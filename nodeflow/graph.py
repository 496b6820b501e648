# nodeflow/graph.py
from typing import Any, Mapping, Optional

from .edges import Edge
from .engine import WorkflowEngine
from .errors import ConfigurationError
from .events import EventBus, EventHandler
from .models import GraphResult, GraphStructure, NodeStructure
from .nodes import Node


class CompiledGraph:
    """Immutable node catalog and edge table plus the graph's event bus."""

    def __init__(self, nodes: Mapping[str, Node], edges: Mapping[str, Edge], start: str, end: Optional[str]):
        self.nodes = nodes
        self.edges = edges
        self.start = start
        self.end = end
        self.bus = EventBus()
        self._engine = WorkflowEngine(nodes, edges, start, end, self.bus)

    def get_structure(self) -> GraphStructure:
        structure = []
        for name in self.nodes:
            edge = self.edges.get(name)
            structure.append(NodeStructure(name=name, edge=edge.describe() if edge else None))
        return structure

    def subscribe(self, handler: EventHandler) -> None:
        self.bus.subscribe(handler)

    def unsubscribe(self, handler: EventHandler) -> None:
        self.bus.unsubscribe(handler)

    def attach_hook(self, entry_point: str):
        """Start building a sub-graph that runs whenever `entry_point` completes."""
        from .registry import GraphRegistry

        if entry_point not in self.nodes:
            raise ConfigurationError(f"cannot attach hook to unknown node '{entry_point}'")
        return GraphRegistry(hook_parent=self, hook_entry_point=entry_point)


class Graph(CompiledGraph):
    async def run(self, input: Any, options: Any = None) -> GraphResult:
        """Run once from the start node.

        `options` is a RunOptions, a mapping with `max_node_visits` and/or
        `timeout_ms`, or None for the defaults. Failures are reported in
        the returned GraphResult, never raised.
        """
        return await self._engine.run(input, options)
